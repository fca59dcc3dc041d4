"""
API Routes Package
"""
from . import (
    health,
    billing,
)
