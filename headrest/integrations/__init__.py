"""External integration adapters."""

from .organizations import BackendResponse, OrganizationsClient

__all__ = [
    "BackendResponse",
    "OrganizationsClient",
]
