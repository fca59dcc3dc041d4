import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('STRIPE_SECRET_KEY', 'sk_test_headrest')
os.environ.setdefault('STRIPE_WEBHOOK_SECRET', 'whsec_test_headrest')
os.environ.setdefault('API_URL', 'https://backend.test')
os.environ.setdefault('ENCRYPTION_KEY', '0eb1670a683413706c95b701827e149d')
for _tier in ('HOBBY', 'STARTER', 'PROFESSIONAL', 'BUSINESS'):
    for _period in ('MONTHLY', 'ANNUAL'):
        os.environ.setdefault(
            f'STRIPE_{_tier}_{_period}_PRICE_ID', f'price_{_tier.lower()}_{_period.lower()}'
        )

WEBHOOK_SECRET = os.environ['STRIPE_WEBHOOK_SECRET']


class FakeStripeObject(dict):
    """Dict with attribute access, the shape stripe-python returns."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as exc:
            raise AttributeError(name) from exc


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a stripe-signature header for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f'{ts}.{payload.decode("utf-8")}'.encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={ts},v1={digest}'


def make_event(event_type: str, obj: dict, event_id: str = 'evt_test_001') -> bytes:
    return json.dumps(
        {
            'id': event_id,
            'object': 'event',
            'type': event_type,
            'livemode': False,
            'data': {'object': obj},
        }
    ).encode('utf-8')


@pytest.fixture
def db_session():
    from headrest.database import SessionLocal, init_db
    from headrest.models import Base

    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        with SessionLocal() as cleanup:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup.execute(table.delete())
            cleanup.commit()


@pytest.fixture
def api_client(db_session):
    from fastapi.testclient import TestClient

    from headrest.main import app

    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def stripe_signature():
    return sign_payload


@pytest.fixture
def stripe_event():
    return make_event


@pytest.fixture
def stripe_object():
    return FakeStripeObject
