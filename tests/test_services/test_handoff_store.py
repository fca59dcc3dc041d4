import json

import pytest

from headrest.core.exceptions import DecryptionError
from headrest.schemas.handoff import HOUR_MS, PaymentHandoff
from headrest.services.handoff_store import (
    PAYMENT_DATA_KEY,
    JsonFileBackend,
    MemoryBackend,
    PaymentHandoffStore,
    SqlBackend,
)

NOW = 1_790_000_000_000


def _handoff(**overrides):
    values = {
        'email': 'ada@example.com',
        'plan_id': 'hobby',
        'billing_period': 'monthly',
        'stripe_customer_id': 'cus_123',
        'subscription_id': 'sub_456',
        'is_trial': True,
        'timestamp': NOW,
    }
    values.update(overrides)
    return PaymentHandoff(**values)


def test_set_then_get_returns_same_record():
    store = PaymentHandoffStore(MemoryBackend(), clock=lambda: NOW + 1000)
    store.set(_handoff())
    assert store.get() == _handoff()
    assert store.has() is True


def test_record_serializes_with_camel_case_keys():
    backend = MemoryBackend()
    PaymentHandoffStore(backend).set(_handoff())
    stored = json.loads(backend.get_item(PAYMENT_DATA_KEY))
    assert stored['planId'] == 'hobby'
    assert stored['stripeCustomerId'] == 'cus_123'
    assert stored['isTrial'] is True
    assert stored['timestamp'] == NOW


def test_expired_record_is_absent_and_purged():
    backend = MemoryBackend()
    store = PaymentHandoffStore(backend, clock=lambda: NOW + 24 * HOUR_MS + 1)
    store.set(_handoff())

    assert store.get() is None
    assert store.last_read_expired is True
    assert backend.get_item(PAYMENT_DATA_KEY) is None


def test_record_just_inside_ttl_is_kept():
    store = PaymentHandoffStore(MemoryBackend(), clock=lambda: NOW + 24 * HOUR_MS - 1)
    store.set(_handoff())
    assert store.get() is not None
    assert store.last_read_expired is False


def test_unparseable_record_is_removed():
    backend = MemoryBackend({PAYMENT_DATA_KEY: '{not json'})
    store = PaymentHandoffStore(backend)
    assert store.get() is None
    assert backend.keys() == []


def test_set_replaces_previous_record_wholesale():
    store = PaymentHandoffStore(MemoryBackend(), clock=lambda: NOW)
    store.set(_handoff())
    store.set(_handoff(email='grace@example.com', is_trial=False, plan_id='starter'))
    current = store.get()
    assert current.email == 'grace@example.com'
    assert current.plan_id == 'starter'
    assert current.is_trial is False


def test_clear_removes_record():
    store = PaymentHandoffStore(MemoryBackend(), clock=lambda: NOW)
    store.set(_handoff())
    store.clear()
    assert store.get() is None


def test_json_file_backend_survives_new_instances(tmp_path):
    path = tmp_path / 'storage.json'
    PaymentHandoffStore(JsonFileBackend(path), clock=lambda: NOW).set(_handoff())

    reopened = PaymentHandoffStore(JsonFileBackend(path), clock=lambda: NOW)
    assert reopened.get().subscription_id == 'sub_456'
    reopened.clear()
    assert json.loads(path.read_text()) == {}


def test_encrypted_file_backend_hides_values(tmp_path):
    path = tmp_path / 'storage.json'
    backend = JsonFileBackend(path, encrypt_values=True, master_key='local-test-key')
    store = PaymentHandoffStore(backend, clock=lambda: NOW)
    store.set(_handoff())

    raw = json.loads(path.read_text())[PAYMENT_DATA_KEY]
    assert raw.startswith('v1:')
    assert 'ada@example.com' not in raw
    assert store.get().email == 'ada@example.com'


def test_encrypted_file_backend_rejects_wrong_key(tmp_path):
    path = tmp_path / 'storage.json'
    JsonFileBackend(path, encrypt_values=True, master_key='key-one').set_item('k', 'secret')
    with pytest.raises(DecryptionError):
        JsonFileBackend(path, encrypt_values=True, master_key='key-two').get_item('k')


def test_record_under_rotated_key_is_absent_and_purged(tmp_path):
    path = tmp_path / 'storage.json'
    old = PaymentHandoffStore(JsonFileBackend(path, encrypt_values=True, master_key='old'), clock=lambda: NOW)
    old.set(_handoff())

    store = PaymentHandoffStore(JsonFileBackend(path, encrypt_values=True, master_key='new'), clock=lambda: NOW)
    assert store.get() is None
    assert store.last_read_expired is False
    assert PAYMENT_DATA_KEY not in json.loads(path.read_text())

    store.set(_handoff(email='grace@example.com'))
    assert store.get().email == 'grace@example.com'


def test_sql_backend_round_trip(db_session):
    store = PaymentHandoffStore(SqlBackend(db_session), key='payment_handoff:cs_1', clock=lambda: NOW)
    store.set(_handoff())
    assert store.get().stripe_customer_id == 'cus_123'
    store.clear()
    assert store.get() is None
