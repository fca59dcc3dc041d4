import pytest
import stripe

from headrest.api.dependencies import get_settings
from headrest.config import Settings
from headrest.main import app

CHECKOUT_BODY = {
    'priceId': 'price_hobby_monthly',
    'planId': 'hobby',
    'billingPeriod': 'monthly',
    'successUrl': 'https://headrest.test/signup/account-creation?plan=hobby',
    'cancelUrl': 'https://headrest.test/signup/plans',
}


@pytest.fixture
def created_sessions(monkeypatch, stripe_object):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return stripe_object(id='cs_test_route', url='https://checkout.stripe.com/c/pay/cs_test_route')

    monkeypatch.setattr(stripe.checkout.Session, 'create', fake_create)
    return calls


def test_create_checkout_session_returns_hosted_url(api_client, created_sessions):
    response = api_client.post('/api/stripe/create-checkout-session', json=CHECKOUT_BODY)
    assert response.status_code == 200
    assert response.json() == {'url': 'https://checkout.stripe.com/c/pay/cs_test_route'}
    assert 'trial_end' in created_sessions[0]['subscription_data']


def test_create_checkout_session_requires_price_id(api_client, created_sessions):
    body = {**CHECKOUT_BODY, 'priceId': ''}
    response = api_client.post('/api/stripe/create-checkout-session', json=body)
    assert response.status_code == 400
    assert response.json()['error'] == 'Price ID is required'
    assert created_sessions == []


def test_wrongly_typed_checkout_body_is_400(api_client, created_sessions):
    response = api_client.post('/api/stripe/create-checkout-session', json={**CHECKOUT_BODY, 'priceId': 5})
    assert response.status_code == 400
    body = response.json()
    assert body['error'] == 'Invalid request body'
    assert 'priceId' in body['details']
    assert created_sessions == []


def test_create_checkout_session_without_secret_key_is_500(api_client, created_sessions):
    app.dependency_overrides[get_settings] = lambda: Settings(STRIPE_SECRET_KEY='')
    response = api_client.post('/api/stripe/create-checkout-session', json=CHECKOUT_BODY)
    assert response.status_code == 500
    assert response.json()['error'] == 'Stripe configuration error'
    assert created_sessions == []


def test_provider_error_is_reported_with_price_id(api_client, monkeypatch):
    def boom(**kwargs):
        raise stripe.StripeError('No such price: price_hobby_monthly')

    monkeypatch.setattr(stripe.checkout.Session, 'create', boom)
    response = api_client.post('/api/stripe/create-checkout-session', json=CHECKOUT_BODY)

    assert response.status_code == 500
    assert response.json() == {
        'error': 'Failed to create checkout session',
        'details': 'No such price: price_hobby_monthly',
        'priceId': 'price_hobby_monthly',
    }


def test_get_session_requires_session_id(api_client):
    response = api_client.get('/api/stripe/get-session')
    assert response.status_code == 400
    assert response.json() == {'error': 'Session ID is required'}


def test_get_session_returns_summary(api_client, monkeypatch, stripe_object):
    monkeypatch.setattr(
        stripe.checkout.Session,
        'retrieve',
        lambda session_id, **kwargs: stripe_object(
            id=session_id,
            customer_email='ada@example.com',
            customer='cus_1',
            subscription=stripe_object(id='sub_1', object='subscription'),
            payment_status='paid',
            metadata={'planId': 'hobby', 'billingPeriod': 'monthly', 'hasTrial': 'true'},
        ),
    )
    response = api_client.get('/api/stripe/get-session', params={'session_id': 'cs_1'})
    assert response.status_code == 200
    assert response.json() == {
        'id': 'cs_1',
        'customer_email': 'ada@example.com',
        'customer_id': 'cus_1',
        'subscription_id': 'sub_1',
        'payment_status': 'paid',
        'metadata': {'planId': 'hobby', 'billingPeriod': 'monthly', 'hasTrial': 'true'},
    }


def test_get_session_provider_failure_is_generic(api_client, monkeypatch):
    def boom(session_id, **kwargs):
        raise stripe.StripeError('No such checkout.session')

    monkeypatch.setattr(stripe.checkout.Session, 'retrieve', boom)
    response = api_client.get('/api/stripe/get-session', params={'session_id': 'cs_missing'})
    assert response.status_code == 500
    assert response.json() == {'error': 'Failed to retrieve session data'}


def test_plans_lists_catalog(api_client):
    response = api_client.get('/api/stripe/plans')
    assert response.status_code == 200
    body = response.json()
    assert body['trial_days'] == 28
    starter = next(plan for plan in body['plans'] if plan['id'] == 'starter')
    assert starter['price_ids'] == {'monthly': 'price_starter_monthly', 'annual': 'price_starter_annual'}


def test_test_connection_lists_products(api_client, monkeypatch):
    monkeypatch.setattr(
        stripe.Product,
        'list',
        lambda **kwargs: {'data': [{'id': 'prod_1', 'name': 'Hobby', 'active': True}]},
    )
    response = api_client.get('/api/stripe/test-connection')
    assert response.status_code == 200
    assert response.json()['productsCount'] == 1


def test_test_webhook_masks_secret(api_client):
    response = api_client.get('/api/stripe/test-webhook')
    assert response.status_code == 200
    assert response.json()['webhookSecret'] == 'whsec_test...'


def test_test_webhook_without_secret_is_400(api_client):
    app.dependency_overrides[get_settings] = lambda: Settings(STRIPE_WEBHOOK_SECRET='')
    response = api_client.get('/api/stripe/test-webhook')
    assert response.status_code == 400
