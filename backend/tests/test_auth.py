"""
Account and credential tests.

Verifies:
- Registration, login, logout and profile endpoints
- Every bearer rejection reason (NO_TOKEN ... PASSWORD_CHANGED)
- Cookie credentials and header precedence
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from storefront.services.token_service import TokenSigner
from conftest import PASSWORD, auth_headers, get_auth_token


# =============================================================================
# REGISTRATION / LOGIN
# =============================================================================


class TestRegistration:

    def test_register_returns_user_and_token(self, client, db_session):
        resp = client.post('/api/auth/register', json={
            'first_name': 'Alan',
            'last_name': 'Turing',
            'email': 'Alan@Example.com',
            'password': 'Enigma1940',
        })
        assert resp.status_code == 201
        body = resp.json
        assert body['success'] is True
        assert body['data']['user']['email'] == 'alan@example.com'
        assert body['data']['user']['role'] == 'user'
        assert body['data']['token']
        assert 'password_hash' not in body['data']['user']

    def test_register_sets_auth_cookie(self, client, db_session):
        resp = client.post('/api/auth/register', json={
            'first_name': 'Alan',
            'last_name': 'Turing',
            'email': 'alan@example.com',
            'password': 'Enigma1940',
        })
        cookie = resp.headers.get('Set-Cookie', '')
        assert cookie.startswith('token=')
        assert 'HttpOnly' in cookie

    def test_register_cannot_choose_role(self, client, db_session):
        resp = client.post('/api/auth/register', json={
            'first_name': 'Mallory',
            'last_name': 'X',
            'email': 'mallory@example.com',
            'password': 'Password123',
            'role': 'admin',
        })
        assert resp.status_code == 201
        assert resp.json['data']['user']['role'] == 'user'

    def test_duplicate_email_rejected(self, client, customer):
        resp = client.post('/api/auth/register', json={
            'first_name': 'Ada',
            'last_name': 'Again',
            'email': 'ADA@example.com',
            'password': PASSWORD,
        })
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'USER_EXISTS'

    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678"])
    def test_weak_password_rejected(self, client, db_session, password):
        resp = client.post('/api/auth/register', json={
            'first_name': 'Weak',
            'last_name': 'Password',
            'email': 'weak@example.com',
            'password': password,
        })
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'WEAK_PASSWORD'

    def test_invalid_email_rejected(self, client, db_session):
        resp = client.post('/api/auth/register', json={
            'first_name': 'No',
            'last_name': 'Email',
            'email': 'not-an-email',
            'password': PASSWORD,
        })
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'INVALID_EMAIL'


class TestLogin:

    def test_login_success_stamps_last_login(self, client, customer):
        assert customer.last_login_at is None
        resp = client.post('/api/auth/login', json={'email': customer.email, 'password': PASSWORD})
        assert resp.status_code == 200
        assert resp.json['data']['token']
        assert resp.json['data']['user']['last_login_at'] is not None

    def test_missing_credentials(self, client, db_session):
        resp = client.post('/api/auth/login', json={'email': 'ada@example.com'})
        assert resp.status_code == 400
        assert resp.json['error']['code'] == 'MISSING_CREDENTIALS'

    def test_wrong_password(self, client, customer):
        resp = client.post('/api/auth/login', json={'email': customer.email, 'password': 'Wrong12345'})
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_CREDENTIALS'

    def test_unknown_email_looks_like_wrong_password(self, client, db_session):
        resp = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': PASSWORD})
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_CREDENTIALS'

    def test_deactivated_account_cannot_login(self, client, db_session, customer):
        customer.is_active = False
        db_session.commit()
        resp = client.post('/api/auth/login', json={'email': customer.email, 'password': PASSWORD})
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'ACCOUNT_DEACTIVATED'

    def test_logout_clears_cookie(self, client, db_session):
        resp = client.post('/api/auth/logout')
        assert resp.status_code == 200
        assert 'token=;' in resp.headers.get('Set-Cookie', '')


# =============================================================================
# CREDENTIAL RESOLUTION - 401 REASONS
# =============================================================================


class TestTokenResolution:

    def test_no_token(self, client, db_session):
        resp = client.get('/api/auth/me')
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'NO_TOKEN'

    def test_garbage_token(self, client, db_session):
        resp = client.get('/api/auth/me', headers=auth_headers('not.a.jwt'))
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_TOKEN'

    def test_token_signed_with_other_secret(self, client, customer):
        forged = TokenSigner(secret='someone-else', expires_in=timedelta(days=1)).sign(customer.id)
        resp = client.get('/api/auth/me', headers=auth_headers(forged))
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_TOKEN'

    def test_expired_token(self, app, client, customer):
        signer = app.extensions['token_signer']
        issued = datetime.now(timezone.utc) - timedelta(days=30)
        token = signer.sign(customer.id, now=issued)
        resp = client.get('/api/auth/me', headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'TOKEN_EXPIRED'

    def test_token_without_subject(self, app, client, db_session):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {'iat': now, 'exp': now + timedelta(hours=1)},
            app.config['JWT_SECRET'],
            algorithm='HS256',
        )
        resp = client.get('/api/auth/me', headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_TOKEN'

    def test_user_no_longer_exists(self, app, client, db_session):
        token = app.extensions['token_signer'].sign(999999)
        resp = client.get('/api/auth/me', headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'USER_NOT_FOUND'

    def test_deactivated_after_issue(self, client, db_session, customer, customer_headers):
        customer.is_active = False
        db_session.commit()
        resp = client.get('/api/auth/me', headers=customer_headers)
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'ACCOUNT_DEACTIVATED'

    def test_cookie_credential(self, client, customer):
        token = get_auth_token(client, customer.email, PASSWORD)
        assert client.get('/api/auth/me').status_code == 401
        client.set_cookie('token', token)
        resp = client.get('/api/auth/me')
        assert resp.status_code == 200
        assert resp.json['data']['user']['id'] == customer.id

    def test_login_helper_leaves_client_anonymous(self, client, customer_headers, other_headers):
        resp = client.get('/api/auth/me')
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'NO_TOKEN'

    def test_header_wins_over_cookie(self, client, customer, other_customer):
        other_token = get_auth_token(client, other_customer.email, PASSWORD)
        client.set_cookie('token', get_auth_token(client, customer.email, PASSWORD))
        resp = client.get('/api/auth/me', headers=auth_headers(other_token))
        assert resp.json['data']['user']['id'] == other_customer.id


# =============================================================================
# PROFILE / PASSWORD
# =============================================================================


class TestProfile:

    def test_update_profile(self, client, customer_headers):
        resp = client.put('/api/auth/profile', json={'first_name': 'Augusta', 'phone': '555-0199'},
                          headers=customer_headers)
        assert resp.status_code == 200
        user = resp.json['data']['user']
        assert user['first_name'] == 'Augusta'
        assert user['last_name'] == 'Lovelace'
        assert user['phone'] == '555-0199'

    def test_profile_ignores_role(self, client, customer_headers):
        resp = client.put('/api/auth/profile', json={'role': 'admin'}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json['data']['user']['role'] == 'user'

    def test_password_change_revokes_older_tokens(self, app, client, customer):
        issued = datetime.now(timezone.utc) - timedelta(seconds=10)
        old_headers = auth_headers(app.extensions['token_signer'].sign(customer.id, now=issued))

        resp = client.put('/api/auth/password', json={
            'current_password': PASSWORD,
            'new_password': 'Brand1New2',
        }, headers=old_headers)
        assert resp.status_code == 200
        new_headers = auth_headers(resp.json['data']['token'])

        resp = client.get('/api/auth/me', headers=old_headers)
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'PASSWORD_CHANGED'

        resp = client.get('/api/auth/me', headers=new_headers)
        assert resp.status_code == 200

        assert get_auth_token(client, customer.email, 'Brand1New2')
        assert get_auth_token(client, customer.email, PASSWORD) is None

    def test_password_change_requires_current_password(self, client, customer_headers):
        resp = client.put('/api/auth/password', json={
            'current_password': 'Wrong12345',
            'new_password': 'Brand1New2',
        }, headers=customer_headers)
        assert resp.status_code == 401
        assert resp.json['error']['code'] == 'INVALID_CREDENTIALS'
