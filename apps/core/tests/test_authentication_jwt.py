"""
Tests for bearer token authentication and the DRF permission classes.
"""
from unittest.mock import Mock

import jwt
import pytest
from django.conf import settings
from rest_framework import exceptions
from rest_framework.test import APIRequestFactory

from apps.core.authentication import (
    JWTPrincipalAuthentication,
    Principal,
    decode_token,
    generate_token,
)
from apps.core.permissions import HasExactRole, HasTenantPermission, get_client_ip


def bearer_request(token):
    factory = APIRequestFactory()
    return factory.get('/v1/roles/', HTTP_AUTHORIZATION=f"Bearer {token}")


class TestTokens:

    def test_round_trip_claims(self):
        principal = Principal(id='u1', tenant_id='acme', role='admin')

        payload = decode_token(generate_token(principal))

        assert payload['sub'] == 'u1'
        assert payload['tenant_id'] == 'acme'
        assert payload['role'] == 'admin'

    def test_expired_token_is_rejected(self):
        token = generate_token(Principal(id='u1', tenant_id='acme', role='admin'), expiration_hours=-1)

        assert decode_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode({'sub': 'u1', 'tenant_id': 'acme', 'role': 'admin'},
                           'x' * 16 + 'another-signing-key', algorithm='HS256')

        assert decode_token(token) is None


class TestJWTPrincipalAuthentication:

    def test_authenticates_principal(self):
        principal = Principal(id='u1', tenant_id='acme', role='admin')
        request = bearer_request(generate_token(principal))

        user, token = JWTPrincipalAuthentication().authenticate(request)

        assert user == principal
        assert user.is_authenticated

    def test_no_header_is_anonymous(self):
        request = APIRequestFactory().get('/v1/roles/')

        assert JWTPrincipalAuthentication().authenticate(request) is None

    def test_invalid_token_fails(self):
        with pytest.raises(exceptions.AuthenticationFailed):
            JWTPrincipalAuthentication().authenticate(bearer_request('not-a-jwt'))

    def test_missing_tenant_claim_fails(self):
        token = jwt.encode({'sub': 'u1', 'role': 'admin'}, settings.JWT_SECRET_KEY,
                           algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(exceptions.AuthenticationFailed):
            JWTPrincipalAuthentication().authenticate(bearer_request(token))


class TestPermissionClasses:

    def _request(self, user, method='GET'):
        request = Mock()
        request.user = user
        request.method = method
        request.META = {'REMOTE_ADDR': '10.0.0.1'}
        return request

    def test_no_requirement_allows(self):
        view = Mock(spec=[])

        assert HasTenantPermission().has_permission(self._request(None), view) is True

    def test_method_specific_requirement(self, monkeypatch):
        gate = Mock()
        gate.authorize.return_value = Mock(allowed=False, message='Permission denied')
        monkeypatch.setattr('apps.rbac.gate.get_permission_gate', Mock(return_value=gate))

        view = Mock(required_permission={'GET': 'roles:read', 'POST': 'roles:write'})
        user = Principal(id='u1', tenant_id='acme', role='admin')
        permission = HasTenantPermission()

        assert permission.has_permission(self._request(user, 'POST'), view) is False
        assert permission.message == 'Permission denied'
        assert gate.authorize.call_args.args[1] == 'roles:write'

    def test_role_gate_uses_exact_role(self, monkeypatch):
        gate = Mock()
        gate.authorize_role.return_value = Mock(allowed=True, message=None)
        monkeypatch.setattr('apps.rbac.gate.get_permission_gate', Mock(return_value=gate))

        view = Mock(required_role='superadmin')
        user = Principal(id='u1', tenant_id='acme', role='superadmin')

        assert HasExactRole().has_permission(self._request(user), view) is True
        gate.authorize_role.assert_called_once()

    def test_client_ip_prefers_forwarded_header(self):
        request = Mock(META={'HTTP_X_FORWARDED_FOR': '203.0.113.7, 10.0.0.1', 'REMOTE_ADDR': '10.0.0.1'})

        assert get_client_ip(request) == '203.0.113.7'
