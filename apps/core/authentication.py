"""
Principal model and JWT bearer authentication for DRF.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import jwt
from django.conf import settings
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from apps.core.middleware import set_request_context
from apps.core.sentry_utils import set_principal_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller as seen by the permission gates.

    ``tenant_id`` is the only tenant an authorization decision is ever
    scoped to.
    """
    id: str
    tenant_id: str
    role: str

    @property
    def is_authenticated(self):
        return True


def generate_token(principal: Principal, expiration_hours: Optional[int] = None) -> str:
    """
    Issue a signed bearer token carrying the principal's claims.

    Args:
        principal: Principal to encode
        expiration_hours: Lifetime override (defaults to JWT_EXPIRATION_HOURS)

    Returns:
        JWT token string
    """
    hours = expiration_hours if expiration_hours is not None else getattr(settings, 'JWT_EXPIRATION_HOURS', 24)
    now = datetime.utcnow()
    payload = {
        'sub': str(principal.id),
        'tenant_id': str(principal.tenant_id),
        'role': principal.role,
        'exp': now + timedelta(hours=hours),
        'iat': now,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET_KEY,
        algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
    )


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Validate a token and return its payload, or None if it is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired bearer token")
        return None
    except jwt.InvalidTokenError:
        return None


class JWTPrincipalAuthentication(BaseAuthentication):
    """
    Authenticate ``Authorization: Bearer <jwt>`` requests as a Principal.

    The token must carry ``sub``, ``tenant_id`` and ``role`` claims. Requests
    without a bearer header are left unauthenticated so permission classes
    can reject them.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()

        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid bearer header')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid bearer header')

        payload = decode_token(token)
        if not payload:
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        missing = [claim for claim in ('sub', 'tenant_id', 'role') if not payload.get(claim)]
        if missing:
            logger.warning(
                "Bearer token missing claims",
                extra={'missing_claims': missing}
            )
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        principal = Principal(
            id=str(payload['sub']),
            tenant_id=str(payload['tenant_id']),
            role=str(payload['role']),
        )

        set_request_context(tenant_id=principal.tenant_id)
        set_principal_context(principal)

        return (principal, token)

    def authenticate_header(self, request):
        return self.keyword
