"""
DRF permission classes and decorators for the permission gates.

This module provides:
- HasTenantPermission: checks the principal's stored role grants a permission
- HasExactRole: checks the principal's role name equals a required role
- @requires_permission / @requires_role: declare requirements on views

The two gates are distinct classes; a view picks one explicitly.
"""
import logging
from rest_framework.permissions import BasePermission


logger = logging.getLogger(__name__)


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def _principal(request):
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    if not hasattr(user, 'tenant_id') or not hasattr(user, 'role'):
        return None
    return user


def _required_for_method(requirement, method):
    """Resolve a requirement declared as a string or a {METHOD: value} mapping."""
    if isinstance(requirement, dict):
        return requirement.get(method.upper())
    return requirement


class HasTenantPermission(BasePermission):
    """
    Allow the request only if the principal's role grants the view's
    ``required_permission``.

    Usage in views:
        class RoleListView(APIView):
            permission_classes = [HasTenantPermission]
            required_permission = {'GET': 'roles:read', 'POST': 'roles:write'}
    """

    message = 'Permission denied'

    def has_permission(self, request, view):
        required = _required_for_method(getattr(view, 'required_permission', None), request.method)

        # No requirement declared for this method
        if not required:
            return True

        from apps.rbac.gate import get_permission_gate

        decision = get_permission_gate().authorize(
            _principal(request),
            required,
            ip_address=get_client_ip(request),
        )

        if not decision.allowed:
            self.message = decision.message
            return False

        return True


class HasExactRole(BasePermission):
    """
    Allow the request only if the principal's role name equals the view's
    ``required_role``. Stored permissions are not consulted.
    """

    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        required = _required_for_method(getattr(view, 'required_role', None), request.method)

        if not required:
            return True

        from apps.rbac.gate import get_permission_gate

        decision = get_permission_gate().authorize_role(
            _principal(request),
            required,
            ip_address=get_client_ip(request),
        )

        if not decision.allowed:
            self.message = decision.message
            return False

        return True


def requires_permission(permission):
    """
    Class decorator that sets ``required_permission`` and installs
    HasTenantPermission.

    Usage:
        @requires_permission({'GET': 'flags:read', 'PUT': 'flags:write'})
        class FeatureFlagView(APIView):
            ...
    """
    def decorator(view_class):
        view_class.required_permission = permission
        view_class.permission_classes = [HasTenantPermission]
        return view_class
    return decorator


def requires_role(role_name):
    """Class decorator that sets ``required_role`` and installs HasExactRole."""
    def decorator(view_class):
        view_class.required_role = role_name
        view_class.permission_classes = [HasExactRole]
        return view_class
    return decorator
