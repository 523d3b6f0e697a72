"""
RBAC services.

Implements:
- RoleStore: tenant-scoped role resolution with global fallback
- RoleService: role administration (create, bulk create, update, soft delete)
  with audit and settings history
"""
import logging
from typing import Optional, List, Dict, Any, Iterable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction

from apps.audit.services import AuditService, SettingsHistoryService
from apps.audit.models import SettingsHistory
from apps.core.access_config import AccessConfig, get_access_config
from apps.core.exceptions import (
    RoleNotFound, RoleDeleted, NotFound, StorageError, ValidationError,
)
from apps.rbac.models import Role

logger = logging.getLogger(__name__)

AUDIT_MODULE = 'Roles'
HISTORY_MODULE = 'role'


class RoleStore:
    """
    Resolves a principal's role name to a stored Role.

    Every call reads storage; nothing is cached, so role changes are visible
    to the next authorization decision.
    """

    def __init__(self, config: Optional[AccessConfig] = None):
        self.config = config or get_access_config()

    def resolve_role(self, tenant_id: str, role_name: str) -> Role:
        """
        Find the active role named ``role_name`` for ``tenant_id``.

        The tenant's own role wins; otherwise the active global role with the
        same name is used.

        Raises:
            RoleNotFound: No role with that name exists in either scope
            RoleDeleted: Only soft-deleted roles with that name exist
            StorageError: Storage could not be read
        """
        try:
            role = Role.objects.active().for_tenant(tenant_id).by_name(role_name).first()
            if role is not None:
                return role

            role = Role.objects.active().global_roles().by_name(role_name).first()
            if role is not None:
                return role

            has_deleted = (
                Role.objects.deleted().for_tenant(tenant_id).by_name(role_name).exists()
                or Role.objects.deleted().global_roles().by_name(role_name).exists()
            )
        except DatabaseError as e:
            logger.error(
                "Role lookup failed",
                extra={'tenant_id': tenant_id, 'role': role_name},
                exc_info=True
            )
            raise StorageError("Role storage unavailable") from e

        if has_deleted:
            raise RoleDeleted(f"Role '{role_name}' has been deleted")
        raise RoleNotFound(f"Role '{role_name}' not found")

    def has_permission(self, role: Role, permission: str) -> bool:
        return role.has_permission(permission)

    def permissions_for(self, tenant_id: str, role_name: str) -> List[str]:
        """Permission strings of the resolved role."""
        return list(self.resolve_role(tenant_id, role_name).permissions or [])


class RoleService:
    """
    Service for role administration within one tenant.

    Each change writes one role row, then one audit entry and one settings
    history entry. History and audit failures are logged but do not undo
    the role change.
    """

    @classmethod
    def _config(cls) -> AccessConfig:
        return get_access_config()

    @classmethod
    def _validate(cls, name: Optional[str], permissions: Optional[Iterable[str]]):
        if name is not None and not str(name).strip():
            raise ValidationError("Role name is required")

        if permissions is not None:
            if isinstance(permissions, str) or not isinstance(permissions, (list, tuple, set)):
                raise ValidationError("Permissions must be a list of strings")
            unknown = sorted(set(permissions) - cls._config().permissions)
            if unknown:
                raise ValidationError(
                    "Unknown permissions",
                    details={'unknown_permissions': unknown}
                )

    @classmethod
    def _record(cls, tenant_id, action, history_action, previous, new, changed_by, ip_address):
        AuditService.record_safely(
            action=action,
            principal_id=changed_by,
            module=AUDIT_MODULE,
            details={'previous': previous, 'new': new},
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        SettingsHistoryService.record_change_safely(
            tenant_id=tenant_id,
            module=HISTORY_MODULE,
            action=history_action,
            previous_value=previous,
            new_value=new,
            changed_by=changed_by,
            ip_address=ip_address,
        )

    @classmethod
    def create_role(cls, tenant_id: str, name: str, permissions: List[str],
                    created_by: str, ip_address: Optional[str] = None) -> Role:
        """
        Create a tenant role.

        Raises:
            ValidationError: Empty name, unknown permission, or name already in use
        """
        cls._validate(name, permissions)

        if Role.objects.active().for_tenant(tenant_id).by_name(name).exists():
            raise ValidationError(f"Role '{name}' already exists")

        try:
            with transaction.atomic():
                role = Role.objects.create(
                    tenant_id=tenant_id,
                    name=name,
                    permissions=sorted(set(permissions)),
                )
        except IntegrityError:
            raise ValidationError(f"Role '{name}' already exists")

        cls._record(tenant_id, 'CREATE_ROLE', SettingsHistory.ACTION_CREATE,
                    None, role.to_snapshot(), created_by, ip_address)

        logger.info(
            f"Role {role.name} created",
            extra={'tenant_id': tenant_id, 'role_id': str(role.id)}
        )
        return role

    @classmethod
    def bulk_create_roles(cls, tenant_id: str, roles: List[Dict[str, Any]],
                          created_by: str, ip_address: Optional[str] = None) -> List[Role]:
        """
        Create several roles, skipping names that already exist.

        Raises:
            ValidationError: Invalid input, or every name already exists
        """
        if not roles:
            raise ValidationError("At least one role is required")

        for data in roles:
            cls._validate(data.get('name'), data.get('permissions', []))

        existing = set(
            Role.objects.active().for_tenant(tenant_id)
            .filter(name__in=[data['name'] for data in roles])
            .values_list('name', flat=True)
        )
        new_roles = [data for data in roles if data['name'] not in existing]

        if not new_roles:
            raise ValidationError("All provided roles already exist")

        try:
            with transaction.atomic():
                created = [
                    Role.objects.create(
                        tenant_id=tenant_id,
                        name=data['name'],
                        permissions=sorted(set(data.get('permissions', []))),
                    )
                    for data in new_roles
                ]
        except IntegrityError:
            raise ValidationError("Duplicate role names in request")

        AuditService.record_safely(
            action='BULK_CREATE_ROLES',
            principal_id=created_by,
            module=AUDIT_MODULE,
            details={'roles': [role.name for role in created], 'skipped': sorted(existing)},
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        for role in created:
            SettingsHistoryService.record_change_safely(
                tenant_id=tenant_id,
                module=HISTORY_MODULE,
                action=SettingsHistory.ACTION_CREATE,
                previous_value=None,
                new_value=role.to_snapshot(),
                changed_by=created_by,
                ip_address=ip_address,
            )

        logger.info(
            f"Bulk created {len(created)} roles",
            extra={'tenant_id': tenant_id, 'skipped': sorted(existing)}
        )
        return created

    @classmethod
    def list_roles(cls, tenant_id: str, include_global: bool = True) -> List[Role]:
        """Active roles visible to a tenant."""
        roles = list(Role.objects.active().for_tenant(tenant_id).order_by('name'))
        if include_global:
            own_names = {role.name for role in roles}
            roles.extend(
                role for role in Role.objects.active().global_roles().order_by('name')
                if role.name not in own_names
            )
        return roles

    @classmethod
    def get_role(cls, tenant_id: str, role_id) -> Role:
        """
        Load an active tenant role by id.

        Raises:
            NotFound: If no active role with that id belongs to the tenant
        """
        role = cls._get_tenant_role(tenant_id, role_id)
        if role is None or role.is_deleted:
            raise NotFound("Role not found")
        return role

    @classmethod
    def _get_tenant_role(cls, tenant_id, role_id) -> Optional[Role]:
        try:
            return Role.objects.for_tenant(tenant_id).filter(id=role_id).first()
        except (ValueError, TypeError, DjangoValidationError):
            return None

    @classmethod
    def update_role(cls, tenant_id: str, role_id, updated_by: str,
                    name: Optional[str] = None, permissions: Optional[List[str]] = None,
                    ip_address: Optional[str] = None) -> Role:
        """
        Change a tenant role's name and/or permissions.

        Raises:
            NotFound: Role missing or deleted
            ValidationError: Invalid input or name collision
        """
        cls._validate(name, permissions)
        role = cls.get_role(tenant_id, role_id)
        previous = role.to_snapshot()

        if name is not None:
            role.name = name
        if permissions is not None:
            role.permissions = sorted(set(permissions))

        try:
            with transaction.atomic():
                role.save()
        except IntegrityError:
            raise ValidationError(f"Role '{name}' already exists")

        cls._record(tenant_id, 'UPDATE_ROLE', SettingsHistory.ACTION_UPDATE,
                    previous, role.to_snapshot(), updated_by, ip_address)

        logger.info(
            f"Role {role.id} updated",
            extra={'tenant_id': tenant_id, 'role_id': str(role.id)}
        )
        return role

    @classmethod
    def delete_role(cls, tenant_id: str, role_id, deleted_by: str,
                    ip_address: Optional[str] = None) -> Role:
        """
        Soft delete a tenant role. The row stays in storage with ``is_deleted``.

        Raises:
            NotFound: Role missing or already deleted
        """
        role = cls.get_role(tenant_id, role_id)
        previous = role.to_snapshot()
        role.soft_delete()

        cls._record(tenant_id, 'DELETE_ROLE', SettingsHistory.ACTION_UPDATE,
                    previous, role.to_snapshot(), deleted_by, ip_address)

        logger.info(
            f"Role {role.id} deleted",
            extra={'tenant_id': tenant_id, 'role_id': str(role.id)}
        )
        return role

    @classmethod
    def get_role_permissions(cls, tenant_id: str, role_id) -> List[str]:
        return list(cls.get_role(tenant_id, role_id).permissions or [])

    @classmethod
    def current_snapshot(cls, tenant_id: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """
        Current stored state of the role a history snapshot refers to.

        Raises:
            NotFound: The role no longer exists for this tenant
        """
        role = cls._get_tenant_role(tenant_id, (snapshot or {}).get('id'))
        if role is None:
            raise NotFound("Role referenced by history entry not found")
        return role.to_snapshot()

    @classmethod
    def restore_snapshot(cls, tenant_id: str, snapshot: Dict[str, Any]) -> Role:
        """
        Overwrite a tenant role with a snapshot taken from settings history.

        Used by settings rollback; the caller records history and audit.

        Raises:
            NotFound: The role no longer exists for this tenant
            ValidationError: The snapshot cannot be applied
        """
        role = cls._get_tenant_role(tenant_id, (snapshot or {}).get('id'))
        if role is None:
            raise NotFound("Role referenced by history entry not found")

        cls._validate(snapshot.get('name', role.name), snapshot.get('permissions', role.permissions))

        role.name = snapshot.get('name', role.name)
        role.permissions = list(snapshot.get('permissions', role.permissions))
        role.is_deleted = bool(snapshot.get('is_deleted', False))

        try:
            with transaction.atomic():
                role.save()
        except IntegrityError:
            raise ValidationError(f"Role '{role.name}' conflicts with an active role")

        return role

    @classmethod
    @transaction.atomic
    def seed_global_roles(cls, definitions: Optional[Dict[str, Iterable[str]]] = None) -> Dict[str, bool]:
        """
        Create or refresh the default global roles.

        Returns:
            Mapping of role name to True if it was created, False if updated
        """
        definitions = definitions if definitions is not None else cls._config().defaults()
        results = {}

        for name, permissions in definitions.items():
            cls._validate(name, list(permissions))
            role = Role.objects.active().global_roles().by_name(name).first()
            if role is None:
                Role.objects.create(tenant_id=None, name=name, permissions=sorted(set(permissions)))
                results[name] = True
            else:
                role.permissions = sorted(set(permissions))
                role.save(update_fields=['permissions', 'updated_at'])
                results[name] = False

        return results
