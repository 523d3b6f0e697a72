from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate the access-control enumerations and register periodic tasks.
        """
        self._validate_access_configuration()

        from apps.core.periodic import autodiscover_periodic_tasks
        tasks = autodiscover_periodic_tasks()

        logger.debug(
            "Core startup complete",
            extra={'periodic_tasks': [task.action_tag for task in tasks]}
        )

    def _validate_access_configuration(self):
        """Default role permissions must use known permissions and roles."""
        permissions = set(getattr(settings, 'WARDEN_PERMISSIONS', []))
        roles = set(getattr(settings, 'WARDEN_ROLES', []))
        defaults = getattr(settings, 'WARDEN_DEFAULT_ROLE_PERMISSIONS', {})

        if not permissions:
            raise ImproperlyConfigured("WARDEN_PERMISSIONS must list at least one permission")

        for role_name, role_permissions in defaults.items():
            if role_name not in roles:
                raise ImproperlyConfigured(
                    f"WARDEN_DEFAULT_ROLE_PERMISSIONS names unknown role '{role_name}'"
                )
            unknown = set(role_permissions) - permissions
            if unknown:
                raise ImproperlyConfigured(
                    f"Default permissions for '{role_name}' are not in WARDEN_PERMISSIONS: "
                    f"{sorted(unknown)}"
                )
