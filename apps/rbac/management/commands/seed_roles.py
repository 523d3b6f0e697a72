"""
Management command to seed the default global roles.

Creates one global role per entry in WARDEN_DEFAULT_ROLE_PERMISSIONS, or
refreshes its permission list if it already exists. This command is
idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import ValidationError
from apps.rbac.services import RoleService


class Command(BaseCommand):
    help = 'Seed default global roles (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--role',
            action='append',
            dest='roles',
            help='Only seed the named role (repeatable)',
        )

    def handle(self, *args, **options):
        definitions = RoleService._config().defaults()

        only = options.get('roles')
        if only:
            unknown = sorted(set(only) - set(definitions))
            if unknown:
                raise CommandError(f"No default permissions configured for: {', '.join(unknown)}")
            definitions = {name: definitions[name] for name in only}

        try:
            results = RoleService.seed_global_roles(definitions)
        except ValidationError as e:
            raise CommandError(str(e))

        for name, created in results.items():
            if created:
                self.stdout.write(self.style.SUCCESS(f'  ✓ Created role: {name}'))
            else:
                self.stdout.write(self.style.WARNING(f'  ↻ Updated role: {name}'))

        created_count = sum(1 for created in results.values() if created)
        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {created_count} roles created, '
                f'{len(results) - created_count} roles updated'
            )
        )
