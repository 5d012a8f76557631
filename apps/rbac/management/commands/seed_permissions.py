"""
Management command to seed catalog permissions.

Creates one Permission per (resource, action) pair of the configured
catalog for one or all tenants. This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError
from apps.core.exceptions import TenantNotFound
from apps.rbac.catalog import catalog_permissions
from apps.rbac.models import Permission


def seed_tenant_permissions(tenant):
    """
    Create missing catalog permissions for a tenant.

    Returns:
        Number of permissions created
    """
    created_count = 0
    for resource, action, description in catalog_permissions():
        _, created = Permission.objects.get_or_create(
            tenant=tenant,
            name=Permission.make_name(resource, action),
            defaults={
                'resource': resource,
                'action': action,
                'description': description,
            }
        )
        if created:
            created_count += 1
    return created_count


class Command(BaseCommand):
    help = 'Seed catalog permissions for tenant(s) (idempotent)'

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            '--tenant',
            type=str,
            help='Tenant ID or slug to seed permissions for',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Seed permissions for all tenants',
        )

    def handle(self, *args, **options):
        """Seed catalog permissions for specified tenant(s)."""
        from apps.tenants.models import Tenant

        tenant_id = options.get('tenant')
        seed_all = options.get('all')

        if not tenant_id and not seed_all:
            raise CommandError(
                'You must specify either --tenant=<id> or --all'
            )

        if tenant_id and seed_all:
            raise CommandError(
                'Cannot specify both --tenant and --all'
            )

        if seed_all:
            tenants = Tenant.objects.all()
        else:
            try:
                tenants = [Tenant.objects.get_by_identifier(tenant_id)]
            except TenantNotFound as e:
                raise CommandError(e.message)

        total_created = 0
        for tenant in tenants:
            created = seed_tenant_permissions(tenant)
            total_created += created
            self.stdout.write(f'  {tenant.slug}: {created} created')

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {total_created} permissions created'
            )
        )
