# Generated migration for RBAC roles, permissions, grants and audit logs

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text="Canonical name, '{action}.{resource}' (e.g., 'view.user')", max_length=255)),
                ('description', models.TextField(blank=True, help_text='What this permission grants')),
                ('resource', models.CharField(db_index=True, help_text="Resource key (e.g., 'user')", max_length=100)),
                ('action', models.CharField(db_index=True, help_text="Action key (e.g., 'delete')", max_length=100)),
                ('tenant', models.ForeignKey(help_text='Tenant this permission belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='permissions', to='tenants.tenant')),
            ],
            options={
                'db_table': 'rbac_permissions',
                'ordering': ['resource', 'action'],
                'unique_together': {('tenant', 'name')},
                'indexes': [
                    models.Index(fields=['tenant', 'resource'], name='rbac_permis_tenant__3c1e2a_idx'),
                    models.Index(fields=['tenant', 'action'], name='rbac_permis_tenant__8d4b7f_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Role',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text="Role name (e.g., 'editor')", max_length=100)),
                ('description', models.TextField(blank=True, help_text='Role description')),
                ('is_superadmin', models.BooleanField(db_index=True, default=False, help_text='Whether this role bypasses all permission checks')),
                ('tenant', models.ForeignKey(help_text='Tenant this role belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='roles', to='tenants.tenant')),
            ],
            options={
                'db_table': 'rbac_roles',
                'ordering': ['tenant', 'name'],
                'unique_together': {('tenant', 'name')},
                'indexes': [
                    models.Index(fields=['tenant', 'is_superadmin'], name='rbac_roles_tenant__5a9c2e_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.permission')),
                ('role', models.ForeignKey(help_text='Role that grants this permission', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.role')),
                ('tenant', models.ForeignKey(help_text='Tenant shared by role and permission', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='tenants.tenant')),
            ],
            options={
                'db_table': 'rbac_role_permission',
                'ordering': ['role', 'permission'],
                'unique_together': {('tenant', 'role', 'permission')},
            },
        ),
        migrations.CreateModel(
            name='TenantUserRole',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('assigned_by', models.ForeignKey(blank=True, help_text='Tenant user who assigned this role', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='role_assignments_made', to='tenants.tenantuser')),
                ('role', models.ForeignKey(help_text='Role assigned to the user', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='rbac.role')),
                ('tenant', models.ForeignKey(help_text='Tenant shared by user and role', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='tenants.tenant')),
                ('tenant_user', models.ForeignKey(help_text='Tenant user who has this role', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='tenants.tenantuser')),
            ],
            options={
                'db_table': 'rbac_user_role',
                'ordering': ['tenant_user', 'role'],
                'unique_together': {('tenant', 'tenant_user', 'role')},
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('action', models.CharField(db_index=True, help_text="Action performed (e.g., 'role_assigned')", max_length=100)),
                ('target_type', models.CharField(help_text="Type of target entity (e.g., 'TenantUser', 'Role')", max_length=50)),
                ('target_id', models.UUIDField(blank=True, help_text='ID of target entity', null=True)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Additional context metadata')),
                ('actor', models.ForeignKey(blank=True, help_text='Tenant user who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='tenants.tenantuser')),
                ('tenant', models.ForeignKey(help_text='Tenant this action belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='tenants.tenant')),
            ],
            options={
                'db_table': 'rbac_audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'action', 'created_at'], name='rbac_audit__tenant__e7f3d1_idx'),
                ],
            },
        ),
    ]
