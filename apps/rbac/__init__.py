"""
RBAC (Role-Based Access Control) application.

Provides multi-tenant access control with:
- Per-tenant roles and (resource, action) permissions
- Superadmin roles that bypass permission checks
- Role membership and permission grant management
- First-user superadmin provisioning
- Resource policies for DRF views
"""
