"""
URL configuration.

The RBAC core exposes no endpoints of its own; host applications route
their views here and guard them with apps.rbac.policies.HasResourcePermission.
"""

urlpatterns = []
