"""
RBAC (Role-Based Access Control) application.

Provides multi-tenant access control with:
- Tenant-scoped roles with global fallback
- A permission gate and an exact-role gate
- Role administration with audit and settings history
"""
