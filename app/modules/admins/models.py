# Supabase tables: users, user_roles, user_permissions
# This file documents the expected database schema
# Actual operations are handled through RecordStore / IdentityStore in service.py

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, same id as the Supabase Auth user)
- email: text (not null)
- name: text (not null)
- role: text (not null) - account type; "admin" or "super_admin" for administrators
- status: text (not null, default: "active") - "active" or "deactivated"
- created_at: timestamp (default: now())

user_roles:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- role_id: uuid (admin_roles.id, not null; left dangling when the role is deleted)
- assigned_by: uuid (nullable) - administrator who made the assignment
- assigned_at: timestamp (default: now())
- is_active: boolean (not null, default: true) - rows are deactivated, never deleted
- unique constraint on (user_id, role_id)

user_permissions:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- permission_id: uuid (admin_permissions.id, not null)
- assigned_by: uuid (nullable)
- assigned_at: timestamp (default: now())
- is_active: boolean (not null, default: true)
- unique constraint on (user_id, permission_id)
"""
