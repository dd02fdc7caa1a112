# Supabase tables: admin_permissions, admin_roles, role_permissions
# This file documents the expected database schema
# Actual operations are handled through RecordStore in service.py

"""
Expected Supabase table structure:

admin_permissions:
- id: uuid (primary key)
- name: text (not null, unique) - e.g., "manage_news", "manage_admins"; never renamed
- display_name: text (not null)
- description: text (nullable)
- category: text (not null) - one of cadets, scores, achievements, events, content, tasks, forum, system
- created_at: timestamp (default: now())

admin_roles:
- id: uuid (primary key)
- name: text (not null, unique) - e.g., "super_admin", "moderator"
- display_name: text (not null)
- description: text (nullable)
- is_system_role: boolean (not null, default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

role_permissions:
- id: uuid (primary key)
- role_id: uuid (foreign key to admin_roles.id, not null)
- permission_id: uuid (foreign key to admin_permissions.id, not null)
- created_at: timestamp (default: now())
- unique constraint on (role_id, permission_id)
"""
