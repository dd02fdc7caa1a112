"""
Permissions and Roles Configuration
This config defines the closed permission catalog of the admin console and the
roles seeded on top of it.
Used by the seed script and by route guards; every permission name referenced
anywhere in the code must be a PermissionName member.
"""

from enum import Enum
from typing import Dict, List, Any


SUPER_ADMIN_ROLE = "super_admin"
ADMIN_ROLE = "admin"


class PermissionCategory(str, Enum):
    CADETS = "cadets"
    SCORES = "scores"
    ACHIEVEMENTS = "achievements"
    EVENTS = "events"
    CONTENT = "content"
    TASKS = "tasks"
    FORUM = "forum"
    SYSTEM = "system"


class PermissionName(str, Enum):
    MANAGE_CADETS = "manage_cadets"
    MANAGE_PREFIXES = "manage_prefixes"
    MANAGE_SCORES = "manage_scores"
    MANAGE_SCORES_STUDY = "manage_scores_study"
    MANAGE_SCORES_DISCIPLINE = "manage_scores_discipline"
    MANAGE_SCORES_EVENTS = "manage_scores_events"
    MANAGE_ACHIEVEMENTS = "manage_achievements"
    MANAGE_EVENTS = "manage_events"
    MANAGE_NEWS = "manage_news"
    MANAGE_COUNCIL = "manage_council"
    MANAGE_TASKS = "manage_tasks"
    MANAGE_FORUM = "manage_forum"
    MANAGE_ADMINS = "manage_admins"
    VIEW_ANALYTICS = "view_analytics"
    RESET_DATA = "reset_data"


# Labels shown next to each category in the admin console
CATEGORY_LABELS: Dict[PermissionCategory, str] = {
    PermissionCategory.CADETS: "Cadet management",
    PermissionCategory.SCORES: "Score management",
    PermissionCategory.ACHIEVEMENTS: "Achievements",
    PermissionCategory.EVENTS: "Events",
    PermissionCategory.CONTENT: "Content",
    PermissionCategory.TASKS: "Tasks",
    PermissionCategory.FORUM: "Forum",
    PermissionCategory.SYSTEM: "System",
}

# name -> (category, display name, description)
PERMISSIONS = {
    PermissionName.MANAGE_CADETS: (
        PermissionCategory.CADETS, "Manage cadets", "Create, edit and delete cadet profiles"
    ),
    PermissionName.MANAGE_PREFIXES: (
        PermissionCategory.CADETS, "Manage prefixes", "Create cadet prefixes and assign them to cadets"
    ),
    PermissionName.MANAGE_SCORES: (
        PermissionCategory.SCORES, "Manage all scores", "Change scores in every category"
    ),
    PermissionName.MANAGE_SCORES_STUDY: (
        PermissionCategory.SCORES, "Manage study scores", "Change study scores"
    ),
    PermissionName.MANAGE_SCORES_DISCIPLINE: (
        PermissionCategory.SCORES, "Manage discipline scores", "Change discipline scores"
    ),
    PermissionName.MANAGE_SCORES_EVENTS: (
        PermissionCategory.SCORES, "Manage event scores", "Change scores earned at events"
    ),
    PermissionName.MANAGE_ACHIEVEMENTS: (
        PermissionCategory.ACHIEVEMENTS, "Manage achievements", "Create achievements and award them to cadets"
    ),
    PermissionName.MANAGE_EVENTS: (
        PermissionCategory.EVENTS, "Manage events", "Create, edit and delete events"
    ),
    PermissionName.MANAGE_NEWS: (
        PermissionCategory.CONTENT, "Manage news", "Publish, edit and delete news"
    ),
    PermissionName.MANAGE_COUNCIL: (
        PermissionCategory.CONTENT, "Manage council", "Edit council positions, members and staff"
    ),
    PermissionName.MANAGE_TASKS: (
        PermissionCategory.TASKS, "Manage tasks", "Create tasks and review submissions"
    ),
    PermissionName.MANAGE_FORUM: (
        PermissionCategory.FORUM, "Manage forum", "Moderate topics and manage forum categories"
    ),
    PermissionName.MANAGE_ADMINS: (
        PermissionCategory.SYSTEM, "Manage administrators", "Create, edit and deactivate administrators and roles"
    ),
    PermissionName.VIEW_ANALYTICS: (
        PermissionCategory.SYSTEM, "View analytics", "View score analytics and admin statistics"
    ),
    PermissionName.RESET_DATA: (
        PermissionCategory.SYSTEM, "Reset data", "Reset scores, events, forum and other portal data"
    ),
}

_ALL = list(PermissionName)

# Seed roles. System roles are re-synchronised on every seed run and cannot be
# deleted; the others only receive their permissions when first created.
ROLES = {
    SUPER_ADMIN_ROLE: {
        "display_name": "Super administrator",
        "description": "Full access, including management of other administrators",
        "is_system_role": True,
        "permissions": _ALL,
    },
    ADMIN_ROLE: {
        "display_name": "Administrator",
        "description": "Full access to portal content without administrator management",
        "is_system_role": True,
        "permissions": [p for p in _ALL if p not in (PermissionName.MANAGE_ADMINS, PermissionName.RESET_DATA)],
    },
    "moderator": {
        "display_name": "Moderator",
        "description": "Forum and news moderation",
        "is_system_role": False,
        "permissions": [PermissionName.MANAGE_FORUM, PermissionName.MANAGE_NEWS],
    },
    "score_manager": {
        "display_name": "Score manager",
        "description": "Score changes in every category",
        "is_system_role": False,
        "permissions": [
            PermissionName.MANAGE_SCORES,
            PermissionName.MANAGE_SCORES_STUDY,
            PermissionName.MANAGE_SCORES_DISCIPLINE,
            PermissionName.MANAGE_SCORES_EVENTS,
        ],
    },
    "event_manager": {
        "display_name": "Event manager",
        "description": "Events and tasks",
        "is_system_role": False,
        "permissions": [PermissionName.MANAGE_EVENTS, PermissionName.MANAGE_TASKS, PermissionName.MANAGE_SCORES_EVENTS],
    },
    "content_manager": {
        "display_name": "Content manager",
        "description": "News, council pages and achievements",
        "is_system_role": False,
        "permissions": [PermissionName.MANAGE_NEWS, PermissionName.MANAGE_COUNCIL, PermissionName.MANAGE_ACHIEVEMENTS],
    },
}


def validate_catalog(permissions=None, roles=None) -> None:
    """Raise ValueError if the catalog references unknown or duplicate names."""
    permissions = PERMISSIONS if permissions is None else permissions
    roles = ROLES if roles is None else roles

    missing = [p.value for p in PermissionName if p not in permissions]
    if missing:
        raise ValueError(f"Permissions without a definition: {missing}")

    for name, (category, display_name, _) in permissions.items():
        if not isinstance(name, PermissionName):
            raise ValueError(f"Permission {name!r} is not a PermissionName member")
        if not isinstance(category, PermissionCategory):
            raise ValueError(f"Permission {name.value} has unknown category {category!r}")
        if not display_name:
            raise ValueError(f"Permission {name.value} has no display name")

    if SUPER_ADMIN_ROLE not in roles or not roles[SUPER_ADMIN_ROLE]["is_system_role"]:
        raise ValueError(f"Role {SUPER_ADMIN_ROLE} must be defined as a system role")

    for role_name, role in roles.items():
        role_permissions = role["permissions"]
        if not role_permissions:
            raise ValueError(f"Role {role_name} has no permissions")
        unknown = [p for p in role_permissions if not isinstance(p, PermissionName)]
        if unknown:
            raise ValueError(f"Role {role_name} references unknown permissions: {unknown}")
        if len(set(role_permissions)) != len(role_permissions):
            raise ValueError(f"Role {role_name} lists a permission twice")


def get_permission_matrix() -> Dict[str, List[Dict[str, Any]]]:
    """
    Returns the catalog in the shape used by the seed script
    Format: {
        "permissions": [
            {"name": "manage_news", "display_name": "...", "description": "...", "category": "content"},
            ...
        ],
        "roles": [
            {
                "name": "moderator",
                "display_name": "...",
                "description": "...",
                "is_system_role": False,
                "permissions": ["manage_forum", "manage_news"]
            },
            ...
        ]
    }
    """
    permissions = []
    for name, (category, display_name, description) in PERMISSIONS.items():
        permissions.append({
            "name": name.value,
            "display_name": display_name,
            "description": description,
            "category": category.value,
        })

    roles = []
    for role_name, role in ROLES.items():
        roles.append({
            "name": role_name,
            "display_name": role["display_name"],
            "description": role["description"],
            "is_system_role": role["is_system_role"],
            "permissions": sorted(p.value for p in role["permissions"]),
        })

    return {
        "permissions": permissions,
        "roles": roles
    }


def get_permission_categories() -> List[Dict[str, str]]:
    """Categories in declaration order with their console labels"""
    return [
        {"category": category.value, "label": CATEGORY_LABELS.get(category, category.value)}
        for category in PermissionCategory
    ]


validate_catalog()

# Export the matrix for use in seed scripts
PERMISSION_MATRIX = get_permission_matrix()
