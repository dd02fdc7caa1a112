"""
Create the first super administrator.
Refuses to run when an active super administrator already exists.

    python -m app.scripts.create_super_admin --email root@example.org --name "Chief admin"
"""

import argparse
import getpass
import logging
import sys

from pydantic import ValidationError

from app.config import settings
from app.core.exceptions import AccessError
from app.database.identity_store import SupabaseIdentityStore
from app.database.store import SupabaseRecordStore
from app.database.supabase_client import get_service_supabase
from app.modules.admins.schemas import SuperAdminBootstrap
from app.modules.admins.service import AdminLifecycleManager

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create the first super administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", help="prompted for when omitted")
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    password = args.password or getpass.getpass("Password: ")

    try:
        data = SuperAdminBootstrap(name=args.name, email=args.email, password=password)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(2)

    supabase = get_service_supabase()
    manager = AdminLifecycleManager(
        SupabaseRecordStore(supabase),
        SupabaseIdentityStore(supabase, ban_duration=settings.deactivation_ban_duration)
    )
    try:
        admin = manager.bootstrap_super_admin(data)
    except AccessError as e:
        logger.error(f"Could not create super admin: {e}")
        sys.exit(1)
    logger.info(f"Super admin {admin.email} created with id {admin.id}")


if __name__ == "__main__":
    main()
