"""
Make sure the system has a superadmin.

When no superadmin exists yet, creates the default restaurant
"Sede Principal (Default)" with a superadmin account. Running it again is a no-op.

Usage:
    python -m restopos.seeds.superadmin --email admin@example.com --password secret
    python -m restopos.seeds.superadmin --email admin@example.com --password secret --name "Admin"
"""

import argparse
import sys

from sqlmodel import Session

from ..db import create_db_and_tables, get_engine
from ..restaurant_service import ensure_superadmin


def seed_superadmin(name: str, email: str, password: str) -> bool:
    """Returns True when a superadmin was created."""
    engine = get_engine()
    if engine is None:
        print("❌ No database configured. Set DATABASE_URL or DB_HOST.")
        return False

    create_db_and_tables()
    with Session(engine) as session:
        user, created = ensure_superadmin(session, name, email, password)

    if created:
        print(f"✅ Superadmin {user.email} created in the default restaurant")
    else:
        print(f"ℹ️  A superadmin already exists ({user.email}); nothing to do")
    return created


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the default restaurant and its superadmin")
    parser.add_argument("--email", required=True, help="Superadmin login email")
    parser.add_argument("--password", required=True, help="Superadmin password")
    parser.add_argument("--name", default="Superadmin", help="Display name")
    args = parser.parse_args()

    try:
        seed_superadmin(args.name, args.email, args.password)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Error creating superadmin: {e}")
        sys.exit(1)
