#!/usr/bin/env python
"""
Migration management script.

Usage:
    python run_migrations.py create "migration message"  # Autogenerate a revision
    python run_migrations.py upgrade [revision]          # Apply migrations (default: head)
    python run_migrations.py downgrade [revision]        # Roll back (default: -1)
    python run_migrations.py current                     # Show current revision
    python run_migrations.py history                     # Show revision history
"""
from alembic.config import Config
from alembic import command
import os
import sys


alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))


def create_migration(message: str):
    command.revision(alembic_cfg, message=message, autogenerate=True)
    print(f"Migration '{message}' created")
    print("   Run 'python run_migrations.py upgrade' to apply it")


def upgrade_migrations(revision: str = "head"):
    print(f"Upgrading database to: {revision}")
    command.upgrade(alembic_cfg, revision)
    print("Database upgraded successfully")


def downgrade_migrations(revision: str = "-1"):
    print(f"Downgrading database to: {revision}")
    command.downgrade(alembic_cfg, revision)
    print("Database downgraded successfully")


ACTIONS = {
    "upgrade": lambda args: upgrade_migrations(args[0] if args else "head"),
    "downgrade": lambda args: downgrade_migrations(args[0] if args else "-1"),
    "current": lambda args: command.current(alembic_cfg),
    "history": lambda args: command.history(alembic_cfg),
}


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    action, args = sys.argv[1].lower(), sys.argv[2:]

    try:
        if action == "create":
            if not args:
                print("Error: Migration message required")
                sys.exit(1)
            create_migration(args[0])
        elif action in ACTIONS:
            ACTIONS[action](args)
        else:
            print(f"Unknown action: {action}")
            print(__doc__)
            sys.exit(1)
    except Exception as e:
        print(f"Error running '{action}': {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
