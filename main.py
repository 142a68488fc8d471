#!/usr/bin/env python3
"""
FleetRent -- operator command line.

Self-registration always creates CUSTOMER identities. Administrators are
provisioned here, directly against the configured database.

Usage:
  python main.py create-user --name "Fleet Ops" --email ops@example.com --role ADMIN
  python main.py create-user --name "Jane" --email jane@example.com --password s3cret
  python main.py serve --host 0.0.0.0 --port 8000

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the database (default: fleetrent.db beside the code)
  SECRET_KEY     Token signing secret, required unless DEBUG=true (settings are
                 validated as a whole, even when only DATABASE_URL is read)
"""

import argparse
import getpass
import sys

from auth.models import Identity
from auth.passwords import hash_password
from auth.store import ROLE_NAMES, UserStore
from core.config import get_settings


def create_user(store: UserStore, name: str, email: str, password: str, role_name: str) -> Identity:
    """Create an identity with the given role.

    Raises ValueError for an unknown role or an email that is already taken.
    """
    role = store.find_role_by_name(role_name)
    if role is None:
        raise ValueError(f"Unknown role {role_name!r}. Expected one of: {', '.join(ROLE_NAMES)}")
    created = store.create_identity(
        Identity(name=name, email=email.strip().lower(), password_hash=hash_password(password), role_id=role.id)
    )
    if created is None:
        raise ValueError(f"{email} is already registered.")
    created.role = role
    return created


def _cmd_create_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("  [!] A password is required.")
        return 1
    store = UserStore(args.database_url or get_settings().database_url)
    try:
        identity = create_user(store, args.name, args.email, password, args.role)
    except ValueError as exc:
        print(f"  [!] {exc}")
        return 1
    finally:
        store.close()
    print(f"  Created {identity.role.name} identity #{identity.id} <{identity.email}>")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fleetrent",
        description="FleetRent operator tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an identity with a chosen role")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--email", required=True, help="Login email (stored lowercase)")
    create.add_argument("--password", help="Password (prompted for when omitted)")
    create.add_argument("--role", choices=ROLE_NAMES, default="ADMIN", help="Role name (default: ADMIN)")
    create.add_argument("--database-url", metavar="URL", help="SQLAlchemy database URL (default: DATABASE_URL)")
    create.set_defaults(handler=_cmd_create_user)

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(handler=_cmd_serve)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
