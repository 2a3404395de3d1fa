"""
Create a user (e.g. first admin). Run from project root:
  python -m wms_tutorial.scripts.create_user USERNAME PASSWORD [role]
Example:
  python -m wms_tutorial.scripts.create_user admin your-secure-password admin
"""
import argparse
import sys

from wms_tutorial.core.config import get_settings
from wms_tutorial.core.database import ConnectionPool
from wms_tutorial.core.errors import AppError
from wms_tutorial.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, USERNAME_MAX_LEN
from wms_tutorial.models.user import ROLES
from wms_tutorial.services.users import create_user


def main(argv: list[str] | None = None, pool: ConnectionPool | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a WMS Tutorial user.")
    parser.add_argument("username", help=f"Username (1-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default="user", choices=list(ROLES))
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username or len(username) > USERNAME_MAX_LEN:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    pool = pool or ConnectionPool.from_settings(get_settings())
    try:
        connection = pool.acquire()
        if connection.is_mock:
            print("Database is unreachable; refusing to create a user on the mock connection.", file=sys.stderr)
            return 1
        db = connection.session()
        try:
            user = create_user(db, username, args.password, role=args.role)
        except AppError as e:
            print(f"{e.message}: '{username}'.", file=sys.stderr)
            return 1
        finally:
            db.close()
        print(f"Created user '{user.username}' with role '{user.role}'.")
        return 0
    finally:
        pool.close()


if __name__ == "__main__":
    sys.exit(main())
