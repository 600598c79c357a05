"""
Operator commands for a Secura deployment.

Examples:
  # Create tables
  python -m secura.manage init-db

  # Issue a bearer token for a user
  python -m secura.manage issue-token alice --ttl-days 7

  # Make a user an admin
  python -m secura.manage grant-role alice admin
"""

import argparse
import sys
from typing import List, Optional

from secura.database import Base, SessionLocal, engine
from secura.models.analysis_log import AnalysisLog  # noqa: F401  (registers table)
from secura.models.report import ClassificationReport  # noqa: F401
from secura.models.user import AccessToken, UserRole  # noqa: F401
from secura.services.auth_service import VALID_ROLES, get_roles, grant_role, issue_token, revoke_token


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m secura.manage",
        description="Manage Secura users, roles and tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all database tables.")

    p_token = sub.add_parser("issue-token", help="Issue a bearer token for a user.")
    p_token.add_argument("user_id")
    p_token.add_argument(
        "--ttl-days",
        type=int,
        default=None,
        help="Token lifetime in days (default: from settings; 0 = no expiry).",
    )

    p_revoke = sub.add_parser("revoke-token", help="Revoke a bearer token.")
    p_revoke.add_argument("token")

    p_role = sub.add_parser("grant-role", help="Grant a role to a user.")
    p_role.add_argument("user_id")
    p_role.add_argument("role", choices=VALID_ROLES)

    p_roles = sub.add_parser("roles", help="List a user's roles.")
    p_roles.add_argument("user_id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    Base.metadata.create_all(bind=engine)
    if args.command == "init-db":
        print("[OK] Database initialized")
        return 0

    db = SessionLocal()
    try:
        if args.command == "issue-token":
            token = issue_token(db, args.user_id, ttl_days=args.ttl_days)
            print(token)
        elif args.command == "revoke-token":
            if not revoke_token(db, args.token):
                print("[WARN] Token not found", file=sys.stderr)
                return 1
            print("[OK] Token revoked")
        elif args.command == "grant-role":
            grant_role(db, args.user_id, args.role)
            print(f"[OK] {args.user_id} -> {args.role}")
        elif args.command == "roles":
            print(", ".join(get_roles(db, args.user_id)) or "(none)")
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
