"""
Operator commands for invite codes and client credentials.

Usage:
    python -m training_relay.scripts.invites create --max-uses 1 --expires-in-days 7
    python -m training_relay.scripts.invites revoke relay-client-0123abcd
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from training_relay.db.session import SessionLocal, create_tables
from training_relay.db.time import utcnow
from training_relay.services.clients import revoke_client
from training_relay.services.invites import create_invite, generate_invite_code


def _create(args: argparse.Namespace) -> int:
    plain_code = args.code or generate_invite_code()
    expires_at = (
        utcnow() + timedelta(days=args.expires_in_days) if args.expires_in_days else None
    )
    with SessionLocal() as db:
        create_invite(
            db,
            plain_code,
            max_uses=args.max_uses,
            expires_at=expires_at,
            created_by=args.created_by,
        )

    # The plaintext code is shown once and never stored.
    print(plain_code)
    return 0


def _revoke(args: argparse.Namespace) -> int:
    with SessionLocal() as db:
        revoked = revoke_client(db, args.client_id, now=utcnow())

    if not revoked:
        print(f"No active client {args.client_id}", file=sys.stderr)
        return 1
    print(f"Revoked {args.client_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser for invite administration."""
    parser = argparse.ArgumentParser(description="Manage relay invites and clients")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create an invite code")
    create.add_argument("--code", help="Use this code instead of a random one")
    create.add_argument("--max-uses", type=int, default=1)
    create.add_argument("--expires-in-days", type=int, default=None)
    create.add_argument("--created-by", default=None)
    create.set_defaults(handler=_create)

    revoke = subparsers.add_parser("revoke", help="Deactivate a client")
    revoke.add_argument("client_id")
    revoke.set_defaults(handler=_revoke)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "create" and args.max_uses < 1:
        print("--max-uses must be at least 1", file=sys.stderr)
        return 2
    create_tables()
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
