"""CLI script to provision a task owner and print its API token."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create a task owner and print a newly generated API token.",
    )
    parser.add_argument("--email", type=str, required=True, help="User email (unique)")
    parser.add_argument("--name", type=str, default=None, help="Optional display name")
    parser.add_argument(
        "--rotate",
        action="store_true",
        help="Issue a new token for an existing user instead of failing",
    )
    return parser.parse_args()


async def _run() -> int:
    from tasktree.db.session import async_session_maker, init_db
    from tasktree.models.users import User
    from tasktree.services.users import UserExistsError, create_user, rotate_user_token

    args = _parse_args()
    await init_db()

    async with async_session_maker() as session:
        try:
            user, token = await create_user(session, email=args.email, name=args.name)
        except UserExistsError as exc:
            if not args.rotate:
                sys.stderr.write(f"{exc}\n")
                return 1
            user = await User.objects.filter_by(email=args.email.strip().lower()).first(session)
            if user is None:
                raise SystemExit(str(exc)) from exc
            token = await rotate_user_token(session, user)

    sys.stdout.write(f"user_id={user.id}\n")
    sys.stdout.write(f"email={user.email}\n")
    sys.stdout.write(f"token={token}\n")
    return 0


def main() -> None:
    """Run the async CLI workflow and exit with its return code."""
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
