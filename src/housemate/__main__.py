"""Entry point for ``python -m housemate``.

Prints a JSON report for one household to stdout::

    python -m housemate simplify <group_id>
    python -m housemate score <user_id> <group_id> --domain task
    python -m housemate roommate <user_id> <group_id>
    python -m housemate performance <group_id> --domain expense
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid

from housemate.config import settings
from housemate.db.session import engine, get_session
from housemate.errors import HousemateError
from housemate.models import Domain
from housemate.scoring.service import (
    compute_group_performance,
    compute_roommate_score,
    compute_user_score,
)
from housemate.settlement.service import simplify_debts

logger = logging.getLogger("housemate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="housemate", description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    simplify = commands.add_parser("simplify", help="Minimal settlement plan for a household")
    simplify.add_argument("group_id", type=uuid.UUID)

    score = commands.add_parser("score", help="One member's score in one domain")
    score.add_argument("user_id", type=uuid.UUID)
    score.add_argument("group_id", type=uuid.UUID)
    score.add_argument("--domain", choices=[d.value for d in Domain], default=Domain.EXPENSE)

    roommate = commands.add_parser("roommate", help="Blended roommate score")
    roommate.add_argument("user_id", type=uuid.UUID)
    roommate.add_argument("group_id", type=uuid.UUID)

    performance = commands.add_parser("performance", help="Leaderboard for a household")
    performance.add_argument("group_id", type=uuid.UUID)
    performance.add_argument(
        "--domain", choices=[d.value for d in Domain], default=Domain.EXPENSE
    )
    return parser


async def run(args: argparse.Namespace) -> str:
    """Execute one report command and return its JSON text."""
    try:
        if args.command == "performance":
            rows = await compute_group_performance(args.group_id, args.domain)
            return json.dumps([row.model_dump(mode="json") for row in rows], indent=2)

        async with get_session() as session:
            if args.command == "simplify":
                result = await simplify_debts(session, args.group_id)
            elif args.command == "score":
                result = await compute_user_score(
                    session, args.user_id, args.group_id, args.domain
                )
            else:
                result = await compute_roommate_score(session, args.user_id, args.group_id)
        return result.model_dump_json(indent=2)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the report, and print it."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        output = asyncio.run(run(args))
    except HousemateError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
