"""Indexing runner entry point.

One-shot operations outside the API server:

    python -m services.index_runner initial --team-id 42
    python -m services.index_runner reconcile
"""

import argparse
import asyncio

from services.indexing.IndexingRuntime import IndexingRuntime
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintain the Notion workspace vector index.")
    commands = parser.add_subparsers(dest="command", required=True)

    initial = commands.add_parser("initial", help="Bulk load every page of a team's primary database.")
    initial.add_argument("--team-id", type=int, required=True, help="Team whose workspace is loaded.")

    commands.add_parser("reconcile", help="Run one verify-and-repair sweep between state store and index.")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging()
    runtime = IndexingRuntime(HelperConfig(logger=logger))

    try:
        try:
            await runtime.boot()
        except Exception as e:
            logger.error(f"Error booting indexing runtime: {e}. Aborting.")
            return 1

        if args.command == "initial":
            if runtime.initial_service is None:
                logger.error("No SOURCE_ENGINE configured, bulk load is not possible. Aborting.")
                return 1
            published = await runtime.initial_service.do_initial_indexing(args.team_id)
            await runtime.dispatcher.drain()
            logger.info("Bulk load for team %s finished, %d page(s) processed.", args.team_id, published, color="green")
        else:
            report = await runtime.reconciler.do_verify_and_repair()
            if report.failed:
                return 1
        return 0
    finally:
        await runtime.close()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
