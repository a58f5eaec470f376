"""
Main entrypoint.

Usage:
    python -m recordsync sync       # run one reconciliation pass and print the log
    python -m recordsync            # start the periodic sync scheduler
    uvicorn recordsync.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_once() -> int:
    from recordsync.sync.orchestrator import get_orchestrator

    orchestrator = get_orchestrator()
    try:
        summary = await orchestrator.start_sync()
    finally:
        await orchestrator.synchronizer.remote.aclose()

    for entry in reversed(orchestrator.recent_logs()):
        print(f"{entry.timestamp:%Y-%m-%d %H:%M:%S} [{entry.level}] {entry.message}")
    return 0 if summary is not None and summary.ok else 1


async def _run_scheduler() -> None:
    from recordsync.config import get_settings
    from recordsync.scheduler.jobs import build_scheduler
    from recordsync.sync.orchestrator import get_orchestrator

    settings = get_settings()
    orchestrator = get_orchestrator()

    scheduler = build_scheduler(orchestrator)
    scheduler.start()
    logger.info(
        "Scheduler started (sync every %d min, %d collection(s))",
        settings.sync_interval_minutes,
        len(settings.sync_collections),
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        await orchestrator.synchronizer.remote.aclose()
        logger.info("Goodbye.")


def main() -> None:
    parser = argparse.ArgumentParser(prog="recordsync", description="Local/remote record sync")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["sync", "serve"],
        default="serve",
        help="'sync' runs one pass; 'serve' (default) runs the scheduler",
    )
    args = parser.parse_args()

    if args.command == "sync":
        raise SystemExit(asyncio.run(_run_once()))
    asyncio.run(_run_scheduler())


if __name__ == "__main__":
    main()
