"""
OpenNews ingestion service entry point.

Commands:
  run-once      run one ingestion cycle and exit (non-zero on a fatal run)
  serve         start the API server plus the periodic ingestion loop
  seed-sources  insert the default feed sources that are not yet stored

Usage:
  python -m opennews.main run-once
  python -m opennews.main serve
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Any

from dotenv import load_dotenv

# Load .env into os.environ before settings are read
load_dotenv()

import uvicorn  # noqa: E402

from opennews.crawler.base_crawler import BaseCrawler  # noqa: E402
from opennews.crawler.crawl_engine import CrawlEngine  # noqa: E402
from opennews.crawler.exceptions import SourceLoadError  # noqa: E402
from opennews.crawler.sources_config import DEFAULT_SOURCES  # noqa: E402
from opennews.db.connection import close_db, init_db  # noqa: E402
from opennews.db.repository import (  # noqa: E402
    ArticleRepository,
    FeedSourceRepository,
    UserPreferenceRepository,
)
from opennews.filter.tag_backfill import TagBackfill  # noqa: E402
from opennews.monitoring.api_server import app as api_app  # noqa: E402
from opennews.monitoring.api_server import set_dependencies  # noqa: E402
from opennews.monitoring.telegram_notifier import TelegramNotifier  # noqa: E402
from opennews.utils.config import get_settings  # noqa: E402
from opennews.utils.logger import get_logger  # noqa: E402

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Module constants
# ---------------------------------------------------------------------------

_SHUTDOWN_TIMEOUT: float = 30.0


def build_engine() -> CrawlEngine:
    """Wire the ingestion engine to the SQLAlchemy stores."""
    articles = ArticleRepository()
    preferences = UserPreferenceRepository()
    return CrawlEngine(
        source_store=FeedSourceRepository(),
        article_store=articles,
        notifier=TelegramNotifier(preferences.list_preferences),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_once() -> int:
    """Run one cycle. Returns the process exit code."""
    await init_db()
    engine = build_engine()
    try:
        report = await engine.run()
    except SourceLoadError as exc:
        logger.error("Ingestion run aborted: %s", exc)
        return 1
    finally:
        await BaseCrawler.close_session()
        await close_db()

    logger.info("Run summary: %s", report.to_dict())
    return 0


async def seed_sources() -> int:
    await init_db()
    repo = FeedSourceRepository()
    added = 0
    try:
        for key, source in DEFAULT_SOURCES.items():
            if await repo.add_source(source["name"], source["feed_link"], source["kind"]):
                logger.info("Seeded source %s (%s)", key, source["feed_link"])
                added += 1
    finally:
        await close_db()
    logger.info("Seeding done: %d added, %d already present", added, len(DEFAULT_SOURCES) - added)
    return 0


async def _periodic_ingestion(engine: CrawlEngine, interval: float, stop: asyncio.Event) -> None:
    """Run the engine every ``interval`` seconds until ``stop`` is set."""
    while not stop.is_set():
        try:
            await engine.run()
        except SourceLoadError as exc:
            logger.error("Ingestion run aborted: %s", exc)
        except Exception as exc:
            logger.exception("Unexpected ingestion failure: %s", exc)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def serve() -> int:
    """Start the API server and the scheduler loop; wait for a signal."""
    settings = get_settings()
    engine = build_engine()
    set_dependencies(
        crawl_engine=engine,
        tag_backfill=TagBackfill(ArticleRepository()),
    )

    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal %s, initiating graceful shutdown...", sig)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    config = uvicorn.Config(
        api_app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)

    logger.info("Starting API server on %s:%d", settings.api_host, settings.api_port)
    server_task = asyncio.create_task(server.serve())
    scheduler_task = asyncio.create_task(
        _periodic_ingestion(engine, settings.poll_interval_sec, shutdown_event)
    )

    stop_waiter = asyncio.create_task(shutdown_event.wait())
    try:
        # Also returns if the server exits on its own (e.g. port in use)
        await asyncio.wait(
            {server_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        shutdown_event.set()
        server.should_exit = True
        tasks: list[Any] = [server_task, scheduler_task]
        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=_SHUTDOWN_TIMEOUT,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Shutdown timed out after %.0f seconds, forcing exit.", _SHUTDOWN_TIMEOUT
            )
        await BaseCrawler.close_session()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="OpenNews feed ingestion service")
    parser.add_argument(
        "command",
        choices=["run-once", "serve", "seed-sources"],
        help="what to run",
    )
    args = parser.parse_args(argv)

    commands = {
        "run-once": run_once,
        "serve": serve,
        "seed-sources": seed_sources,
    }
    return asyncio.run(commands[args.command]())


if __name__ == "__main__":
    sys.exit(main())
