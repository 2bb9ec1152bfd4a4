"""threadrelay — Main entry point."""

import asyncio
import logging
import os

import uvicorn

from .app import RelayApp
from .communication.slack import SlackClient
from .config import load_settings
from .db.connection import apply_schema, close_db, init_db
from .db.store import PostgresRoutingStore
from .server import create_app

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_log_file = os.path.expanduser("~/threadrelay.log")

logger = logging.getLogger("threadrelay")


def setup_logging(debug: bool = False):
    """Configure stderr + file logging for the process."""
    logging.basicConfig(
        level=logging.INFO,
        format=_log_format,
        handlers=[
            logging.StreamHandler(),                          # stderr (console)
            logging.FileHandler(_log_file, encoding="utf-8"), # ~/threadrelay.log
        ],
    )
    if debug:
        logger.setLevel(logging.DEBUG)


async def run():
    """Main run loop."""
    settings = load_settings()
    if settings.debug:
        logger.setLevel(logging.DEBUG)

    if not settings.slack_bot_token:
        logger.critical("Cannot start without RELAY_SLACK_BOT_TOKEN.")
        return

    try:
        pool = await init_db(settings.database_url)
        await apply_schema(pool)

        slack = SlackClient(settings.slack_bot_token, timeout=settings.slack_timeout)
        await slack.connect()

        relay = RelayApp.from_settings(settings, slack, PostgresRoutingStore())
        if settings.notify_channel:
            logger.info(f"Audit notices go to {settings.notify_channel}")

        server = uvicorn.Server(uvicorn.Config(
            create_app(relay),
            host=settings.host,
            port=settings.port,
            log_level="debug" if settings.debug else "info",
        ))
        logger.info(f"🌍 Events API listening on {settings.host}:{settings.port}")
        await server.serve()

    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        await close_db()


def main():
    """Entry point."""
    setup_logging()
    asyncio.run(run())


if __name__ == "__main__":
    main()
