"""SeaBot: main entry point."""

import asyncio
import logging
import os
import sys
import time

from .commands import build_registry
from .config import SeaBotSettings, load_settings
from .db.connection import apply_schema, close_db, init_db
from .dispatcher import CommandDispatcher
from .handler import MessageHandler
from .identity import IdentityResolver
from .limits import UsageLedger
from .ratelimit import RateGate, RateState
from .scheduler import DailyResetScheduler
from .whatsapp import WhatsAppBridge

# Pick up command settings edited from the dashboard
COMMAND_RELOAD_INTERVAL = 60

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("seabot")


def configure_logging(level: str = "INFO", log_file: str = "~/seabot.log"):
    """Log to stderr and to the configured file."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),                                         # stderr (console)
            logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"),
        ],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def run(settings: SeaBotSettings = None) -> bool:
    """Main run loop. Returns False if the bot stopped because of an error."""
    settings = settings or load_settings()

    bridge = None
    scheduler = None
    db_ready = False
    ok = True

    try:
        await init_db(settings.database_url)
        db_ready = True
        await apply_schema()

        resolver = IdentityResolver.from_settings(settings)
        ledger = UsageLedger()
        gate = RateGate.from_settings(settings, RateState())
        dispatcher = CommandDispatcher.from_settings(settings)

        registry = build_registry(settings, resolver, ledger)
        await registry.sync_to_db()
        logger.info(f"{len(registry)} commands registered (prefixes: {' '.join(settings.prefixes)})")

        bridge = WhatsAppBridge(wacli_path=settings.wacli_path)
        handler = MessageHandler(
            transport=bridge,
            registry=registry,
            resolver=resolver,
            gate=gate,
            ledger=ledger,
            dispatcher=dispatcher,
            prefixes=settings.prefixes,
        )

        scheduler = DailyResetScheduler(ledger)
        await scheduler.start()

        if not await bridge.start(handler.handle):
            logger.error("WhatsApp bridge failed to start, shutting down.")
            return False

        logger.info(f"{settings.bot_name} is running. Press Ctrl+C to stop.")
        last_reload = time.monotonic()
        while bridge.running:
            await asyncio.sleep(1)
            if time.monotonic() - last_reload >= COMMAND_RELOAD_INTERVAL:
                last_reload = time.monotonic()
                try:
                    await registry.reload()
                except Exception as e:
                    logger.warning(f"Command settings reload failed: {e}")

    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
        ok = False
    finally:
        if scheduler:
            await scheduler.stop()
        if bridge:
            await bridge.stop()
        if db_ready:
            await close_db()
    return ok


def main(debug: bool = False):
    """Entry point."""
    settings = load_settings()
    configure_logging("DEBUG" if debug else settings.log_level, settings.log_file)
    try:
        ok = asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        return
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
