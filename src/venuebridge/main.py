"""Main entry point - runs the polling scheduler and the API."""

import asyncio
import logging
import signal

import uvicorn

from venuebridge.api.app import create_app
from venuebridge.config import get_settings
from venuebridge.factory import Services, build_services
from venuebridge.ledger.database import close_db, get_engine, init_db

logger = logging.getLogger(__name__)


class Application:
    """Main application that runs the sweeps and the API server."""

    def __init__(self):
        self.settings = get_settings()
        self.services: Services | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting venuebridge...")
        logger.info(f"Environment: {self.settings.environment}")

        await init_db(get_engine(self.settings))
        logger.info("Database initialized")

        self.services = build_services(self.settings)

        tasks = [
            asyncio.create_task(self._run_scheduler()),
            asyncio.create_task(self._run_api()),
        ]
        logger.info("Scheduler and API tasks created")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

        await self.services.scheduler.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_scheduler(self):
        try:
            await self.services.scheduler.run()
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled")

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app(self.services)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")
        if self.services is not None:
            await self.services.aclose()
        await close_db()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    app = Application()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
