"""EMQX status controller entry point."""

import asyncio
import logging
import signal
from typing import Optional

from . import __version__
from .cluster import ClusterConnection
from .config import Settings, get_settings
from .reconciler import StatusReconciliationLoop

logger = logging.getLogger(__name__)


class Application:
    """Main application orchestrator."""

    def __init__(self, settings: Settings):
        """
        Initialize application.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.cluster: Optional[ClusterConnection] = None
        self.loop: Optional[StatusReconciliationLoop] = None
        self._shutdown = False

    async def start(self) -> None:
        """Start the application."""
        logger.info("Starting EMQX status controller...")
        logger.info(f"   Version: {__version__}")
        logger.info(f"   Namespace: {self.settings.namespace}")
        logger.info(
            f"   Resource: {self.settings.crd_plural}."
            f"{self.settings.crd_group}/{self.settings.crd_version}"
        )

        self.cluster = ClusterConnection(
            kubeconfig_path=self.settings.kubeconfig_path,
            context=self.settings.kube_context,
        )
        self.loop = StatusReconciliationLoop(self.cluster, self.settings)
        await self.loop.start()

        logger.info("EMQX status controller started")

        try:
            while not self._shutdown:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Stop the application."""
        logger.info("Shutting down EMQX status controller...")
        self._shutdown = True

        if self.loop:
            await self.loop.stop()
        if self.cluster:
            self.cluster.close()

        logger.info("EMQX status controller stopped")

    def handle_signal(self, sig: int) -> None:
        """
        Handle shutdown signals.

        Args:
            sig: Signal number
        """
        logger.info(f"Received signal {sig}, initiating shutdown...")
        self._shutdown = True


async def main() -> None:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = Application(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.handle_signal, sig)

    try:
        await app.start()
    finally:
        await app.stop()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
