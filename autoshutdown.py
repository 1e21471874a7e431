#!/usr/bin/env python3
"""
Auto-shutdown runner

Runs the auto-shutdown plugin as its own process:
1. Load config (JSON or YAML) and configure logging
2. Connect to NATS
3. Initialize AutoShutdownPlugin (arms the first shutdown, starts ticking)
4. Run until SIGINT/SIGTERM; SIGHUP re-reads the config file and re-arms
5. Shut the plugin down and close NATS

Usage:
    python autoshutdown.py config.json
"""

import asyncio
import logging
import signal
import sys
from typing import Any, Dict, Optional

import nats

from common.config import get_config, get_nats_url, load_config
from plugins.autoshutdown import AutoShutdownPlugin


logger = logging.getLogger(__name__)


class AutoShutdownRunner:
    """
    Owns the NATS connection and the plugin instance.

    Args:
        config_path: Path of the config file (re-read on reload).
        conf: Already loaded configuration dictionary.
    """

    READY_SUBJECT = f"rosey.plugin.{AutoShutdownPlugin.NAMESPACE}.ready"

    def __init__(self, config_path: str, conf: Dict[str, Any]):
        self.config_path = config_path
        self.conf = conf
        self.nats_url = get_nats_url(conf)
        self.nc: Optional[Any] = None
        self.plugin: Optional[AutoShutdownPlugin] = None
        self._stop = asyncio.Event()

    async def start(self) -> None:
        """Connect and start the plugin"""
        logger.info(f"Connecting to NATS: {self.nats_url}")
        self.nc = await nats.connect(servers=[self.nats_url])

        self.plugin = AutoShutdownPlugin(
            nats_client=self.nc,
            config=self.conf.get(AutoShutdownPlugin.NAMESPACE, {})
        )
        await self.plugin.initialize()

        await self.nc.publish(self.READY_SUBJECT, b"ready")
        logger.info("✅ Auto-shutdown started")

    async def reload(self) -> None:
        """Re-read the config file and re-arm the plugin"""
        logger.info(f"Reloading config from {self.config_path}")
        try:
            self.conf = load_config(self.config_path)
        except Exception as e:
            logger.error(f"Failed to reload config: {e}")
            return

        if self.plugin:
            await self.plugin.reload(
                config=self.conf.get(AutoShutdownPlugin.NAMESPACE, {})
            )

    def request_stop(self) -> None:
        self._stop.set()

    async def wait(self) -> None:
        await self._stop.wait()

    async def stop(self) -> None:
        """Stop the plugin and close NATS"""
        logger.info("Shutting down auto-shutdown...")

        if self.plugin:
            try:
                await self.plugin.shutdown()
            except Exception as e:
                logger.error(f"Error during plugin shutdown: {e}")

        if self.nc:
            try:
                await self.nc.close()
            except Exception as e:
                logger.error(f"Error closing NATS: {e}")

        logger.info("✅ Auto-shutdown stopped")


def install_signal_handlers(runner: AutoShutdownRunner) -> None:
    """SIGINT/SIGTERM stop the runner, SIGHUP reloads the config"""
    loop = asyncio.get_running_loop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, runner.request_stop)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda s, f: runner.request_stop())

    sighup = getattr(signal, "SIGHUP", None)
    if sighup is not None:
        try:
            loop.add_signal_handler(
                sighup, lambda: asyncio.ensure_future(runner.reload())
            )
        except NotImplementedError:
            logger.warning("SIGHUP reload not supported on this platform")


async def main(argv=None) -> None:
    """Entry point"""
    argv = sys.argv if argv is None else argv
    conf, _ = get_config(argv)

    runner = AutoShutdownRunner(argv[1], conf)
    install_signal_handlers(runner)

    try:
        await runner.start()
        await runner.wait()
    except Exception as e:
        logger.error(f"Failed to run auto-shutdown: {e}", exc_info=True)
        raise
    finally:
        await runner.stop()


def run() -> None:
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")


if __name__ == "__main__":
    run()
