#!/usr/bin/env python3
"""
Lottery dApp

Main entry point: loads configuration, wires the wallet provider, the
lottery view-model and the web server, and serves the page until a
shutdown signal arrives.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from lottery_dapp.blockchain.client import make_contract_factory
from lottery_dapp.blockchain.wallet import WalletProvider
from lottery_dapp.lottery.viewmodel import LotteryViewModel
from lottery_dapp.utils.config import load_config
from lottery_dapp.utils.logger import configure_from_config, get_logger
from lottery_dapp.web_server import LotteryWebServer

logger = get_logger(__name__)


class LotteryDappApp:
    """Lottery dApp application.

    Builds the wallet provider, contract factory, view-model and FastAPI web
    server, runs until SIGINT/SIGTERM and shuts down gracefully.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        configure_from_config(self.config)
        self.view_model = None
        self.web_server = None
        self.running = True

        logger.info("🎲 Lottery dApp initialized")

    def _display_config_summary(self):
        """Display key configuration options for diagnostics."""
        logger.info("=" * 60)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 60)

        blockchain_config = self.config.get('blockchain', {})
        logger.info(f"🔗 RPC URL: {blockchain_config.get('rpc_url', 'Not configured')}")
        logger.info(f"🆔 Chain ID: {blockchain_config.get('chain_id', 'Not configured')}")
        logger.info(f"🌐 Network: {blockchain_config.get('network_name', 'Sepolia')}")
        logger.info(f"📄 Contract: {blockchain_config.get('contract_address') or 'Not configured'}")

        wallet_config = self.config.get('wallet', {})
        signer = "local private key" if wallet_config.get('private_key') else "node accounts"
        logger.info(f"👤 Signer: {signer}")

        server_config = self.config.get('server', {})
        logger.info(f"🌍 Server Host: {server_config.get('host', '0.0.0.0')}")
        logger.info(f"🔌 Server Port: {server_config.get('port', 6080)}")

        logger.info("=" * 60)

    def initialize(self):
        """Create the view-model and web server instances."""
        self._display_config_summary()

        wallet = WalletProvider(self.config)
        contract_factory = make_contract_factory(self.config)
        self.view_model = LotteryViewModel(wallet, contract_factory, self.config)
        self.web_server = LotteryWebServer(self.config, self.view_model)

        logger.info("🎉 Application initialization completed")

    async def start(self):
        """Serve the page until a shutdown signal is received."""
        try:
            self.initialize()

            server_host = self.config.get('server', {}).get('host', '0.0.0.0')
            server_port = int(self.config.get('server', {}).get('port', 6080))

            logger.info(f"🌍 Starting web server on {server_host}:{server_port}...")
            server_task = asyncio.create_task(self.web_server.start(host=server_host, port=server_port))
            # give uvicorn a moment to bind; a failed bind finishes the task
            await asyncio.sleep(0.2)
            if server_task.done() and server_task.exception():
                raise server_task.exception()

            logger.info(f"🏠 Lottery page: http://{server_host}:{server_port}")
            logger.info(f"📡 WebSocket: ws://{server_host}:{server_port}/ws/lottery")

            while self.running and not server_task.done():
                await asyncio.sleep(1)

            logger.info("🛑 Shutdown signal received, stopping application...")
        finally:
            await self.stop()

    async def stop(self):
        """Stop the web server."""
        self.running = False
        if self.web_server:
            try:
                await self.web_server.stop()
                logger.info("✅ Web server stopped")
            except Exception as e:
                logger.error(f"❌ Error stopping web server: {e}")
        logger.info("🟢 Lottery dApp stopped")

    def _handle_signal(self, signum, frame):
        logger.info(f"📡 Received signal {signum}, initiating graceful shutdown...")
        self.running = False


async def main():
    """Main entry point for the Lottery dApp"""
    load_dotenv(Path.cwd() / '.env')
    app = LotteryDappApp()

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("🛑 Application interrupted by user")
    except Exception as e:
        logger.exception(f"❌ Application failed: {e}")
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
