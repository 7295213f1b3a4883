"""Uvicorn wrapper used by the CLI."""
import logging
import os
from typing import Optional

import uvicorn

from settings import BIND_ADDRESS, LOG_LEVEL, PORT

logger = logging.getLogger(__name__)

DEBUG_LOG_FILE = "relay_debug.log"


class ProxyServer:
    """Relay server wrapper for CLI control"""

    def __init__(self, debug: bool = False, bind_address: Optional[str] = None, port: Optional[int] = None):
        self.server = None
        self.config = None
        self.debug = debug
        self.bind_address = bind_address or BIND_ADDRESS
        self.port = port or PORT
        self.log_file = None

        if debug:
            self._setup_debug_logging()

    def _setup_debug_logging(self):
        """Send DEBUG output to the console and to relay_debug.log"""
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        # Clear existing handlers to avoid duplicates
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        self.log_file = os.path.abspath(DEBUG_LOG_FILE)
        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        logger.info(f"Debug logging enabled - appending to {self.log_file}")

    def run(self):
        """Run the relay (blocking)"""
        # Imported here so debug logging is configured before the app module sets up logging
        from proxy.app import app

        logger.info(f"Starting Cloud Code Relay on http://{self.bind_address}:{self.port}")
        logger.info("Available endpoints: /v1/messages (Claude), /v1/chat/completions (OpenAI), /v1beta/models (Gemini)")
        self.config = uvicorn.Config(
            app,
            host=self.bind_address,
            port=self.port,
            log_level="debug" if self.debug else str(LOG_LEVEL).lower(),
            access_log=False  # Reduce noise in CLI
        )
        self.server = uvicorn.Server(self.config)
        self.server.run()

    def stop(self):
        """Stop the relay"""
        if self.server:
            self.server.should_exit = True
