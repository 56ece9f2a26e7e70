"""High level orchestration for the SPP bridge."""
from __future__ import annotations

import logging
from typing import List

from .commands import CommandHandler
from .config import BridgeConfig
from .logging_utils import setup_logging
from .manager import ConnectionManager
from .transport.base import TransportServer
from .transport.bluetooth import BLUETOOTH_AVAILABLE
from .transport.control import ControlServer

LOGGER = logging.getLogger(__name__)


class BridgeService:
    """Bootstrap the connection manager and the servers that expose it."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        manager: ConnectionManager | None = None,
        configure_logging: bool = True,
    ) -> None:
        self.config = config or BridgeConfig.from_env()
        self.manager = manager or ConnectionManager(self.config)
        self.commands = CommandHandler(self.manager)
        self._configure_logging = configure_logging
        self._servers: List[TransportServer] = []

    def start(self) -> None:
        if self._configure_logging:
            setup_logging()
        LOGGER.info("starting SPP bridge service")
        if not BLUETOOTH_AVAILABLE:
            LOGGER.warning("PyBluez not available, startServer will report a permission error")

        if self.config.enable_control:
            control_server = ControlServer(self.config, self.commands)
            control_server.start()
            self._servers.append(control_server)
        else:
            LOGGER.info("control channel disabled by configuration")

        if self.config.autostart:
            self.commands.handle("startServer")

        LOGGER.info("service started with servers: %s", [s.name for s in self._servers])

    def stop(self) -> None:
        LOGGER.info("stopping SPP bridge service")
        while self._servers:
            self._servers.pop().stop()
        self.manager.close()


__all__ = ["BridgeService"]
