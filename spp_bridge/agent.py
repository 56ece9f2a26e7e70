#!/usr/bin/env python3
"""Entry-point used by systemd to launch the SPP bridge."""
from __future__ import annotations

import signal
import threading

from .config import BridgeConfig
from .gateway import BridgeService


def main() -> None:
    config = BridgeConfig.from_env()
    service = BridgeService(config)
    service.start()

    # Keep the main thread alive while the workers run in the background.
    stop_event = threading.Event()

    def _handle_signal(signum, frame):  # pragma: no cover - signal handling
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover
        pass
    finally:
        service.stop()


if __name__ == "__main__":  # pragma: no cover
    main()
