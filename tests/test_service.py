import logging
from logging.handlers import RotatingFileHandler

from spp_bridge.config import DEFAULT_EVENT_QUEUE_SIZE, SPP_UUID, BridgeConfig
from spp_bridge.gateway import BridgeService
from spp_bridge.logging_utils import setup_logging
from spp_bridge.manager import ConnectionManager
from spp_bridge.state import ServerState


def test_config_defaults():
    config = BridgeConfig()

    assert config.service_uuid == SPP_UUID == "00001101-0000-1000-8000-00805F9B34FB"
    assert config.service_name == "BluetoothChat"
    assert config.read_buffer_size == 1024
    assert config.event_queue_size == DEFAULT_EVENT_QUEUE_SIZE == 1024
    assert config.control_send_timeout_s == 5.0
    assert config.autostart is False


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("SPP_BRIDGE_BT_CHANNEL", "3")
    monkeypatch.setenv("SPP_BRIDGE_SERVICE_NAME", "Bench")
    monkeypatch.setenv("SPP_BRIDGE_READ_BUFFER", "512")
    monkeypatch.setenv("SPP_BRIDGE_ENABLE_CONTROL", "false")
    monkeypatch.setenv("SPP_BRIDGE_CONTROL_PORT", "9000")
    monkeypatch.setenv("SPP_BRIDGE_AUTOSTART", "1")
    monkeypatch.setenv("SPP_BRIDGE_EVENT_QUEUE", "64")
    monkeypatch.setenv("SPP_BRIDGE_CONTROL_SEND_TIMEOUT", "0.5")
    monkeypatch.delenv("SPP_BRIDGE_SERVICE_UUID", raising=False)

    config = BridgeConfig.from_env()

    assert config.bluetooth_channel == 3
    assert config.service_name == "Bench"
    assert config.service_uuid == SPP_UUID
    assert config.read_buffer_size == 512
    assert config.enable_control is False
    assert config.control_port == 9000
    assert config.autostart is True
    assert config.event_queue_size == 64
    assert config.control_send_timeout_s == 0.5


def test_setup_logging_installs_stream_and_rotating_file(monkeypatch, tmp_path):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    log_file = tmp_path / "logs" / "bridge.log"

    setup_logging(log_file=log_file)
    try:
        assert log_file.parent.is_dir()
        assert any(isinstance(handler, RotatingFileHandler) for handler in root.handlers)
        assert len(root.handlers) == 2

        # Already configured: a second call leaves handlers alone.
        setup_logging(log_file=log_file)
        assert len(root.handlers) == 2
    finally:
        for handler in root.handlers:
            handler.close()


def test_service_autostarts_and_stops(config, bridge, endpoint):
    config.autostart = True
    manager = ConnectionManager(config, bridge=bridge, endpoint=endpoint)
    service = BridgeService(config, manager=manager, configure_logging=False)

    service.start()
    try:
        assert manager.state is ServerState.LISTENING
        assert endpoint.opened.wait(2.0)
    finally:
        service.stop()

    assert manager.state is ServerState.IDLE
    assert endpoint.live_sockets == 0


def test_service_without_control_channel(bridge, endpoint):
    config = BridgeConfig(enable_control=False)
    manager = ConnectionManager(config, bridge=bridge, endpoint=endpoint)
    service = BridgeService(config, manager=manager, configure_logging=False)

    service.start()
    service.stop()

    assert manager.state is ServerState.IDLE
    assert endpoint.opens == 0
