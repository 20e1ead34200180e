import json
import logging
import sys
import threading
from datetime import datetime, timezone

from uaclient.__main__ import main
from uaclient.logging import JsonFormatter, configure_logging, get_logger
from uaclient.system import UAClientSystem


def _record(message, level=logging.INFO, exc_info=None):
    return logging.LogRecord("uaclient", level, __file__, 1, message, None, exc_info)


def test_json_formatter_fields():
    record = _record("Connected to opc.tcp://plc:4840")
    record.created = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc).timestamp()
    entry = json.loads(JsonFormatter().format(record))
    assert entry == {
        "timestamp": "2024-01-01T08:30:00+00:00",
        "level": "INFO",
        "logger": "uaclient",
        "thread": threading.current_thread().name,
        "message": "Connected to opc.tcp://plc:4840",
    }


def test_json_formatter_message_arguments():
    record = logging.LogRecord("uaclient", logging.WARNING, __file__, 1,
                               "Attempt %d/%d failed", (1, 3), None)
    entry = json.loads(JsonFormatter().format(record))
    assert entry["message"] == "Attempt 1/3 failed"
    assert "exception" not in entry


def test_json_formatter_includes_exception():
    try:
        raise ConnectionError("socket closed")
    except ConnectionError:
        record = _record("Transport failure", logging.ERROR, sys.exc_info())
    entry = json.loads(JsonFormatter().format(record))
    assert "ConnectionError: socket closed" in entry["exception"]


def test_configure_logging_replaces_handler():
    logger = configure_logging("DEBUG", "text")
    configure_logging("WARNING", "json")
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)
    assert logger.level == logging.WARNING
    assert logging.getLogger("asyncua").level == logging.WARNING


def test_system_logger():
    assert get_logger().name == "uaclient"


def test_cli_without_config_writes_template(tmp_path, capsys):
    path = tmp_path / "systemconfig.json"
    assert main(["--config", str(path)]) == 1
    assert path.exists()
    assert "Configuration error" in capsys.readouterr().out


def test_cli_with_invalid_config(tmp_path, monkeypatch):
    monkeypatch.setattr(UAClientSystem, "install_signal_handlers", lambda self: None)
    path = tmp_path / "systemconfig.json"
    path.write_text(json.dumps({"unit_assets": [{"name": "PLC1"}]}))
    assert main(["--config", str(path), "--log-level", "ERROR"]) == 1
