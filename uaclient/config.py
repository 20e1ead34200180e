"""
System configuration loader.

The system configuration is a JSON file holding the HTTP listener
settings, the OPC UA connection policy and one raw block per unit asset.
When the file does not exist a template is written in its place so the
operator has something to edit.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError
from .logging import log_info

DEFAULT_CONFIG_PATH = "systemconfig.json"


@dataclass
class ConnectionSettings:
    """
    OPC UA connection policy shared by every unit asset.

    Attributes:
        connect_timeout: Seconds allowed for one session establishment attempt
        request_timeout: Seconds allowed for one browse or read round-trip
        reconnect_attempts: Connection attempts before a connection fails for good
        backoff_initial: Delay in seconds after the first failed attempt
        backoff_max: Upper bound of the exponential backoff delay
        browse_max_depth: How deep browse walks below the root node
        root_node: Node id browse starts from, the Objects folder when None
    """
    connect_timeout: float = 4.0
    request_timeout: float = 4.0
    reconnect_attempts: int = 3
    backoff_initial: float = 0.5
    backoff_max: float = 8.0
    browse_max_depth: int = 4
    root_node: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConnectionSettings':
        """Creates a ConnectionSettings instance from a dictionary."""
        defaults = cls()
        try:
            settings = cls(
                connect_timeout=float(data.get("connect_timeout", defaults.connect_timeout)),
                request_timeout=float(data.get("request_timeout", defaults.request_timeout)),
                reconnect_attempts=int(data.get("reconnect_attempts", defaults.reconnect_attempts)),
                backoff_initial=float(data.get("backoff_initial", defaults.backoff_initial)),
                backoff_max=float(data.get("backoff_max", defaults.backoff_max)),
                browse_max_depth=int(data.get("browse_max_depth", defaults.browse_max_depth)),
                root_node=data.get("root_node"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid connection settings: {e}") from e

        if settings.connect_timeout <= 0 or settings.request_timeout <= 0:
            raise ConfigError("Connection timeouts must be positive")
        if settings.reconnect_attempts < 1:
            raise ConfigError("connection.reconnect_attempts must be at least 1")
        if settings.backoff_initial < 0 or settings.backoff_max < settings.backoff_initial:
            raise ConfigError("connection.backoff_max must be >= backoff_initial >= 0")
        if settings.browse_max_depth < 1:
            raise ConfigError("connection.browse_max_depth must be at least 1")
        return settings

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (zero based) failed attempt."""
        return min(self.backoff_initial * (2 ** attempt), self.backoff_max)


@dataclass
class SystemSettings:
    """Complete system configuration."""
    system_name: str = "uaclient"
    description: str = "interacts with an OPC UA server"
    details: Dict[str, List[str]] = field(default_factory=dict)
    http_host: str = "0.0.0.0"
    http_port: int = 9696
    request_deadline: float = 30.0
    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    shutdown_grace: float = 3.0
    log_level: str = "INFO"
    log_format: str = "json"
    unit_assets: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SystemSettings':
        """
        Creates a SystemSettings instance from a dictionary.

        Raises:
            ConfigError: If a section is missing or malformed
        """
        if not isinstance(data, dict):
            raise ConfigError("System configuration must be a JSON object")

        if "unit_assets" not in data:
            raise ConfigError("Missing required configuration section: unit_assets")
        unit_assets = data["unit_assets"]
        if not isinstance(unit_assets, list):
            raise ConfigError("unit_assets must be a list")

        http = data.get("http", {})
        logging_section = data.get("logging", {})
        for section_name, section in (("http", http), ("logging", logging_section),
                                      ("connection", data.get("connection", {}))):
            if not isinstance(section, dict):
                raise ConfigError(f"Configuration section '{section_name}' must be an object")

        try:
            http_port = int(http.get("port", 9696))
            request_deadline = float(http.get("request_deadline", 30.0))
            shutdown_grace = float(data.get("shutdown_grace", 3.0))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e
        if not 0 <= http_port <= 65535:
            raise ConfigError(f"http.port out of range: {http_port}")
        if request_deadline <= 0:
            raise ConfigError("http.request_deadline must be positive")
        if shutdown_grace < 0:
            raise ConfigError("shutdown_grace must not be negative")

        log_format = logging_section.get("format", "json")
        if log_format not in ("json", "text"):
            raise ConfigError(f"logging.format must be 'json' or 'text', got {log_format!r}")

        details = data.get("details", {})
        if not isinstance(details, dict):
            raise ConfigError("details must be an object")

        return cls(
            system_name=str(data.get("system_name", "uaclient")),
            description=str(data.get("description", "interacts with an OPC UA server")),
            details=details,
            http_host=str(http.get("host", "0.0.0.0")),
            http_port=http_port,
            request_deadline=request_deadline,
            connection=ConnectionSettings.from_dict(data.get("connection", {})),
            shutdown_grace=shutdown_grace,
            log_level=str(logging_section.get("level", "INFO")).upper(),
            log_format=log_format,
            unit_assets=unit_assets,
        )

    def raw_resources(self) -> List[bytes]:
        """Serialized configuration block of every unit asset."""
        return [json.dumps(block).encode("utf-8") for block in self.unit_assets]


def get_default_config() -> dict:
    """
    Get the configuration template written when no file exists.

    Returns:
        Default configuration dictionary
    """
    return {
        "system_name": "uaclient",
        "description": "interacts with an OPC UA server",
        "details": {"Developer": ["Arrowhead"]},
        "http": {"host": "0.0.0.0", "port": 9696, "request_deadline": 30.0},
        "connection": {
            "connect_timeout": 4.0,
            "request_timeout": 4.0,
            "reconnect_attempts": 3,
            "backoff_initial": 0.5,
            "backoff_max": 8.0,
            "browse_max_depth": 4,
            "root_node": None,
        },
        "shutdown_grace": 3.0,
        "logging": {"level": "INFO", "format": "json"},
        "unit_assets": [
            {
                "name": "PLC with OPC UA server",
                "details": {
                    "PLC": ["Prosys OPC UA Simulation Server"],
                    "Location": ["Line 1"],
                    "KKS": ["YLLCP001"],
                },
                "server_address": "opc.tcp://10.0.0.17:53530/OPCUA/SimulationServer",
                "node_list": {"Node_Id": [], "Browse_Name": [], "Ref_Type": []},
            }
        ],
    }


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> SystemSettings:
    """
    Load the system configuration from a JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Parsed system settings

    Raises:
        ConfigError: If the file is missing (a template is written), unreadable or invalid
    """
    path = Path(config_path)
    if not path.exists():
        try:
            path.write_text(json.dumps(get_default_config(), indent=2))
        except OSError as e:
            raise ConfigError(f"Configuration file not found and template could not be written: {e}") from e
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "A template has been created, update it and restart the system."
        )

    try:
        raw_config = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read configuration: {e}") from e

    settings = SystemSettings.from_dict(raw_config)
    log_info(f"Configuration loaded from {config_path} ({len(settings.unit_assets)} unit assets)")
    return settings
