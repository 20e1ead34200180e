"""
OPC UA client system.

This package connects to OPC UA servers (PLCs, simulators) and
republishes their nodes as HTTP resources, one unit asset per server.

Architecture:
    - system.py: Orchestrator with start/run/shutdown
    - config.py: Configuration loading and validation
    - logging.py: Centralized logging
    - types/: Configuration models and OPC UA value decoding
    - client/: Session lifecycle and the background event loop
    - assets/: Unit assets, asset registry and cleanup stack
    - web/: Request routing and the HTTP listener
"""

from .config import SystemSettings, load_config
from .system import UAClientSystem

__version__ = "0.1.0"
__all__ = ['SystemSettings', 'UAClientSystem', 'load_config']
