"""
OPC UA client components.

This package provides:
- Session lifecycle, browse and read (ConnectionManager)
- The background event loop the sessions run on (EventLoopThread)
"""

from .connection_manager import ConnectionManager, ConnectionState
from .loop import EventLoopThread, LoopNotRunning

__all__ = [
    'ConnectionManager',
    'ConnectionState',
    'EventLoopThread',
    'LoopNotRunning',
]
