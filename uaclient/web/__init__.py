"""
HTTP surface: request routing, rendering and the listener.
"""

from .app import HttpServer, create_app
from .router import RequestRouter, ServicePath, ServiceResponse

__all__ = [
    'HttpServer',
    'create_app',
    'RequestRouter',
    'ServicePath',
    'ServiceResponse',
]
