"""
Type definitions for the OPC UA client system.

This package provides:
- Configuration models (resources and node descriptors)
- Browse and read result records
- Tagged OPC UA value decoding
"""

from .models import (
    BrowsedNode,
    NodeDescriptor,
    NodeReading,
    ResourceConfig,
    ServiceDefinition,
    check_unique_names,
)
from .values import TypedValue, ValueConverter, ValueKind

__all__ = [
    'BrowsedNode',
    'NodeDescriptor',
    'NodeReading',
    'ResourceConfig',
    'ServiceDefinition',
    'check_unique_names',
    'TypedValue',
    'ValueConverter',
    'ValueKind',
]
