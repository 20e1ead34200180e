"""
Asset registry and cleanup stack.

The registry maps asset names to unit assets. It is written once during
startup, frozen, and read concurrently by request threads afterwards.
The cleanup stack collects the release function of every acquired
connection and runs them once, newest first.
"""

import threading
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from ..errors import ConfigError
from ..logging import log_debug, log_error
from .unit_asset import UnitAsset


class AssetRegistry:
    """Name to unit asset mapping."""

    def __init__(self):
        self._assets: Dict[str, UnitAsset] = {}
        self._frozen = False
        self._write_lock = threading.Lock()

    def register(self, asset: UnitAsset) -> None:
        """
        Add an asset under its name.

        Raises:
            ConfigError: If the name is already registered
            RuntimeError: If the registry is frozen
        """
        with self._write_lock:
            if self._frozen:
                raise RuntimeError("Asset registry is frozen")
            if asset.name in self._assets:
                raise ConfigError(f"Duplicate unit asset name '{asset.name}'")
            self._assets[asset.name] = asset
        log_debug(f"Registered unit asset '{asset.name}'")

    def freeze(self) -> None:
        """Make the registry read-only."""
        with self._write_lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[UnitAsset]:
        return self._assets.get(name)

    def names(self) -> List[str]:
        return list(self._assets)

    def __contains__(self, name: str) -> bool:
        return name in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[UnitAsset]:
        return iter(list(self._assets.values()))


class CleanupStack:
    """
    Ordered release guards.

    Guards are released in reverse order of acquisition. A failing guard
    is logged and does not stop the others.
    """

    def __init__(self):
        self._guards: List[Tuple[str, Callable[[], Awaitable[None]]]] = []

    def push(self, name: str, release: Callable[[], Awaitable[None]]) -> None:
        self._guards.append((name, release))

    def __len__(self) -> int:
        return len(self._guards)

    async def unwind(self) -> None:
        while self._guards:
            name, release = self._guards.pop()
            try:
                await release()
            except Exception as e:
                log_error(f"Cleanup of '{name}' failed: {e!r}")
            else:
                log_debug(f"Released '{name}'")
