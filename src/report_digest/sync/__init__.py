"""
Record-set ownership and synchronization with the storage backends.
"""

from .coordinator import (
    BaseCoordinator,
    LiveCollectionCoordinator,
    SnapshotCoordinator,
    build_coordinator,
)

__all__ = [
    "BaseCoordinator",
    "LiveCollectionCoordinator",
    "SnapshotCoordinator",
    "build_coordinator",
]
