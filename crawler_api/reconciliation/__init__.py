from .reconciler import (
    ConfigGroupKind,
    DeviceKind,
    Reconciler,
    ResourceKind,
    ResourceState,
    Transition,
)

__all__ = [
    "ConfigGroupKind",
    "DeviceKind",
    "Reconciler",
    "ResourceKind",
    "ResourceState",
    "Transition",
]
