from __future__ import annotations

from typing import Any

__all__ = ["RisqBusAsync", "Subscription"]


def __getattr__(name: str) -> Any:
    # Avoid import-time circular dependencies by lazily importing the bus.
    if name in __all__:
        from . import async_service  # local import

        return getattr(async_service, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
