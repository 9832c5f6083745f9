# risq/core/bus/errors.py
from __future__ import annotations


class BusError(RuntimeError):
    """Base class for transport-level failures."""


class BusConnectionError(BusError):
    pass


class BusNotConnectedError(BusError):
    pass


class BusPublishError(BusError):
    pass


class BusSubscribeError(BusError):
    pass
