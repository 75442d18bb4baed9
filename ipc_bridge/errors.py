"""Exceptions raised by the bridge."""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ChannelError(BridgeError):
    """The peer channel could not accept an event or is closed."""


class RequestTimeoutError(BridgeError):
    """No response arrived before the request deadline."""

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Request {request_id} timed out")


class BridgeShutdownError(BridgeError):
    """The channel closed while the request was still waiting for a reply."""

    def __init__(self, message: str = "Bridge shutting down"):
        super().__init__(message)


class DuplicateRequestError(BridgeError):
    """A request id was registered twice."""


class PendingLimitError(BridgeError):
    """Too many requests are already waiting for a reply."""


class IdentifierExhaustedError(BridgeError):
    """The request id counter ran past the largest id peers can represent."""


class PortInUseError(BridgeError):
    """The listener port is already bound by another process."""
