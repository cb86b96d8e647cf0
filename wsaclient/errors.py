"""Exception hierarchy for WSA sessions, transactions and sweep control."""

from typing import Optional


class WSAError(RuntimeError):
    """Base class for every failure reported by the WSA client."""


# -- connection ---------------------------------------------------------------

class InvalidAddressError(WSAError):
    """Host name or IP address does not resolve to a usable socket address."""


class UnsupportedTransportError(WSAError):
    """Interface specifier names a transport this client does not know."""


class TransportNotAvailableError(UnsupportedTransportError):
    """Transport is recognised but not implemented (USB)."""


class ConnectError(WSAError):
    pass


class UnknownDeviceError(WSAError):
    """No capability table entry for the reported product/RFE pair."""


# -- channel I/O --------------------------------------------------------------

class ChannelWriteError(WSAError):
    pass


class ChannelReadError(WSAError):
    pass


class ReadTimeoutError(ChannelReadError):
    pass


class IQFrameReadError(ChannelReadError):
    """Read failed after an IF data header had already been received."""


# -- responses ----------------------------------------------------------------

class EmptyResponseError(WSAError):
    """Query completed with nothing usable (status <= 0)."""

    def __init__(self, command: str, status: int = 0):
        super().__init__(f"Empty response to {command!r} (status {status})")
        self.command = command
        self.status = status


class UnparsableResponseError(WSAError):
    """Response text is not the number/keyword the query asked for."""

    def __init__(self, text, expected: str = "number"):
        super().__init__(f"WSA returned {text!r}, expected {expected}")
        self.text = text


class OutOfRangeError(WSAError, ValueError):
    """Value falls outside the bounds declared by the device descriptor."""

    def __init__(self, name: str, value, low=None, high=None):
        if low is not None or high is not None:
            msg = f"{name} {value} outside [{low}, {high}]"
        else:
            msg = f"invalid {name}: {value}"
        super().__init__(msg)
        self.name = name
        self.value = value
        self.low = low
        self.high = high


class ResponseOutOfRangeError(OutOfRangeError):
    """Instrument replied with a well-formed value outside declared bounds."""


class InvalidRFESettingError(WSAError):
    """Operation is not supported by the connected RF front end."""


# -- protocol -----------------------------------------------------------------

class ProtocolError(WSAError):
    pass


class NotIQFrameError(ProtocolError):
    def __init__(self, stream_id: int):
        super().__init__(f"Not an IQ frame: stream id 0x{stream_id:08X}")
        self.stream_id = stream_id


class SweepStatusUndefinedError(ProtocolError):
    def __init__(self, text: str):
        super().__init__(f"Undefined sweep status {text!r}")
        self.text = text


# -- sweep list ---------------------------------------------------------------

class SweepIdOutOfBoundsError(WSAError, IndexError):
    def __init__(self, position: int, low: int, high: Optional[int] = None):
        bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
        super().__init__(f"Sweep entry position {position} outside {bounds}")
        self.position = position
        self.low = low
        self.high = high


class SweepAlreadyRunningError(WSAError):
    pass


class SweepListEmptyError(WSAError):
    pass
