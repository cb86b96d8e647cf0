"""Interface specifier parsing and address validation helpers."""

import socket
from dataclasses import dataclass
from typing import Optional

from .common import WSA_COMMAND_PORT, WSA_DATA_PORT, log
from .errors import (
    InvalidAddressError,
    TransportNotAvailableError,
    UnsupportedTransportError,
)

TRANSPORT_TCPIP = "TCPIP"
TRANSPORT_USB   = "USB"


@dataclass
class InterfaceSpec:
    transport: str
    host:      str = ""
    suffix:    Optional[str] = None


def parse_interface(intf_method: str) -> InterfaceSpec:
    """
    Parse ``"<transport>::<address>[::<suffix>]"``.
    e.g. "TCPIP::192.168.1.100::37001" or "TCPIP::wsa.local"
    """
    parts = [p.strip() for p in intf_method.strip().split("::")]
    transport = parts[0].upper()

    if transport == TRANSPORT_USB:
        raise TransportNotAvailableError("USB interface is not available")
    if transport != TRANSPORT_TCPIP:
        raise UnsupportedTransportError(f"Unsupported interface method: {intf_method!r}")
    if len(parts) < 2 or not parts[1]:
        raise InvalidAddressError(f"No address in interface method: {intf_method!r}")

    suffix = parts[2] if len(parts) > 2 and parts[2] else None
    return InterfaceSpec(transport=transport, host=parts[1], suffix=suffix)


def verify_addr(host: str, port) -> tuple:
    """
    Resolve host/port and return the first usable stream socket address.
    Does not connect.
    """
    try:
        infos = socket.getaddrinfo(host, str(port), socket.AF_UNSPEC, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError, ValueError) as e:
        raise InvalidAddressError(f"Invalid address {host}:{port}: {e}") from e
    if not infos:
        raise InvalidAddressError(f"Invalid address {host}:{port}: no usable socket address")
    log.debug(f"Resolved {host}:{port} -> {infos[0][4]}")
    return infos[0][4]


def check_addr(host: str, command_port=WSA_COMMAND_PORT, data_port=WSA_DATA_PORT):
    """Validate the host against both the command and the data port."""
    verify_addr(host, command_port)
    verify_addr(host, data_port)
