"""WSA spectrum analyzer client package.

SCPI command/query control over TCP, VRT data decoding and sweep list control.
"""

from .common import (
	WSA_COMMAND_PORT,
	WSA_DATA_PORT,
	IF_DATA_STREAM_ID,
	RECEIVER_STREAM_ID,
	DIGITIZER_STREAM_ID,
	MAX_RETRIES_READ_FRAME,
)
from .config import SessionConfig
from .errors import (
	WSAError,
	InvalidAddressError,
	UnsupportedTransportError,
	TransportNotAvailableError,
	ConnectError,
	UnknownDeviceError,
	ChannelWriteError,
	ChannelReadError,
	ReadTimeoutError,
	IQFrameReadError,
	EmptyResponseError,
	UnparsableResponseError,
	OutOfRangeError,
	ResponseOutOfRangeError,
	InvalidRFESettingError,
	ProtocolError,
	NotIQFrameError,
	SweepStatusUndefinedError,
	SweepIdOutOfBoundsError,
	SweepAlreadyRunningError,
	SweepListEmptyError,
)
from .models import (
	DeviceDescriptor,
	DeviceVariant,
	Gain,
	QueryResponse,
	SweepEntry,
	SweepRunState,
	VrtHeader,
	VrtTrailer,
	ReceiverContext,
	DigitizerContext,
	VrtPacket,
)
from .descriptors import DESCRIPTORS, find_variant, lookup_descriptor
from .address import InterfaceSpec, parse_interface, verify_addr, check_addr
from .tcp_client import CommandChannel, DataChannel
from .vita import read_vrt_packet
from .sweep import SweepList, parse_sweep_entry
from .client import WSA

__all__ = [
	"WSA_COMMAND_PORT",
	"WSA_DATA_PORT",
	"IF_DATA_STREAM_ID",
	"RECEIVER_STREAM_ID",
	"DIGITIZER_STREAM_ID",
	"MAX_RETRIES_READ_FRAME",
	"SessionConfig",
	"WSAError",
	"InvalidAddressError",
	"UnsupportedTransportError",
	"TransportNotAvailableError",
	"ConnectError",
	"UnknownDeviceError",
	"ChannelWriteError",
	"ChannelReadError",
	"ReadTimeoutError",
	"IQFrameReadError",
	"EmptyResponseError",
	"UnparsableResponseError",
	"OutOfRangeError",
	"ResponseOutOfRangeError",
	"InvalidRFESettingError",
	"ProtocolError",
	"NotIQFrameError",
	"SweepStatusUndefinedError",
	"SweepIdOutOfBoundsError",
	"SweepAlreadyRunningError",
	"SweepListEmptyError",
	"DeviceDescriptor",
	"DeviceVariant",
	"Gain",
	"QueryResponse",
	"SweepEntry",
	"SweepRunState",
	"VrtHeader",
	"VrtTrailer",
	"ReceiverContext",
	"DigitizerContext",
	"VrtPacket",
	"DESCRIPTORS",
	"find_variant",
	"lookup_descriptor",
	"InterfaceSpec",
	"parse_interface",
	"verify_addr",
	"check_addr",
	"CommandChannel",
	"DataChannel",
	"read_vrt_packet",
	"SweepList",
	"parse_sweep_entry",
	"WSA",
]
