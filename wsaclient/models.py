"""Data structures for WSA descriptors, VRT packets and sweep entries."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np

from .common import SWEEP_STATUS_RUNNING, SWEEP_STATUS_STOPPED
from .errors import InvalidRFESettingError, OutOfRangeError


class Gain(IntEnum):
    """Quantized RF gain levels of the RFE."""
    HIGH = 1
    MED  = 2
    LOW  = 3
    VLOW = 4


class DeviceVariant(Enum):
    WSA4000_RFE0440 = ("WSA4000", "RFE0440")
    WSA4000_RFE0560 = ("WSA4000", "RFE0560")

    @property
    def product(self) -> str:
        return self.value[0]

    @property
    def rfe(self) -> str:
        return self.value[1]


class SweepRunState(Enum):
    STOPPED = SWEEP_STATUS_STOPPED
    RUNNING = SWEEP_STATUS_RUNNING


@dataclass(frozen=True)
class DeviceDescriptor:
    """Capability and bounds record for one product/RFE combination."""
    prod_name:        str
    rfe_name:         str
    inst_bw:          int           # Hz
    min_tune_freq:    int           # Hz
    max_tune_freq:    int           # Hz
    freq_resolution:  int           # Hz
    min_if_gain:      int           # dB
    max_if_gain:      int           # dB
    min_decimation:   int
    max_decimation:   int
    max_ant_port:     int
    min_samples_per_packet: int
    max_samples_per_packet: int
    min_packets_per_block:  int
    max_packets_per_block:  int
    max_sample_size:  int
    abs_max_amp:      Mapping[Gain, float] = field(default_factory=dict)
    rfe_control:      bool = True   # IF gain, antenna and BPF are settable
    prod_serial:      str = ""
    prod_version:     str = ""
    rfe_version:      str = ""
    fw_version:       str = ""
    intf_type:        str = "TCPIP"

    def __post_init__(self):
        object.__setattr__(self, "abs_max_amp", MappingProxyType(dict(self.abs_max_amp)))

    # Local validation used by setters before anything is sent.

    def require_rfe_control(self, what: str):
        if not self.rfe_control:
            raise InvalidRFESettingError(f"{self.rfe_name} does not support {what}")

    def check_freq(self, freq, name: str = "frequency"):
        if freq < self.min_tune_freq or freq > self.max_tune_freq:
            raise OutOfRangeError(name, freq, self.min_tune_freq, self.max_tune_freq)

    def check_freq_shift(self, fshift):
        if fshift < -self.inst_bw or fshift > self.inst_bw:
            raise OutOfRangeError("frequency shift", fshift, -self.inst_bw, self.inst_bw)

    def check_decimation(self, rate):
        # 0 turns decimation off
        if rate != 0 and (rate < self.min_decimation or rate > self.max_decimation):
            raise OutOfRangeError("decimation rate", rate, self.min_decimation, self.max_decimation)

    def check_if_gain(self, gain):
        self.require_rfe_control("IF gain")
        if gain < self.min_if_gain or gain > self.max_if_gain:
            raise OutOfRangeError("IF gain", gain, self.min_if_gain, self.max_if_gain)

    def check_antenna(self, port):
        self.require_rfe_control("antenna selection")
        if port < 1 or port > self.max_ant_port:
            raise OutOfRangeError("antenna port", port, 1, self.max_ant_port)

    def check_samples_per_packet(self, samples_per_packet):
        if (samples_per_packet < self.min_samples_per_packet or
                samples_per_packet > self.max_samples_per_packet):
            raise OutOfRangeError("samples per packet", samples_per_packet,
                                  self.min_samples_per_packet, self.max_samples_per_packet)

    def check_packets_per_block(self, packets_per_block):
        if (packets_per_block < self.min_packets_per_block or
                packets_per_block > self.max_packets_per_block):
            raise OutOfRangeError("packets per block", packets_per_block,
                                  self.min_packets_per_block, self.max_packets_per_block)

    def check_freq_range(self, start_freq, stop_freq):
        self.check_freq(start_freq, "start frequency")
        self.check_freq(stop_freq, "stop frequency")
        if stop_freq <= start_freq:
            raise OutOfRangeError("stop frequency", stop_freq, start_freq, self.max_tune_freq)


@dataclass
class QueryResponse:
    """Outcome of one query: bytes read (or <= 0) and the trimmed reply."""
    status: int
    output: str = ""


@dataclass
class VrtHeader:
    packet_type:  int
    stream_id:    int
    packet_count: int           # 4-bit, wraps at 16
    packet_size:  int           # 32-bit words including header and trailer
    time_sec:     int = 0
    time_psec:    int = 0


@dataclass
class VrtTrailer:
    word:                 int
    valid_data:           Optional[bool] = None
    reference_lock:       Optional[bool] = None
    spectral_inversion:   Optional[bool] = None
    over_range:           Optional[bool] = None
    sample_loss:          Optional[bool] = None


@dataclass
class ReceiverContext:
    indicator_field:  int
    reference_point:  Optional[int] = None
    frequency:        Optional[float] = None     # Hz
    gain_if:          Optional[float] = None     # dB
    gain_rf:          Optional[float] = None     # dB
    temperature:      Optional[float] = None     # degrees C


@dataclass
class DigitizerContext:
    indicator_field:      int
    bandwidth:            Optional[float] = None     # Hz
    reference_level:      Optional[float] = None     # dBm
    rf_frequency_offset:  Optional[float] = None     # Hz


@dataclass
class VrtPacket:
    """One decoded VRT packet. i_data/q_data are views into caller buffers."""
    header:     VrtHeader
    trailer:    Optional[VrtTrailer] = None
    receiver:   Optional[ReceiverContext] = None
    digitizer:  Optional[DigitizerContext] = None
    i_data:     Optional[np.ndarray] = None
    q_data:     Optional[np.ndarray] = None

    @property
    def is_context(self) -> bool:
        return self.receiver is not None or self.digitizer is not None


@dataclass
class SweepEntry:
    start_freq:         int = 0
    stop_freq:          int = 0
    fstep:              int = 0
    fshift:             float = 0.0
    decimation_rate:    int = 0
    ant_port:           int = 1
    gain_rf:            Gain = Gain.HIGH
    gain_if:            int = 0
    samples_per_packet: int = 1024
    packets_per_block:  int = 1
    dwell_seconds:      int = 0
    dwell_microseconds: int = 0
    trigger_enable:     int = 0
    trigger_start_freq: Optional[int] = None
    trigger_stop_freq:  Optional[int] = None
    trigger_amplitude:  Optional[int] = None
