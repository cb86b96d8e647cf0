"""WSA session: connection lifecycle, device settings and IQ capture."""

import logging
from typing import Optional

import numpy as np

from .address import check_addr, parse_interface
from .common import log
from .config import SessionConfig
from .descriptors import find_variant, lookup_descriptor
from .errors import (
    EmptyResponseError,
    IQFrameReadError,
    NotIQFrameError,
    ReadTimeoutError,
    SweepAlreadyRunningError,
    UnparsableResponseError,
    WSAError,
)
from .models import DeviceDescriptor, Gain, SweepRunState, VrtPacket
from .parsing import (
    check_flag,
    check_range,
    format_gain,
    parse_gain,
    split_fields,
    to_float,
    to_int,
)
from .sweep import SweepList
from .tcp_client import CommandChannel, DataChannel
from .vita import read_vrt_packet

PLL_REFERENCES = ("INT", "EXT")


class WSA:
    """
    One session with a WSA: a command channel, a data channel and the
    descriptor of the connected product/RFE.

        with WSA() as wsa:
            wsa.open("TCPIP::192.168.1.100")
            wsa.set_freq(2_400_000_000)
    """

    def __init__(self, config: Optional[SessionConfig] = None):
        self.config       = config or SessionConfig()
        self.descr: Optional[DeviceDescriptor] = None
        self._cmd: Optional[CommandChannel] = None
        self._data: Optional[DataChannel] = None
        self._last_count  = None    # last 4-bit VRT packet count seen
        self.missed_count = 0
        self.sweep        = SweepList(self)
        if self.config.debug:
            log.setLevel(logging.DEBUG)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------ session

    @property
    def is_open(self) -> bool:
        return self._cmd is not None and self._data is not None

    def open(self, intf_method: str) -> DeviceDescriptor:
        """
        Connect to the WSA described by ``intf_method``, e.g.
        "TCPIP::192.168.1.100" or "TCPIP::192.168.1.100::37001".
        On failure everything opened so far is closed again before raising.
        """
        self.close()

        spec = parse_interface(intf_method)
        command_port = self.config.command_port
        if spec.suffix and spec.suffix.isdigit():
            command_port = int(spec.suffix)
        check_addr(spec.host, command_port, self.config.data_port)

        self._cmd = CommandChannel(
            spec.host, command_port,
            timeout=self.config.query_timeout,
            retries=self.config.query_retries,
            connect_timeout=self.config.connect_timeout,
        )
        self._data = DataChannel(
            spec.host, self.config.data_port,
            timeout=self.config.data_timeout,
            connect_timeout=self.config.connect_timeout,
        )
        try:
            self._cmd.connect()
            self._data.connect()
            self.descr = self._identify(spec.transport)
        except Exception:
            self.close()
            raise

        self._last_count = None
        self.missed_count = 0
        log.info(f"Opened {self.descr.prod_name}/{self.descr.rfe_name} at {spec.host}")
        return self.descr

    def _identify(self, transport: str) -> DeviceDescriptor:
        product, identity = "WSA4000", {}
        if self.config.identify:
            response = self._cmd.send_query("*IDN?")
            if response.status > 0 and response.output:
                fields = split_fields(response.output)
                if len(fields) >= 2:
                    product = fields[1]
                if len(fields) >= 3:
                    identity["prod_serial"] = fields[2]
                if len(fields) >= 4:
                    identity["fw_version"] = fields[3]
            else:
                log.warning("No reply to *IDN?, using transport defaults")
        variant = find_variant(product, self.config.rfe_name)
        return lookup_descriptor(variant, intf_type=transport, **identity)

    def close(self):
        """Release both channels. Safe on a closed or partially open session."""
        for channel in (self._data, self._cmd):
            if channel is None:
                continue
            try:
                channel.disconnect()
            except Exception as e:
                log.warning(f"Error while closing channel: {e}")
        self._data = None
        self._cmd = None
        self.descr = None

    @property
    def descriptor(self) -> DeviceDescriptor:
        if self.descr is None:
            raise WSAError("Session is not open")
        return self.descr

    @property
    def command_channel(self) -> CommandChannel:
        if self._cmd is None:
            raise WSAError("Session is not open")
        return self._cmd

    @property
    def data_channel(self) -> DataChannel:
        if self._data is None:
            raise WSAError("Session is not open")
        return self._data

    # ------------------------------------------------------------- transactions

    def command(self, cmd: str):
        self.command_channel.send_command(cmd)

    def query(self, cmd: str) -> str:
        """Send a query; an empty or failed reply raises before any parsing."""
        response = self.command_channel.send_query(cmd)
        if response.status <= 0:
            raise EmptyResponseError(cmd, response.status)
        return response.output

    def send_command_file(self, file_name) -> int:
        return self.command_channel.send_command_file(file_name)

    # ---------------------------------------------------------------- amplitude

    def get_abs_max_amp(self, gain: Gain) -> float:
        """Absolute maximum RF input level (dBm) at the given RF gain."""
        return self.descriptor.abs_max_amp[Gain(gain)]

    # -------------------------------------------------------- data acquisition

    def request_acquisition_access(self) -> bool:
        return self._query_flag("SYSTEM:LOCK:REQUEST? ACQUISITION")

    def have_acquisition_access(self) -> bool:
        return self._query_flag(":SYSTEM:LOCK:HAVE? ACQUISITION")

    def capture_block(self):
        """Ask the WSA to capture one block; read it with read_iq_packet()."""
        self.command("TRACE:BLOCK:DATA?")

    def abort_capture(self):
        self.command("SYSTEM:ABORT")

    def flush_data(self):
        """Remove leftover sweep data on the WSA. Refused while a sweep runs."""
        if self.sweep.list_status() is SweepRunState.RUNNING:
            raise SweepAlreadyRunningError("Cannot flush while the sweep is running")
        self.command("SWEEP:FLUSH")

    def drain_data(self, window: Optional[float] = None) -> int:
        """Discard in-flight data channel bytes for ``window`` seconds."""
        if window is None:
            window = self.config.drain_window
        self._last_count = None
        return self.data_channel.drain(window, self.config.drain_read_timeout)

    def read_iq_packet(self, i_buffer: Optional[np.ndarray], q_buffer: Optional[np.ndarray],
                       samples_per_packet: int) -> VrtPacket:
        """
        Read one VRT packet. A frame with an unknown stream id, or a read
        failure in the middle of an IQ frame, issues one abort-capture so the
        WSA is back in a known state before the error is raised.
        """
        try:
            packet = read_vrt_packet(self.data_channel, i_buffer, q_buffer, samples_per_packet)
        except (NotIQFrameError, IQFrameReadError) as e:
            log.warning(f"{e}; aborting capture")
            self.abort_capture()
            raise
        self._track_packet_count(packet)
        return packet

    def read_block(self, packets_per_block: int, samples_per_packet: int) -> tuple[np.ndarray, np.ndarray]:
        """
        Read a captured block of IQ packets into two int16 arrays of
        packets_per_block * samples_per_packet samples. Context packets are
        skipped; up to config.max_read_retries consecutive read timeouts are
        retried.
        """
        total = packets_per_block * samples_per_packet
        i_data = np.empty(total, dtype=np.int16)
        q_data = np.empty(total, dtype=np.int16)

        packet_index = 0
        failures = 0
        while packet_index < packets_per_block:
            start = packet_index * samples_per_packet
            try:
                packet = self.read_iq_packet(i_data[start:], q_data[start:], samples_per_packet)
            except ReadTimeoutError as e:
                failures += 1
                if failures > self.config.max_read_retries:
                    raise
                log.warning(f"Read retry {failures}/{self.config.max_read_retries}: {e}")
                continue
            failures = 0
            if packet.is_context:
                continue
            packet_index += 1
        return i_data, q_data

    def _track_packet_count(self, packet: VrtPacket):
        count = packet.header.packet_count
        if packet.is_context:
            return
        if self._last_count is not None:
            expected = (self._last_count + 1) & 0xF
            if count != expected:
                missed = (count - expected) & 0xF
                self.missed_count += missed
                log.warning(f"Packet count gap: expected {expected}, got {count} "
                            f"({missed} packets missed)")
        self._last_count = count

    def get_samples_per_packet(self) -> int:
        d = self.descriptor
        value = to_int(self.query("TRACE:SPPACKET?"))
        return check_range("samples per packet", value,
                           d.min_samples_per_packet, d.max_samples_per_packet)

    def set_samples_per_packet(self, samples_per_packet: int):
        self.descriptor.check_samples_per_packet(samples_per_packet)
        self.command(f"TRACE:SPPACKET {samples_per_packet}")

    def get_packets_per_block(self) -> int:
        return to_int(self.query("TRACE:BLOCK:PACKETS?"))

    def set_packets_per_block(self, packets_per_block: int):
        self.descriptor.check_packets_per_block(packets_per_block)
        self.command(f"TRACE:BLOCK:PACKETS {packets_per_block}")

    def get_decimation(self) -> int:
        """Decimation rate; 0 means decimation is off."""
        d = self.descriptor
        value = to_int(self.query(":SENSE:DEC?"))
        if value != 0:
            check_range("decimation rate", value, d.min_decimation, d.max_decimation)
        return value

    def set_decimation(self, rate: int):
        self.descriptor.check_decimation(rate)
        self.command(f"SENSE:DEC {rate}")

    # ---------------------------------------------------------------- frequency

    def get_freq(self) -> int:
        d = self.descriptor
        value = to_float(self.query("FREQ:CENT?"))
        check_range("center frequency", value, d.min_tune_freq, d.max_tune_freq)
        return int(value)

    def set_freq(self, cfreq: int):
        self.descriptor.check_freq(cfreq, "center frequency")
        self.command(f"FREQ:CENT {int(cfreq)} Hz")

    def get_freq_shift(self) -> float:
        bw = self.descriptor.inst_bw
        value = to_float(self.query("FREQ:SHIFT?"))
        return check_range("frequency shift", value, -bw, bw)

    def set_freq_shift(self, fshift: float):
        self.descriptor.check_freq_shift(fshift)
        self.command(f"FREQ:SHIFT {fshift:f} Hz")

    # --------------------------------------------------------------------- gain

    def get_gain_if(self) -> int:
        d = self.descriptor
        d.require_rfe_control("IF gain")
        value = to_int(self.query("INPUT:GAIN:IF?"))
        return check_range("IF gain", value, d.min_if_gain, d.max_if_gain)

    def set_gain_if(self, gain: int):
        self.descriptor.check_if_gain(gain)
        self.command(f"INPUT:GAIN:IF {gain} dB")

    def get_gain_rf(self) -> Gain:
        return parse_gain(self.query("INPUT:GAIN:RF?"))

    def set_gain_rf(self, gain: Gain):
        self.command(f"INPUT:GAIN:RF {format_gain(gain)}")

    # -------------------------------------------------------------- RFE control

    def get_antenna(self) -> int:
        d = self.descriptor
        d.require_rfe_control("antenna selection")
        value = to_int(self.query("INPUT:ANTENNA?"))
        return check_range("antenna port", value, 1, d.max_ant_port)

    def set_antenna(self, port_num: int):
        self.descriptor.check_antenna(port_num)
        self.command(f"INPUT:ANTENNA {port_num}")

    def get_bpf_mode(self) -> int:
        """Preselect band pass filter: 1 = on, 0 = off."""
        self.descriptor.require_rfe_control("BPF mode")
        value = to_int(self.query("INP:FILT:PRES?"))
        return check_range("BPF mode", value, 0, 1)

    def set_bpf_mode(self, mode: int):
        self.descriptor.require_rfe_control("BPF mode")
        check_flag("BPF mode", mode)
        self.command(f"INPUT:FILT:PRES {int(mode)}")

    # ------------------------------------------------------------ device status

    def get_firmware_version(self) -> str:
        fields = split_fields(self.query("*IDN?"), 4)
        return fields[3]

    # ------------------------------------------------------------------ trigger

    def set_trigger_level(self, start_freq: int, stop_freq: int, amplitude: int):
        d = self.descriptor
        d.check_freq(start_freq, "trigger start frequency")
        d.check_freq(stop_freq, "trigger stop frequency")
        self.command(f":TRIG:LEVEL {int(start_freq)},{int(stop_freq)},{int(amplitude)}")

    def get_trigger_level(self) -> tuple[int, int, int]:
        d = self.descriptor
        fields = split_fields(self.query(":TRIG:LEVEL?"), 3)
        start = check_range("trigger start frequency", to_float(fields[0]),
                            d.min_tune_freq, d.max_tune_freq)
        stop = check_range("trigger stop frequency", to_float(fields[1]),
                           d.min_tune_freq, d.max_tune_freq)
        return int(start), int(stop), int(to_float(fields[2]))

    def set_trigger_enable(self, enable: int):
        check_flag("trigger mode", enable)
        self.command(f":TRIGGER:ENABLE {int(enable)}")

    def get_trigger_enable(self) -> int:
        value = to_int(self.query(":TRIG:ENABLE?"))
        return check_range("trigger mode", value, 0, 1)

    # ------------------------------------------------------------ PLL reference

    def get_reference_pll(self) -> str:
        self.descriptor.require_rfe_control("PLL reference selection")
        return self.query("SOURCE:REFERENCE:PLL?")

    def set_reference_pll(self, pll_ref: str):
        if pll_ref not in PLL_REFERENCES:
            raise ValueError(f"PLL reference must be one of {PLL_REFERENCES}, got {pll_ref!r}")
        self.command(f"SOURCE:REFERENCE:PLL {pll_ref}")

    def reset_reference_pll(self):
        self.command("SOURCE:REFERENCE:PLL:RESET")

    def get_lock_ref_pll(self) -> int:
        """1 when the PLL reference is locked, 0 when unlocked."""
        return int(to_float(self.query("LOCK:REFERENCE?")))

    def _query_flag(self, cmd: str) -> bool:
        text = self.query(cmd)
        if text == "1":
            return True
        if text == "0":
            return False
        raise UnparsableResponseError(text, "0 or 1")

