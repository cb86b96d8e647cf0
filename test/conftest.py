import struct

import numpy as np
import pytest

from wsaclient.common import DIGITIZER_STREAM_ID, IF_DATA_STREAM_ID, RECEIVER_STREAM_ID
from wsaclient.config import SessionConfig
from wsaclient.client import WSA
from wsaclient.descriptors import DESCRIPTORS
from wsaclient.errors import ReadTimeoutError
from wsaclient.models import DeviceVariant, Gain, QueryResponse, SweepEntry


def format_entry(entry: SweepEntry) -> str:
    """Render a sweep entry the way SWEEP:ENTRY:READ? reports it."""
    fields = [
        entry.start_freq, entry.stop_freq, entry.fstep, f"{entry.fshift:f}",
        entry.decimation_rate, entry.ant_port, Gain(entry.gain_rf).name, entry.gain_if,
        entry.samples_per_packet, entry.packets_per_block,
        entry.dwell_seconds, entry.dwell_microseconds,
    ]
    if entry.trigger_enable:
        fields += ["LEVEL", entry.trigger_start_freq, entry.trigger_stop_freq,
                   entry.trigger_amplitude]
    else:
        fields.append("NONE")
    return ",".join(str(f) for f in fields)


class FakeInstrument:
    """
    Stands in for the command channel. Keeps a small model of the WSA state
    so setters and queries see each other; ``replies`` overrides any query.
    """

    def __init__(self, resolution: int = 100_000):
        self.resolution = resolution
        self.commands = []
        self.queries = []
        self.replies = {}
        self.freq = 2_400_000_000
        self.decimation = 0
        self.samples_per_packet = 1024
        self.packets_per_block = 1
        self.status = "STOPPED"
        self.template = SweepEntry()
        self.entries = []
        self.idn = "ThinkRF,WSA4000,SN1234,2.5.3"
        self.disconnected = False

    # CommandChannel interface

    def send_command(self, cmd: str):
        cmd = cmd.strip()
        self.commands.append(cmd)
        verb, _, arg = cmd.partition(" ")
        arg = arg.strip()

        if verb == "FREQ:CENT":
            freq = int(arg.split()[0])
            self.freq = freq // self.resolution * self.resolution
        elif verb == "SENSE:DEC":
            self.decimation = int(arg)
        elif verb == "TRACE:SPPACKET":
            self.samples_per_packet = int(arg)
        elif verb == "TRACE:BLOCK:PACKETS":
            self.packets_per_block = int(arg)
        elif verb == "SWEEP:ENTRY:NEW":
            self.template = SweepEntry()
        elif verb == "SWEEP:ENTRY:FREQ:CENTER":
            start, stop = (int(part.split()[0]) for part in arg.split(","))
            self.template.start_freq, self.template.stop_freq = start, stop
        elif verb == "SWEEP:ENTRY:SAVE":
            position = int(arg)
            saved = SweepEntry(**vars(self.template))
            if position == 0:
                self.entries.append(saved)
            else:
                self.entries.insert(position - 1, saved)
        elif verb == "SWEEP:ENTRY:DELETE":
            if arg == "ALL":
                self.entries.clear()
            else:
                del self.entries[int(arg) - 1]
        elif verb == "SWEEP:ENTRY:COPY":
            self.template = SweepEntry(**vars(self.entries[int(arg) - 1]))
        elif verb in ("SWEEP:LIST:START", "SWEEP:LIST:RESUME"):
            self.status = "RUNNING"
        elif verb == "SWEEP:LIST:STOP":
            self.status = "STOPPED"

    def send_query(self, cmd: str) -> QueryResponse:
        cmd = cmd.strip()
        self.queries.append(cmd)
        if cmd in self.replies:
            reply = self.replies[cmd]
            if isinstance(reply, list):
                reply = reply.pop(0)
        else:
            reply = self._answer(cmd)
        if reply is None:
            return QueryResponse(status=0, output="")
        return QueryResponse(status=len(reply) + 1, output=reply)

    def _answer(self, cmd: str):
        verb, _, arg = cmd.partition(" ")
        if verb == "*IDN?":
            return self.idn
        if verb == "FREQ:CENT?":
            return f"{self.freq}"
        if verb == ":SENSE:DEC?":
            return str(self.decimation)
        if verb == "TRACE:SPPACKET?":
            return str(self.samples_per_packet)
        if verb == "TRACE:BLOCK:PACKETS?":
            return str(self.packets_per_block)
        if verb == "SWEEP:ENTRY:COUNT?":
            return str(len(self.entries))
        if verb == "SWEEP:LIST:STATUS?":
            return self.status
        if verb == "SWEEP:ENTRY:READ?":
            position = int(arg)
            entry = self.template if position == 0 else self.entries[position - 1]
            return format_entry(entry)
        return None

    def send_command_file(self, file_name) -> int:
        raise NotImplementedError

    def disconnect(self):
        self.disconnected = True

    @property
    def sent(self):
        return self.commands + self.queries


class FakeDataChannel:
    """In-memory data channel; a short read times out and consumes nothing."""

    def __init__(self, data: bytes = b""):
        self.buffer = bytearray(data)
        self.drained = 0
        self.disconnected = False

    def feed(self, data: bytes):
        self.buffer += data

    def recv_exact(self, nbytes: int) -> bytes:
        if len(self.buffer) < nbytes:
            raise ReadTimeoutError(f"Data channel timeout after {len(self.buffer)}/{nbytes} bytes")
        chunk = bytes(self.buffer[:nbytes])
        del self.buffer[:nbytes]
        return chunk

    def unread(self, data: bytes):
        self.buffer[:0] = data

    def drain(self, window: float, read_timeout: float = 0.36) -> int:
        discarded = len(self.buffer)
        self.buffer.clear()
        self.drained += discarded
        return discarded

    def disconnect(self):
        self.disconnected = True


# VRT packet builders

def _header(packet_type: int, stream_id: int, count: int, size: int,
            sec: int = 1_700_000_000, psec: int = 250_000) -> bytes:
    word0 = (packet_type << 28) | (0x1 << 22) | (0x2 << 20) | ((count & 0xF) << 16) | size
    return struct.pack(">IIIQ", word0, stream_id, sec, psec)


def build_iq_packet(i_samples, q_samples, count: int = 0,
                    stream_id: int = IF_DATA_STREAM_ID, trailer: int = 0x40040000) -> bytes:
    iq = np.empty(2 * len(i_samples), dtype=">i2")
    iq[0::2] = i_samples
    iq[1::2] = q_samples
    size = 5 + len(i_samples) + 1
    return _header(0x1, stream_id, count, size) + iq.tobytes() + struct.pack(">I", trailer)


def build_receiver_context(frequency: float, gain_rf: float, gain_if: float,
                           temperature: float, reference_point: int = 0x1234,
                           count: int = 0) -> bytes:
    indicator = 0x40000000 | 0x08000000 | 0x00800000 | 0x00040000
    body = struct.pack(">I", indicator)
    body += struct.pack(">I", reference_point)
    body += struct.pack(">q", int(frequency * (1 << 20)))
    body += struct.pack(">hh", int(gain_rf * 128), int(gain_if * 128))
    body += struct.pack(">i", int(temperature * 64) & 0xFFFF)
    size = 5 + len(body) // 4
    return _header(0x4, RECEIVER_STREAM_ID, count, size) + body


def build_digitizer_context(bandwidth: float, reference_level: float,
                            rf_frequency_offset: float, count: int = 0) -> bytes:
    indicator = 0x20000000 | 0x04000000 | 0x01000000
    body = struct.pack(">I", indicator)
    body += struct.pack(">q", int(bandwidth * (1 << 20)))
    body += struct.pack(">q", int(rf_frequency_offset * (1 << 20)))
    body += struct.pack(">I", int(reference_level * 128) & 0xFFFF)
    size = 5 + len(body) // 4
    return _header(0x4, DIGITIZER_STREAM_ID, count, size) + body


@pytest.fixture
def instrument():
    return FakeInstrument()


@pytest.fixture
def data_channel():
    return FakeDataChannel()


@pytest.fixture
def wsa(instrument, data_channel):
    """An open session wired to the fake channels, RFE0560 descriptor."""
    session = WSA(SessionConfig(drain_window=0.0))
    session._cmd = instrument
    session._data = data_channel
    session.descr = DESCRIPTORS[DeviceVariant.WSA4000_RFE0560]
    return session


@pytest.fixture
def wsa_rfe0440(instrument, data_channel):
    session = WSA(SessionConfig(drain_window=0.0))
    session._cmd = instrument
    session._data = data_channel
    session.descr = DESCRIPTORS[DeviceVariant.WSA4000_RFE0440]
    return session
