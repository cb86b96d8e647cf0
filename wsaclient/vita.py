"""VRT (VITA-49) packet decoder for the WSA data channel."""

import struct
from typing import Optional

import numpy as np

from .common import (
    BYTES_PER_VRT_WORD,
    DIGITIZER_STREAM_ID,
    IF_DATA_STREAM_ID,
    RECEIVER_STREAM_ID,
    VRT_HEADER_SIZE,
    VRT_TRAILER_SIZE,
    _maybe_log_unknown_stream,
    log,
)
from .errors import (
    ChannelReadError,
    IQFrameReadError,
    NotIQFrameError,
    ProtocolError,
    ReadTimeoutError,
)
from .models import DigitizerContext, ReceiverContext, VrtHeader, VrtPacket, VrtTrailer

# Receiver context indicator field bits
RECEIVER_REFERENCE_POINT = 0x40000000
RECEIVER_FREQUENCY       = 0x08000000
RECEIVER_GAIN            = 0x00800000
RECEIVER_TEMPERATURE     = 0x00040000

# Digitizer context indicator field bits
DIGITIZER_BANDWIDTH      = 0x20000000
DIGITIZER_RF_FREQ_OFFSET = 0x04000000
DIGITIZER_REFERENCE_LEVEL = 0x01000000

# Trailer: (enable bit, indicator bit)
_TRAILER_BITS = {
    "valid_data":         (30, 18),
    "reference_lock":     (29, 17),
    "spectral_inversion": (26, 14),
    "over_range":         (25, 13),
    "sample_loss":        (24, 12),
}

_FREQ_SCALE = float(1 << 20)    # 64-bit frequencies carry a 20-bit fraction
_GAIN_SCALE = float(1 << 7)     # gain and reference level carry a 7-bit fraction
_TEMP_SCALE = float(1 << 6)     # temperature carries a 6-bit fraction


def decode_header(words: bytes) -> VrtHeader:
    """
    Decode the 5-word VRT header (big-endian).

    Word 0 bits 31-28: packet type, 19-16: packet count, 15-0: size in words.
    Word 1: stream id. Word 2: integer seconds. Words 3-4: picoseconds.
    """
    if len(words) < VRT_HEADER_SIZE * BYTES_PER_VRT_WORD:
        raise ProtocolError(f"VRT header too short: {len(words)} bytes")
    word0, stream_id, tsi, tsf = struct.unpack_from(">IIIQ", words, 0)
    return VrtHeader(
        packet_type=(word0 >> 28) & 0xF,
        stream_id=stream_id,
        packet_count=(word0 >> 16) & 0xF,
        packet_size=word0 & 0xFFFF,
        time_sec=tsi,
        time_psec=tsf,
    )


def decode_trailer(word: int) -> VrtTrailer:
    trailer = VrtTrailer(word=word)
    for name, (enable_bit, indicator_bit) in _TRAILER_BITS.items():
        if (word >> enable_bit) & 0x1:
            setattr(trailer, name, bool((word >> indicator_bit) & 0x1))
    return trailer


def decode_receiver_context(body: bytes) -> ReceiverContext:
    """Decode a receiver context body: indicator field followed by present fields."""
    indicator = _unpack(">I", body, 0)
    ctx = ReceiverContext(indicator_field=indicator)
    offset = 4

    # fields appear in descending indicator bit order
    if indicator & RECEIVER_REFERENCE_POINT:
        ctx.reference_point = _unpack(">I", body, offset)
        offset += 4
    if indicator & RECEIVER_FREQUENCY:
        ctx.frequency = _unpack(">q", body, offset) / _FREQ_SCALE
        offset += 8
    if indicator & RECEIVER_GAIN:
        gain_rf, gain_if = struct.unpack_from(">hh", _need(body, offset, 4), offset)
        ctx.gain_rf = gain_rf / _GAIN_SCALE
        ctx.gain_if = gain_if / _GAIN_SCALE
        offset += 4
    if indicator & RECEIVER_TEMPERATURE:
        temp = _unpack(">I", body, offset) & 0xFFFF
        if temp & 0x8000:
            temp -= 0x10000
        ctx.temperature = temp / _TEMP_SCALE
        offset += 4
    return ctx


def decode_digitizer_context(body: bytes) -> DigitizerContext:
    indicator = _unpack(">I", body, 0)
    ctx = DigitizerContext(indicator_field=indicator)
    offset = 4

    if indicator & DIGITIZER_BANDWIDTH:
        ctx.bandwidth = _unpack(">q", body, offset) / _FREQ_SCALE
        offset += 8
    if indicator & DIGITIZER_RF_FREQ_OFFSET:
        ctx.rf_frequency_offset = _unpack(">q", body, offset) / _FREQ_SCALE
        offset += 8
    if indicator & DIGITIZER_REFERENCE_LEVEL:
        level = _unpack(">I", body, offset) & 0xFFFF
        if level & 0x8000:
            level -= 0x10000
        ctx.reference_level = level / _GAIN_SCALE
        offset += 4
    return ctx


def decode_iq_payload(payload: bytes, i_buffer: np.ndarray, q_buffer: np.ndarray,
                      samples_per_packet: int):
    """
    De-interleave big-endian int16 I/Q pairs into the caller's buffers.

        payload:  I1 Q1 I2 Q2 ...
        i_buffer: I1 I2 ...    q_buffer: Q1 Q2 ...
    """
    raw = np.frombuffer(payload, dtype=">i2", count=2 * samples_per_packet)
    i_buffer[:samples_per_packet] = raw[0::2]
    q_buffer[:samples_per_packet] = raw[1::2]


def read_vrt_packet(channel, i_buffer: Optional[np.ndarray], q_buffer: Optional[np.ndarray],
                    samples_per_packet: int) -> VrtPacket:
    """
    Read and decode one VRT packet from the data channel.

    Context packets fill VrtPacket.receiver / .digitizer and leave the I/Q
    buffers alone. IF data packets are de-interleaved into i_buffer/q_buffer,
    which must hold at least samples_per_packet values each. This is a single
    attempt: retries belong to the caller.

    Raises NotIQFrameError for an unknown stream id (the packet is consumed
    first), IQFrameReadError when the data channel fails mid IF data packet.
    After a read timeout the channel is left at the start of the packet.
    """
    # header word + stream id tell us what follows and how much of it
    lead = channel.recv_exact(2 * BYTES_PER_VRT_WORD)
    word0, stream_id = struct.unpack(">II", lead)
    packet_size = word0 & 0xFFFF
    if packet_size < VRT_HEADER_SIZE:
        raise ProtocolError(f"VRT packet size {packet_size} words is below the header size")

    try:
        rest = channel.recv_exact((packet_size - 2) * BYTES_PER_VRT_WORD)
    except ChannelReadError as e:
        if isinstance(e, ReadTimeoutError):
            # keep the stream aligned on the packet start for a retry
            channel.unread(lead)
        if stream_id == IF_DATA_STREAM_ID:
            raise IQFrameReadError(f"IQ frame read failed: {e}") from e
        raise

    data = lead + rest
    header = decode_header(data)
    body = data[VRT_HEADER_SIZE * BYTES_PER_VRT_WORD:]

    if stream_id == RECEIVER_STREAM_ID:
        return VrtPacket(header=header, receiver=decode_receiver_context(body))
    if stream_id == DIGITIZER_STREAM_ID:
        return VrtPacket(header=header, digitizer=decode_digitizer_context(body))
    if stream_id != IF_DATA_STREAM_ID:
        _maybe_log_unknown_stream(stream_id)
        raise NotIQFrameError(stream_id)

    payload_words = packet_size - VRT_HEADER_SIZE - VRT_TRAILER_SIZE
    if payload_words != samples_per_packet:
        raise ProtocolError(
            f"IQ packet declares {payload_words} samples, expected {samples_per_packet}"
        )

    if i_buffer is None:
        i_buffer = np.empty(samples_per_packet, dtype=np.int16)
    if q_buffer is None:
        q_buffer = np.empty(samples_per_packet, dtype=np.int16)
    if len(i_buffer) < samples_per_packet or len(q_buffer) < samples_per_packet:
        raise ValueError(f"I/Q buffers must hold {samples_per_packet} samples")

    decode_iq_payload(body[:payload_words * BYTES_PER_VRT_WORD], i_buffer, q_buffer,
                      samples_per_packet)
    trailer = decode_trailer(_unpack(">I", body, payload_words * BYTES_PER_VRT_WORD))
    if trailer.sample_loss:
        log.warning(f"Sample loss flagged in packet count {header.packet_count}")

    return VrtPacket(
        header=header,
        trailer=trailer,
        i_data=i_buffer[:samples_per_packet],
        q_data=q_buffer[:samples_per_packet],
    )


def _need(body: bytes, offset: int, size: int) -> bytes:
    if len(body) < offset + size:
        raise ProtocolError(f"Context packet truncated at byte {offset}")
    return body


def _unpack(fmt: str, body: bytes, offset: int) -> int:
    return struct.unpack_from(fmt, _need(body, offset, struct.calcsize(fmt)), offset)[0]
