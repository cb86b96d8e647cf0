"""Shared constants and diagnostics helpers for the WSA client."""

import logging

log = logging.getLogger("wsaclient")

WSA_COMMAND_PORT    = 37001     # TCP SCPI command/control port
WSA_DATA_PORT       = 37000     # TCP VRT data port

BYTES_PER_VRT_WORD  = 4
VRT_HEADER_SIZE     = 5         # header, stream id, TSI, TSF (2 words)
VRT_TRAILER_SIZE    = 1

# ThinkRF VRT stream identifiers
RECEIVER_STREAM_ID  = 0x90000001
DIGITIZER_STREAM_ID = 0x90000002
IF_DATA_STREAM_ID   = 0x90000003

MAX_RETRIES_READ_FRAME = 5

SWEEP_STATUS_STOPPED = "STOPPED"
SWEEP_STATUS_RUNNING = "RUNNING"

_UNKNOWN_STREAMS_LOGGED: set[int] = set()


def _format_stream_id(stream_id: int) -> str:
    names = {
        RECEIVER_STREAM_ID: "receiver context",
        DIGITIZER_STREAM_ID: "digitizer context",
        IF_DATA_STREAM_ID: "IF data",
    }
    name = names.get(stream_id)
    if name:
        return f"0x{stream_id:08X} ({name})"
    return f"0x{stream_id:08X} (unknown stream)"


def _maybe_log_unknown_stream(stream_id: int):
    if stream_id in (RECEIVER_STREAM_ID, DIGITIZER_STREAM_ID, IF_DATA_STREAM_ID):
        return
    if stream_id in _UNKNOWN_STREAMS_LOGGED:
        return
    _UNKNOWN_STREAMS_LOGGED.add(stream_id)
    log.warning(f"Encountered VRT stream id {_format_stream_id(stream_id)} on the data channel.")
