"""Session configuration.

Holds connection ports, timeouts and retry limits. Everything that used to be a
process-wide flag lives here and is passed to ``WSA`` at construction time.
"""

from dataclasses import dataclass

from .common import MAX_RETRIES_READ_FRAME, WSA_COMMAND_PORT, WSA_DATA_PORT


@dataclass
class SessionConfig:
    # TCP ports on the instrument.
    command_port: int = WSA_COMMAND_PORT
    data_port: int = WSA_DATA_PORT

    # Seconds allowed for each socket connect.
    connect_timeout: float = 5.0

    # Per-read timeout on the command channel, and how many consecutive
    # timeouts a query tolerates before giving up.
    query_timeout: float = 1.0
    query_retries: int = 3

    # Per-read timeout on the data channel, and how many consecutive frame
    # read timeouts read_block() retries.
    data_timeout: float = 1.0
    max_read_retries: int = MAX_RETRIES_READ_FRAME

    # Wall-clock window spent discarding in-flight data after a sweep stop.
    drain_window: float = 5.0
    drain_read_timeout: float = 0.36

    # Query *IDN? at open to select the descriptor. When disabled (or the
    # instrument does not answer) the WSA4000 product and rfe_name are used.
    identify: bool = True
    rfe_name: str = "RFE0560"

    debug: bool = False
