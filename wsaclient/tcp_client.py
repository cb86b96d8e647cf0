"""WSA TCP command and data channels."""

import socket
import threading
import time
from pathlib import Path

from .common import log
from .errors import ChannelReadError, ChannelWriteError, ConnectError, ReadTimeoutError
from .models import QueryResponse


def _open_socket(host: str, port: int, timeout: float) -> socket.socket:
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise ConnectError(f"Failed to connect to {host}:{port}: {e}") from e
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    return sock


class CommandChannel:
    """
    Manages the SCPI command/control connection.
    Strict request/reply: one outstanding query at a time, no pipelining.
    """

    def __init__(self, host: str, port: int, timeout: float = 1.0,
                 retries: int = 3, connect_timeout: float = 5.0):
        self.host       = host
        self.port       = port
        self.timeout    = timeout
        self.retries    = retries
        self.connect_timeout = connect_timeout
        self._sock      = None
        self._lock      = threading.Lock()
        self._buf       = b""
        self._stale     = 0         # replies still owed to timed-out queries

    def connect(self):
        log.info(f"Connecting command channel to {self.host}:{self.port}")
        self._sock = _open_socket(self.host, self.port, self.connect_timeout)
        self._sock.settimeout(self.timeout)
        self._buf = b""
        self._stale = 0
        log.info("Command channel connected")

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def disconnect(self):
        sock, self._sock = self._sock, None
        self._buf = b""
        self._stale = 0
        if sock:
            try:
                sock.close()
            except OSError as e:
                log.debug(f"Error closing command socket: {e}")

    def _write(self, cmd: str):
        if self._sock is None:
            raise ChannelWriteError(f"Command channel is not connected: {cmd.strip()}")
        msg = cmd if cmd.endswith("\n") else cmd + "\n"
        log.debug(f"TX: {msg.strip()}")
        try:
            self._sock.sendall(msg.encode("ascii"))
        except (OSError, UnicodeEncodeError) as e:
            raise ChannelWriteError(f"Failed to send {msg.strip()!r}: {e}") from e

    def send_command(self, cmd: str):
        """Send a command line. No reply is read."""
        with self._lock:
            self._write(cmd)

    def send_query(self, cmd: str) -> QueryResponse:
        """
        Send a query and read its reply line.
        Returns QueryResponse with status = bytes read and the trimmed reply text.
        Raises ReadTimeoutError after ``retries`` consecutive read timeouts.

        A timed-out query still owes a reply; it is read and discarded ahead
        of the next query's reply so replies stay paired with their queries.
        """
        with self._lock:
            self._write(cmd)
            try:
                while self._stale:
                    late = self._read_line(cmd)
                    self._stale -= 1
                    log.warning(f"Discarded late reply {late.strip()!r}")
                raw = self._read_line(cmd)
            except ReadTimeoutError:
                self._stale += 1
                raise

        response = QueryResponse(status=len(raw), output=raw.decode("ascii", errors="replace").strip())
        log.debug(f"RX: {response.output}")
        return response

    def _read_line(self, cmd: str) -> bytes:
        timeouts = 0
        while b"\n" not in self._buf:
            try:
                chunk = self._sock.recv(4096)
            except socket.timeout:
                timeouts += 1
                if timeouts > self.retries:
                    raise ReadTimeoutError(f"Query timeout: {cmd.strip()}") from None
                log.debug(f"Read timeout {timeouts}/{self.retries} waiting for reply to {cmd.strip()}")
                continue
            except OSError as e:
                raise ChannelReadError(f"Command channel read failed: {e}") from e
            if not chunk:
                raise ChannelReadError("Command channel closed by instrument")
            timeouts = 0
            self._buf += chunk

        line, self._buf = self._buf.split(b"\n", 1)
        return line + b"\n"

    def send_command_file(self, file_name) -> int:
        """
        Send each command line stored in a file. Blank lines and lines
        starting with '#' or '!' are skipped. Returns the number of lines sent.
        """
        count = 0
        with Path(file_name).open("r", encoding="ascii") as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line[0] in "#!":
                    continue
                if line.endswith("?"):
                    response = self.send_query(line)
                    log.info(f"{line} -> {response.output}")
                else:
                    self.send_command(line)
                count += 1
        return count


class DataChannel:
    """Blocking reader for the VRT data connection."""

    def __init__(self, host: str, port: int, timeout: float = 1.0,
                 connect_timeout: float = 5.0):
        self.host    = host
        self.port    = port
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._sock   = None
        self._buf    = bytearray()  # bytes received but not yet consumed

    def connect(self):
        log.info(f"Connecting data channel to {self.host}:{self.port}")
        self._sock = _open_socket(self.host, self.port, self.connect_timeout)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4 * 1024 * 1024)
        self._sock.settimeout(self.timeout)
        self._buf.clear()
        log.info("Data channel connected")

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def disconnect(self):
        sock, self._sock = self._sock, None
        self._buf.clear()
        if sock:
            try:
                sock.close()
            except OSError as e:
                log.debug(f"Error closing data socket: {e}")

    def recv_exact(self, nbytes: int) -> bytes:
        """
        Read exactly nbytes or raise ReadTimeoutError / ChannelReadError.
        Bytes received before a timeout are kept, so a retried read resumes
        at the same stream position.
        """
        if self._sock is None:
            raise ChannelReadError("Data channel is not connected")
        while len(self._buf) < nbytes:
            try:
                chunk = self._sock.recv(nbytes - len(self._buf))
            except socket.timeout:
                raise ReadTimeoutError(
                    f"Data channel timeout after {len(self._buf)}/{nbytes} bytes"
                ) from None
            except OSError as e:
                raise ChannelReadError(f"Data channel read failed: {e}") from e
            if not chunk:
                raise ChannelReadError("Data channel closed by instrument")
            self._buf += chunk
        data = bytes(self._buf[:nbytes])
        del self._buf[:nbytes]
        return data

    def unread(self, data: bytes):
        """Push bytes back so the next recv_exact() returns them first."""
        self._buf[:0] = data

    def drain(self, window: float, read_timeout: float = 0.36) -> int:
        """
        Discard whatever arrives on the data channel for ``window`` seconds.
        Returns the number of bytes thrown away.
        """
        if self._sock is None:
            return 0
        discarded = len(self._buf)
        self._buf.clear()
        deadline = time.monotonic() + window
        self._sock.settimeout(read_timeout)
        try:
            while time.monotonic() < deadline:
                try:
                    chunk = self._sock.recv(65536)
                except socket.timeout:
                    continue
                except OSError as e:
                    raise ChannelReadError(f"Data channel drain failed: {e}") from e
                if not chunk:
                    break
                discarded += len(chunk)
        finally:
            self._sock.settimeout(self.timeout)
        log.debug(f"Drained {discarded} bytes from data channel")
        return discarded
