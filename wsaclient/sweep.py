"""Sweep list control: the entry template, the saved entry list and run state."""

from typing import Optional

from .common import log
from .errors import (
    OutOfRangeError,
    ProtocolError,
    SweepAlreadyRunningError,
    SweepIdOutOfBoundsError,
    SweepListEmptyError,
    SweepStatusUndefinedError,
    UnparsableResponseError,
)
from .models import Gain, SweepEntry, SweepRunState
from .parsing import (
    check_flag,
    check_range,
    format_gain,
    parse_gain,
    split_fields,
    to_float,
    to_int,
)

# Field order of a SWEEP:ENTRY:READ? reply. The three LEVEL fields follow
# trigger_type only when the trigger type is LEVEL.
SWEEP_ENTRY_SCHEMA_VERSION = 1
SWEEP_ENTRY_FIELDS = (
    "start_freq",
    "stop_freq",
    "fstep",
    "fshift",
    "decimation_rate",
    "ant_port",
    "gain_rf",
    "gain_if",
    "samples_per_packet",
    "packets_per_block",
    "dwell_seconds",
    "dwell_microseconds",
    "trigger_type",
)
SWEEP_ENTRY_LEVEL_FIELDS = (
    "trigger_start_freq",
    "trigger_stop_freq",
    "trigger_amplitude",
)

TRIGGER_TYPE_LEVEL = "LEVEL"
TRIGGER_TYPE_NONE  = "NONE"


def _as_int(text: str) -> int:
    return int(to_float(text))


_FIELD_PARSERS = {
    "start_freq":         _as_int,
    "stop_freq":          _as_int,
    "fstep":              _as_int,
    "fshift":             to_float,
    "decimation_rate":    _as_int,
    "ant_port":           _as_int,
    "gain_rf":            parse_gain,
    "gain_if":            _as_int,
    "samples_per_packet": _as_int,
    "packets_per_block":  _as_int,
    "dwell_seconds":      _as_int,
    "dwell_microseconds": _as_int,
    "trigger_start_freq": _as_int,
    "trigger_stop_freq":  _as_int,
    "trigger_amplitude":  _as_int,
}


def parse_sweep_entry(text: str) -> SweepEntry:
    """
    Parse a comma-delimited sweep entry record, e.g.
    "2400000000,2500000000,10000000,0.0,0,1,HIGH,0,1024,1,0,0,NONE"

    The field count is validated before any positional assignment. Parsing
    stops after the trigger type when it is NONE.
    """
    fields = split_fields(text)
    base = len(SWEEP_ENTRY_FIELDS)
    if len(fields) < base:
        raise ProtocolError(
            f"Sweep entry has {len(fields)} fields, schema v{SWEEP_ENTRY_SCHEMA_VERSION} "
            f"needs {base}: {text!r}"
        )

    entry = SweepEntry()
    for name, value in zip(SWEEP_ENTRY_FIELDS[:-1], fields):
        setattr(entry, name, _FIELD_PARSERS[name](value))

    trigger_type = fields[base - 1].upper()
    if trigger_type == TRIGGER_TYPE_NONE:
        entry.trigger_enable = 0
        return entry
    if trigger_type != TRIGGER_TYPE_LEVEL:
        raise UnparsableResponseError(fields[base - 1], "trigger type LEVEL or NONE")

    if len(fields) < base + len(SWEEP_ENTRY_LEVEL_FIELDS):
        raise ProtocolError(f"LEVEL trigger sweep entry is missing trigger fields: {text!r}")
    entry.trigger_enable = 1
    for name, value in zip(SWEEP_ENTRY_LEVEL_FIELDS, fields[base:]):
        setattr(entry, name, _FIELD_PARSERS[name](value))
    return entry


class SweepList:
    """
    Manages the sweep list stored on the WSA.
    Sequence: entry_new -> set template parameters -> entry_save -> start
    """

    def __init__(self, wsa):
        self.wsa = wsa

    @property
    def _descr(self):
        return self.wsa.descriptor

    # ---------------------------------------------------------------- template

    def entry_new(self):
        """Reset the entry template to default values."""
        self.wsa.command("SWEEP:ENTRY:NEW")

    def get_freq(self) -> tuple[int, int]:
        fields = split_fields(self.wsa.query("SWEEP:ENTRY:FREQ:CENTER?"), 2)
        return _as_int(fields[0]), _as_int(fields[1])

    def set_freq(self, start_freq: int, stop_freq: int):
        self._descr.check_freq_range(start_freq, stop_freq)
        self.wsa.command(f"SWEEP:ENTRY:FREQ:CENTER {int(start_freq)} Hz, {int(stop_freq)} Hz")

    def get_freq_shift(self) -> float:
        return to_float(self.wsa.query("SWEEP:ENTRY:FREQ:SHIFT?"))

    def set_freq_shift(self, fshift: float):
        self._descr.check_freq_shift(fshift)
        self.wsa.command(f"SWEEP:ENTRY:FREQ:SHIFT {fshift:f} Hz")

    def get_freq_step(self) -> int:
        return _as_int(self.wsa.query("SWEEP:ENTRY:FREQ:STEP?"))

    def set_freq_step(self, step: int):
        self.wsa.command(f"SWEEP:ENTRY:FREQ:STEP {int(step)} Hz")

    def get_decimation(self) -> int:
        d = self._descr
        value = to_int(self.wsa.query("SWEEP:ENTRY:DECIMATION?"))
        if value != 0:
            check_range("decimation rate", value, d.min_decimation, d.max_decimation)
        return value

    def set_decimation(self, rate: int):
        self._descr.check_decimation(rate)
        self.wsa.command(f"SWEEP:ENTRY:DECIMATION {rate}")

    def get_antenna(self) -> int:
        d = self._descr
        d.require_rfe_control("antenna selection")
        value = to_int(self.wsa.query("SWEEP:ENTRY:ANTENNA?"))
        return check_range("antenna port", value, 1, d.max_ant_port)

    def set_antenna(self, port_num: int):
        self._descr.check_antenna(port_num)
        self.wsa.command(f"SWEEP:ENTRY:ANTENNA {port_num}")

    def get_gain_rf(self) -> Gain:
        return parse_gain(self.wsa.query("SWEEP:ENTRY:GAIN:RF?"))

    def set_gain_rf(self, gain: Gain):
        self.wsa.command(f"SWEEP:ENTRY:GAIN:RF {format_gain(gain)}")

    def get_gain_if(self) -> int:
        d = self._descr
        d.require_rfe_control("IF gain")
        value = to_int(self.wsa.query("SWEEP:ENTRY:GAIN:IF?"))
        return check_range("IF gain", value, d.min_if_gain, d.max_if_gain)

    def set_gain_if(self, gain: int):
        self._descr.check_if_gain(gain)
        self.wsa.command(f"SWEEP:ENTRY:GAIN:IF {gain}")

    def get_samples_per_packet(self) -> int:
        d = self._descr
        value = to_int(self.wsa.query("SWEEP:ENTRY:SPPACKET?"))
        return check_range("samples per packet", value,
                           d.min_samples_per_packet, d.max_samples_per_packet)

    def set_samples_per_packet(self, samples_per_packet: int):
        self._descr.check_samples_per_packet(samples_per_packet)
        self.wsa.command(f"SWEEP:ENTRY:SPPACKET {samples_per_packet}")

    def get_packets_per_block(self) -> int:
        return to_int(self.wsa.query("SWEEP:ENTRY:PPBLOCK?"))

    def set_packets_per_block(self, packets_per_block: int):
        self._descr.check_packets_per_block(packets_per_block)
        self.wsa.command(f"SWEEP:ENTRY:PPBLOCK {packets_per_block}")

    def get_dwell(self) -> tuple[int, int]:
        """Dwell time as (seconds, microseconds)."""
        fields = split_fields(self.wsa.query("SWEEP:ENTRY:DWELL?"), 2)
        return _as_int(fields[0]), _as_int(fields[1])

    def set_dwell(self, seconds: int, microseconds: int):
        if seconds < 0 or microseconds < 0:
            raise OutOfRangeError("dwell", (seconds, microseconds))
        self.wsa.command(f"SWEEP:ENTRY:DWELL {seconds},{microseconds}")

    def get_trigger_type(self) -> int:
        """1 for a LEVEL trigger, 0 for NONE (free run)."""
        text = self.wsa.query("SWEEP:ENTRY:TRIGGER:TYPE?")
        trigger_type = text.strip().upper()
        if trigger_type == TRIGGER_TYPE_LEVEL:
            return 1
        if trigger_type == TRIGGER_TYPE_NONE:
            return 0
        raise UnparsableResponseError(text, "trigger type LEVEL or NONE")

    def set_trigger_type(self, enable: int):
        check_flag("trigger mode", enable)
        trigger_type = TRIGGER_TYPE_LEVEL if enable else TRIGGER_TYPE_NONE
        self.wsa.command(f"SWEEP:ENTRY:TRIGGER:TYPE {trigger_type}")

    def get_trigger_level(self) -> tuple[int, int, int]:
        fields = split_fields(self.wsa.query("SWEEP:ENTRY:TRIGGER:LEVEL?"), 3)
        return _as_int(fields[0]), _as_int(fields[1]), _as_int(fields[2])

    def set_trigger_level(self, start_freq: int, stop_freq: int, amplitude: int):
        self._descr.check_freq_range(start_freq, stop_freq)
        self.wsa.command(
            f"SWEEP:ENTRY:TRIGGER:LEVEL {int(start_freq)},{int(stop_freq)},{int(amplitude)}"
        )

    def entry_apply(self, entry: SweepEntry):
        """
        Load every parameter of ``entry`` into the template. All values are
        validated before the first command is sent.
        """
        d = self._descr
        d.check_freq_range(entry.start_freq, entry.stop_freq)
        d.check_freq_shift(entry.fshift)
        d.check_decimation(entry.decimation_rate)
        d.check_samples_per_packet(entry.samples_per_packet)
        d.check_packets_per_block(entry.packets_per_block)
        format_gain(entry.gain_rf)
        check_flag("trigger mode", entry.trigger_enable)
        if d.rfe_control:
            d.check_antenna(entry.ant_port)
            d.check_if_gain(entry.gain_if)
        if entry.trigger_enable:
            d.check_freq_range(entry.trigger_start_freq, entry.trigger_stop_freq)

        self.set_freq(entry.start_freq, entry.stop_freq)
        self.set_freq_step(entry.fstep)
        self.set_freq_shift(entry.fshift)
        self.set_decimation(entry.decimation_rate)
        if d.rfe_control:
            self.set_antenna(entry.ant_port)
            self.set_gain_if(entry.gain_if)
        self.set_gain_rf(entry.gain_rf)
        self.set_samples_per_packet(entry.samples_per_packet)
        self.set_packets_per_block(entry.packets_per_block)
        self.set_dwell(entry.dwell_seconds, entry.dwell_microseconds)
        self.set_trigger_type(entry.trigger_enable)
        if entry.trigger_enable:
            self.set_trigger_level(entry.trigger_start_freq, entry.trigger_stop_freq,
                                   entry.trigger_amplitude)

    # -------------------------------------------------------------------- list

    def list_size(self) -> int:
        return _as_int(self.wsa.query("SWEEP:ENTRY:COUNT?"))

    def list_status(self) -> SweepRunState:
        text = self.wsa.query("SWEEP:LIST:STATUS?")
        try:
            return SweepRunState(text)
        except ValueError:
            raise SweepStatusUndefinedError(text) from None

    def get_iteration(self) -> int:
        return _as_int(self.wsa.query("SWEEP:LIST:ITERATION?"))

    def set_iteration(self, iteration: int):
        if iteration < 0:
            raise OutOfRangeError("sweep iteration", iteration)
        self.wsa.command(f"SWEEP:LIST:ITERATION {iteration}")

    def entry_save(self, position: int = 0):
        """Save the template at ``position`` in the list; 0 appends."""
        size = self.list_size()
        if position < 0 or position > size + 1:
            raise SweepIdOutOfBoundsError(position, 0, size + 1)
        self.wsa.command(f"SWEEP:ENTRY:SAVE {position}")

    def entry_read(self, position: int) -> SweepEntry:
        if position < 0:
            raise SweepIdOutOfBoundsError(position, 0)
        return parse_sweep_entry(self.wsa.query(f"SWEEP:ENTRY:READ? {position}"))

    def entry_delete(self, position: int):
        size = self.list_size()
        if position < 1 or position > size:
            raise SweepIdOutOfBoundsError(position, 1, size)
        self.wsa.command(f"SWEEP:ENTRY:DELETE {position}")

    def entry_delete_all(self):
        self.wsa.command("SWEEP:ENTRY:DELETE ALL")

    def entry_copy(self, position: int):
        """Copy the settings of the entry at ``position`` into the template."""
        size = self.list_size()
        if size == 0:
            raise SweepListEmptyError("Sweep list is empty")
        if position < 1 or position > size:
            raise SweepIdOutOfBoundsError(position, 1, size)
        self.wsa.command(f"SWEEP:ENTRY:COPY {position}")

    # ---------------------------------------------------------------- run state

    def _check_can_run(self, action: str):
        if self.list_status() is SweepRunState.RUNNING:
            raise SweepAlreadyRunningError(f"Cannot {action}: sweep is already running")
        if self.list_size() <= 0:
            raise SweepListEmptyError(f"Cannot {action}: sweep list is empty")

    def start(self):
        self._check_can_run("start")
        self.wsa.command("SWEEP:LIST:START")
        log.info("Sweep started")

    def resume(self):
        """Resume from the entry where the sweep was stopped."""
        self._check_can_run("resume")
        self.wsa.command("SWEEP:LIST:RESUME")
        log.info("Sweep resumed")

    def stop(self, drain_window: Optional[float] = None) -> int:
        """
        Stop the sweep, flush what the WSA still holds, then discard data
        already in flight on the data channel. Returns bytes discarded.
        """
        self.wsa.command("SWEEP:LIST:STOP")
        self.wsa.flush_data()
        discarded = self.wsa.drain_data(drain_window)
        log.info(f"Sweep stopped, discarded {discarded} bytes of in-flight data")
        return discarded
