import pytest

from wsaclient.errors import (
    InvalidRFESettingError,
    OutOfRangeError,
    ProtocolError,
    SweepAlreadyRunningError,
    SweepIdOutOfBoundsError,
    SweepListEmptyError,
    SweepStatusUndefinedError,
    UnparsableResponseError,
)
from wsaclient.models import Gain, SweepEntry, SweepRunState
from wsaclient.sweep import SWEEP_ENTRY_FIELDS, parse_sweep_entry


def _save_entry(wsa, start, stop):
    wsa.sweep.entry_new()
    wsa.sweep.set_freq(start, stop)
    wsa.sweep.entry_save(0)


class TestParseSweepEntry:
    def test_none_trigger_leaves_level_fields_unset(self):
        entry = parse_sweep_entry(
            "2400000000,2500000000,10000000,0.500000,16,2,MED,-5,2048,4,1,500,NONE"
        )
        assert entry.start_freq == 2_400_000_000
        assert entry.stop_freq == 2_500_000_000
        assert entry.fstep == 10_000_000
        assert entry.fshift == 0.5
        assert entry.decimation_rate == 16
        assert entry.ant_port == 2
        assert entry.gain_rf is Gain.MED
        assert entry.gain_if == -5
        assert entry.samples_per_packet == 2048
        assert entry.packets_per_block == 4
        assert (entry.dwell_seconds, entry.dwell_microseconds) == (1, 500)
        assert entry.trigger_enable == 0
        assert entry.trigger_start_freq is None
        assert entry.trigger_stop_freq is None
        assert entry.trigger_amplitude is None

    def test_level_trigger(self):
        entry = parse_sweep_entry(
            "2400000000,2500000000,0,0,0,1,HIGH,0,1024,1,0,0,LEVEL,2410000000,2420000000,-60"
        )
        assert entry.trigger_enable == 1
        assert entry.trigger_start_freq == 2_410_000_000
        assert entry.trigger_stop_freq == 2_420_000_000
        assert entry.trigger_amplitude == -60

    def test_too_few_fields(self):
        with pytest.raises(ProtocolError):
            parse_sweep_entry("2400000000,2500000000,0,0,0,1,HIGH")

    def test_level_trigger_missing_fields(self):
        with pytest.raises(ProtocolError):
            parse_sweep_entry("2400000000,2500000000,0,0,0,1,HIGH,0,1024,1,0,0,LEVEL,1")

    def test_unknown_trigger_type(self):
        with pytest.raises(UnparsableResponseError):
            parse_sweep_entry("2400000000,2500000000,0,0,0,1,HIGH,0,1024,1,0,0,PULSE")

    def test_schema_field_count(self):
        assert len(SWEEP_ENTRY_FIELDS) == 13
        assert SWEEP_ENTRY_FIELDS[-1] == "trigger_type"


class TestEntryList:
    def test_save_zero_appends(self, wsa):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        _save_entry(wsa, 2_000_000_000, 2_100_000_000)
        assert wsa.sweep.list_size() == 2

        _save_entry(wsa, 3_000_000_000, 3_100_000_000)
        assert wsa.sweep.list_size() == 3
        last = wsa.sweep.entry_read(3)
        assert (last.start_freq, last.stop_freq) == (3_000_000_000, 3_100_000_000)

    def test_save_at_position_inserts(self, wsa, instrument):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        wsa.sweep.set_freq(5_000_000_000, 5_100_000_000)
        wsa.sweep.entry_save(1)
        assert instrument.commands[-1] == "SWEEP:ENTRY:SAVE 1"
        assert wsa.sweep.entry_read(1).start_freq == 5_000_000_000

    def test_save_out_of_bounds(self, wsa, instrument):
        with pytest.raises(SweepIdOutOfBoundsError):
            wsa.sweep.entry_save(2)
        with pytest.raises(SweepIdOutOfBoundsError):
            wsa.sweep.entry_save(-1)
        assert not any(c.startswith("SWEEP:ENTRY:SAVE") for c in instrument.commands)

    def test_read_template(self, wsa):
        wsa.sweep.entry_new()
        wsa.sweep.set_freq(2_400_000_000, 2_500_000_000)
        entry = wsa.sweep.entry_read(0)
        assert entry.start_freq == 2_400_000_000
        assert entry.trigger_start_freq is None

    def test_non_finite_list_size(self, wsa, instrument):
        instrument.replies["SWEEP:ENTRY:COUNT?"] = "inf"
        with pytest.raises(UnparsableResponseError):
            wsa.sweep.list_size()

    def test_read_non_finite_field(self, wsa, instrument):
        instrument.replies["SWEEP:ENTRY:READ? 1"] = (
            "nan,2500000000,10000000,0.0,0,1,HIGH,0,1024,1,0,0,NONE"
        )
        with pytest.raises(UnparsableResponseError):
            wsa.sweep.entry_read(1)

    def test_read_negative_position(self, wsa, instrument):
        with pytest.raises(SweepIdOutOfBoundsError):
            wsa.sweep.entry_read(-1)
        assert instrument.queries == []

    def test_delete_out_of_bounds_keeps_size(self, wsa, instrument):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        for position in (0, 2):
            with pytest.raises(SweepIdOutOfBoundsError):
                wsa.sweep.entry_delete(position)
        assert wsa.sweep.list_size() == 1
        assert not any(c.startswith("SWEEP:ENTRY:DELETE") for c in instrument.commands)

    def test_delete(self, wsa):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        _save_entry(wsa, 2_000_000_000, 2_100_000_000)
        wsa.sweep.entry_delete(1)
        assert wsa.sweep.list_size() == 1
        assert wsa.sweep.entry_read(1).start_freq == 2_000_000_000

    def test_delete_all(self, wsa, instrument):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        wsa.sweep.entry_delete_all()
        assert instrument.commands[-1] == "SWEEP:ENTRY:DELETE ALL"
        assert wsa.sweep.list_size() == 0

    def test_copy_empty_list(self, wsa, instrument):
        with pytest.raises(SweepListEmptyError):
            wsa.sweep.entry_copy(1)
        assert not any(c.startswith("SWEEP:ENTRY:COPY") for c in instrument.commands)

    def test_copy(self, wsa):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        wsa.sweep.entry_new()
        wsa.sweep.entry_copy(1)
        assert wsa.sweep.entry_read(0).start_freq == 1_000_000_000
        with pytest.raises(SweepIdOutOfBoundsError):
            wsa.sweep.entry_copy(2)


class TestRunState:
    def test_status(self, wsa, instrument):
        assert wsa.sweep.list_status() is SweepRunState.STOPPED
        instrument.status = "RUNNING"
        assert wsa.sweep.list_status() is SweepRunState.RUNNING
        instrument.status = "PAUSED"
        with pytest.raises(SweepStatusUndefinedError):
            wsa.sweep.list_status()

    def test_start_empty_list(self, wsa, instrument):
        with pytest.raises(SweepListEmptyError):
            wsa.sweep.start()
        assert "SWEEP:LIST:START" not in instrument.commands

    def test_start_while_running(self, wsa, instrument):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        instrument.status = "RUNNING"
        with pytest.raises(SweepAlreadyRunningError):
            wsa.sweep.start()
        with pytest.raises(SweepAlreadyRunningError):
            wsa.sweep.resume()
        assert "SWEEP:LIST:START" not in instrument.commands
        assert "SWEEP:LIST:RESUME" not in instrument.commands

    def test_start_stop(self, wsa, instrument, data_channel):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        wsa.sweep.start()
        assert instrument.commands[-1] == "SWEEP:LIST:START"
        assert wsa.sweep.list_status() is SweepRunState.RUNNING

        data_channel.feed(b"\x00" * 4096)
        assert wsa.sweep.stop() == 4096
        assert instrument.commands[-2:] == ["SWEEP:LIST:STOP", "SWEEP:FLUSH"]
        assert wsa.sweep.list_status() is SweepRunState.STOPPED
        assert data_channel.buffer == bytearray()

    def test_resume(self, wsa, instrument):
        _save_entry(wsa, 1_000_000_000, 1_100_000_000)
        wsa.sweep.resume()
        assert instrument.commands[-1] == "SWEEP:LIST:RESUME"

    def test_iteration(self, wsa, instrument):
        wsa.sweep.set_iteration(3)
        assert instrument.commands[-1] == "SWEEP:LIST:ITERATION 3"
        instrument.replies["SWEEP:LIST:ITERATION?"] = "3"
        assert wsa.sweep.get_iteration() == 3
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_iteration(-1)


class TestTemplate:
    def test_freq_validation(self, wsa, instrument):
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_freq(2_500_000_000, 2_400_000_000)
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_freq(2_400_000_000, 12_000_000_000)
        assert instrument.commands == []

    def test_setter_wire_format(self, wsa, instrument):
        sweep = wsa.sweep
        sweep.set_freq(2_400_000_000, 2_500_000_000)
        sweep.set_freq_shift(250_000.0)
        sweep.set_freq_step(5_000_000)
        sweep.set_decimation(32)
        sweep.set_antenna(2)
        sweep.set_gain_rf(Gain.VLOW)
        sweep.set_gain_if(12)
        sweep.set_samples_per_packet(512)
        sweep.set_packets_per_block(10)
        sweep.set_dwell(1, 250)
        sweep.set_trigger_type(1)
        sweep.set_trigger_level(2_410_000_000, 2_420_000_000, -45)
        assert instrument.commands == [
            "SWEEP:ENTRY:FREQ:CENTER 2400000000 Hz, 2500000000 Hz",
            "SWEEP:ENTRY:FREQ:SHIFT 250000.000000 Hz",
            "SWEEP:ENTRY:FREQ:STEP 5000000 Hz",
            "SWEEP:ENTRY:DECIMATION 32",
            "SWEEP:ENTRY:ANTENNA 2",
            "SWEEP:ENTRY:GAIN:RF VLOW",
            "SWEEP:ENTRY:GAIN:IF 12",
            "SWEEP:ENTRY:SPPACKET 512",
            "SWEEP:ENTRY:PPBLOCK 10",
            "SWEEP:ENTRY:DWELL 1,250",
            "SWEEP:ENTRY:TRIGGER:TYPE LEVEL",
            "SWEEP:ENTRY:TRIGGER:LEVEL 2410000000,2420000000,-45",
        ]

    def test_getters(self, wsa, instrument):
        instrument.replies.update({
            "SWEEP:ENTRY:FREQ:CENTER?": "2400000000,2500000000",
            "SWEEP:ENTRY:DWELL?": "2,100",
            "SWEEP:ENTRY:TRIGGER:TYPE?": "NONE",
            "SWEEP:ENTRY:DECIMATION?": "0",
            "SWEEP:ENTRY:GAIN:RF?": "LOW",
        })
        assert wsa.sweep.get_freq() == (2_400_000_000, 2_500_000_000)
        assert wsa.sweep.get_dwell() == (2, 100)
        assert wsa.sweep.get_trigger_type() == 0
        assert wsa.sweep.get_decimation() == 0
        assert wsa.sweep.get_gain_rf() is Gain.LOW

    @pytest.mark.parametrize("reply, enabled", [
        ("level", 1), ("Level", 1), (" none ", 0), ("None", 0),
    ])
    def test_trigger_type_any_case(self, wsa, instrument, reply, enabled):
        instrument.replies["SWEEP:ENTRY:TRIGGER:TYPE?"] = reply
        assert wsa.sweep.get_trigger_type() == enabled

    def test_invalid_values_send_nothing(self, wsa, instrument):
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_decimation(8)
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_dwell(-1, 0)
        with pytest.raises(OutOfRangeError):
            wsa.sweep.set_trigger_type(2)
        assert instrument.commands == []

    def test_rfe0440_rejects_rfe_settings(self, wsa_rfe0440, instrument):
        with pytest.raises(InvalidRFESettingError):
            wsa_rfe0440.sweep.set_antenna(1)
        with pytest.raises(InvalidRFESettingError):
            wsa_rfe0440.sweep.set_gain_if(0)
        assert instrument.commands == []

    def test_entry_apply_validates_first(self, wsa, instrument):
        entry = SweepEntry(start_freq=2_400_000_000, stop_freq=2_500_000_000,
                           samples_per_packet=100)
        with pytest.raises(OutOfRangeError):
            wsa.sweep.entry_apply(entry)
        assert instrument.commands == []

    def test_entry_apply(self, wsa, instrument):
        entry = SweepEntry(start_freq=2_400_000_000, stop_freq=2_500_000_000,
                           fstep=10_000_000, gain_rf=Gain.MED)
        wsa.sweep.entry_apply(entry)
        wsa.sweep.entry_save()
        saved = wsa.sweep.entry_read(1)
        assert (saved.start_freq, saved.stop_freq) == (2_400_000_000, 2_500_000_000)
        assert "SWEEP:ENTRY:GAIN:RF MED" in instrument.commands
        assert "SWEEP:ENTRY:TRIGGER:TYPE NONE" in instrument.commands

    def test_entry_apply_rfe0440_skips_rfe_settings(self, wsa_rfe0440, instrument):
        entry = SweepEntry(start_freq=2_400_000_000, stop_freq=2_500_000_000)
        wsa_rfe0440.sweep.entry_apply(entry)
        assert not any(c.startswith("SWEEP:ENTRY:ANTENNA") for c in instrument.commands)
        assert not any(c.startswith("SWEEP:ENTRY:GAIN:IF") for c in instrument.commands)
