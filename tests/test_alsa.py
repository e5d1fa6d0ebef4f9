import copy

import pytest

from respotplay.alsa import (
    MAX_BUFFER,
    AlsaError,
    AlsaErrorKind,
    AlsaSink,
    DeviceHint,
    HwParams,
    Pcm,
    choose_buffer_size,
    choose_period_size,
    to_sink_error,
)
from respotplay.audio_backend import (
    SinkConnectionRefused,
    SinkInvalidParams,
    SinkNotConnected,
    SinkWriteError,
)
from respotplay.config import AudioFormat


class FakeHwParams(HwParams):
    def __init__(self, buffer_range=(0, 100000), period_range=(0, 100000),
                 formats=None, fail=()):
        self.buffer_range = buffer_range
        self.period_range = period_range
        self.formats = set(formats) if formats is not None else set(AudioFormat)
        self.fail = set(fail)
        self.buffer_size = None
        self.period_size = None
        self.is_clone = False

    def _check(self, name):
        if name in self.fail:
            raise OSError(name)

    def set_access_interleaved(self):
        self._check("access")

    def set_format(self, audio_format):
        self._check("format")
        self._require_format(audio_format)

    def _require_format(self, audio_format):
        if audio_format not in self.formats:
            raise OSError("format")

    # The interface method is named like a test; bind it without a def.
    test_format = _require_format

    def set_rate(self, rate):
        self._check("rate")

    def set_channels(self, channels):
        self._check("channels")

    def get_buffer_size_min(self):
        return self.buffer_range[0]

    def get_buffer_size_max(self):
        return self.buffer_range[1]

    def set_buffer_size_near(self, frames):
        self.buffer_size = frames
        return frames

    def get_period_size_min(self):
        return self.period_range[0]

    def get_period_size_max(self):
        return self.period_range[1]

    def set_period_size_near(self, frames):
        self.period_size = frames
        return frames

    def get_buffer_size(self):
        return self.buffer_size if self.buffer_size is not None else 8

    def get_period_size(self):
        return self.period_size if self.period_size is not None else 2

    def copy(self):
        clone = copy.copy(self)
        clone.is_clone = True
        return clone


class FakePcm(Pcm):
    def __init__(self, hwp, bytes_per_frame=4):
        self.hwp = hwp
        self.bytes_per_frame = bytes_per_frame
        self.applied = None
        self.threshold = None
        self.written = []
        self.write_failures = 0
        self.recover_fails = False
        self.recovered = []
        self.drained = False
        self.drain_fails = False

    def hw_params_any(self):
        return self.hwp

    def apply_hw_params(self, params):
        self.applied = params

    def hw_params_current(self):
        return self.applied

    def set_start_threshold(self, frames):
        self.threshold = frames

    def frames_to_bytes(self, frames):
        return frames * self.bytes_per_frame

    def writei(self, data):
        if self.write_failures:
            self.write_failures -= 1
            raise OSError("underrun")
        self.written.append(bytes(data))

    def try_recover(self, error):
        self.recovered.append(error)
        if self.recover_fails:
            raise OSError("unrecoverable")

    def drain(self):
        if self.drain_fails:
            raise OSError("drain")
        self.drained = True


def make_sink(pcm, audio_format=AudioFormat.S16):
    return AlsaSink("hw:0", audio_format, opener=lambda name: pcm)


def small_sink():
    # Period range too small for the desired sizes, so device defaults are used.
    pcm = FakePcm(FakeHwParams(period_range=(0, 1)), bytes_per_frame=2)
    sink = make_sink(pcm)
    sink.start()
    return sink, pcm


def test_choose_buffer_size_prefers_largest():
    assert choose_buffer_size(0, 100000) == MAX_BUFFER
    assert choose_buffer_size(5000, 10000) == 10000


def test_choose_buffer_size_rejects_bad_ranges():
    assert choose_buffer_size(100, 100) == 0
    assert choose_buffer_size(30000, 40000) == 0
    assert choose_buffer_size(0, 1000) == 0


def test_choose_period_size():
    assert choose_period_size(MAX_BUFFER, 0, 100000) == 5512
    assert choose_period_size(MAX_BUFFER, 3000, 4000) == 4000
    assert choose_period_size(MAX_BUFFER, 100, 200) == 0
    assert choose_period_size(0, 0, 100000) == 0


@pytest.mark.parametrize(
    "kind,expected",
    [
        (AlsaErrorKind.DRAIN_FAILURE, SinkWriteError),
        (AlsaErrorKind.ON_WRITE, SinkWriteError),
        (AlsaErrorKind.PCM_SET_UP, SinkConnectionRefused),
        (AlsaErrorKind.HW_PARAMS, SinkInvalidParams),
    ],
)
def test_to_sink_error_mapping(kind, expected):
    error = to_sink_error(AlsaError(kind, "x"))
    assert type(error) is expected
    assert "<AlsaSink> x" in str(error)


def test_to_sink_error_not_connected():
    error = to_sink_error(AlsaError(AlsaErrorKind.NOT_CONNECTED))
    assert type(error) is SinkNotConnected
    assert "<AlsaSink>" in str(error)


def test_to_sink_error_keeps_message():
    error = to_sink_error(AlsaError(AlsaErrorKind.PCM, "PCM, boom"))
    assert "<AlsaSink> PCM, boom" in str(error)


def test_start_configures_desired_sizes():
    pcm = FakePcm(FakeHwParams())
    sink = make_sink(pcm)
    sink.start()
    assert pcm.applied is pcm.hwp
    assert pcm.hwp.buffer_size == MAX_BUFFER
    assert pcm.threshold == pcm.hwp.buffer_size - pcm.hwp.period_size
    assert sink.period_capacity == pcm.frames_to_bytes(pcm.hwp.period_size)


def test_start_falls_back_to_defaults():
    sink, pcm = small_sink()
    assert pcm.applied.is_clone
    assert sink.period_capacity == 4


def test_write_bytes_in_whole_periods_and_stop_pads():
    sink, pcm = small_sink()
    sink.write_bytes(b"abcdefghij")
    assert pcm.written == [b"abcd", b"efgh"]
    sink.stop()
    assert pcm.written[-1] == b"ij\x00\x00"
    assert pcm.drained


def test_stop_twice_is_not_connected():
    sink, _ = small_sink()
    sink.stop()
    with pytest.raises(SinkNotConnected):
        sink.stop()


def test_write_before_start_is_not_connected():
    sink = make_sink(FakePcm(FakeHwParams()))
    with pytest.raises(SinkNotConnected):
        sink.write_bytes(b"abc")


def test_open_failure_is_connection_refused():
    def opener(name):
        raise OSError("busy")

    sink = AlsaSink("hw:9", opener=opener)
    with pytest.raises(SinkConnectionRefused, match="hw:9"):
        sink.start()


def test_unsupported_format_is_invalid_params():
    pcm = FakePcm(FakeHwParams(formats={AudioFormat.S16}))
    sink = make_sink(pcm, AudioFormat.F64)
    with pytest.raises(SinkInvalidParams, match="Unsupported Format"):
        sink.start()


def test_write_recovers_from_failure():
    sink, pcm = small_sink()
    pcm.write_failures = 1
    sink.write_bytes(b"abcdefgh")
    assert len(pcm.recovered) == 1
    assert pcm.written == [b"efgh"]


def test_write_failure_without_recovery():
    sink, pcm = small_sink()
    pcm.write_failures = 1
    pcm.recover_fails = True
    with pytest.raises(SinkWriteError):
        sink.write_bytes(b"abcd")


def test_drain_failure_is_write_error():
    sink, pcm = small_sink()
    pcm.drain_fails = True
    with pytest.raises(SinkWriteError, match="Drain"):
        sink.stop()


def test_device_listing_exits(capsys):
    pcm = FakePcm(FakeHwParams(formats={AudioFormat.S16, AudioFormat.F32}))
    hints = [DeviceHint("hw:test", "Test card"), DeviceHint("capture", playback=False)]
    with pytest.raises(SystemExit) as info:
        AlsaSink("?", opener=lambda name: pcm, hints=lambda: hints)
    assert info.value.code == 0
    out = capsys.readouterr().out
    assert "hw:test" in out
    assert "S16 F32" in out
    assert "capture" not in out