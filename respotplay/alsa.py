"""ALSA PCM sink, written against an abstract PCM device interface."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from respotplay.audio_backend import (
    Sink,
    SinkConnectionRefused,
    SinkError,
    SinkInvalidParams,
    SinkNotConnected,
    SinkWriteError,
)
from respotplay.config import NUM_CHANNELS, SAMPLE_RATE, AudioFormat

logger = logging.getLogger(__name__)

MAX_BUFFER = SAMPLE_RATE // 2
MIN_BUFFER = SAMPLE_RATE // 10
ZERO_FRAMES = 0

MAX_PERIOD_DIVISOR = 4
MIN_PERIOD_DIVISOR = 10

_LISTED_FORMATS = (
    AudioFormat.S16,
    AudioFormat.S24,
    AudioFormat.S24_3,
    AudioFormat.S32,
    AudioFormat.F32,
    AudioFormat.F64,
)

_RULE = "\t------------------------------------------------------\n"


class AlsaErrorKind(enum.Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    UNSUPPORTED_CHANNEL_COUNT = "unsupported_channel_count"
    UNSUPPORTED_SAMPLE_RATE = "unsupported_sample_rate"
    UNSUPPORTED_ACCESS_TYPE = "unsupported_access_type"
    PCM_SET_UP = "pcm_set_up"
    DRAIN_FAILURE = "drain_failure"
    ON_WRITE = "on_write"
    HW_PARAMS = "hw_params"
    SW_PARAMS = "sw_params"
    PCM = "pcm"
    PARSING = "parsing"
    NOT_CONNECTED = "not_connected"


class AlsaError(Exception):
    """A failure talking to an ALSA PCM device."""

    def __init__(self, kind: AlsaErrorKind, message: str = "") -> None:
        text = f"<AlsaSink> {message}" if message else "<AlsaSink>"
        super().__init__(text)
        self.kind = kind


_SINK_ERRORS: dict[AlsaErrorKind, type[SinkError]] = {
    AlsaErrorKind.DRAIN_FAILURE: SinkWriteError,
    AlsaErrorKind.ON_WRITE: SinkWriteError,
    AlsaErrorKind.PCM_SET_UP: SinkConnectionRefused,
    AlsaErrorKind.NOT_CONNECTED: SinkNotConnected,
}


def to_sink_error(error: AlsaError) -> SinkError:
    """The sink error reported for an ALSA error."""
    return _SINK_ERRORS.get(error.kind, SinkInvalidParams)(str(error))


class HwParams(abc.ABC):
    """Hardware parameters of a PCM device; failures raise OSError."""

    @abc.abstractmethod
    def set_access_interleaved(self) -> None: ...

    @abc.abstractmethod
    def set_format(self, audio_format: AudioFormat) -> None: ...

    @abc.abstractmethod
    def test_format(self, audio_format: AudioFormat) -> None:
        """Raise OSError if the format is not supported."""

    @abc.abstractmethod
    def set_rate(self, rate: int) -> None:
        """Set the sample rate, or the nearest one supported."""

    @abc.abstractmethod
    def set_channels(self, channels: int) -> None: ...

    @abc.abstractmethod
    def get_buffer_size_min(self) -> int: ...

    @abc.abstractmethod
    def get_buffer_size_max(self) -> int: ...

    @abc.abstractmethod
    def set_buffer_size_near(self, frames: int) -> int:
        """Set the buffer size nearest ``frames``; return what was set."""

    @abc.abstractmethod
    def get_period_size_min(self) -> int: ...

    @abc.abstractmethod
    def get_period_size_max(self) -> int: ...

    @abc.abstractmethod
    def set_period_size_near(self, frames: int) -> int:
        """Set the period size nearest ``frames``; return what was set."""

    @abc.abstractmethod
    def get_buffer_size(self) -> int: ...

    @abc.abstractmethod
    def get_period_size(self) -> int: ...

    @abc.abstractmethod
    def copy(self) -> "HwParams":
        """An independent copy of these parameters."""


class Pcm(abc.ABC):
    """An open playback PCM device; failures raise OSError."""

    @abc.abstractmethod
    def hw_params_any(self) -> HwParams:
        """Parameters covering every configuration the device allows."""

    @abc.abstractmethod
    def apply_hw_params(self, params: HwParams) -> None: ...

    @abc.abstractmethod
    def hw_params_current(self) -> HwParams: ...

    @abc.abstractmethod
    def set_start_threshold(self, frames: int) -> None:
        """Set the software start threshold and apply it."""

    @abc.abstractmethod
    def frames_to_bytes(self, frames: int) -> int: ...

    @abc.abstractmethod
    def writei(self, data: bytes) -> None:
        """Write interleaved frames."""

    @abc.abstractmethod
    def try_recover(self, error: OSError) -> None:
        """Recover from a failed write, or raise OSError."""

    @abc.abstractmethod
    def drain(self) -> None: ...


@dataclass(frozen=True)
class DeviceHint:
    """A PCM device name as listed by the sound system."""

    name: str | None
    description: str | None = None
    playback: bool = True


PcmOpener = Callable[[str], Pcm]


def _largest_in(low: int, high: int, range_min: int, range_max: int) -> int:
    candidate = min(high, range_max)
    return candidate if candidate >= max(low, range_min) else ZERO_FRAMES


def choose_buffer_size(min_size: int, max_size: int) -> int:
    """The largest desired buffer size the device's range allows, or 0."""
    if min_size >= max_size:
        logger.debug(
            "The device's min reported Buffer size was greater than or equal "
            "to it's max reported Buffer size."
        )
        return ZERO_FRAMES
    size = _largest_in(MIN_BUFFER, MAX_BUFFER, min_size, max_size)
    if size == ZERO_FRAMES:
        logger.debug("No Desired Buffer size in range reported by the device.")
    return size


def choose_period_size(buffer_size: int, min_size: int, max_size: int) -> int:
    """The largest desired period size for ``buffer_size`` the device allows, or 0."""
    if buffer_size == ZERO_FRAMES:
        return ZERO_FRAMES
    max_period = buffer_size // MAX_PERIOD_DIVISOR
    min_period = buffer_size // MIN_PERIOD_DIVISOR
    if not (min_size < max_size and min_period < max_period):
        logger.debug(
            "The device's min reported Period size was greater than or equal to it's "
            "max reported Period size, or the desired min Period size was greater "
            "than or equal to the desired max Period size."
        )
        return ZERO_FRAMES
    size = _largest_in(min_period, max_period, min_size, max_size)
    if size == ZERO_FRAMES:
        logger.debug("No Desired Period size in range reported by the device.")
    return size


def _query(getter: Callable[[], int], what: str) -> int:
    try:
        return getter()
    except OSError as exc:
        logger.debug("Error getting the device's %s: %s", what, exc)
        return ZERO_FRAMES


def _set_near(setter: Callable[[int], int], size: int, what: str) -> int:
    logger.debug("Desired Frames per %s: %d", what, size)
    try:
        return setter(size)
    except OSError as exc:
        logger.debug("Error setting the device's %s size: %s", what, exc)
        return ZERO_FRAMES


def _configure(hwp: HwParams, device: str, audio_format: AudioFormat) -> None:
    steps = (
        (hwp.set_access_interleaved, (), AlsaErrorKind.UNSUPPORTED_ACCESS_TYPE,
         f"Device {device} Unsupported Access Type RWInterleaved"),
        (hwp.set_format, (audio_format,), AlsaErrorKind.UNSUPPORTED_FORMAT,
         f"Device {device} Unsupported Format {audio_format.name}"),
        (hwp.set_rate, (SAMPLE_RATE,), AlsaErrorKind.UNSUPPORTED_SAMPLE_RATE,
         f"Device {device} Unsupported Sample Rate {SAMPLE_RATE}"),
        (hwp.set_channels, (NUM_CHANNELS,), AlsaErrorKind.UNSUPPORTED_CHANNEL_COUNT,
         f"Device {device} Unsupported Channel Count {NUM_CHANNELS}"),
    )
    for action, args, kind, message in steps:
        try:
            action(*args)
        except OSError as exc:
            raise AlsaError(kind, f"{message}, {exc}") from exc


def _open_device(opener: PcmOpener, device: str, audio_format: AudioFormat) -> tuple[Pcm, int]:
    try:
        pcm = opener(device)
    except OSError as exc:
        raise AlsaError(
            AlsaErrorKind.PCM_SET_UP,
            f"Device {device} May be Invalid, Busy, or Already in Use, {exc}",
        ) from exc

    try:
        hwp = pcm.hw_params_any()
    except OSError as exc:
        raise AlsaError(AlsaErrorKind.HW_PARAMS, f"Hardware, {exc}") from exc

    _configure(hwp, device, audio_format)
    # Keep a copy in a known good state in case setting sizes fails.
    hwp_clone = hwp.copy()

    buf_max = _query(hwp.get_buffer_size_max, "max Buffer size")
    buf_min = _query(hwp.get_buffer_size_min, "min Buffer size")
    desired = choose_buffer_size(buf_min, buf_max)
    buffer_size = (
        _set_near(hwp.set_buffer_size_near, desired, "Buffer")
        if desired != ZERO_FRAMES else ZERO_FRAMES
    )
    if buffer_size == ZERO_FRAMES:
        logger.debug("Desired Buffer Frame range: %d - %d", MIN_BUFFER, MAX_BUFFER)
        logger.debug("Actual Buffer Frame range as reported by the device: %d - %d",
                     buf_min, buf_max)

    period_size = ZERO_FRAMES
    if buffer_size != ZERO_FRAMES:
        per_max = _query(hwp.get_period_size_max, "max Period size")
        per_min = _query(hwp.get_period_size_min, "min Period size")
        desired = choose_period_size(buffer_size, per_min, per_max)
        if desired != ZERO_FRAMES:
            period_size = _set_near(hwp.set_period_size_near, desired, "Period")
        if period_size == ZERO_FRAMES:
            logger.debug("Buffer size: %d", buffer_size)
            logger.debug("Actual Period Frame range as reported by the device: %d - %d",
                         per_min, per_max)

    chosen = hwp
    if buffer_size == ZERO_FRAMES or period_size == ZERO_FRAMES:
        logger.debug(
            "Failed to set Buffer and/or Period size, falling back to the device's defaults."
        )
        logger.debug("You may experience higher than normal CPU usage and/or audio issues.")
        chosen = hwp_clone

    try:
        pcm.apply_hw_params(chosen)
        current = pcm.hw_params_current()
    except OSError as exc:
        raise AlsaError(AlsaErrorKind.PCM, f"PCM, {exc}") from exc

    # Do not assume the requested sizes were granted.
    try:
        frames_per_period = current.get_period_size()
        frames_per_buffer = current.get_buffer_size()
    except OSError as exc:
        raise AlsaError(AlsaErrorKind.HW_PARAMS, f"Hardware, {exc}") from exc

    try:
        pcm.set_start_threshold(frames_per_buffer - frames_per_period)
    except OSError as exc:
        raise AlsaError(AlsaErrorKind.SW_PARAMS, f"Software, {exc}") from exc

    logger.debug("Actual Frames per Buffer: %d", frames_per_buffer)
    logger.debug("Actual Frames per Period: %d", frames_per_period)

    bytes_per_period = pcm.frames_to_bytes(frames_per_period)
    logger.debug("Period Buffer size in bytes: %d", bytes_per_period)
    return pcm, bytes_per_period


def _supported_formats(opener: PcmOpener, name: str) -> list[str]:
    try:
        hwp = opener(name).hw_params_any()
        hwp.set_access_interleaved()
        hwp.set_rate(SAMPLE_RATE)
        hwp.set_channels(NUM_CHANNELS)
    except OSError:
        return []
    supported = []
    for audio_format in _LISTED_FORMATS:
        try:
            hwp.test_format(audio_format)
        except OSError:
            continue
        supported.append(audio_format.name)
    return supported


def _list_compatible_devices(opener: PcmOpener, hints: Iterable[DeviceHint]) -> None:
    print("\n\n\tCompatible alsa device(s):\n")
    print(_RULE)
    for hint in hints:
        if not hint.playback or hint.name is None:
            continue
        formats = _supported_formats(opener, hint.name)
        if not formats:
            continue
        description = (hint.description or "").replace("\n", "\n\t\t")
        print(f"\tDevice:\n\n\t\t{hint.name}\n")
        print(f"\tDescription:\n\n\t\t{description}\n")
        print(f"\tSupported Format(s):\n\n\t\t{' '.join(formats)}\n")
        print(_RULE)


class AlsaSink(Sink):
    """Writes whole periods of audio to a PCM device."""

    NAME = "alsa"

    def __init__(
        self,
        device: str | None = None,
        audio_format: AudioFormat = AudioFormat.S16,
        *,
        opener: PcmOpener,
        hints: Callable[[], Iterable[DeviceHint]] | None = None,
    ) -> None:
        if device == "?":
            try:
                if hints is None:
                    raise AlsaError(AlsaErrorKind.PARSING,
                                    "Could Not Parse Output Name(s) and/or Description(s)")
                try:
                    found = list(hints())
                except OSError as exc:
                    raise AlsaError(
                        AlsaErrorKind.PARSING,
                        f"Could Not Parse Output Name(s) and/or Description(s), {exc}",
                    ) from exc
                _list_compatible_devices(opener, found)
            except AlsaError as exc:
                logger.error("%s", to_sink_error(exc))
                raise SystemExit(1) from exc
            raise SystemExit(0)

        super().__init__(audio_format)
        logger.info("Using AlsaSink with format: %s", audio_format.name)
        self.device = device if device is not None else "default"
        self._opener = opener
        self._pcm: Pcm | None = None
        self._period_buffer = bytearray()
        self._capacity = 0

    @property
    def period_capacity(self) -> int:
        """Size in bytes of one period."""
        return self._capacity

    def start(self) -> None:
        if self._pcm is not None:
            return
        try:
            pcm, bytes_per_period = _open_device(self._opener, self.device, self.format)
        except AlsaError as exc:
            raise to_sink_error(exc) from exc
        self._pcm = pcm
        if self._capacity != bytes_per_period:
            self._capacity = bytes_per_period
            self._period_buffer = bytearray()
        logger.debug("Period Buffer capacity: %d", self._capacity)

    def stop(self) -> None:
        # Pad the last period with silence and write it before draining.
        self._period_buffer.extend(bytes(self._capacity - len(self._period_buffer)))
        self._write_buf()
        pcm, self._pcm = self._pcm, None
        if pcm is None:
            raise to_sink_error(AlsaError(AlsaErrorKind.NOT_CONNECTED))
        try:
            pcm.drain()
        except OSError as exc:
            raise to_sink_error(
                AlsaError(AlsaErrorKind.DRAIN_FAILURE, f"Failed to Drain PCM Buffer, {exc}")
            ) from exc

    def write_bytes(self, data: bytes) -> None:
        view = memoryview(data)
        start = 0
        while True:
            space = self._capacity - len(self._period_buffer)
            end = start + min(len(view) - start, space)
            self._period_buffer += view[start:end]
            if len(self._period_buffer) == self._capacity:
                self._write_buf()
                if self._capacity == 0:
                    raise SinkInvalidParams("<AlsaSink> Period size is zero")
            if end == len(view):
                return
            start = end

    def _write_buf(self) -> None:
        if self._pcm is None:
            raise to_sink_error(AlsaError(AlsaErrorKind.NOT_CONNECTED))
        try:
            self._pcm.writei(bytes(self._period_buffer))
        except OSError as exc:
            logger.warning(
                "Error writing from AlsaSink buffer to PCM, trying to recover, %s", exc
            )
            try:
                self._pcm.try_recover(exc)
            except OSError as again:
                raise to_sink_error(AlsaError(AlsaErrorKind.ON_WRITE, str(again))) from again
        self._period_buffer.clear()