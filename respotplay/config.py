"""Playback constants and player configuration."""

from __future__ import annotations

import enum
from dataclasses import dataclass

SAMPLE_RATE = 44100
NUM_CHANNELS = 2
SAMPLES_PER_SECOND = SAMPLE_RATE * NUM_CHANNELS
PAGES_PER_MS = SAMPLE_RATE / 1000.0
MS_PER_PAGE = 1000.0 / SAMPLE_RATE


class Bitrate(enum.Enum):
    """Stream bitrate in kbit/s."""

    BITRATE_96 = 96
    BITRATE_160 = 160
    BITRATE_320 = 320

    @classmethod
    def parse(cls, s: str) -> "Bitrate":
        """Parse "96", "160" or "320"."""
        for member in cls:
            if s == str(member.value):
                return member
        raise ValueError(f"invalid bitrate: {s!r}")


class AudioFormat(enum.Enum):
    """PCM sample format written to an audio sink."""

    F64 = "F64"
    F32 = "F32"
    S32 = "S32"
    S24 = "S24"
    S24_3 = "S24_3"
    S16 = "S16"

    @classmethod
    def parse(cls, s: str) -> "AudioFormat":
        """Parse a format name, ignoring case."""
        try:
            return cls(s.upper())
        except ValueError:
            raise ValueError(f"invalid audio format: {s!r}") from None

    def size(self) -> int:
        """Size in bytes of one sample in this format."""
        return _FORMAT_SIZES[self]


# S32 and S24 are both stored in a 32-bit word.
_FORMAT_SIZES = {
    AudioFormat.F64: 8,
    AudioFormat.F32: 4,
    AudioFormat.S32: 4,
    AudioFormat.S24: 4,
    AudioFormat.S24_3: 3,
    AudioFormat.S16: 2,
}


class NormalisationType(enum.Enum):
    """Which replay gain values volume normalisation uses."""

    ALBUM = "album"
    TRACK = "track"
    AUTO = "auto"

    @classmethod
    def parse(cls, s: str) -> "NormalisationType":
        """Parse a normalisation type, ignoring case."""
        try:
            return cls(s.lower())
        except ValueError:
            raise ValueError(f"invalid normalisation type: {s!r}") from None


class NormalisationMethod(enum.Enum):
    """How volume normalisation is applied."""

    BASIC = "basic"
    DYNAMIC = "dynamic"

    @classmethod
    def parse(cls, s: str) -> "NormalisationMethod":
        """Parse a normalisation method, ignoring case."""
        try:
            return cls(s.lower())
        except ValueError:
            raise ValueError(f"invalid normalisation method: {s!r}") from None


@dataclass
class PlayerConfig:
    """Settings for the player.

    ``ditherer`` is the name of the ditherer to build lazily, or None for no
    dithering; the attack and release times are given in milliseconds.
    """

    bitrate: Bitrate = Bitrate.BITRATE_160
    gapless: bool = True
    passthrough: bool = False

    normalisation: bool = False
    normalisation_type: NormalisationType = NormalisationType.AUTO
    normalisation_method: NormalisationMethod = NormalisationMethod.DYNAMIC
    normalisation_pregain_db: float = 0.0
    normalisation_threshold_dbfs: float = -2.0
    normalisation_attack_ms: float = 5.0
    normalisation_release_ms: float = 100.0
    normalisation_knee_db: float = 5.0

    ditherer: str | None = "tpdf"