"""Conversion of normalised float samples to output sample formats."""

from __future__ import annotations

import logging
import math
import sys
from array import array
from typing import Iterable

from respotplay.dither import DithererBuilder

logger = logging.getLogger(__name__)

_I16 = (-(2**15), 2**15 - 1)
_I32 = (-(2**31), 2**31 - 1)


def _round_half_away(value: float) -> float:
    if not math.isfinite(value):
        return value
    magnitude = abs(value)
    rounded = math.floor(magnitude)
    if magnitude - rounded >= 0.5:
        rounded += 1
    return math.copysign(rounded, value)


def _saturate(value: float, bounds: tuple[int, int]) -> int:
    if math.isnan(value):
        return 0
    low, high = bounds
    return int(min(max(value, low), high))


class Converter:
    """Converts float samples in -1.0..=1.0, optionally dithering first."""

    # Multiply by 0x80000000 and saturate at the bounds of a 32-bit integer.
    SCALE_S32 = 2147483648.0
    # Multiply by 0x800000 and saturate at the bounds of a 24-bit integer.
    SCALE_S24 = 8388608.0
    # Multiply by 0x8000 and saturate at the bounds of a 16-bit integer; this
    # matches the scaling of the reference Vorbis encoder.
    SCALE_S16 = 32768.0

    def __init__(self, ditherer_builder: DithererBuilder | None = None) -> None:
        if ditherer_builder is None:
            self._ditherer = None
        else:
            self._ditherer = ditherer_builder()
            logger.info("Converting with ditherer: %s", self._ditherer.name)

    def scale(self, sample: float, factor: float) -> float:
        """Scale a sample, add dither noise if any, and round to nearest."""
        value = sample * factor
        if self._ditherer is not None:
            value += self._ditherer.noise()
        return _round_half_away(value)

    def clamping_scale(self, sample: float, factor: float) -> float:
        """Scale and clamp to the two's complement range of ``factor``.

        Needed for samples packed in a wider word, where dithering could
        otherwise overflow into the padding byte.
        """
        value = self.scale(sample, factor)
        low = -factor
        high = factor - 1.0
        if value < low:
            return low
        if value > high:
            return high
        return value

    def f64_to_f32(self, samples: Iterable[float]) -> list[float]:
        """Round samples to single precision."""
        return array("f", samples).tolist()

    def f64_to_s32(self, samples: Iterable[float]) -> list[int]:
        return [_saturate(self.scale(s, self.SCALE_S32), _I32) for s in samples]

    def f64_to_s24(self, samples: Iterable[float]) -> list[int]:
        """24-bit samples, each to be stored in a 32-bit word."""
        return [_saturate(self.clamping_scale(s, self.SCALE_S24), _I32) for s in samples]

    def f64_to_s24_3(self, samples: Iterable[float]) -> bytes:
        """24-bit samples packed as three bytes each, in native byte order."""
        return b"".join(
            value.to_bytes(3, sys.byteorder, signed=True) for value in self.f64_to_s24(samples)
        )

    def f64_to_s16(self, samples: Iterable[float]) -> list[int]:
        return [_saturate(self.scale(s, self.SCALE_S16), _I16) for s in samples]