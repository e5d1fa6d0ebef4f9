"""Dither noise generators used before requantising samples to integers.

Triangular dithering is the default for integer formats. Gaussian dithering
sounds more like tape hiss. High-passed dithering moves the noise up in
frequency and suits only DACs without noise shaping. Dithering is pointless
on S32 and F32.
"""

from __future__ import annotations

import abc
import random
from typing import Callable, ClassVar

from respotplay.config import NUM_CHANNELS


class Ditherer(abc.ABC):
    """Source of dither noise, in units of the least significant bit."""

    NAME: ClassVar[str]

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    @property
    def name(self) -> str:
        return self.NAME

    @abc.abstractmethod
    def noise(self) -> float:
        """Return the next noise value."""

    def __str__(self) -> str:
        return self.NAME


DithererBuilder = Callable[[], Ditherer]


class TriangularDitherer(Ditherer):
    """Triangular noise, 2 LSB peak-to-peak."""

    NAME = "tpdf"

    def noise(self) -> float:
        return self._rng.triangular(-1.0, 1.0, 0.0)


class GaussianDitherer(Ditherer):
    """Gaussian noise with 1/2 LSB RMS."""

    NAME = "gpdf"

    def noise(self) -> float:
        return self._rng.gauss(0.0, 0.5)


class HighPassDitherer(Ditherer):
    """Uniform noise high-passed per channel, alternating between channels."""

    NAME = "tpdf_hp"

    def __init__(self, rng: random.Random | None = None) -> None:
        super().__init__(rng)
        self._active_channel = 0
        self._previous_noises = [0.0] * NUM_CHANNELS

    def noise(self) -> float:
        # 1 LSB +/- 1 LSB (previous) = 2 LSB
        new_noise = self._rng.uniform(-0.5, 0.5)
        high_passed = new_noise - self._previous_noises[self._active_channel]
        self._previous_noises[self._active_channel] = new_noise
        self._active_channel ^= 1
        return high_passed


_DITHERERS: dict[str, type[Ditherer]] = {
    cls.NAME: cls for cls in (TriangularDitherer, GaussianDitherer, HighPassDitherer)
}


def find_ditherer(name: str | None) -> type[Ditherer] | None:
    """Return the ditherer class called ``name``, or None if there is none."""
    if name is None:
        return None
    return _DITHERERS.get(name)