"""Mixers: volume control either in software or on a device."""

from __future__ import annotations

import abc
import logging
from copy import copy
from dataclasses import dataclass, field
from typing import Callable, Protocol

from respotplay.volume import VolumeCtrl

logger = logging.getLogger(__name__)


class _VolumeGetter(Protocol):
    def attenuation_factor(self) -> float: ...


@dataclass
class MixerConfig:
    """Which mixer device and control to use, and the volume curve."""

    device: str = "default"
    control: str = "PCM"
    index: int = 0
    volume_ctrl: VolumeCtrl = field(default_factory=VolumeCtrl)


class NoOpVolume:
    """Soft volume that leaves samples untouched."""

    def attenuation_factor(self) -> float:
        return 1.0


class Mixer(abc.ABC):
    """A volume control taking volumes in 0..=65535."""

    NAME: str

    @abc.abstractmethod
    def volume(self) -> int:
        """Return the current volume."""

    @abc.abstractmethod
    def set_volume(self, volume: int) -> None:
        """Set the volume."""

    def get_soft_volume(self) -> _VolumeGetter:
        """Return the factor the player multiplies samples by."""
        return NoOpVolume()


class _SharedVolume:
    __slots__ = ("value",)

    def __init__(self, value: float) -> None:
        self.value = value


class SoftVolume:
    """Live view of a software mixer's attenuation."""

    def __init__(self, shared: _SharedVolume) -> None:
        self._shared = shared

    def attenuation_factor(self) -> float:
        return self._shared.value


class SoftMixer(Mixer):
    """Mixer that scales samples in software."""

    NAME = "softvol"

    def __init__(self, config: MixerConfig | None = None) -> None:
        config = config if config is not None else MixerConfig()
        self.volume_ctrl = copy(config.volume_ctrl)
        logger.info("Mixing with softvol and volume control: %r", self.volume_ctrl)
        self._shared = _SharedVolume(0.5)

    def volume(self) -> int:
        return self.volume_ctrl.from_mapped(self._shared.value)

    def set_volume(self, volume: int) -> None:
        self._shared.value = self.volume_ctrl.to_mapped(volume)

    def get_soft_volume(self) -> SoftVolume:
        return SoftVolume(self._shared)


MixerBuilder = Callable[[MixerConfig], Mixer]

MIXERS: tuple[tuple[str, MixerBuilder], ...] = (
    (SoftMixer.NAME, SoftMixer),  # default goes first
)


def find(name: str | None) -> MixerBuilder | None:
    """Return the mixer builder called ``name``, or the default one for None."""
    if name is None:
        return MIXERS[0][1] if MIXERS else None
    return next((builder for mixer_name, builder in MIXERS if mixer_name == name), None)