"""Mixer that drives a hardware or softvol mixer control."""

from __future__ import annotations

import abc
import dataclasses
import logging
import math
from copy import copy

from respotplay.mixer import Mixer, MixerConfig
from respotplay.volume import (
    LogMapping,
    VolumeCtrl,
    VolumeCtrlKind,
    db_to_ratio,
    ratio_to_db,
)

logger = logging.getLogger(__name__)

# In millibel. The reported minimum cannot be relied upon to be mute.
MUTE_MILLIBEL = -9999999
ZERO_MILLIBEL = 0

_EPSILON = 2.220446049250313e-16


def _to_db(millibel: int) -> float:
    return millibel / 100.0


def _from_db(db: float) -> int:
    return math.trunc(round(db * 100.0, 6))


def _div_trunc(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class MixerElement(abc.ABC):
    """A simple mixer control on a sound device.

    Volumes in dB are given in millibel. Methods raise OSError when the
    device refuses a request; ``get_playback_vol_db`` raising OSError marks a
    software (softvol) control.
    """

    @abc.abstractmethod
    def has_playback_switch(self) -> bool: ...

    @abc.abstractmethod
    def get_playback_switch(self) -> int: ...

    @abc.abstractmethod
    def set_playback_switch_all(self, value: int) -> None: ...

    @abc.abstractmethod
    def get_playback_volume_range(self) -> tuple[int, int]: ...

    @abc.abstractmethod
    def get_playback_volume(self) -> int: ...

    @abc.abstractmethod
    def set_playback_volume_all(self, value: int) -> None: ...

    @abc.abstractmethod
    def get_playback_db_range(self) -> tuple[int, int]: ...

    @abc.abstractmethod
    def get_playback_vol_db(self) -> int: ...

    @abc.abstractmethod
    def ask_playback_vol_db(self, raw_volume: int) -> int: ...

    @abc.abstractmethod
    def set_playback_db_all(self, millibel: int) -> None:
        """Set the volume in millibel, rounding down to a supported step."""

    @abc.abstractmethod
    def get_softvol_db_range(self) -> tuple[int, int]:
        """The dB range of a softvol control, from its control interface."""


class AlsaMixer(Mixer):
    """Mixer on a device's mixer control."""

    NAME = "alsa"

    def __init__(self, config: MixerConfig, element: MixerElement) -> None:
        logger.info(
            "Mixing with Alsa and volume control: %r for device: %s with mixer control: %s,%s",
            config.volume_ctrl, config.device, config.control, config.index,
        )
        config = dataclasses.replace(config, volume_ctrl=copy(config.volume_ctrl))
        self.element = element

        has_switch = element.has_playback_switch()
        try:
            element.get_playback_vol_db()
            is_softvol = False
        except OSError:
            is_softvol = True

        raw_min, raw_max = element.get_playback_volume_range()
        raw_range = abs(raw_max - raw_min)

        if is_softvol:
            min_millibel, max_millibel = element.get_softvol_db_range()
            # The reported maximum can be off by rounding: e.g. -60..0 dB in
            # 0..255 steps of 0.23 dB reports a maximum of -1.35 dB.
            if max_millibel != ZERO_MILLIBEL:
                logger.warning("Alsa mixer reported maximum dB != 0, which is suspect")
                reported_step = _div_trunc(max_millibel - min_millibel, raw_range)
                assumed_step = _div_trunc(ZERO_MILLIBEL - min_millibel, raw_range)
                if reported_step == assumed_step:
                    logger.warning(
                        "Alsa rounding error detected, setting maximum dB to %.2f instead of %.2f",
                        _to_db(ZERO_MILLIBEL), _to_db(max_millibel),
                    )
                    max_millibel = ZERO_MILLIBEL
                else:
                    logger.warning("Please manually set `--volume-range` if this is incorrect")
        else:
            min_millibel, max_millibel = element.get_playback_db_range()
            # Some controls report mute as their minimum instead of the
            # lowest real setting.
            if min_millibel == MUTE_MILLIBEL and raw_min < raw_max:
                logger.debug("Alsa mixer reported minimum dB as mute, trying workaround")
                min_millibel = element.ask_playback_vol_db(raw_min + 1)

        min_db = _to_db(min_millibel)
        max_db = _to_db(max_millibel)
        db_range = abs(max_db - min_db)

        # Follow the control's dB range unless one was set explicitly.
        if not config.volume_ctrl.range_ok():
            if db_range > 100.0:
                logger.debug("Alsa mixer reported dB range > 100, which is suspect")
                logger.warning("Please manually set `--volume-range` if this is incorrect")
            config.volume_ctrl.set_db_range(db_range)
        else:
            override = config.volume_ctrl.db_range
            logger.debug(
                "Alsa dB volume range was detected as %s but overridden as %s", db_range, override
            )
            db_range = override

        # Hardware controls with a small range use the dB scale linearly.
        use_linear_in_db = False
        if not is_softvol and db_range <= 24.0:
            use_linear_in_db = True
            config.volume_ctrl = VolumeCtrl(VolumeCtrlKind.LINEAR)

        logger.debug("Alsa mixer control is softvol: %s", is_softvol)
        logger.debug("Alsa support for playback (mute) switch: %s", has_switch)
        logger.debug("Alsa raw volume range: [%d..%d] (%d)", raw_min, raw_max, raw_range)
        logger.debug(
            "Alsa dB volume range: [%.2f..%.2f] (%.2f)", min_db, max_db, db_range
        )
        logger.debug("Alsa forcing linear dB mapping: %s", use_linear_in_db)

        self.config = config
        self.min = raw_min
        self.max = raw_max
        self.range = raw_range
        self.min_db = min_db
        self.max_db = max_db
        self.db_range = db_range
        self.has_switch = has_switch
        self.is_softvol = is_softvol
        self.use_linear_in_db = use_linear_in_db

    def volume(self) -> int:
        if self.switched_off():
            return 0

        if self.is_softvol:
            raw_volume = self.element.get_playback_volume()
            mapped = raw_volume / self.range - self.min
        else:
            db_volume = _to_db(self.element.get_playback_vol_db())
            if self.use_linear_in_db:
                mapped = (db_volume - self.min_db) / self.db_range
            elif abs(db_volume - _to_db(MUTE_MILLIBEL)) <= _EPSILON:
                mapped = 0.0
            else:
                mapped = db_to_ratio(db_volume - self.max_db)

        # Undo the antilog applied in set_volume.
        if mapped > 0.0 and self.is_some_linear():
            mapped = LogMapping.linear_to_mapped(mapped, self.db_range)

        return self.config.volume_ctrl.from_mapped(mapped)

    def set_volume(self, volume: int) -> None:
        if self.has_switch:
            if volume == 0:
                logger.debug("Disabling playback (setting mute) on Alsa")
                self.element.set_playback_switch_all(0)
            elif self.switched_off():
                logger.debug("Enabling playback (unsetting mute) on Alsa")
                self.element.set_playback_switch_all(1)

        mapped = self.config.volume_ctrl.to_mapped(volume)

        # Softvol and the dB scale both map linear settings onto a log curve,
        # so counteract that with an antilog.
        if mapped > 0.0 and self.is_some_linear():
            mapped = LogMapping.mapped_to_linear(mapped, self.db_range)

        if self.is_softvol:
            scaled = math.trunc(self.min + mapped * self.range)
            logger.debug("Setting Alsa raw volume to %d", scaled)
            self.element.set_playback_volume_all(scaled)
            return

        if self.use_linear_in_db:
            db_volume = self.min_db + mapped * self.db_range
        elif volume == 0:
            db_volume = _to_db(MUTE_MILLIBEL)
        else:
            db_volume = ratio_to_db(mapped) + self.max_db

        logger.debug("Setting Alsa volume to %.2f dB", db_volume)
        self.element.set_playback_db_all(_from_db(db_volume))

    def switched_off(self) -> bool:
        """Whether the playback switch is present and set to mute."""
        if not self.has_switch:
            return False
        try:
            return self.element.get_playback_switch() == 0
        except OSError:
            return False

    def is_some_linear(self) -> bool:
        return self.is_softvol or self.use_linear_in_db