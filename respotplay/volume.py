"""Volume controls and the curves that map a volume onto an amplitude ratio."""

from __future__ import annotations

import enum
import logging
import math

logger = logging.getLogger(__name__)

MAX_VOLUME = 0xFFFF
DEFAULT_DB_RANGE = 60.0


def db_to_ratio(db: float) -> float:
    """Convert decibels to an amplitude ratio."""
    return math.pow(10.0, db / 20.0)


def ratio_to_db(ratio: float) -> float:
    """Convert an amplitude ratio to decibels; zero gives -inf."""
    if ratio == 0.0:
        return -math.inf
    if ratio < 0.0 or math.isnan(ratio):
        return math.nan
    return 20.0 * math.log10(ratio)


def _ln(value: float) -> float:
    if value == 0.0:
        return -math.inf
    if value < 0.0 or math.isnan(value):
        return math.nan
    return math.log(value)


def _cbrt(value: float) -> float:
    if value < 0.0 or math.isnan(value):
        return math.nan
    return value ** (1.0 / 3.0)


class LogMapping:
    """Logarithmic volume curve, giving a near linear sense of loudness."""

    @staticmethod
    def _coefficients(db_range: float) -> tuple[float, float]:
        db_ratio = db_to_ratio(db_range)
        return db_ratio, math.log(db_ratio)

    @staticmethod
    def linear_to_mapped(normalized_volume: float, db_range: float) -> float:
        db_ratio, ideal_factor = LogMapping._coefficients(db_range)
        return math.exp(ideal_factor * normalized_volume) / db_ratio

    @staticmethod
    def mapped_to_linear(mapped_volume: float, db_range: float) -> float:
        db_ratio, ideal_factor = LogMapping._coefficients(db_range)
        return _ln(db_ratio * mapped_volume) / ideal_factor


class CubicMapping:
    """Cubic volume curve as used by the ALSA mixer utilities."""

    @staticmethod
    def _min_norm(db_range: float) -> float:
        # The 60.0 here is the cubic voltage to dB ratio, not a default range.
        return math.pow(10.0, -1.0 * db_range / 60.0)

    @staticmethod
    def linear_to_mapped(normalized_volume: float, db_range: float) -> float:
        min_norm = CubicMapping._min_norm(db_range)
        return (normalized_volume * (1.0 - min_norm) + min_norm) ** 3

    @staticmethod
    def mapped_to_linear(mapped_volume: float, db_range: float) -> float:
        min_norm = CubicMapping._min_norm(db_range)
        return (_cbrt(mapped_volume) - min_norm) / (1.0 - min_norm)


class VolumeCtrlKind(enum.Enum):
    CUBIC = "cubic"
    FIXED = "fixed"
    LINEAR = "linear"
    LOG = "log"


_RANGED = (VolumeCtrlKind.CUBIC, VolumeCtrlKind.LOG)


class VolumeCtrl:
    """A volume control curve; cubic and log curves carry a dB range."""

    MAX_VOLUME = MAX_VOLUME
    DEFAULT_DB_RANGE = DEFAULT_DB_RANGE

    __slots__ = ("kind", "_db_range")

    def __init__(
        self, kind: VolumeCtrlKind = VolumeCtrlKind.LOG, db_range: float = DEFAULT_DB_RANGE
    ) -> None:
        self.kind = kind
        self._db_range = float(db_range) if kind in _RANGED else 0.0

    @classmethod
    def parse(cls, s: str, db_range: float = DEFAULT_DB_RANGE) -> "VolumeCtrl":
        """Parse a control name, ignoring case."""
        try:
            kind = VolumeCtrlKind(s.lower())
        except ValueError:
            raise ValueError(f"invalid volume control: {s!r}") from None
        return cls(kind, db_range)

    @property
    def db_range(self) -> float:
        if self.kind is VolumeCtrlKind.FIXED:
            return 0.0
        if self.kind is VolumeCtrlKind.LINEAR:
            return DEFAULT_DB_RANGE  # arbitrary, anything above zero
        return self._db_range

    def set_db_range(self, new_db_range: float) -> None:
        """Change the dB range of a cubic or log control."""
        if self.kind in _RANGED:
            self._db_range = float(new_db_range)
        else:
            logger.error("Invalid to set dB range for volume control type %r", self)
        logger.debug("Volume control is now %r", self)

    def range_ok(self) -> bool:
        return self.db_range > 0.0 or self.kind in (VolumeCtrlKind.FIXED, VolumeCtrlKind.LINEAR)

    def to_mapped(self, volume: int) -> float:
        """Map a volume in 0..=MAX_VOLUME onto an amplitude ratio in 0..=1."""
        # Zero must really be mute; the log and cubic curves never reach it.
        if volume == 0:
            return 0.0
        if volume == MAX_VOLUME:
            return 1.0

        normalized = volume / MAX_VOLUME
        if self.range_ok():
            if self.kind is VolumeCtrlKind.CUBIC:
                mapped = CubicMapping.linear_to_mapped(normalized, self._db_range)
            elif self.kind is VolumeCtrlKind.LOG:
                mapped = LogMapping.linear_to_mapped(normalized, self._db_range)
            else:
                mapped = normalized
        else:
            logger.error("%r does not work with 0 dB range, using linear mapping instead", self)
            mapped = normalized

        logger.debug("Input volume %d mapped to: %.2f%%", volume, mapped * 100.0)
        return mapped

    def from_mapped(self, mapped_volume: float) -> int:
        """Map an amplitude ratio back onto a volume in 0..=MAX_VOLUME."""
        if abs(mapped_volume - 0.0) <= sys_epsilon:
            return 0
        if abs(mapped_volume - 1.0) <= sys_epsilon:
            return MAX_VOLUME

        if self.range_ok():
            if self.kind is VolumeCtrlKind.CUBIC:
                unmapped = CubicMapping.mapped_to_linear(mapped_volume, self._db_range)
            elif self.kind is VolumeCtrlKind.LOG:
                unmapped = LogMapping.mapped_to_linear(mapped_volume, self._db_range)
            else:
                unmapped = mapped_volume
        else:
            logger.error("%r does not work with 0 dB range, using linear mapping instead", self)
            unmapped = mapped_volume

        value = unmapped * MAX_VOLUME
        if math.isnan(value):
            return 0
        return int(min(max(value, 0.0), float(MAX_VOLUME)))

    def __copy__(self) -> "VolumeCtrl":
        return VolumeCtrl(self.kind, self._db_range)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VolumeCtrl):
            return NotImplemented
        return self.kind is other.kind and self._db_range == other._db_range

    def __hash__(self) -> int:
        return hash((self.kind, self._db_range))

    def __repr__(self) -> str:
        name = self.kind.name.capitalize()
        if self.kind in _RANGED:
            return f"{name}({self._db_range})"
        return name


sys_epsilon = 2.220446049250313e-16