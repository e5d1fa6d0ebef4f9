import math

import pytest

from respotplay.volume import (
    DEFAULT_DB_RANGE,
    MAX_VOLUME,
    CubicMapping,
    LogMapping,
    VolumeCtrl,
    VolumeCtrlKind,
    db_to_ratio,
    ratio_to_db,
)

ALL_KINDS = [
    (VolumeCtrlKind.LOG, 60.0),
    (VolumeCtrlKind.CUBIC, 60.0),
    (VolumeCtrlKind.LINEAR, None),
    (VolumeCtrlKind.FIXED, None),
]


def _ctrl(kind, db_range):
    if db_range is None:
        return VolumeCtrl(kind)
    return VolumeCtrl(kind, db_range)


def test_db_ratio_basics():
    assert db_to_ratio(0.0) == 1.0
    assert ratio_to_db(1.0) == 0.0
    assert db_to_ratio(20.0) == pytest.approx(10.0)
    assert ratio_to_db(0.0) == -math.inf


@pytest.mark.parametrize("db", [-60.0, -12.5, 0.0, 6.0])
def test_db_ratio_round_trip(db):
    assert ratio_to_db(db_to_ratio(db)) == pytest.approx(db)


def test_default_is_log_with_default_range():
    ctrl = VolumeCtrl()
    assert ctrl.kind is VolumeCtrlKind.LOG
    assert ctrl.db_range == DEFAULT_DB_RANGE
    assert MAX_VOLUME == 65535


@pytest.mark.parametrize(
    "text,kind",
    [("cubic", VolumeCtrlKind.CUBIC), ("FIXED", VolumeCtrlKind.FIXED),
     ("Linear", VolumeCtrlKind.LINEAR), ("log", VolumeCtrlKind.LOG)],
)
def test_parse(text, kind):
    assert VolumeCtrl.parse(text).kind is kind


def test_parse_with_range():
    assert VolumeCtrl.parse("cubic", 30.0) == VolumeCtrl(VolumeCtrlKind.CUBIC, 30.0)


def test_parse_invalid():
    with pytest.raises(ValueError):
        VolumeCtrl.parse("loud")


def test_db_range_by_kind():
    assert VolumeCtrl(VolumeCtrlKind.FIXED).db_range == 0.0
    assert VolumeCtrl(VolumeCtrlKind.LINEAR).db_range == DEFAULT_DB_RANGE


def test_range_ok():
    assert not VolumeCtrl(VolumeCtrlKind.LOG, 0.0).range_ok()
    assert not VolumeCtrl(VolumeCtrlKind.CUBIC, 0.0).range_ok()
    assert VolumeCtrl(VolumeCtrlKind.FIXED).range_ok()
    assert VolumeCtrl(VolumeCtrlKind.LOG, 40.0).range_ok()


def test_set_db_range():
    ctrl = VolumeCtrl(VolumeCtrlKind.LOG, 0.0)
    ctrl.set_db_range(42.0)
    assert ctrl.db_range == 42.0
    assert ctrl.range_ok()


def test_set_db_range_ignored_on_fixed():
    ctrl = VolumeCtrl(VolumeCtrlKind.FIXED)
    ctrl.set_db_range(42.0)
    assert ctrl.db_range == 0.0


@pytest.mark.parametrize("kind,db_range", ALL_KINDS)
def test_endpoints(kind, db_range):
    ctrl = VolumeCtrl(kind) if db_range is None else VolumeCtrl(kind, db_range)
    assert ctrl.to_mapped(0) == 0.0
    assert ctrl.to_mapped(MAX_VOLUME) == 1.0
    assert ctrl.from_mapped(0.0) == 0
    assert ctrl.from_mapped(1.0) == MAX_VOLUME


@pytest.mark.parametrize("kind,db_range", ALL_KINDS)
@pytest.mark.parametrize("volume", [1, 1000, 32768, 50000, 65534])
def test_round_trip(kind, db_range, volume):
    ctrl = VolumeCtrl(kind) if db_range is None else VolumeCtrl(kind, db_range)
    assert abs(ctrl.from_mapped(ctrl.to_mapped(volume)) - volume) <= 1


@pytest.mark.parametrize("kind", [VolumeCtrlKind.LOG, VolumeCtrlKind.CUBIC])
def test_mapping_is_monotonic(kind):
    ctrl = VolumeCtrl(kind, 60.0)
    values = [ctrl.to_mapped(v) for v in range(0, MAX_VOLUME + 1, 4096)]
    assert values == sorted(values)
    assert all(0.0 <= v <= 1.0 for v in values)


def test_zero_range_falls_back_to_linear():
    ctrl = VolumeCtrl(VolumeCtrlKind.LOG, 0.0)
    assert ctrl.to_mapped(32768) == pytest.approx(32768 / MAX_VOLUME)
    assert ctrl.from_mapped(0.25) == int(0.25 * MAX_VOLUME)


def test_from_mapped_saturates():
    assert VolumeCtrl(VolumeCtrlKind.LINEAR).from_mapped(2.0) == MAX_VOLUME
    assert VolumeCtrl(VolumeCtrlKind.LINEAR).from_mapped(-0.5) == 0


@pytest.mark.parametrize("mapping", [LogMapping, CubicMapping])
@pytest.mark.parametrize("x", [0.1, 0.5, 0.9])
def test_mapping_inverse(mapping, x):
    assert mapping.mapped_to_linear(mapping.linear_to_mapped(x, 60.0), 60.0) == pytest.approx(x)


@pytest.mark.parametrize("mapping", [LogMapping, CubicMapping])
def test_mapping_full_scale(mapping):
    assert mapping.linear_to_mapped(1.0, 60.0) == pytest.approx(1.0)


def test_log_mapping_floor_is_range():
    assert LogMapping.linear_to_mapped(0.0, 60.0) == pytest.approx(1.0 / db_to_ratio(60.0))


def test_mapped_to_linear_of_zero():
    assert LogMapping.mapped_to_linear(0.0, 60.0) == -math.inf
    assert math.isnan(CubicMapping.mapped_to_linear(-1.0, 60.0))