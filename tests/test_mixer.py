import pytest

from respotplay.mixer import (
    Mixer,
    MixerConfig,
    NoOpVolume,
    SoftMixer,
    find,
)
from respotplay.volume import MAX_VOLUME, VolumeCtrl, VolumeCtrlKind


class _FixedMixer(Mixer):
    def volume(self):
        return 7

    def set_volume(self, volume):
        pass


def test_default_config():
    config = MixerConfig()
    assert config.device == "default"
    assert config.control == "PCM"
    assert config.index == 0
    assert config.volume_ctrl == VolumeCtrl()


def test_noop_volume():
    assert NoOpVolume().attenuation_factor() == 1.0


def test_base_mixer_soft_volume_is_noop():
    getter = Mixer.get_soft_volume(_FixedMixer())
    assert getter.attenuation_factor() == 1.0


def test_soft_mixer_initial_attenuation():
    mixer = SoftMixer(MixerConfig())
    assert mixer.get_soft_volume().attenuation_factor() == 0.5
    assert mixer.volume() == mixer.volume_ctrl.from_mapped(0.5)


def test_soft_mixer_full_volume():
    mixer = SoftMixer(MixerConfig())
    mixer.set_volume(MAX_VOLUME)
    assert mixer.volume() == MAX_VOLUME
    assert mixer.get_soft_volume().attenuation_factor() == 1.0


def test_soft_mixer_mute():
    mixer = SoftMixer(MixerConfig())
    mixer.set_volume(0)
    assert mixer.volume() == 0
    assert mixer.get_soft_volume().attenuation_factor() == 0.0


def test_soft_volume_follows_mixer():
    mixer = SoftMixer(MixerConfig(volume_ctrl=VolumeCtrl(VolumeCtrlKind.LINEAR)))
    getter = mixer.get_soft_volume()
    mixer.set_volume(32768)
    assert getter.attenuation_factor() == pytest.approx(32768 / MAX_VOLUME)


@pytest.mark.parametrize("volume", [1, 20000, 40000, 65000])
def test_soft_mixer_round_trip(volume):
    mixer = SoftMixer(MixerConfig())
    mixer.set_volume(volume)
    assert abs(mixer.volume() - volume) <= 1


def test_soft_mixer_does_not_share_config_ctrl():
    config = MixerConfig(volume_ctrl=VolumeCtrl(VolumeCtrlKind.LOG, 0.0))
    mixer = SoftMixer(config)
    mixer.volume_ctrl.set_db_range(30.0)
    assert config.volume_ctrl.db_range == 0.0


def test_find():
    assert find(None) is SoftMixer
    assert find("softvol") is SoftMixer
    assert find("nonexistent") is None


def test_find_builds_mixer():
    mixer = find("softvol")(MixerConfig())
    mixer.set_volume(MAX_VOLUME)
    assert mixer.volume() == MAX_VOLUME