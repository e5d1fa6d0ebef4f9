# respotplay

The playback side of a streaming audio client, written as a plain Python
library with no third-party dependencies. It takes decoded audio and prepares
it for an output.

## What is in the package

- `respotplay.config` holds the constants `SAMPLE_RATE` (44100),
  `NUM_CHANNELS` (2), `SAMPLES_PER_SECOND`, `PAGES_PER_MS` and `MS_PER_PAGE`.
  It also defines the enums `Bitrate`, `AudioFormat`, `NormalisationType` and
  `NormalisationMethod`. Each enum has a `parse(s)` class method that raises
  `ValueError` on input it does not recognise. `AudioFormat.size()` gives the
  bytes per sample. `PlayerConfig` is a dataclass of player settings. Its
  normalisation attack and release are given in milliseconds, and `ditherer`
  is a ditherer name (`"tpdf"` by default) or `None`.
- `respotplay.dither` provides `TriangularDitherer` (`tpdf`),
  `GaussianDitherer` (`gpdf`) and `HighPassDitherer` (`tpdf_hp`). Each one
  takes an optional `random.Random` and produces values through `noise()`.
  `find_ditherer(name)` returns the class with that name, or `None`.
- `respotplay.convert` provides `Converter(ditherer_builder)`. It turns floats
  normalised to `-1.0..=1.0` into other sample formats:
  - `f64_to_f32` rounds to single-precision floats.
  - `f64_to_s32`, `f64_to_s24` and `f64_to_s16` return integers.
  - `f64_to_s24_3` returns packed 3-byte native-order samples as `bytes`.

  Rounding goes to the nearest value, with ties away from zero. Results
  saturate at the bounds of the format. When a ditherer builder is given, the
  converter adds its noise before rounding.
- `respotplay.decoder` provides `AudioPacket`, which holds either
  `samples=...` or `ogg_data=...`. Its methods are `samples()`, `oggdata()`,
  `is_empty()` and `samples_from_f32()`. Asking a packet for the kind of
  content it does not hold raises `AudioPacketError`. The module also defines
  the abstract `AudioDecoder`, with `seek(absgp)` and `next_packet()`. Iterating
  an `AudioDecoder` yields its packets. `DecoderError` is the decoder failure.
- `respotplay.ogg` reads and writes Ogg pages. It provides `PacketReader` with
  `read_packet()`, `read_packet_expected()`, `seek_absgp(serial, absgp)` and
  `delete_unread_packets()`. It also provides `PacketWriter` with
  `write_packet(data, serial, end_info, absgp)` and `take_data()`. The other
  names are `OggPacket`, `PacketWriteEndInfo` and `crc32`. Read failures raise
  `OggReadError` or its subclass `NoCapturePatternFound`.
- `respotplay.passthrough` provides `PassthroughDecoder(stream, stream_serial=None)`.
  It reads the Vorbis identification, comment and setup headers from an Ogg
  stream. It then re-emits the audio packets as a fresh Ogg stream, in
  `AudioPacket(ogg_data=...)` chunks, and can seek by granule position.
- `respotplay.volume` provides `VolumeCtrl`, which has cubic, fixed, linear
  and log kinds. Cubic and log carry a dB range. `VolumeCtrl` has
  `parse(s, db_range)`, `to_mapped(volume)`, `from_mapped(mapped)`,
  `set_db_range()` and `range_ok()`. The module also provides `LogMapping`,
  `CubicMapping`, `db_to_ratio` and `ratio_to_db`. Volumes run from 0 to
  `MAX_VOLUME` (65535).
- `respotplay.mixer` provides `MixerConfig`, the abstract `Mixer`,
  `NoOpVolume` and `SoftMixer`. `SoftMixer` starts at an attenuation factor of
  0.5. Its `get_soft_volume()` returns a `SoftVolume` that follows later
  `set_volume` calls. `find(name)` knows only `"softvol"`, which is also what
  it returns for `None`.
- `respotplay.alsamixer` provides `AlsaMixer(config, element)`. It drives a
  hardware or softvol mixer control through a `MixerElement` that you supply.
- `respotplay.audio_backend` provides the abstract `Sink` and
  `encode_packet(packet, audio_format, converter)`. It has two sinks:
  - `StdoutSink` (`"pipe"`) writes to standard output, or to a file given as
    the device.
  - `SubprocessSink` (`"subprocess"`) starts the shell-split command given as
    the device and writes to its standard input.

  Failures raise subclasses of `SinkError`: `SinkNotConnected`,
  `SinkConnectionRefused`, `SinkWriteError` and `SinkInvalidParams`. Passing
  `"?"` as the device prints usage and raises `SystemExit(0)`. `find(name)`
  returns a sink class by name, and `"pipe"` for `None`.
- `respotplay.alsa` provides `AlsaSink(device, audio_format, opener=..., hints=...)`.
  It buffers output into whole periods and writes them to a `Pcm` returned by
  your `opener`. It negotiates buffer and period sizes through
  `choose_buffer_size` and `choose_period_size`. Errors are `AlsaError`, and
  `to_sink_error` maps them to sink errors.

## Examples

Converting samples without dithering:

```python
from respotplay.convert import Converter

converter = Converter(None)
converter.f64_to_s16([0.0, 0.5, -1.0, 1.0])
# [0, 16384, -32768, 32767]
```

Writing to a file through the pipe sink:

```python
from respotplay.audio_backend import find
from respotplay.config import AudioFormat
from respotplay.convert import Converter
from respotplay.decoder import AudioPacket

sink = find("pipe")("out.raw", AudioFormat.S16)
sink.start()
sink.write(AudioPacket.samples_from_f32([0.0, 0.25, -0.25]), Converter(None))
```

Volume mapping:

```python
from respotplay.volume import VolumeCtrl

ctrl = VolumeCtrl.parse("log", 60.0)
ctrl.to_mapped(0)       # 0.0
ctrl.to_mapped(65535)   # 1.0
```

## What the package does not do

- It has no command and no player loop.
- It cannot decode Vorbis to samples. `PassthroughDecoder` only re-wraps the
  Ogg stream.
- It does not talk to sound hardware itself. `AlsaMixer` and `AlsaSink` work
  through the abstract `MixerElement`, `Pcm` and `HwParams` interfaces. You
  must provide implementations of those interfaces for a real device.
- `AlsaMixer` and `AlsaSink` are not registered with `find` in
  `respotplay.mixer` or in `respotplay.audio_backend`.

## Running the tests

```
pip install respotplay[test]
pytest
```