"""Audio playback pipeline: sample conversion, dithering, volume mapping, mixers, Ogg passthrough and output sinks."""

__version__ = "0.3.1"