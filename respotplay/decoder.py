"""Decoded audio packets and the decoder interface."""

from __future__ import annotations

import abc
from array import array
from typing import Iterable, Iterator, Sequence


class DecoderError(Exception):
    """A decoder failed; ``decoder`` names which one."""

    def __init__(self, decoder: str, message: str) -> None:
        super().__init__(f"{decoder} Decoder Error: {message}")
        self.decoder = decoder
        self.message = message


class AudioPacketError(Exception):
    """A packet was asked for content of the other kind."""


class AudioPacket:
    """Either float samples or raw Ogg data."""

    __slots__ = ("_samples", "_ogg_data")

    def __init__(
        self,
        *,
        samples: Sequence[float] | None = None,
        ogg_data: bytes | None = None,
    ) -> None:
        if (samples is None) == (ogg_data is None):
            raise ValueError("an audio packet holds exactly one of samples or ogg_data")
        self._samples = list(samples) if samples is not None else None
        self._ogg_data = bytes(ogg_data) if ogg_data is not None else None

    @classmethod
    def samples_from_f32(cls, f32_samples: Iterable[float]) -> "AudioPacket":
        """Build a sample packet from single precision samples."""
        return cls(samples=array("f", f32_samples).tolist())

    def samples(self) -> list[float]:
        if self._samples is None:
            raise AudioPacketError("Decoder OggData Error: Can't return OggData on Samples")
        return self._samples

    def oggdata(self) -> bytes:
        if self._ogg_data is None:
            raise AudioPacketError("Decoder Samples Error: Can't return Samples on OggData")
        return self._ogg_data

    def is_empty(self) -> bool:
        content = self._samples if self._samples is not None else self._ogg_data
        return len(content) == 0

    def __repr__(self) -> str:
        if self._samples is not None:
            return f"AudioPacket(samples=<{len(self._samples)} samples>)"
        return f"AudioPacket(ogg_data=<{len(self._ogg_data)} bytes>)"


class AudioDecoder(abc.ABC):
    """A source of audio packets that can seek by granule position."""

    @abc.abstractmethod
    def seek(self, absgp: int) -> None:
        """Seek to the absolute granule position ``absgp``."""

    @abc.abstractmethod
    def next_packet(self) -> AudioPacket | None:
        """Return the next packet, or None at the end of the stream."""

    def __iter__(self) -> Iterator[AudioPacket]:
        while (packet := self.next_packet()) is not None:
            yield packet