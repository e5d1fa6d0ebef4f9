"""Audio sinks that receive converted samples."""

from __future__ import annotations

import abc
import logging
import os
import shlex
import struct
import subprocess
import sys
from array import array
from typing import BinaryIO, Callable

from respotplay.config import AudioFormat
from respotplay.convert import Converter
from respotplay.decoder import AudioPacket

logger = logging.getLogger(__name__)


class SinkError(Exception):
    """An audio sink failed."""

    KIND = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(f"Audio Sink Error {self.KIND}: {message}")
        self.message = message


class SinkNotConnected(SinkError):
    KIND = "Not Connected"


class SinkConnectionRefused(SinkError):
    KIND = "Connection Refused"


class SinkWriteError(SinkError):
    KIND = "On Write"


class SinkInvalidParams(SinkError):
    KIND = "Invalid Parameters"


def encode_packet(packet: AudioPacket, audio_format: AudioFormat, converter: Converter) -> bytes:
    """Bytes of a packet in ``audio_format``, in native byte order."""
    try:
        samples = packet.samples()
    except Exception:
        return packet.oggdata()
    if audio_format is AudioFormat.F64:
        return array("d", samples).tobytes()
    if audio_format is AudioFormat.F32:
        return array("f", converter.f64_to_f32(samples)).tobytes()
    if audio_format is AudioFormat.S32:
        values = converter.f64_to_s32(samples)
        return struct.pack(f"={len(values)}i", *values)
    if audio_format is AudioFormat.S24:
        values = converter.f64_to_s24(samples)
        return struct.pack(f"={len(values)}i", *values)
    if audio_format is AudioFormat.S24_3:
        return converter.f64_to_s24_3(samples)
    values = converter.f64_to_s16(samples)
    return struct.pack(f"={len(values)}h", *values)


class Sink(abc.ABC):
    """Destination for audio packets."""

    NAME: str

    def __init__(self, audio_format: AudioFormat = AudioFormat.S16) -> None:
        self.format = audio_format

    def start(self) -> None:
        """Prepare the sink for writing."""

    def stop(self) -> None:
        """Finish writing."""

    def write(self, packet: AudioPacket, converter: Converter) -> None:
        """Convert a packet to this sink's format and write it."""
        self.write_bytes(encode_packet(packet, self.format, converter))

    @abc.abstractmethod
    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes."""


class StdoutSink(Sink):
    """Writes to standard output or to a file."""

    NAME = "pipe"

    def __init__(self, file: str | None = None, audio_format: AudioFormat = AudioFormat.S16) -> None:
        if file == "?":
            logger.info("Usage:")
            print("  Output to stdout: --backend pipe")
            print("  Output to file:   --backend pipe --device {filename}")
            raise SystemExit(0)
        logger.info("Using pipe sink with format: %s", audio_format.name)
        super().__init__(audio_format)
        self.file = file
        self._output: BinaryIO | None = None

    def start(self) -> None:
        if self._output is not None:
            return
        if self.file is None:
            self._output = sys.stdout.buffer
            return
        try:
            fd = os.open(self.file, os.O_WRONLY | os.O_CREAT, 0o666)
            self._output = os.fdopen(fd, "wb")
        except OSError as exc:
            raise SinkConnectionRefused(str(exc)) from exc

    def write_bytes(self, data: bytes) -> None:
        if self._output is None:
            raise SinkNotConnected("Output is None")
        try:
            self._output.write(data)
            self._output.flush()
        except OSError as exc:
            raise SinkWriteError(str(exc)) from exc


class SubprocessSink(Sink):
    """Writes to the standard input of a started command."""

    NAME = "subprocess"

    def __init__(
        self, shell_command: str | None = None, audio_format: AudioFormat = AudioFormat.S16
    ) -> None:
        if shell_command == "?":
            logger.info("Usage: --backend subprocess --device {shell_command}")
            raise SystemExit(0)
        if shell_command is None:
            logger.error("subprocess sink requires specifying a shell command")
            raise SystemExit(1)
        logger.info("Using subprocess sink with format: %s", audio_format.name)
        super().__init__(audio_format)
        self.shell_command = shell_command
        self._child: subprocess.Popen | None = None

    def start(self) -> None:
        args = shlex.split(self.shell_command)
        try:
            self._child = subprocess.Popen(args, stdin=subprocess.PIPE)
        except (OSError, IndexError) as exc:
            raise SinkConnectionRefused(str(exc)) from exc

    def stop(self) -> None:
        child, self._child = self._child, None
        if child is None:
            return
        try:
            child.kill()
            child.wait()
        except OSError as exc:
            raise SinkWriteError(str(exc)) from exc
        finally:
            if child.stdin is not None:
                try:
                    child.stdin.close()
                except OSError:
                    pass

    def write_bytes(self, data: bytes) -> None:
        if self._child is None:
            return
        if self._child.stdin is None:
            raise SinkNotConnected("Child is None")
        try:
            self._child.stdin.write(data)
            self._child.stdin.flush()
        except OSError as exc:
            raise SinkWriteError(str(exc)) from exc


SinkBuilder = Callable[[str | None, AudioFormat], Sink]

BACKENDS: tuple[tuple[str, SinkBuilder], ...] = (
    (StdoutSink.NAME, StdoutSink),
    (SubprocessSink.NAME, SubprocessSink),
)


def find(name: str | None) -> SinkBuilder | None:
    """Return the sink builder called ``name``, or the default one for None."""
    if name is None:
        return BACKENDS[0][1] if BACKENDS else None
    return next((builder for backend, builder in BACKENDS if backend == name), None)