"""Decoder that passes the Ogg Vorbis stream through, rewrapped."""

from __future__ import annotations

import logging
import time
from typing import BinaryIO

from respotplay.decoder import AudioDecoder, AudioPacket, DecoderError
from respotplay.ogg import OggReadError, PacketReader, PacketWriteEndInfo, PacketWriter

logger = logging.getLogger(__name__)

_NAME = "Passthrough"
_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF


def _error(exc: Exception | str) -> DecoderError:
    return DecoderError(_NAME, str(exc))


def _get_header(code: int, reader: PacketReader) -> bytes:
    try:
        packet = reader.read_packet_expected()
    except OggReadError as exc:
        raise _error(exc) from exc
    if not packet.data:
        raise _error("Invalid Data")
    logger.debug("Vorbis header type %d", packet.data[0])
    if packet.data[0] != code:
        raise _error("Invalid Data")
    return packet.data


class PassthroughDecoder(AudioDecoder):
    """Re-emits the Vorbis packets as a fresh Ogg stream."""

    def __init__(self, stream: BinaryIO, stream_serial: int | None = None) -> None:
        self._reader = PacketReader(stream)
        self._writer = PacketWriter()
        if stream_serial is None:
            stream_serial = int(time.time() * 1000)
        self.stream_serial = stream_serial & _U32
        logger.info("Starting passthrough track with serial %d", self.stream_serial)

        self._ident = _get_header(1, self._reader)
        self._comment = _get_header(3, self._reader)
        self._setup = _get_header(5, self._reader)
        self._reader.delete_unread_packets()

        self._eos = False
        self._bos = False
        self._ofsgp_page = 0

    def _write(self, data: bytes, info: PacketWriteEndInfo, absgp: int) -> None:
        self._writer.write_packet(data, self.stream_serial, info, absgp & _U64)

    def _read(self):
        try:
            return self._reader.read_packet()
        except OggReadError as exc:
            raise _error(exc) from exc

    def seek(self, absgp: int) -> None:
        # Close the previous stream with an end-of-stream page if it lacks one.
        if self._bos and not self._eos:
            try:
                packet = self._reader.read_packet()
            except OggReadError:
                packet = None
            if packet is not None:
                self._write(
                    packet.data, PacketWriteEndInfo.END_STREAM,
                    packet.absgp_page() - self._ofsgp_page,
                )
            else:
                logger.warning("Cannot write EoS after seeking")

        self._eos = False
        self._bos = False
        self._ofsgp_page = 0
        self.stream_serial = (self.stream_serial + 1) & _U32

        try:
            self._reader.seek_absgp(None, absgp)
        except OggReadError as exc:
            raise _error(exc) from exc
        packet = self._read()
        if packet is None:
            raise _error("Packet is None")
        self._ofsgp_page = packet.absgp_page()
        logger.debug("Seek to offset page %d", self._ofsgp_page)

    def next_packet(self) -> AudioPacket | None:
        if not self._bos:
            self._write(self._ident, PacketWriteEndInfo.END_PAGE, 0)
            self._write(self._comment, PacketWriteEndInfo.NORMAL_PACKET, 0)
            self._write(self._setup, PacketWriteEndInfo.END_PAGE, 0)
            self._bos = True
            logger.debug("Wrote Ogg headers")

        while True:
            try:
                packet = self._reader.read_packet()
            except OggReadError as exc:
                if type(exc).__name__ == "NoCapturePatternFound":
                    packet = None
                else:
                    raise _error(exc) from exc
            if packet is None:
                logger.info("end of streaming")
                return None

            page_gp = packet.absgp_page()
            # Skip until there is audio with a usable granule position.
            if page_gp == 0 or page_gp == self._ofsgp_page:
                continue

            if packet.last_in_stream():
                self._eos = True
                info = PacketWriteEndInfo.END_STREAM
            elif packet.last_in_page():
                info = PacketWriteEndInfo.END_PAGE
            else:
                info = PacketWriteEndInfo.NORMAL_PACKET

            self._write(packet.data, info, page_gp - self._ofsgp_page)
            data = self._writer.take_data()
            if data:
                return AudioPacket(ogg_data=data)