"""Reading and writing of Ogg pages and the packets they carry."""

from __future__ import annotations

import enum
import struct
from collections import deque
from dataclasses import dataclass
from typing import BinaryIO

CAPTURE_PATTERN = b"OggS"
_HEADER = struct.Struct("<4sBBQIIIB")

FLAG_CONTINUED = 0x01
FLAG_BOS = 0x02
FLAG_EOS = 0x04

NO_GRANULE = 0xFFFFFFFFFFFFFFFF


def _make_crc_table() -> list[int]:
    table = []
    for i in range(256):
        r = i << 24
        for _ in range(8):
            r = ((r << 1) ^ 0x04C11DB7) if r & 0x80000000 else (r << 1)
        table.append(r & 0xFFFFFFFF)
    return table


_CRC_TABLE = _make_crc_table()


def crc32(data: bytes) -> int:
    """The Ogg page checksum (polynomial 0x04c11db7, no reflection)."""
    crc = 0
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) & 0xFF) ^ byte]
    return crc


class OggReadError(Exception):
    """The Ogg stream could not be read."""


class NoCapturePatternFound(OggReadError):
    """A page did not start with the capture pattern."""

    def __init__(self, message: str = "No Ogg capture pattern found") -> None:
        super().__init__(message)


class PacketWriteEndInfo(enum.Enum):
    """Whether a written packet ends its page or its stream."""

    NORMAL_PACKET = "normal"
    END_PAGE = "end_page"
    END_STREAM = "end_stream"


@dataclass
class OggPacket:
    """A packet read from an Ogg stream, with facts about its page."""

    data: bytes
    stream_serial: int
    page_absgp: int
    is_last_in_page: bool
    is_last_in_stream: bool

    def absgp_page(self) -> int:
        """Granule position of the page the packet ends in."""
        return self.page_absgp

    def last_in_page(self) -> bool:
        return self.is_last_in_page

    def last_in_stream(self) -> bool:
        return self.is_last_in_stream


@dataclass
class _Page:
    offset: int
    flags: int
    granule: int
    serial: int
    lacing: bytes
    body: bytes


class PacketReader:
    """Reads packets page by page from a seekable binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._pending: deque[OggPacket] = deque()
        self._partial: dict[int, bytearray] = {}
        self._skip_continued = False

    def _read_page(self) -> _Page | None:
        offset = self._stream.tell()
        header = self._stream.read(_HEADER.size)
        if not header:
            return None
        if not header.startswith(CAPTURE_PATTERN):
            raise NoCapturePatternFound()
        if len(header) < _HEADER.size:
            raise OggReadError("Truncated Ogg page header")
        _, version, flags, granule, serial, _seq, crc, nsegs = _HEADER.unpack(header)
        if version != 0:
            raise OggReadError(f"Unsupported Ogg version {version}")
        lacing = self._stream.read(nsegs)
        body = self._stream.read(sum(lacing))
        if len(lacing) != nsegs or len(body) != sum(lacing):
            raise OggReadError("Truncated Ogg page")
        zeroed = header[:22] + b"\x00\x00\x00\x00" + header[26:]
        if crc32(zeroed + lacing + body) != crc:
            raise OggReadError("Ogg page checksum mismatch")
        return _Page(offset, flags, granule, serial, lacing, body)

    def _queue_page(self, page: _Page) -> None:
        partial = self._partial.pop(page.serial, None)
        discard = False
        if page.flags & FLAG_CONTINUED:
            if partial is None:
                discard = True
        else:
            partial = None
        if partial is None:
            partial = bytearray()
        completed: list[bytes] = []
        pos = 0
        for lace in page.lacing:
            partial += page.body[pos:pos + lace]
            pos += lace
            if lace < 255:
                if discard:
                    discard = False
                else:
                    completed.append(bytes(partial))
                partial = bytearray()
        if partial or (page.lacing and page.lacing[-1] == 255):
            if not discard:
                self._partial[page.serial] = partial
        for index, data in enumerate(completed):
            last = index == len(completed) - 1
            self._pending.append(
                OggPacket(
                    data=data,
                    stream_serial=page.serial,
                    page_absgp=page.granule,
                    is_last_in_page=last,
                    is_last_in_stream=last and bool(page.flags & FLAG_EOS),
                )
            )

    def read_packet(self) -> OggPacket | None:
        """Return the next packet, or None at the end of the stream."""
        while not self._pending:
            page = self._read_page()
            if page is None:
                return None
            self._queue_page(page)
        return self._pending.popleft()

    def read_packet_expected(self) -> OggPacket:
        """Return the next packet; the end of the stream is an error."""
        packet = self.read_packet()
        if packet is None:
            raise OggReadError("Unexpected end of Ogg stream")
        return packet

    def seek_absgp(self, serial: int | None, absgp: int) -> bool:
        """Position at the first page whose granule reaches ``absgp``.

        Returns False, leaving the reader at the end, if there is none.
        """
        self._stream.seek(0)
        self._pending.clear()
        self._partial.clear()
        while True:
            page = self._read_page()
            if page is None:
                return False
            if serial is not None and page.serial != serial:
                continue
            if page.granule != NO_GRANULE and page.granule >= absgp:
                self._stream.seek(page.offset)
                return True

    def delete_unread_packets(self) -> None:
        """Drop packets already read from the current page but not returned."""
        self._pending.clear()


@dataclass
class _StreamState:
    sequence: int = 0
    started: bool = False


class PacketWriter:
    """Assembles packets into Ogg pages in an in-memory buffer."""

    def __init__(self) -> None:
        self._data = bytearray()
        self._streams: dict[int, _StreamState] = {}
        self._queued: dict[int, list[bytes]] = {}

    def write_packet(
        self, data: bytes, serial: int, end_info: PacketWriteEndInfo, absgp: int
    ) -> None:
        """Queue a packet, emitting pages if it ends a page or the stream."""
        self._queued.setdefault(serial, []).append(bytes(data))
        if end_info is not PacketWriteEndInfo.NORMAL_PACKET:
            self._flush(serial, absgp, end_info is PacketWriteEndInfo.END_STREAM)

    def _flush(self, serial: int, absgp: int, eos: bool) -> None:
        packets = self._queued.pop(serial, [])
        segments: list[tuple[int, bytes, bool]] = []
        for packet in packets:
            full, rest = divmod(len(packet), 255)
            for i in range(full):
                segments.append((255, packet[i * 255:(i + 1) * 255], False))
            segments.append((rest, packet[full * 255:], True))
        state = self._streams.setdefault(serial, _StreamState())
        chunks = [segments[i:i + 255] for i in range(0, len(segments), 255)] or [[]]
        continued = False
        for index, chunk in enumerate(chunks):
            last = index == len(chunks) - 1
            flags = FLAG_CONTINUED if continued else 0
            if not state.started:
                flags |= FLAG_BOS
                state.started = True
            if last and eos:
                flags |= FLAG_EOS
            ends = any(end for _, _, end in chunk)
            granule = (absgp & NO_GRANULE) if (ends or last) else NO_GRANULE
            lacing = bytes(lace for lace, _, _ in chunk)
            body = b"".join(piece for _, piece, _ in chunk)
            header = _HEADER.pack(
                CAPTURE_PATTERN, 0, flags, granule, serial & 0xFFFFFFFF,
                state.sequence, 0, len(chunk),
            )
            crc = crc32(header + lacing + body)
            self._data += header[:22] + struct.pack("<I", crc) + header[26:] + lacing + body
            state.sequence += 1
            continued = bool(chunk) and not chunk[-1][2]

    def take_data(self) -> bytes:
        """Return the bytes written so far and empty the buffer."""
        data = bytes(self._data)
        self._data.clear()
        return data