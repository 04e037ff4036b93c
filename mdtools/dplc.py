"""Dynamic pattern load cues (DPLCs): single entries, per-frame lists and whole files."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from typing import BinaryIO, Iterable


def _unpack(stream: BinaryIO, fmt: str) -> int:
    size = struct.calcsize(fmt)
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return struct.unpack(fmt, data)[0]


def _write_byte(stream: BinaryIO, value: int) -> None:
    stream.write(struct.pack(">B", value & 0xFF))


def _write_word(stream: BinaryIO, value: int) -> None:
    stream.write(struct.pack(">H", value & 0xFFFF))


@dataclass(frozen=True, order=True)
class SingleDplc:
    """A run of `count` consecutive art tiles starting at `tile`."""

    count: int
    tile: int

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> SingleDplc:
        value = _unpack(stream, ">H")
        if version < 4:
            return cls(((value & 0xF000) >> 12) + 1, value & 0x0FFF)
        return cls((value & 0x000F) + 1, (value & 0xFFF0) >> 4)

    def _encode(self, version: int) -> bytes:
        if version < 4:
            value = ((self.count - 1) << 12) | self.tile
        else:
            value = (self.tile << 4) | (self.count - 1)
        return struct.pack(">H", value & 0xFFFF)

    def write(self, stream: BinaryIO, version: int) -> None:
        stream.write(self._encode(version))

    def size(self, version: int) -> int:
        return len(self._encode(version))

    def describe(self) -> str:
        last = self.tile + self.count - 1
        return (
            f"\tFirst tile: ${self.tile:04X}\tLast tile: ${last:04X}"
            f"\tNum tiles: ${self.count:04X}\n"
        )


@dataclass(frozen=True, order=True)
class FrameDplc:
    """The load cues for one animation frame."""

    entries: tuple[SingleDplc, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> FrameDplc:
        if version == 1:
            count = _unpack(stream, ">B")
        elif version == 4:
            count = _unpack(stream, ">h") + 1
            if count < 0:
                raise ValueError(f"invalid DPLC entry count {count}")
        else:
            count = _unpack(stream, ">H")
        return cls(tuple(SingleDplc.read(stream, version) for _ in range(count)))

    def write(self, stream: BinaryIO, version: int) -> None:
        if version == 1:
            _write_byte(stream, len(self.entries))
        elif version == 4:
            _write_word(stream, len(self.entries) - 1)
        else:
            _write_word(stream, len(self.entries))
        for entry in self.entries:
            entry.write(stream, version)

    def size(self, version: int) -> int:
        header = 1 if version == 1 else 2
        return header + sum(entry.size(version) for entry in self.entries)

    def describe(self) -> str:
        parts = [entry.describe() for entry in self.entries]
        total = sum(entry.count for entry in self.entries)
        parts.append(f"\tTile count: ${total:04X}\n")
        return "".join(parts)

    def consolidate(self) -> FrameDplc:
        """Merge adjacent runs, then cut them into pieces of at most 16 tiles."""
        if not self.entries:
            return FrameDplc()

        runs: list[SingleDplc] = []
        start = self.entries[0].tile
        size = 0
        for entry in self.entries:
            if entry.tile != start + size:
                runs.append(SingleDplc(size, start))
                start = entry.tile
                size = entry.count
            else:
                size += entry.count
        if size != 0:
            runs.append(SingleDplc(size, start))

        output: list[SingleDplc] = []
        for run in runs:
            tile, count = run.tile, run.count
            while count >= 16:
                output.append(SingleDplc(16, tile))
                count -= 16
                tile += 16
            if count != 0:
                output.append(SingleDplc(count, tile))
        return FrameDplc(tuple(output))

    def build_vram_map(self) -> dict[int, int]:
        """Map each VRAM slot, in load order, to the art tile loaded there."""
        tiles = (
            tile
            for entry in self.entries
            for tile in range(entry.tile, entry.tile + entry.count)
        )
        return dict(enumerate(tiles))


def _read_offsets(stream: BinaryIO, skip_leading_nulls: bool) -> list[int]:
    stream.seek(0)
    offsets: list[int] = []
    term = _unpack(stream, ">h")
    if skip_leading_nulls:
        while term == 0:
            offsets.append(term)
            term = _unpack(stream, ">h")
    offsets.append(term)
    while stream.tell() < term:
        newterm = _unpack(stream, ">h")
        if 0 < newterm < term:
            term = newterm
        offsets.append(newterm)
    return offsets


@dataclass(frozen=True)
class DplcFile:
    """A DPLC file: an offset table followed by per-frame DPLC lists."""

    frames: tuple[FrameDplc, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "frames", tuple(self.frames))

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> DplcFile:
        frames = []
        for position in _read_offsets(stream, version != 4):
            if position < 0:
                raise ValueError(f"invalid frame offset {position}")
            stream.seek(position)
            frames.append(FrameDplc.read(stream, version))
        return cls(tuple(frames))

    def write(self, stream: BinaryIO, version: int, null_first: bool = False) -> None:
        start = stream.tell()
        positions: dict[FrameDplc, int] = {}
        frames_at: dict[int, FrameDplc] = {}
        size = 2 * len(self.frames)

        if null_first and version != 4 and self.frames and not self.frames[0].entries:
            positions[self.frames[0]] = 0
            frames_at[0] = self.frames[0]

        for frame in self.frames:
            position = positions.get(frame)
            if position is None:
                position = size
                positions[frame] = size
                frames_at[size] = frame
                size += frame.size(version)
            _write_word(stream, position)

        for position in sorted(frames_at):
            here = stream.tell() - start
            frame = frames_at[position]
            if position == here:
                frame.write(stream, version)
            elif position != 0:
                print(f"Missed write at {here}", file=sys.stderr)
                sys.stderr.write(frame.describe())

    def size(self, version: int) -> int:
        return 2 * len(self.frames) + sum(frame.size(version) for frame in self.frames)

    def describe(self) -> str:
        parts = ["=" * 80 + "\n"]
        for index, frame in enumerate(self.frames):
            parts.append(f"DPLC for frame ${index:04X}:\n")
            parts.append(frame.describe())
        return "".join(parts)

    def consolidate(self) -> DplcFile:
        return DplcFile(tuple(frame.consolidate() for frame in self.frames))

    @classmethod
    def from_frames(cls, frames: Iterable[FrameDplc]) -> DplcFile:
        return cls(tuple(frames))