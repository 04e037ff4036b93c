"""Sprite mappings: single pieces and per-frame piece lists."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import BinaryIO, Mapping

from mdtools.dplc import FrameDplc, SingleDplc


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
class SingleMapping:
    """One sprite piece: art tile, flag bits, position and size in tiles."""

    tile: int
    flags: int
    xx: int
    yy: int
    sx: int
    sy: int

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> SingleMapping:
        pos_y = _unpack(stream, ">b")
        size = _unpack(stream, ">B")
        pattern = _unpack(stream, ">H")
        if version == 2:
            _unpack(stream, ">H")
        pos_x = _unpack(stream, ">b") if version == 1 else _unpack(stream, ">h")
        return cls(
            tile=pattern & 0x07FF,
            flags=(pattern & 0xF800) >> 8,
            xx=pos_x,
            yy=pos_y,
            sx=((size & 0xC) >> 2) + 1,
            sy=(size & 0x3) + 1,
        )

    def write(self, stream: BinaryIO, version: int) -> None:
        _write_byte(stream, self.yy)
        _write_byte(stream, ((self.sx - 1) << 2) | (self.sy - 1))
        _write_word(stream, (self.flags << 8) | self.tile)
        if version == 2:
            _write_word(stream, (self.flags << 8) | (self.tile >> 1))
        if version == 1:
            _write_byte(stream, self.xx)
        else:
            _write_word(stream, self.xx)

    def size(self, version: int) -> int:
        if version == 1:
            return 5
        if version == 2:
            return 8
        return 6

    def describe(self) -> str:
        parts = [
            f"\t\tPosition: (x,y) = ({self.xx:4},{self.yy:4})"
            f"\tSize: (x,y) = ({self.sx:4},{self.sy:4})\n",
            f"\t\tFirst tile: ${self.tile:04X}"
            f"\tLast tile: ${self.tile + self.sx * self.sy - 1:04X}\tFlags: ",
        ]
        flags = self.flags
        if flags & 0x80:
            parts.append("foreground" + ("|" if flags & 0x78 else ""))
        if flags & 0x60:
            parts.append(f"palette+{(flags & 0x60) >> 5}" + ("|" if flags & 0x18 else ""))
        if flags & 0x08:
            parts.append("flip_x" + ("|" if flags & 0x10 else ""))
        if flags & 0x10:
            parts.append("flip_y")
        parts.append("\n")
        return "".join(parts)

    def split(self, vram_map: Mapping[int, int]) -> tuple[SingleMapping, SingleDplc]:
        """Return the piece pointing into VRAM and the cue that loads its art."""
        cue = SingleDplc(self.sx * self.sy, self.tile)
        return replace(self, tile=vram_map.get(self.tile, 0)), cue

    def merge(self, vram_map: Mapping[int, int]) -> SingleMapping:
        """Return the piece pointing straight at the art loaded by the cues."""
        return replace(self, tile=vram_map.get(self.tile, 0))

    def change_pal(self, source_palette: int, dest_palette: int) -> SingleMapping:
        if (self.flags & 0x60) == source_palette:
            return replace(self, flags=(self.flags & 0x9F) | dest_palette)
        return self


@dataclass(frozen=True, order=True)
class FrameMapping:
    """The sprite pieces making up one animation frame."""

    pieces: tuple[SingleMapping, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "pieces", tuple(self.pieces))

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> FrameMapping:
        count = _unpack(stream, ">B") if version == 1 else _unpack(stream, ">H")
        return cls(tuple(SingleMapping.read(stream, version) for _ in range(count)))

    def write(self, stream: BinaryIO, version: int) -> None:
        if version == 1:
            _write_byte(stream, len(self.pieces))
        else:
            _write_word(stream, len(self.pieces))
        for piece in self.pieces:
            piece.write(stream, version)

    def size(self, version: int) -> int:
        header = 1 if version == 1 else 2
        return header + sum(piece.size(version) for piece in self.pieces)

    def describe(self) -> str:
        return "".join(
            f"\tPiece ${index:04X}:\n" + piece.describe()
            for index, piece in enumerate(self.pieces)
        )

    def split(self) -> tuple[FrameMapping, FrameDplc]:
        """Rewrite the pieces to VRAM slots and build the cues that load them."""
        used = sorted(
            {
                tile
                for piece in self.pieces
                for tile in range(piece.tile, piece.tile + piece.sx * piece.sy)
            }
        )
        vram_map = {tile: index for index, tile in enumerate(used)}

        runs: list[SingleDplc] = []
        for tile in used:
            if runs and runs[-1].tile + runs[-1].count == tile:
                runs[-1] = SingleDplc(runs[-1].count + 1, runs[-1].tile)
            else:
                runs.append(SingleDplc(1, tile))

        mappings = FrameMapping(tuple(piece.split(vram_map)[0] for piece in self.pieces))
        return mappings, FrameDplc(tuple(runs)).consolidate()

    def merge(self, dplc: FrameDplc) -> FrameMapping:
        vram_map = dplc.build_vram_map()
        return FrameMapping(tuple(piece.merge(vram_map) for piece in self.pieces))

    def change_pal(self, source_palette: int, dest_palette: int) -> FrameMapping:
        return FrameMapping(
            tuple(piece.change_pal(source_palette, dest_palette) for piece in self.pieces)
        )