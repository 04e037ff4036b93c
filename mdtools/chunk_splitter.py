"""Split 256x256 two-plane chunks into 128x128 chunks and report on level layouts."""

from __future__ import annotations

import re
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, ClassVar, Iterable, Sequence


def _read_word(stream: BinaryIO) -> int:
    data = stream.read(2)
    if len(data) != 2:
        raise EOFError(f"expected 2 bytes, got {len(data)}")
    return struct.unpack(">H", data)[0]


@dataclass(frozen=True, order=True)
class _Block:
    block: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.block <= 0xFFFF:
            raise ValueError(f"block value {self.block:#x} does not fit in 16 bits")

    def _to_bytes(self) -> bytes:
        return struct.pack(">H", self.block)

    def _replace_index(self, index: int):
        return type(self)((self.block & ~0x3FF & 0xFFFF) | (index & 0x3FF))

    def _with_bit(self, mask: int, flag: bool):
        if flag:
            return type(self)(self.block | mask)
        return type(self)(self.block & ~mask & 0xFFFF)


@dataclass(frozen=True, order=True)
class BlockS1(_Block):
    """A block reference in a 256x256 chunk (one collision field per plane)."""

    @classmethod
    def read(cls, stream: BinaryIO) -> BlockS1:
        return cls(_read_word(stream))

    def write(self, stream: BinaryIO) -> None:
        stream.write(self._to_bytes())

    @property
    def index(self) -> int:
        return self.block & 0x3FF

    @property
    def xflip(self) -> bool:
        return bool(self.block & 0x0800)

    @property
    def yflip(self) -> bool:
        return bool(self.block & 0x1000)

    @property
    def collision(self) -> int:
        return (self.block >> 13) & 3

    def with_index(self, index: int) -> BlockS1:
        return self._replace_index(index)

    def with_xflip(self, flag: bool) -> BlockS1:
        return self._with_bit(0x0800, flag)

    def with_yflip(self, flag: bool) -> BlockS1:
        return self._with_bit(0x1000, flag)

    def with_collision(self, collision: int) -> BlockS1:
        return BlockS1((self.block & ~0x6000 & 0xFFFF) | ((collision & 3) << 13))

    def same_tile(self, other: BlockS1) -> bool:
        """Compare ignoring the collision bits."""
        return (self.block & ~0x6000) == (other.block & ~0x6000)


@dataclass(frozen=True, order=True)
class BlockS2(_Block):
    """A block reference in a 128x128 chunk with two collision layers."""

    @classmethod
    def read(cls, stream: BinaryIO) -> BlockS2:
        return cls(_read_word(stream))

    def write(self, stream: BinaryIO) -> None:
        stream.write(self._to_bytes())

    @property
    def index(self) -> int:
        return self.block & 0x3FF

    @property
    def xflip(self) -> bool:
        return bool(self.block & 0x0400)

    @property
    def yflip(self) -> bool:
        return bool(self.block & 0x0800)

    @property
    def collision1(self) -> int:
        return (self.block >> 12) & 3

    @property
    def collision2(self) -> int:
        return (self.block >> 14) & 3

    def with_index(self, index: int) -> BlockS2:
        return self._replace_index(index)

    def same_tile(self, other: BlockS2) -> bool:
        """Compare ignoring both collision fields."""
        return (self.block & ~0xF000) == (other.block & ~0xF000)

    @classmethod
    def merge(cls, high_plane: BlockS1, low_plane: BlockS1) -> BlockS2:
        """Combine the same block from both planes, keeping both collisions."""
        if (
            high_plane.index != low_plane.index
            or high_plane.xflip != low_plane.xflip
            or high_plane.yflip != low_plane.yflip
        ):
            raise ValueError(
                f"blocks {high_plane.block:#06x} and {low_plane.block:#06x} "
                "differ in more than collision"
            )
        value = (
            high_plane.index
            | (0x0400 if high_plane.xflip else 0)
            | (0x0800 if high_plane.yflip else 0)
            | (high_plane.collision << 12)
            | (low_plane.collision << 14)
        )
        return cls(value)


@dataclass(frozen=True, order=True)
class _Chunk:
    blocks: tuple = ()

    DIM: ClassVar[int] = 0
    BLOCK: ClassVar[type] = _Block

    def __post_init__(self) -> None:
        blocks = tuple(self.blocks)
        if not blocks:
            blocks = tuple(self.BLOCK() for _ in range(self.DIM * self.DIM))
        if len(blocks) != self.DIM * self.DIM:
            raise ValueError(
                f"{type(self).__name__} needs {self.DIM * self.DIM} blocks, got {len(blocks)}"
            )
        object.__setattr__(self, "blocks", blocks)

    @classmethod
    def _from_bytes(cls, data: bytes):
        count = cls.DIM * cls.DIM
        values = struct.unpack(f">{count}H", data)
        return cls(tuple(cls.BLOCK(value) for value in values))

    @classmethod
    def read(cls, stream: BinaryIO):
        size = 2 * cls.DIM * cls.DIM
        data = stream.read(size)
        if len(data) != size:
            raise EOFError(f"expected {size} bytes, got {len(data)}")
        return cls._from_bytes(data)

    def _to_bytes(self) -> bytes:
        return b"".join(block._to_bytes() for block in self.blocks)

    def _same_tiles(self, other) -> bool:
        return all(a.same_tile(b) for a, b in zip(self.blocks, other.blocks))


@dataclass(frozen=True, order=True)
class ChunkS1(_Chunk):
    """A 256x256 chunk: 16x16 blocks, row by row."""

    DIM: ClassVar[int] = 16
    BLOCK: ClassVar[type] = BlockS1

    @classmethod
    def read(cls, stream: BinaryIO) -> ChunkS1:
        return super().read(stream)

    def write(self, stream: BinaryIO) -> None:
        stream.write(self._to_bytes())

    def same_tiles(self, other: ChunkS1) -> bool:
        """Compare block by block, ignoring collision bits."""
        return self._same_tiles(other)


@dataclass(frozen=True, order=True)
class ChunkS2(_Chunk):
    """A 128x128 chunk: 8x8 blocks, row by row."""

    DIM: ClassVar[int] = 8
    BLOCK: ClassVar[type] = BlockS2

    @classmethod
    def read(cls, stream: BinaryIO) -> ChunkS2:
        return super().read(stream)

    def write(self, stream: BinaryIO) -> None:
        stream.write(self._to_bytes())

    def same_tiles(self, other: ChunkS2) -> bool:
        """Compare block by block, ignoring both collision fields."""
        return self._same_tiles(other)


@dataclass(frozen=True)
class ChunkMap:
    """Indices of the four 128x128 chunks that replace one 256x256 chunk."""

    top_left: int
    top_right: int
    bottom_left: int
    bottom_right: int


def split_chunks(
    high_chunk: ChunkS1, low_chunk: ChunkS1
) -> tuple[ChunkS2, ChunkS2, ChunkS2, ChunkS2]:
    """Return the top-left, top-right, bottom-left and bottom-right quadrants."""
    quadrants: list[list[BlockS2]] = [[BlockS2()] * 64 for _ in range(4)]
    for row in range(16):
        for col in range(16):
            quadrant = (2 if row >= 8 else 0) + (1 if col >= 8 else 0)
            source = row * 16 + col
            quadrants[quadrant][(row % 8) * 8 + col % 8] = BlockS2.merge(
                high_chunk.blocks[source], low_chunk.blocks[source]
            )
    tl, tr, bl, br = (ChunkS2(tuple(blocks)) for blocks in quadrants)
    return tl, tr, bl, br


_REMAPS = {
    4: {0x15: 0x60, 0x1E: 0x61, 0x1F: 0x62, 0x32: 0x63},
    5: {0x04: 0x05, 0x06: 0x07, 0x16: 0x17, 0x28: 0x29, 0x2F: 0x30, 0x37: 0x38, 0x3C: 0x3D},
    6: {0x10: 0x6D, 0x43: 0x6F, 0x46: 0x6A, 0x48: 0x6B, 0x4A: 0x6C, 0x63: 0x6E},
}


def get_chunk_remaps(levelid: int) -> list[int]:
    """The 256-entry table giving, per chunk, the chunk holding its low plane."""
    if 4 <= levelid <= 6:
        remaps = [value & 0x7F for value in range(256)]
    else:
        remaps = [(value + 1) & 0x7F for value in range(256)]
    for index, value in _REMAPS.get(levelid, {0x28: 0x51}).items():
        remaps[index] = value
    return remaps


def read_chunks(stream: BinaryIO) -> list[ChunkS1]:
    """Read every chunk in the stream; a trailing partial chunk is zero-padded."""
    data = stream.read()
    size = 2 * ChunkS1.DIM * ChunkS1.DIM
    chunks = []
    for start in range(0, len(data), size):
        piece = data[start : start + size].ljust(size, b"\0")
        chunks.append(ChunkS1._from_bytes(piece))
    return chunks


@dataclass
class SplitReport:
    """What analyze found: layout sizes, chunk usage and the split chunks."""

    fg_width: int
    fg_height: int
    bg_width: int
    bg_height: int
    total_chunks: int
    used_fg: int
    used_bg: int
    used: int
    unique: int
    layout_fg: bytes = b""
    layout_bg: bytes = b""
    s2_chunks: list[ChunkS2] = field(default_factory=list)
    chunk_maps: dict[int, ChunkMap] = field(default_factory=dict)

    def lines(self) -> list[str]:
        return [
            f"Layout sizes: FG: ({self.fg_width}, {self.fg_height}), "
            f"BG: ({self.bg_width}, {self.bg_height})",
            f"Number of chunks: total: {self.total_chunks}, FG: {self.used_fg}, "
            f"BG: {self.used_bg}, used: {self.used}, unique: {self.unique}",
            f"Number of S2 chunks: {len(self.s2_chunks)}",
        ]


def _parse_layout(data: bytes, name: str) -> tuple[int, int, bytes]:
    if len(data) < 2:
        raise ValueError(f"{name} layout is missing its size header")
    width, height = data[0] + 1, data[1] + 1
    cells = data[2 : 2 + width * height]
    if len(cells) != width * height:
        raise ValueError(
            f"{name} layout holds {len(cells)} cells, expected {width * height}"
        )
    return width, height, cells


def analyze(
    levelid: int, layout_fg: bytes, layout_bg: bytes, chunks: Sequence[ChunkS1]
) -> SplitReport:
    """Find the chunks a level uses and split them into 128x128 chunks."""
    if not 0 <= levelid <= 6:
        raise ValueError(f"level ID {levelid} must be between 0 and 6")
    remaps = get_chunk_remaps(levelid)
    fg_width, fg_height, fg_cells = _parse_layout(layout_fg, "FG")
    bg_width, bg_height, bg_cells = _parse_layout(layout_bg, "BG")

    used_chunks: set[int] = set()
    need_remap: set[int] = set()
    unique_chunks: set[ChunkS1] = set()

    def chunk_at(index: int) -> ChunkS1:
        if not 0 <= index < len(chunks):
            raise ValueError(f"chunk {index:#x} is beyond the {len(chunks)} chunks given")
        return chunks[index]

    def process(cells: Iterable[int]) -> None:
        for value in cells:
            chunk = value & 0x7F
            if value & 0x80:
                need_remap.add(chunk)
            used_chunks.add(chunk)
            if chunk:
                unique_chunks.add(chunk_at(chunk - 1))

    process(fg_cells)
    used_fg = len(used_chunks)
    process(bg_cells)

    s2_chunks: list[ChunkS2] = []
    chunk_ids: dict[ChunkS2, int] = {}
    chunk_maps: dict[int, ChunkMap] = {}

    def checked_insert(chunk: ChunkS2) -> int:
        if chunk not in chunk_ids:
            chunk_ids[chunk] = len(s2_chunks)
            s2_chunks.append(chunk)
        return chunk_ids[chunk]

    for chunk in sorted(used_chunks):
        if chunk == 0:
            continue
        chunk -= 1
        high = chunk_at(chunk)
        low = chunk_at(remaps[chunk]) if chunk in need_remap else high
        quadrants = split_chunks(high, low)
        chunk_maps[chunk] = ChunkMap(*(checked_insert(q) for q in quadrants))

    return SplitReport(
        fg_width=fg_width,
        fg_height=fg_height,
        bg_width=bg_width,
        bg_height=bg_height,
        total_chunks=len(chunks),
        used_fg=used_fg,
        used_bg=len(used_chunks) - used_fg,
        used=len(used_chunks),
        unique=len(unique_chunks),
        layout_fg=bytes(fg_cells),
        layout_bg=bytes(bg_cells),
        s2_chunks=s2_chunks,
        chunk_maps=chunk_maps,
    )


_USAGE = (
    "Usage: chunk_splitter levelid layoutfgfile layoutbgfile chunkfile\n"
    "levelid     \t0 = PPZ, 1 = CCZ, 2 = TTZ, 3 = QQZ, 4 = WWZ, 5 = SSZ, 6 = MMZ\n"
    "layoutfgfile\tLevel's FG layout file, assumed to be in S1 format (uncompressed)\n"
    "layoutbgfile\tLevel's BG layout file, assumed to be in S1 format (uncompressed)\n"
    "chunkfile   \tLevel's 256x256 chunk file, assumed to be in SCD format (uncompressed)\n"
)


def _parse_int(text: str) -> int:
    match = re.match(r"\s*[+-]?\d+", text)
    return int(match.group()) if match else 0


def _read_file(path: str) -> bytes | None:
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError:
        return None


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 4:
        print(_USAGE, file=sys.stderr)
        return 1

    levelid = _parse_int(args[0])
    if not 0 <= levelid <= 6:
        print(
            f"Input level ID {args[0]} must be a number: 0 = PPZ, 1 = CCZ, "
            "2 = TTZ, 3 = QQZ, 4 = WWZ, 5 = SSZ, 6 = MMZ.",
            file=sys.stderr,
        )
        return 2

    inputs = []
    for path, kind, code in (
        (args[1], "layout", 3),
        (args[2], "layout", 4),
        (args[3], "chunks", 5),
    ):
        data = _read_file(path)
        if data is None:
            print(f"Input {kind} file '{path}' could not be opened.", file=sys.stderr)
            return code
        inputs.append(data)
    layout_fg, layout_bg, chunk_data = inputs

    print("=" * 62)
    print(f"{args[3]}\t{levelid}")
    chunk_size = 2 * ChunkS1.DIM * ChunkS1.DIM
    chunks = [
        ChunkS1._from_bytes(chunk_data[start : start + chunk_size].ljust(chunk_size, b"\0"))
        for start in range(0, len(chunk_data), chunk_size)
    ]
    try:
        report = analyze(levelid, layout_fg, layout_bg, chunks)
    except ValueError as error:
        print(error, file=sys.stderr)
        return 6
    for line in report.lines():
        print(line)
    return 0