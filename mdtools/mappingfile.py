"""Sprite mapping files: an offset table followed by per-frame piece lists."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO

from mdtools.dplc import DplcFile, FrameDplc, _read_offsets, _write_word
from mdtools.mapping import FrameMapping


@dataclass(frozen=True)
class MappingFile:
    """A whole mappings file, one FrameMapping per animation frame."""

    frames: tuple[FrameMapping, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "frames", tuple(self.frames))

    @classmethod
    def read(cls, stream: BinaryIO, version: int) -> MappingFile:
        frames = []
        for position in _read_offsets(stream, True):
            if position < 0:
                raise ValueError(f"invalid frame offset {position}")
            stream.seek(position)
            frames.append(FrameMapping.read(stream, version))
        return cls(tuple(frames))

    def write(self, stream: BinaryIO, version: int, null_first: bool = False) -> None:
        start = stream.tell()
        positions: dict[FrameMapping, int] = {}
        frames_at: dict[int, FrameMapping] = {}
        size = 2 * len(self.frames)

        if null_first and self.frames and not self.frames[0].pieces:
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
            parts.append(f"Mappings for frame ${index:04X}:\n")
            parts.append(frame.describe())
        return "".join(parts)

    def split(self) -> tuple[MappingFile, DplcFile]:
        """Turn plain mappings into VRAM-relative mappings plus their DPLCs."""
        mappings: list[FrameMapping] = []
        cues: list[FrameDplc] = []
        for frame in self.frames:
            new_frame, dplc = frame.split()
            mappings.append(new_frame)
            cues.append(dplc.consolidate())
        return MappingFile(tuple(mappings)), DplcFile(tuple(cues))

    def _check_dplc(self, dplc: DplcFile) -> None:
        if len(dplc.frames) < len(self.frames):
            raise ValueError(
                f"DPLC file has {len(dplc.frames)} frames, "
                f"mappings need {len(self.frames)}"
            )

    def merge(self, dplc: DplcFile) -> MappingFile:
        """Fold the DPLCs back into plain mappings that point at the art."""
        self._check_dplc(dplc)
        return MappingFile(
            tuple(frame.merge(cues) for frame, cues in zip(self.frames, dplc.frames))
        )

    def optimize(self, dplc: DplcFile) -> tuple[MappingFile, DplcFile]:
        """Rebuild mappings and DPLCs so each frame loads a minimal set of tiles."""
        self._check_dplc(dplc)
        mappings: list[FrameMapping] = []
        cues: list[FrameDplc] = []
        for frame, frame_dplc in zip(self.frames, dplc.frames):
            if frame_dplc.entries and frame.pieces:
                end_map, new_dplc = frame.merge(frame_dplc).split()
                mappings.append(end_map)
                cues.append(new_dplc.consolidate())
            elif frame_dplc.entries:
                mappings.append(FrameMapping())
                cues.append(frame_dplc.consolidate())
            else:
                mappings.append(frame)
                cues.append(FrameDplc())
        return MappingFile(tuple(mappings)), DplcFile(tuple(cues))

    def change_pal(self, source_palette: int, dest_palette: int) -> MappingFile:
        return MappingFile(
            tuple(frame.change_pal(source_palette, dest_palette) for frame in self.frames)
        )