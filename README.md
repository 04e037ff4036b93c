# mdtools

Tools for working with Sega Mega Drive game data: sprite mappings, dynamic
pattern load cues (DPLCs), SMPS FM voices and 256×256 level chunks.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Sprite mappings and DPLCs

Mapping and DPLC files are read from and written to binary, seekable streams,
such as files opened in `"rb"` or `"wb"` mode. Every reader and writer takes a
format `version`:

- Mappings: version 1 stores piece counts and X positions as single bytes,
  version 2 stores an extra pattern word in each piece, and any other version
  stores counts and X positions as words.
- DPLCs: version 1 stores the entry count as a byte, version 4 stores the
  count minus one and packs each entry's tile count into the low nibble, and
  any other version stores the count as a word with the tile count in the
  high nibble.

All of these classes are frozen dataclasses. Operations such as `split`,
`merge`, `consolidate` and `change_pal` return new objects rather than
changing the one they are called on.

```python
from mdtools.dplc import DplcFile
from mdtools.mappingfile import MappingFile

with open("Map_Sonic.bin", "rb") as fh:
    mappings = MappingFile.read(fh, 2)

with open("DPLC_Sonic.bin", "rb") as fh:
    dplcs = DplcFile.read(fh, 2)

print(mappings.describe())
print(dplcs.describe())

# Rebuild the mappings and DPLCs so each frame loads a minimal set of tiles.
new_mappings, new_dplcs = mappings.optimize(dplcs)

with open("Map_Sonic_new.bin", "wb") as fh:
    new_mappings.write(fh, 2, True)
```

### `mdtools.dplc`

- `SingleDplc(count, tile)`: a run of `count` tiles starting at `tile`.
- `FrameDplc(entries)`: the cues for one frame. `consolidate()` joins
  adjacent runs and cuts them into entries of at most 16 tiles;
  `build_vram_map()` returns a dict from VRAM slot, in load order, to art
  tile.
- `DplcFile(frames)`: a whole file, with `read`, `write`, `size`,
  `describe` and `consolidate`.

### `mdtools.mapping`

- `SingleMapping(tile, flags, xx, yy, sx, sy)`: one sprite piece.
- `FrameMapping(pieces)`: the pieces of one frame. `split()` returns the
  frame rewritten to point at VRAM slots together with the consolidated
  `FrameDplc` that loads the art it uses; `merge(dplc)` turns VRAM-relative
  pieces back into pieces that point at the art; `change_pal(source, dest)`
  moves pieces whose palette bits equal `source` to `dest` (both given as
  the flag bits, e.g. `0x20` for palette line 1).

### `mdtools.mappingfile`

`MappingFile(frames)` does the same for whole files: `split()` returns a
`(MappingFile, DplcFile)` pair, `merge(dplc)` returns a `MappingFile`,
`optimize(dplc)` returns a new `(MappingFile, DplcFile)` pair, and
`change_pal` returns a new file. `merge` and `optimize` raise `ValueError`
if the DPLC file has fewer frames than the mappings.

### Writing files

`write(stream, version, null_first=False)` writes the offset table followed
by the frames. Identical frames share one offset. With `null_first`, an
empty first frame is written as offset 0 (for `DplcFile`, not in version 4).
Offsets are relative to the stream position when writing starts.

Reading raises `EOFError` on truncated data and `ValueError` on a negative
frame offset.

## FM voices

`mdtools.fmvoice.FMVoice` reads and writes the 25-byte SMPS FM voice format.
When `sonic_version` is 2, operators are stored in the order 3, 1, 2, 0;
otherwise in the order 3, 2, 1, 0. `render(sonic_version, voice_id)`
returns the voice as assembler source using the `smpsVc*` macros, preceded
by a comment block with the raw values.

```python
from mdtools.fmvoice import FMVoice

with open("voice.bin", "rb") as fh:
    voice = FMVoice.read(fh, 2)
print(voice.render(2, 0))
```

## Chunk splitter

`mdtools.chunk_splitter` analyses a level stored with 256×256 chunks and
uncompressed S1-format FG and BG layouts. It splits every used chunk into
four 128×128 chunks in S2 format, merging the high and low collision planes
into each block, and reports how many chunks are used, unique and produced.

```
mdtools-chunk-splitter levelid layoutfgfile layoutbgfile chunkfile
```

`levelid` is one of 0 = PPZ, 1 = CCZ, 2 = TTZ, 3 = QQZ, 4 = WWZ, 5 = SSZ,
6 = MMZ. It selects the table used to find the low-plane chunk for layout
entries with the high bit set.

The command exits with 1 on wrong arguments, 2 on a bad level ID, 3, 4 or 5
when the FG layout, BG layout or chunk file cannot be opened, and 6 when the
data is inconsistent (a malformed layout, a chunk index past the end of the
chunk file, or blocks in the two planes that differ in more than collision).

From Python, the same work is available through `read_chunks`,
`split_chunks`, `get_chunk_remaps` and `analyze`, which returns a
`SplitReport` holding the counts, the produced `ChunkS2` list and a
`ChunkMap` for each used chunk. `BlockS1`, `BlockS2`, `ChunkS1` and
`ChunkS2` are frozen, ordered dataclasses that can be read from and written
to binary streams.

## What this package does not do

- It does not compress or decompress data. Files packed with the usual
  Mega Drive compression formats must be unpacked with another tool before
  they are read here.
- The chunk splitter only reports; it does not write the 128×128 chunks or
  new layouts to files. Use `analyze` from Python to get them.
- Mappings, DPLCs and FM voices have no command of their own; they are used
  from Python.