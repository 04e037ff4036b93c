import io

import pytest

from mdtools.dplc import DplcFile, FrameDplc, SingleDplc


def _write(obj, version, *args):
    buffer = io.BytesIO()
    obj.write(buffer, version, *args)
    return buffer.getvalue()


def test_single_dplc_reads_classic_format():
    assert SingleDplc.read(io.BytesIO(b"\x30\x10"), 0) == SingleDplc(4, 0x10)


def test_single_dplc_reads_version4_format():
    assert SingleDplc.read(io.BytesIO(b"\x01\x03"), 4) == SingleDplc(4, 0x10)


@pytest.mark.parametrize("version", [0, 1, 2, 3, 4])
@pytest.mark.parametrize("entry", [SingleDplc(1, 0), SingleDplc(16, 0x7F), SingleDplc(7, 0x0ABC)])
def test_single_dplc_round_trip(version, entry):
    data = _write(entry, version)
    assert len(data) == entry.size(version)
    assert SingleDplc.read(io.BytesIO(data), version) == entry


def test_single_dplc_describe():
    text = SingleDplc(4, 0x10).describe()
    assert text.startswith("\tFirst tile: $0010\tLast tile: $")
    assert text.endswith("\tNum tiles: $0004\n")


def test_single_dplc_truncated():
    with pytest.raises(EOFError):
        SingleDplc.read(io.BytesIO(b"\x30"), 0)


def test_frame_dplc_version1_count_is_a_byte():
    frame = FrameDplc.read(io.BytesIO(b"\x01\x30\x10"), 1)
    assert frame == FrameDplc([SingleDplc(4, 0x10)])
    assert _write(frame, 1) == b"\x01\x30\x10"


def test_frame_dplc_version4_empty_frame():
    frame = FrameDplc()
    data = _write(frame, 4)
    assert data == b"\xff\xff"
    assert FrameDplc.read(io.BytesIO(data), 4) == frame


@pytest.mark.parametrize("version", [0, 1, 2, 3, 4])
def test_frame_dplc_round_trip(version):
    frame = FrameDplc([SingleDplc(3, 0x20), SingleDplc(16, 0x40), SingleDplc(1, 0x100)])
    data = _write(frame, version)
    assert len(data) == frame.size(version)
    assert FrameDplc.read(io.BytesIO(data), version) == frame


def test_frame_dplc_merges_adjacent_runs():
    frame = FrameDplc([SingleDplc(2, 0), SingleDplc(3, 2)])
    assert frame.consolidate().entries == (SingleDplc(5, 0),)


def test_frame_dplc_consolidate_empty():
    assert FrameDplc().consolidate() == FrameDplc()


def test_frame_dplc_consolidate_invariants():
    frame = FrameDplc([SingleDplc(8, 0), SingleDplc(8, 8), SingleDplc(8, 16), SingleDplc(3, 100)])
    result = frame.consolidate()
    assert all(0 < entry.count <= 16 for entry in result.entries)
    assert sum(e.count for e in result.entries) == sum(e.count for e in frame.entries)
    assert list(result.build_vram_map().values()) == list(frame.build_vram_map().values())


def test_frame_dplc_build_vram_map():
    vram_map = FrameDplc([SingleDplc(2, 5), SingleDplc(1, 9)]).build_vram_map()
    assert list(vram_map) == [0, 1, 2]
    assert list(vram_map.values()) == [5, 6, 9]


def test_frame_dplc_describe_has_tile_count():
    text = FrameDplc([SingleDplc(4, 0x10)]).describe()
    assert text.endswith("\tTile count: $0004\n")
    assert text.startswith(SingleDplc(4, 0x10).describe())


def test_dplc_file_write_layout():
    frame = FrameDplc([SingleDplc(4, 0x10)])
    data = _write(DplcFile([frame, FrameDplc()]), 0, False)
    assert data == b"\x00\x04\x00\x08\x00\x01\x30\x10\x00\x00"
    assert DplcFile.read(io.BytesIO(data), 0) == DplcFile([frame, FrameDplc()])


def test_dplc_file_null_first():
    frame = FrameDplc([SingleDplc(4, 0x10)])
    dplc = DplcFile([FrameDplc(), frame])
    data = _write(dplc, 0, True)
    assert data[:2] == b"\x00\x00"
    assert DplcFile.read(io.BytesIO(data), 0) == dplc


def test_dplc_file_deduplicates_frames():
    frame = FrameDplc([SingleDplc(2, 0x30)])
    dplc = DplcFile([frame, frame])
    data = _write(dplc, 0, False)
    assert data[0:2] == data[2:4]
    assert len(data) == 4 + frame.size(0)
    assert DplcFile.read(io.BytesIO(data), 0) == dplc


@pytest.mark.parametrize("version", [0, 1, 4])
def test_dplc_file_round_trip_and_size(version):
    dplc = DplcFile([
        FrameDplc([SingleDplc(1, 2)]),
        FrameDplc([SingleDplc(3, 4), SingleDplc(16, 0x50)]),
    ])
    data = _write(dplc, version, False)
    assert len(data) == dplc.size(version)
    assert DplcFile.read(io.BytesIO(data), version) == dplc


def test_dplc_file_describe():
    text = DplcFile([FrameDplc(), FrameDplc([SingleDplc(1, 1)])]).describe()
    assert text.startswith("=" * 80 + "\n")
    assert "DPLC for frame $0000:\n" in text
    assert "DPLC for frame $0001:\n" in text


def test_dplc_file_consolidate_matches_frames():
    frames = [FrameDplc([SingleDplc(2, 0), SingleDplc(3, 2)]), FrameDplc()]
    result = DplcFile(frames).consolidate()
    assert result.frames == tuple(frame.consolidate() for frame in frames)


def test_dplc_file_truncated():
    with pytest.raises(EOFError):
        DplcFile.read(io.BytesIO(b"\x00\x04\x00"), 0)