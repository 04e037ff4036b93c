import io

import pytest

from mdtools.dplc import DplcFile, FrameDplc, SingleDplc
from mdtools.mapping import FrameMapping, SingleMapping
from mdtools.mappingfile import MappingFile


def _piece(tile=1, flags=0, xx=-8, yy=-8, sx=1, sy=1):
    return SingleMapping(tile=tile, flags=flags, xx=xx, yy=yy, sx=sx, sy=sy)


def _roundtrip(mappings, version, null_first=False):
    buffer = io.BytesIO()
    mappings.write(buffer, version, null_first)
    buffer.seek(0)
    return buffer, MappingFile.read(buffer, version)


def test_write_bytes_single_piece():
    mappings = MappingFile((FrameMapping((_piece(),)),))
    buffer = io.BytesIO()
    mappings.write(buffer, 3)
    assert buffer.getvalue() == bytes.fromhex("0002 0001 F800 0001 FFF8")


@pytest.mark.parametrize("version", [1, 2, 3])
def test_roundtrip(version):
    mappings = MappingFile(
        (
            FrameMapping((_piece(), _piece(tile=5, sx=2, sy=3, xx=4, yy=-16))),
            FrameMapping((_piece(tile=20, flags=0x28),)),
        )
    )
    buffer, back = _roundtrip(mappings, version)
    assert back == mappings
    assert len(buffer.getvalue()) == mappings.size(version)


def test_null_first_roundtrip():
    mappings = MappingFile((FrameMapping(), FrameMapping((_piece(),)), FrameMapping()))
    buffer, back = _roundtrip(mappings, 3, null_first=True)
    assert back == mappings
    assert buffer.getvalue()[:6] == bytes.fromhex("0000 0006 0000")


def test_duplicate_frames_share_data():
    frame = FrameMapping((_piece(),))
    mappings = MappingFile((frame, frame))
    buffer, back = _roundtrip(mappings, 3)
    assert back == mappings
    assert len(buffer.getvalue()) == 4 + frame.size(3)


def test_split_then_merge_restores():
    mappings = MappingFile(
        (
            FrameMapping((_piece(tile=10, sx=2, sy=2), _piece(tile=40, sx=1, sy=2))),
            FrameMapping((_piece(tile=3),)),
        )
    )
    split_maps, dplc = mappings.split()
    assert len(dplc.frames) == 2
    assert dplc.frames[0].entries[0] == SingleDplc(4, 10)
    assert split_maps.frames[0].pieces[0].tile == 0
    assert split_maps.merge(dplc) == mappings


def test_merge_short_dplc_raises():
    mappings = MappingFile((FrameMapping((_piece(),)), FrameMapping()))
    with pytest.raises(ValueError):
        mappings.merge(DplcFile((FrameDplc(),)))


def test_optimize_cases():
    plain = FrameMapping((_piece(tile=7),))
    mappings = MappingFile((plain, FrameMapping()))
    cues = DplcFile((FrameDplc(), FrameDplc((SingleDplc(2, 5), SingleDplc(3, 7)))))
    new_maps, new_dplc = mappings.optimize(cues)
    assert new_maps.frames[0] == plain
    assert new_dplc.frames[0] == FrameDplc()
    assert new_maps.frames[1] == FrameMapping()
    assert new_dplc.frames[1] == cues.frames[1].consolidate()


def test_optimize_is_equivalent_to_merge():
    split_maps = MappingFile((FrameMapping((_piece(tile=0, sx=2, sy=1), _piece(tile=1))),))
    cues = DplcFile((FrameDplc((SingleDplc(1, 30), SingleDplc(1, 12))),))
    new_maps, new_dplc = split_maps.optimize(cues)
    assert new_maps.merge(new_dplc) == split_maps.merge(cues)


def test_change_pal():
    mappings = MappingFile((FrameMapping((_piece(flags=0x20), _piece(flags=0x40))),))
    changed = mappings.change_pal(0x20, 0x60)
    assert [p.flags for p in changed.frames[0].pieces] == [0x60, 0x40]


def test_describe():
    mappings = MappingFile((FrameMapping((_piece(),)),))
    text = mappings.describe()
    assert text.startswith("=" * 80 + "\n")
    assert "Mappings for frame $0000:\n" in text