"""FM synthesis voices as stored in sound drivers, with assembly rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

VOICE_SIZE = 25

_Quad = tuple[int, int, int, int]
_ZERO: _Quad = (0, 0, 0, 0)

_S2_ORDER = (3, 1, 2, 0)
_NORMAL_ORDER = (3, 2, 1, 0)


def _hex2(value: int) -> str:
    return f"${value & 0xFF:02X}"


def _hex_list(values) -> str:
    return ", ".join(_hex2(value) for value in values)


def _macro(name: str) -> str:
    return f"\t{name:<19} "


@dataclass(frozen=True)
class FMVoice:
    """One four-operator FM voice; per-operator values are indexed 0..3."""

    unused_bits: int = 0
    feedback: int = 0
    algorithm: int = 0
    dt: _Quad = _ZERO
    cf: _Quad = _ZERO
    rs: _Quad = _ZERO
    ar: _Quad = _ZERO
    am: _Quad = _ZERO
    d1r_unk: _Quad = _ZERO
    d1r: _Quad = _ZERO
    d2r: _Quad = _ZERO
    dl: _Quad = _ZERO
    rr: _Quad = _ZERO
    tl: _Quad = _ZERO

    def __post_init__(self) -> None:
        for name in ("dt", "cf", "rs", "ar", "am", "d1r_unk", "d1r", "d2r", "dl", "rr", "tl"):
            values = tuple(getattr(self, name))
            if len(values) != 4:
                raise ValueError(f"{name} needs 4 operator values, got {len(values)}")
            object.__setattr__(self, name, values)

    @classmethod
    def read(cls, stream: BinaryIO, sonic_version: int) -> FMVoice:
        data = stream.read(VOICE_SIZE)
        if len(data) != VOICE_SIZE:
            raise EOFError(f"expected {VOICE_SIZE} bytes, got {len(data)}")
        it = iter(data)
        head = next(it)
        order = _S2_ORDER if sonic_version == 2 else _NORMAL_ORDER
        fields: dict[str, list[int]] = {
            name: [0] * 4
            for name in ("dt", "cf", "rs", "ar", "am", "d1r_unk", "d1r", "d2r", "dl", "rr", "tl")
        }
        for index in order:
            value = next(it)
            fields["dt"][index] = (value >> 4) & 0xF
            fields["cf"][index] = value & 0xF
        for index in order:
            value = next(it)
            fields["rs"][index] = (value >> 6) & 0x3
            fields["ar"][index] = value & 0x3F
        for index in order:
            value = next(it)
            fields["am"][index] = (value >> 7) & 1
            fields["d1r_unk"][index] = (value >> 5) & 3
            fields["d1r"][index] = value & 0x1F
        for index in order:
            fields["d2r"][index] = next(it)
        for index in order:
            value = next(it)
            fields["dl"][index] = (value >> 4) & 0xF
            fields["rr"][index] = value & 0xF
        for index in order:
            fields["tl"][index] = next(it)
        return cls(
            unused_bits=(head >> 6) & 3,
            feedback=(head >> 3) & 7,
            algorithm=head & 7,
            **{name: tuple(values) for name, values in fields.items()},
        )

    @property
    def _header(self) -> int:
        return (self.unused_bits << 6) | (self.feedback << 3) | self.algorithm

    def _dt_cf(self, i: int) -> int:
        return (self.dt[i] << 4) | self.cf[i]

    def _rs_ar(self, i: int) -> int:
        return (self.rs[i] << 6) | self.ar[i]

    def _am_d1r(self, i: int) -> int:
        return (self.am[i] << 7) | (self.d1r_unk[i] << 5) | self.d1r[i]

    def _dl_rr(self, i: int) -> int:
        return (self.dl[i] << 4) | self.rr[i]

    def write(self, stream: BinaryIO, sonic_version: int) -> None:
        order = _S2_ORDER if sonic_version == 2 else _NORMAL_ORDER
        out = [self._header]
        out += [self._dt_cf(i) for i in order]
        out += [self._rs_ar(i) for i in order]
        out += [self._am_d1r(i) for i in order]
        out += [self.d2r[i] for i in order]
        out += [self._dl_rr(i) for i in order]
        out += [self.tl[i] for i in order]
        stream.write(bytes(value & 0xFF for value in out))

    def render(self, sonic_version: int, voice_id: int) -> str:
        """Render the voice as a commented block of assembler macros."""
        order = _NORMAL_ORDER
        ops = range(4)
        parts = [
            f";\tVoice {_hex2(voice_id)}\n",
            f";\t{_hex2(self._header)}\n",
            ";\t",
            "".join(_hex2(self._dt_cf(i)) + ", " for i in order),
            "\t",
            "".join(_hex2(self._rs_ar(i)) + ", " for i in order),
            "\t",
            _hex_list(self._am_d1r(i) for i in order),
            "\n;\t",
            "".join(_hex2(self.d2r[i]) + ", " for i in order),
            "\t",
            "".join(_hex2(self._dl_rr(i)) + ", " for i in order),
            "\t",
            _hex_list(self.tl[i] for i in order),
            "\n",
            _macro("smpsVcAlgorithm") + _hex2(self.algorithm) + "\n",
            _macro("smpsVcFeedback") + _hex2(self.feedback) + "\n",
        ]
        if any(self.d1r_unk):
            unused = _hex_list((self.unused_bits, *self.d1r_unk))
        else:
            unused = _hex2(self.unused_bits)
        parts.append(_macro("smpsVcUnusedBits") + unused + "\n")
        for name, values in (
            ("smpsVcDetune", self.dt),
            ("smpsVcCoarseFreq", self.cf),
            ("smpsVcRateScale", self.rs),
            ("smpsVcAttackRate", self.ar),
            ("smpsVcAmpMod", self.am),
            ("smpsVcDecayRate1", self.d1r),
            ("smpsVcDecayRate2", self.d2r),
            ("smpsVcDecayLevel", self.dl),
            ("smpsVcReleaseRate", self.rr),
            ("smpsVcTotalLevel", self.tl),
        ):
            parts.append(_macro(name) + _hex_list(values[i] for i in ops) + "\n")
        parts.append("\n")
        return "".join(parts)