"""Encoding and decoding Game Genie cheat codes."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

LOOKUP = "APZLGITYEOXUKSVN"
_LO_POS_ORDER = (3, 5, 2, 4, 1, 0, 7, 6)


class GenieError(ValueError):
    """A Game Genie code or value is invalid."""


class InvalidCodeLengthError(GenieError):
    """The code is not 6 or 8 characters long."""


class InvalidCharacterError(GenieError):
    """The code contains a letter that is not a Game Genie letter."""


class OutOfRangeError(GenieError):
    """An encoded value does not fit a Game Genie letter."""


@dataclass(frozen=True)
class DecodeResult:
    """A decoded code: the patched CPU address and its values."""

    code: str
    address: int = 0
    replace: int = 0
    compare: int = -1

    def compare_string(self) -> str:
        if self.compare == -1:
            return "<none>"
        return f"0x{self.compare:02X}"


def decode(code: str) -> DecodeResult:
    """Decode a 6- or 8-letter code, case-insensitively."""
    code = code.upper()
    n = len(code)
    if n not in (6, 8):
        raise InvalidCodeLengthError(
            f"invalid length {n} in code {code!r}; expected 6 or 8 characters"
        )

    values = []
    for ch in code:
        index = LOOKUP.find(ch)
        if index == -1:
            raise InvalidCharacterError(f"invalid character {ch!r} in code {code!r}")
        values.append(index)

    bigint = 0
    for lo in _LO_POS_ORDER[:n]:
        hi = (lo - 1 + n) % n
        bigint = (bigint << 4) | (values[hi] & 8) | (values[lo] & 7)

    compare = -1
    if n == 8:
        compare = bigint & 0xFF
        bigint >>= 8

    return DecodeResult(
        code=code,
        address=(bigint >> 8) | 0x8000,
        replace=bigint & 0xFF,
        compare=compare,
    )


def encode(address: int, replace: int, compare: int = -1) -> str:
    """Encode a patch; a compare value of -1 gives a 6-letter code."""
    if compare == -1:
        length = 6
        bigint = ((address & 0x7FFF) << 8) | replace
    else:
        length = 8
        bigint = ((address | 0x8000) << 16) | (replace << 8) | compare

    encoded = [0] * length
    for lo in reversed(_LO_POS_ORDER[:length]):
        hi = (lo - 1 + length) % length
        encoded[lo] |= bigint & 0b111
        encoded[hi] |= bigint & 0b1000
        bigint >>= 4

    if any(not 0 <= value < len(LOOKUP) for value in encoded):
        raise OutOfRangeError("encoded value out of range")
    return "".join(LOOKUP[value] for value in encoded)


def _tabulate(rows: Iterable[Iterable[str]], padding: int = 3) -> str:
    rows = [list(row) for row in rows]
    widths: list[int] = []
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(cell))
            else:
                widths.append(len(cell))
    return "".join(
        "".join(cell.ljust(widths[i] + padding) for i, cell in enumerate(row)) + "\n"
        for row in rows
    )


def format_decode_table(results: Iterable[DecodeResult]) -> str:
    """Render decoded codes as an aligned text table with a header row."""
    rows = [["CODE", "CPU ADDRESS", "REPLACE VALUE", "COMPARE VALUE"]]
    rows.extend(
        [r.code, f"0x{r.address:04X}", f"0x{r.replace:02X}", r.compare_string()]
        for r in results
    )
    return _tabulate(rows)