"""Game cartridges and the iNES ROM file format."""

from __future__ import annotations

import enum
import hashlib
import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO

from gones.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE, PRG_ROM_ADDR

_log = logging.getLogger(__name__)

INES_MAGIC = b"NES\x1a"
HEADER_SIZE = 16
CONTROL_SIZE = 10
SRAM_SIZE = 0x2000

# CPU address of the 6502 reset vector.
RESET_VECTOR = 0xFFFC

SUBMAPPER_MC_ACC = 3


class Mirror(enum.IntEnum):
    """Nametable mirroring arrangement."""

    HORIZONTAL = 0
    VERTICAL = 1
    SINGLE_LOWER = 2
    SINGLE_UPPER = 3
    FOUR_SCREEN = 4

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class InvalidROMError(ValueError):
    """The data is not a usable iNES ROM image."""


def _base_name(path: str | os.PathLike[str]) -> str:
    base = os.path.basename(os.fspath(path).rstrip("/\\")) or os.fspath(path)
    dot = base.rfind(".")
    return base[:dot] if dot >= 0 else base


@dataclass
class INESHeader:
    """The 16-byte iNES file header."""

    magic: bytes = INES_MAGIC
    prg_count: int = 0
    chr_count: int = 0
    control: bytearray = field(default_factory=lambda: bytearray(CONTROL_SIZE))

    def __post_init__(self) -> None:
        control = bytearray(self.control)
        if len(control) > CONTROL_SIZE:
            raise ValueError(f"control bytes must be at most {CONTROL_SIZE} long")
        self.control = control + bytearray(CONTROL_SIZE - len(control))
        self.magic = bytes(self.magic)

    def mapper(self) -> int:
        """Mapper number stored across the two control bytes."""
        return (self.control[1] & 0xF0) | (self.control[0] >> 4)

    def set_mapper(self, value: int) -> None:
        self.control[0] &= 0x0F
        self.control[1] &= 0x0F
        self.control[0] |= (value << 4) & 0xFF
        self.control[1] |= value & 0xF0

    def mirror(self) -> Mirror:
        if self.control[0] & 0x8:
            return Mirror.FOUR_SCREEN
        return Mirror(self.control[0] & 1)

    def set_mirror(self, value: Mirror) -> None:
        self.control[0] &= ~(0x8 | 0x1) & 0xFF
        if value in (Mirror.HORIZONTAL, Mirror.VERTICAL):
            self.control[0] |= int(value)
        else:
            self.control[0] |= 0x8

    def battery(self) -> bool:
        return self.control[0] & 0x2 != 0

    def set_battery(self, value: bool) -> None:
        if value:
            self.control[0] |= 0x2
        else:
            self.control[0] &= ~0x2 & 0xFF

    def nes2(self) -> bool:
        """Whether the header uses the NES 2.0 extensions."""
        return self.control[1] & 0xC == 0x8

    def submapper(self) -> int:
        return self.control[2] >> 4 if self.nes2() else 0

    def to_bytes(self) -> bytes:
        """Serialise the header as written at the start of a ROM file."""
        return (
            self.magic[:4].ljust(4, b"\x00")
            + bytes([self.prg_count & 0xFF, self.chr_count & 0xFF])
            + bytes(self.control)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> INESHeader:
        """Parse exactly 16 header bytes; the magic is not checked."""
        if len(data) < HEADER_SIZE:
            raise InvalidROMError(
                f"header needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        return cls(
            magic=bytes(data[0:4]),
            prg_count=data[4],
            chr_count=data[5],
            control=bytearray(data[6:HEADER_SIZE]),
        )


def _default_header() -> INESHeader:
    return INESHeader(control=bytearray([0, 8]))


@dataclass
class Cartridge:
    """ROM and RAM contents of a game cartridge."""

    header: INESHeader = field(default_factory=_default_header)
    prg: bytearray = field(default_factory=bytearray)
    chr: bytearray = field(default_factory=bytearray)
    sram: bytearray = field(default_factory=lambda: bytearray(SRAM_SIZE))
    mirror: Mirror = Mirror.HORIZONTAL
    battery: bool = False
    name: str = ""
    hash: str = ""

    def set_name(self, path: str | os.PathLike[str]) -> None:
        """Name the cartridge after a file path, without directory or extension."""
        self.name = _base_name(path)

    def __str__(self) -> str:
        return f"title={self.name}"


def cartridge_from_bytes(data: bytes) -> Cartridge:
    """Wrap raw program bytes in a cartridge that starts executing them."""
    cart = Cartridge()
    cart.hash = hashlib.md5(data).hexdigest()

    size = max(PRG_CHUNK_SIZE * 2, PRG_ROM_ADDR + len(data))
    prg = bytearray(PRG_ROM_ADDR) + bytearray(data)
    prg += bytearray(size - len(prg))
    prg[RESET_VECTOR + 1 - PRG_CHUNK_SIZE * 2] = 0x86
    cart.prg = prg
    cart.chr = bytearray(CHR_CHUNK_SIZE)
    return cart


def from_ines(stream: BinaryIO) -> Cartridge:
    """Load a cartridge from an iNES image read from a binary stream."""
    data = stream.read()
    if len(data) < HEADER_SIZE:
        raise InvalidROMError("truncated header")
    header = INESHeader.from_bytes(data[:HEADER_SIZE])
    if header.magic != INES_MAGIC:
        raise InvalidROMError("invalid ROM file: missing NES header")

    cart = Cartridge(header=header, mirror=header.mirror(), battery=header.battery())
    _log.debug(
        "Loaded iNES header battery=%s mapper=%d mirror=%s prg=%d chr=%d",
        cart.battery, header.mapper(), cart.mirror, header.prg_count, header.chr_count,
    )

    pos = HEADER_SIZE
    prg_size = header.prg_count * PRG_CHUNK_SIZE
    if len(data) < pos + prg_size:
        raise InvalidROMError("unexpected end of file in PRG data")
    cart.prg = bytearray(data[pos:pos + prg_size])
    pos += prg_size

    if header.chr_count == 0:
        cart.chr = bytearray(CHR_CHUNK_SIZE)
    else:
        chr_size = header.chr_count * CHR_CHUNK_SIZE
        if len(data) < pos + chr_size:
            raise InvalidROMError("unexpected end of file in CHR data")
        cart.chr = bytearray(data[pos:pos + chr_size])

    cart.hash = hashlib.md5(data).hexdigest()
    return cart


def from_ines_file(path: str | os.PathLike[str]) -> Cartridge:
    """Load a cartridge from an iNES file, naming it after the file if needed."""
    with open(path, "rb") as f:
        cart = from_ines(f)
    if not cart.name:
        cart.set_name(path)
    return cart