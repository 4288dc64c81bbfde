"""Building iNES ROM files from parts and splitting them back apart."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from gones.cartridge import (
    HEADER_SIZE,
    Cartridge,
    INESHeader,
    Mirror,
    _base_name,
    from_ines_file,
)
from gones.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE

_log = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]


class UnknownMirrorError(ValueError):
    """The mirroring name is not recognised."""


_MIRRORS = {
    "horizontal": Mirror.HORIZONTAL,
    "h": Mirror.HORIZONTAL,
    "vertical": Mirror.VERTICAL,
    "v": Mirror.VERTICAL,
    "fourscreen": Mirror.FOUR_SCREEN,
    "f": Mirror.FOUR_SCREEN,
}


def parse_mirror(text: str) -> Mirror:
    """Parse horizontal, vertical or fourscreen (or their first letter)."""
    try:
        return _MIRRORS[text.lower()]
    except KeyError:
        raise UnknownMirrorError(f"unknown mirror: {text}") from None


def create(
    output: PathLike,
    prg: PathLike,
    header: PathLike | None = None,
    chr_path: PathLike | None = None,
    mapper: int | None = None,
    mirror: Mirror | str | None = None,
    battery: bool | None = None,
) -> INESHeader:
    """Write an iNES file from PRG (and optional CHR and header) files.

    Options left as ``None`` keep the value from the header file or the
    default header. Returns the header that was written.
    """
    cart = Cartridge()

    if header is not None and os.fspath(header) != "":
        _log.info("Loading header path=%s", header)
        with open(header, "rb") as f:
            cart.header = INESHeader.from_bytes(f.read(HEADER_SIZE))

    _log.info("Loading PRG path=%s", prg)
    cart.prg = bytearray(Path(prg).read_bytes())
    cart.header.prg_count = (len(cart.prg) // PRG_CHUNK_SIZE) & 0xFF

    if chr_path is not None and os.fspath(chr_path) != "":
        _log.info("Loading CHR path=%s", chr_path)
        cart.chr = bytearray(Path(chr_path).read_bytes())
        cart.header.chr_count = (len(cart.chr) // CHR_CHUNK_SIZE) & 0xFF

    if mapper is not None:
        _log.info("Set mapper value=%d", mapper)
        cart.header.set_mapper(mapper & 0xFF)

    if mirror is not None:
        value = mirror if isinstance(mirror, Mirror) else parse_mirror(mirror)
        _log.info("Set mirror value=%s", value)
        cart.header.set_mirror(value)

    if battery is not None:
        _log.info("Set battery value=%s", battery)
        cart.header.set_battery(battery)

    with open(output, "wb") as f:
        f.write(cart.header.to_bytes())
        f.write(cart.prg)
        if cart.chr:
            f.write(cart.chr)

    return cart.header


def extract(
    path: PathLike,
    header: PathLike | None = None,
    prg: PathLike | None = None,
    chr_path: PathLike | None = None,
) -> tuple[Path, Path, Path | None]:
    """Split an iNES file into header, PRG and CHR files.

    Unset output paths are derived from the ROM's base name in the current
    directory. Returns the paths written; the CHR path is ``None`` when the
    ROM has no CHR data.
    """
    base = _base_name(path)
    cart = from_ines_file(path)

    header_path = Path(header) if header else Path(base + "_header")
    _log.info("Extracting header path=%s", header_path)
    header_path.write_bytes(cart.header.to_bytes())

    prg_path = Path(prg) if prg else Path(base + "_prg")
    _log.info("Extracting PRG path=%s", prg_path)
    prg_path.write_bytes(cart.prg)

    chr_out = Path(chr_path) if chr_path else Path(base + "_chr")
    if cart.header.chr_count == 0:
        _log.warning("Game does not have CHR. Skipping")
        return header_path, prg_path, None

    _log.info("Extracting CHR path=%s", chr_out)
    chr_out.write_bytes(cart.chr)
    return header_path, prg_path, chr_out