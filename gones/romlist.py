"""Listing ROM files with their cartridge metadata."""

from __future__ import annotations

import enum
import json
import logging
import os
import re
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, TextIO

import yaml

from gones.cartridge import Cartridge, from_ines_file
from gones.genie import _tabulate

_log = logging.getLogger(__name__)

PATH_FIELD = "path"
NAME_FIELD = "name"
MAPPER_FIELD = "mapper"
BATTERY_FIELD = "battery"
MIRROR_FIELD = "mirror"
HASH_FIELD = "hash"

SORT_FIELDS = (PATH_FIELD, NAME_FIELD, MAPPER_FIELD, BATTERY_FIELD, MIRROR_FIELD)

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class OutputFormat(enum.Enum):
    """How a listing is printed."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
    PATH = "path"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> OutputFormat:
        """Look up a format by name, ignoring case."""
        for candidate in (text, text.lower()):
            try:
                return cls(candidate)
            except ValueError:
                continue
        raise ValueError(f"{text} does not belong to OutputFormat values")


class UnknownSortFieldError(ValueError):
    """The field cannot be sorted on."""


@dataclass
class Entry:
    """One ROM file and what its header says about it."""

    path: str
    name: str
    mapper: int
    mirror: str
    battery: bool
    hash: str

    @classmethod
    def from_cartridge(cls, path: str, cart: Cartridge) -> Entry:
        return cls(
            path=path,
            name=cart.name,
            mapper=cart.header.mapper(),
            mirror=str(cart.mirror),
            battery=cart.battery,
            hash=cart.hash,
        )


def _raise(error: OSError) -> None:
    raise error


def _walk(root: str) -> Iterator[str]:
    if not os.path.exists(root):
        raise FileNotFoundError(f"no such file or directory: {root}")
    if not os.path.isdir(root):
        yield root
        return
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            yield os.path.normpath(os.path.join(dirpath, filename))


def _load(path: str) -> tuple[Entry | None, Exception | None]:
    try:
        return Entry.from_cartridge(path, from_ines_file(path)), None
    except (OSError, ValueError) as exc:
        return None, exc


def load_paths(
    paths: Iterable[str | os.PathLike[str]],
) -> tuple[list[Entry], list[tuple[str, Exception]]]:
    """Load every .nes file found under the given paths (the current directory by default).

    Returns the entries and the (path, error) pairs of the files that failed to load.
    """
    roots = [os.fspath(p) for p in paths] or ["."]
    files: list[str] = []
    for root in roots:
        try:
            for path in _walk(root):
                if os.path.splitext(path)[1].lower() == ".nes":
                    files.append(path)
        except OSError as exc:
            _log.error("Failed to load ROMs error=%s", exc)

    entries: list[Entry] = []
    errors: list[tuple[str, Exception]] = []
    with ThreadPoolExecutor() as pool:
        for path, (entry, error) in zip(files, pool.map(_load, files)):
            if error is not None:
                errors.append((path, error))
            elif entry is not None:
                entries.append(entry)
    return entries, errors


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid battery filter value: {text!r}")


def _parse_mapper(text: str) -> int:
    if re.fullmatch(r"[0-9]+", text) is None or int(text) > 0xFF:
        raise ValueError(f"invalid mapper filter value: {text!r}")
    return int(text)


def _keep(entry: Entry, filters: Mapping[str, str]) -> bool:
    # The first recognised field decides; unknown fields are ignored.
    for field_name, value in filters.items():
        field_name = field_name.lower()
        if field_name == NAME_FIELD:
            return value.lower() in entry.name.lower()
        if field_name == MAPPER_FIELD:
            return _parse_mapper(value) == entry.mapper
        if field_name == MIRROR_FIELD:
            return value.lower() in entry.mirror.lower()
        if field_name == BATTERY_FIELD:
            return _parse_bool(value) == entry.battery
        if field_name == HASH_FIELD:
            return value == entry.hash
    return True


def filter_entries(entries: Iterable[Entry], filters: Mapping[str, str]) -> list[Entry]:
    """Keep the entries that match a field filter."""
    return [entry for entry in entries if _keep(entry, filters)]


_SORT_KEYS: dict[str, Any] = {
    PATH_FIELD: lambda e: e.path,
    NAME_FIELD: lambda e: e.name,
    MAPPER_FIELD: lambda e: e.mapper,
    BATTERY_FIELD: lambda e: e.battery,
    MIRROR_FIELD: lambda e: e.mirror,
}


def sort_entries(entries: Iterable[Entry], field: str) -> list[Entry]:
    """Return the entries sorted by a field; an empty field leaves the order alone."""
    entries = list(entries)
    if not field:
        return entries
    key = _SORT_KEYS.get(field.lower())
    if key is None:
        raise UnknownSortFieldError(f"unknown sort field: {field.lower()}")
    return sorted(entries, key=key)


def _table(entries: Iterable[Entry]) -> str:
    rows = [["FILE", "NAME", "MAPPER", "MIRROR", "BATTERY", "HASH"]]
    rows.extend(
        [e.path, e.name, str(e.mapper), e.mirror, "true" if e.battery else "false", e.hash]
        for e in entries
    )
    return _tabulate(rows)


def print_entries(out: TextIO, entries: Iterable[Entry], output_format: OutputFormat) -> None:
    """Write the entries to ``out`` in the chosen format."""
    entries = list(entries)
    if output_format is OutputFormat.TABLE:
        out.write(_table(entries))
    elif output_format is OutputFormat.JSON:
        out.write(json.dumps([asdict(e) for e in entries], indent=2, ensure_ascii=False) + "\n")
    elif output_format is OutputFormat.YAML:
        out.write(
            yaml.safe_dump(
                [asdict(e) for e in entries],
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
            )
        )
    elif output_format is OutputFormat.PATH:
        for entry in entries:
            out.write(entry.path + "\n")
    else:
        raise ValueError(f"invalid format: {output_format}")