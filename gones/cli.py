"""The nesutil command: ROM listing, iNES, CHR and Game Genie utilities."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from importlib import metadata

from gones.chrdata import DEFAULT_PALETTE, decode_file, encode_file, parse_palette
from gones.genie import GenieError, decode, encode, format_decode_table
from gones.inestool import create, extract
from gones.romlist import (
    OutputFormat,
    filter_entries,
    load_paths,
    print_entries,
    sort_entries,
)

_log = logging.getLogger(__name__)


def _version() -> str:
    try:
        return metadata.version("gones")
    except metadata.PackageNotFoundError:
        return ""


def _uint8(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid uint8 value: {text!r}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"value out of range: {text!r}")
    return value


def _parse_hex(text: str, bits: int) -> int:
    if re.fullmatch(r"[+-]?[0-9a-fA-F]+", text) is None:
        raise ValueError(f"invalid hex value: {text!r}")
    value = int(text, 16)
    if not -(1 << (bits - 1)) <= value < (1 << (bits - 1)):
        raise ValueError(f"hex value out of range: {text!r}")
    return value


def _string_to_string(values: list[str] | None) -> dict[str, str]:
    result: dict[str, str] = {}
    for value in values or []:
        for pair in value.split(","):
            key, sep, val = pair.partition("=")
            if not sep:
                raise ValueError(f"{pair} must be formatted as key=value")
            result[key] = val
    return result


def _palette(args: argparse.Namespace):
    if args.palette:
        return parse_palette(",".join(args.palette))
    return parse_palette(DEFAULT_PALETTE)


def _run_ls(args: argparse.Namespace) -> None:
    entries, failures = load_paths(args.paths)
    entries = filter_entries(entries, _string_to_string(args.filter))
    if args.sort:
        entries = sort_entries(entries, args.sort)
    if args.reverse:
        entries.reverse()
    output_format = OutputFormat.parse(args.output)
    print_entries(sys.stdout, entries, output_format)
    if failures:
        raise ValueError("\n".join(f"{path}: {exc}" for path, exc in failures))


def _run_ines_create(args: argparse.Namespace) -> None:
    create(
        args.rom,
        args.prg,
        header=args.header or None,
        chr_path=args.chr or None,
        mapper=args.mapper,
        mirror=args.mirror,
        battery=args.battery,
    )


def _run_ines_extract(args: argparse.Namespace) -> None:
    extract(
        args.rom,
        header=args.header or None,
        prg=args.prg or None,
        chr_path=args.chr or None,
    )


def _run_chr_decode(args: argparse.Namespace) -> None:
    decode_file(args.input, args.output, _palette(args))


def _run_chr_encode(args: argparse.Namespace) -> None:
    encode_file(args.input, args.output, _palette(args))


def _run_genie_decode(args: argparse.Namespace) -> None:
    results = []
    errors = []
    for code in args.codes:
        try:
            results.append(decode(code))
        except GenieError as exc:
            errors.append(str(exc))
    sys.stdout.write(format_decode_table(results))
    if errors:
        raise GenieError("\n".join(errors))


def _run_genie_encode(args: argparse.Namespace) -> None:
    address = _parse_hex(args.address, 32)
    replace = _parse_hex(args.replace, 16)
    compare = _parse_hex(args.compare, 16) if args.compare is not None else 0
    sys.stdout.write(encode(address, replace, compare) + "\n")


def _group(subparsers, name: str, help_text: str) -> argparse._SubParsersAction:
    parser = subparsers.add_parser(name, help=help_text, description=help_text)
    parser.set_defaults(func=lambda _args, p=parser: p.print_help())
    return parser.add_subparsers(title="commands")


def _add_palette_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-p", "--palette", action="append", default=None,
        help="Palette to use. Must contain 4 hex colors. (default 000,555,AAA,FFF)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(prog="nesutil", description="GoNES command-line utilities")
    version = _version()
    if version:
        parser.add_argument("-v", "--version", action="version", version=f"%(prog)s version {version}")
    commands = parser.add_subparsers(title="commands")

    ls = commands.add_parser("ls", aliases=["list"], help="List ROM files and metadata")
    ls.add_argument("paths", nargs="*")
    ls.add_argument("-o", "--output", default="table", help="Output format. One of: (table, json, yaml)")
    ls.add_argument("-f", "--filter", action="append", default=None, help="Filter by a field")
    ls.add_argument("-s", "--sort", default="path", help="Sort by a field")
    ls.add_argument("-r", "--reverse", action="store_true", help="Reverse the output")
    ls.set_defaults(func=_run_ls)

    ines = _group(commands, "ines", "INES ROM utilities")
    ines_extract = ines.add_parser("extract", help="Extract PRG/CHR ROM data from an INES ROM")
    ines_extract.add_argument("rom")
    ines_extract.add_argument("-H", "--header", default="", help="Header output file path (default generated)")
    ines_extract.add_argument("-p", "--prg", default="", help="PRG ROM output file path (default generated)")
    ines_extract.add_argument("-c", "--chr", default="", help="CHR ROM output file path (default generated)")
    ines_extract.set_defaults(func=_run_ines_extract)

    ines_create = ines.add_parser("create", help="Create an INES ROM file")
    ines_create.add_argument("rom")
    ines_create.add_argument("-H", "--header", default="", help="Header file")
    ines_create.add_argument("-p", "--prg", required=True, help="PRG ROM file path")
    ines_create.add_argument("-c", "--chr", default="", help="CHR ROM file path")
    ines_create.add_argument("-m", "--mapper", type=_uint8, default=None, help="INES mapper number")
    ines_create.add_argument(
        "-n", "--mirror", default=None,
        help="Type of nametable mirroring (one of horizontal, vertical, fourscreen)",
    )
    ines_create.add_argument("-b", "--battery", action="store_true", default=None, help="Enable battery/extra RAM")
    ines_create.set_defaults(func=_run_ines_create)

    chr_cmds = _group(commands, "chr", "CHR graphics data utilities")
    chr_encode = chr_cmds.add_parser("encode", help="Encode a PNG file into NES CHR data")
    chr_encode.add_argument("input")
    chr_encode.add_argument("output", nargs="?")
    _add_palette_flag(chr_encode)
    chr_encode.set_defaults(func=_run_chr_encode)

    chr_decode = chr_cmds.add_parser("decode", help="Decode NES CHR data into a PNG file")
    chr_decode.add_argument("input")
    chr_decode.add_argument("output", nargs="?")
    _add_palette_flag(chr_decode)
    chr_decode.set_defaults(func=_run_chr_decode)

    genie = _group(commands, "genie", "Game Genie code utilities")
    genie_decode = genie.add_parser("decode", help="Decode a Game Genie code")
    genie_decode.add_argument("codes", nargs="+")
    genie_decode.set_defaults(func=_run_genie_decode)

    genie_encode = genie.add_parser("encode", help="Encode a Game Genie code")
    genie_encode.add_argument("address")
    genie_encode.add_argument("replace")
    genie_encode.add_argument("compare", nargs="?")
    genie_encode.set_defaults(func=_run_genie_encode)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run nesutil; return the process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    try:
        func(args)
    except Exception as exc:  # noqa: BLE001 - every failure is reported and ends the command
        for line in str(exc).splitlines() or [type(exc).__name__]:
            _log.error(line)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())