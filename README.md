# gones

Building blocks of an NES emulator, plus the `nesutil` command-line tool for
working with NES ROM files.

The package holds:

- iNES ROM loading and header editing (`gones.cartridge`)
- cartridge mappers 0, 1, 2, 3, 4, 7, 69 and 71 (`gones.mappers`, `gones.mmc`,
  with `gones.mmc.new_mapper` choosing one from a cartridge header)
- the audio processing unit and its channels (`gones.apu`, `gones.channels`),
  buffering stereo float32 samples in a ring buffer (`gones.ringbuffer`)
- the CPU memory bus and the standard controllers (`gones.bus`, `gones.controller`)
- configuration defaults and TOML files, with per-game overrides and flag
  overrides (`gones.config`, `gones.loader`)
- Game Genie, CHR graphics, ROM listing and iNES building helpers
  (`gones.genie`, `gones.chrdata`, `gones.romlist`, `gones.inestool`)

## Installing

```
pip install .
```

## Command-line use

List ROM files below a directory, with their mapper, mirroring, battery flag and hash.
Output formats are `table` (the default), `json`, `yaml` and `path`; sorting works on
`path`, `name`, `mapper`, `battery` and `mirror`, and filters on `name`, `mapper`,
`mirror`, `battery` and `hash`:

```
nesutil ls roms/
nesutil ls roms/ --output json --sort name --filter mapper=4
```

Pull a ROM apart and build it again:

```
nesutil ines extract game.nes
nesutil ines create rebuilt.nes --prg game_prg --chr game_chr --mapper 1 --mirror vertical
```

Turn CHR graphics into a PNG and back:

```
nesutil chr decode game.nes tiles.png
nesutil chr encode tiles.png game.chr --palette 000,555,AAA,FFF
```

Decode and encode Game Genie codes. `genie encode` takes hex values; when the
compare value is left out it is taken as `00`, so the result is an 8-letter code:

```
nesutil genie decode SXIOPO YEUZUGAA
nesutil genie encode ACB3 07 00
```

Run `nesutil --help` or `nesutil <command> --help` for every option.

## Library use

```python
from gones.cartridge import from_ines_file
from gones.mmc import new_mapper
from gones.genie import decode, encode

cart = from_ines_file("game.nes")
print(cart.header.mapper(), cart.mirror)

mapper = new_mapper(cart)
reset_lo = mapper.read_mem(0xFFFC)

result = decode("SXIOPO")
print(hex(result.address), hex(result.replace), result.compare_string())
print(encode(0x91D9, 0xAD))  # SXIOPO
```

## What the package does not do

This package cannot play games. It has no 6502 CPU, no picture processing
unit, no window or screen output, no sound output device and no save states.
`gones.bus.Bus` takes the picture processing unit as an object supplied by the
caller, and the controllers read keys through a key-pressed function passed to
`update_input`. The APU produces sample bytes through `APU.read`, but nothing
here plays them.

## Running the tests

```
pip install .[test]
pytest
```