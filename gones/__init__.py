"""NES emulator components (cartridges, mappers, APU, bus, config) and ROM utilities."""

__version__ = "0.1.0"

__all__ = [
    "apu",
    "bus",
    "cartridge",
    "channels",
    "chrdata",
    "cli",
    "config",
    "consts",
    "controller",
    "genie",
    "inestool",
    "loader",
    "mappers",
    "mmc",
    "ringbuffer",
    "romlist",
]