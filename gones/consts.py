"""Hardware and timing constants shared across the emulator."""

# Memory address at which raw PRG data is placed.
PRG_ROM_ADDR = 0x600

# Size of the smallest PRG bank.
PRG_CHUNK_SIZE = 0x4000

# Size of the smallest CHR bank.
CHR_CHUNK_SIZE = 0x2000

CPU_FREQUENCY = 1789773

AUDIO_SAMPLE_RATE = 44100
AUDIO_BUFFER_SIZE = 1 / 20  # seconds
AUDIO_BYTES_PER_SAMPLE = 4 * 2
_NANOSECONDS_PER_SECOND = 1_000_000_000
_AUDIO_BUFFER_NS = _NANOSECONDS_PER_SECOND // 20
AUDIO_BUFFER_BYTES = (
    _AUDIO_BUFFER_NS * AUDIO_BYTES_PER_SAMPLE * AUDIO_SAMPLE_RATE // _NANOSECONDS_PER_SECOND
)

TARGET_FRAME_RATE = 60
HARDWARE_FRAME_RATE = 60.0988118623484
FRAME_RATE_DIFF = TARGET_FRAME_RATE / HARDWARE_FRAME_RATE

WIDTH = 256
HEIGHT = 240

PPU_OAM_SIZE = 256
PPU_SPRITE_LIMIT = 8