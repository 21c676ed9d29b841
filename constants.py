"""Kit Sample Editor - Constants"""

# === BANK LAYOUT ===
BANK_SIZE = 0x4000          # 16 KB per ROM bank
BANK_WINDOW = 0x4000        # Address the bank is mapped at on the handheld
MAX_SAMPLES = 15            # Sample slots per kit
KIT_MAGIC = (0x60, 0x40)    # First two bytes of a kit bank

OFFSET_TABLE = 0x02         # 15 x 2 bytes, little-endian end addresses
NAME_TABLE = 0x22           # 15 x 3 bytes, ASCII
SAMPLE_NAME_LEN = 3
KIT_NAME_OFFSET = 0x52
KIT_NAME_LEN = 6
LOOP_OFFSET = 0x5C          # 2 bytes of forced-loop data, cleared on write
VERSION_OFFSET = 0x5F
DATA_OFFSET = 0x60          # Sample data starts after the header

DATA_BASE_ADDR = BANK_WINDOW + DATA_OFFSET          # $4060
MAX_SAMPLE_SPACE = BANK_SIZE - DATA_OFFSET          # $3FA0

KIT_VERSION_1 = 1           # Swizzled layout (rotated frames, inverted)
FILL_BYTE = 0xFF            # RST $38 - harmless if the CPU ever runs into it

# === NIBBLE FORMAT ===
FRAME_SAMPLES = 32          # Samples per wave frame
FRAME_BYTES = 16            # Packed bytes per wave frame
NIBBLE_MAX = 0xF

# === PLAYBACK RATES ===
SAMPLE_RATE = 11468         # Native playback rate (Hz)
HALF_SPEED_RATE = 5734      # Half-speed playback rate (Hz)

# === DSP ===
SILENCE_THRESHOLD = 32768 // 16     # |s| below this counts as silence
DITHER_NOISE_LEVEL = 256 * 16       # TPDF noise span, one nibble step
INT16_MIN = -32768
INT16_MAX = 32767

# === DEFAULTS ===
DEFAULT_KIT_NAME = "NEW"
DEFAULT_SAMPLE_NAME = "SMP"


def playback_rate(half_speed: bool) -> int:
    """Base output rate for normal or half-speed kits."""
    return HALF_SPEED_RATE if half_speed else SAMPLE_RATE
