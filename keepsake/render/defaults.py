from pathlib import Path

# Base asset locations within the package
PACKAGE_DIR = Path(__file__).resolve().parents[1]
ASSETS_DIR = PACKAGE_DIR / "assets"
FONTS_DIR = ASSETS_DIR / "fonts"

# Default font paths (handwriting face; bold falls back to a stroked regular)
FONT_PATH = FONTS_DIR / "GloriaHallelujah-Regular.ttf"
BOLD_FONT_PATH = FONTS_DIR / "GloriaHallelujah-Bold.ttf"
SYSTEM_FALLBACK_FONT = "DejaVuSans.ttf"
SYSTEM_FALLBACK_BOLD_FONT = "DejaVuSans-Bold.ttf"

# Preset letter backgrounds, resolved against the assets dir
LETTER_BACKGROUNDS = [
    "/letter_backgrounds/bg1.jpg",
    "/letter_backgrounds/bg2.jpg",
    "/letter_backgrounds/bg3.jpg",
    "/letter_backgrounds/bg4.jpg",
    "/letter_backgrounds/bg5.jpg",
    "/letter_backgrounds/bg7.jpg",
]

# Shared text metrics
LINE_HEIGHT_RATIO = 1.65
ELLIPSIS = "…"
SPARKLE = "✦"

# Wordmarks
WORDMARK = "SlowJam"
POLAROID_WATERMARK = f"SlowJam {SPARKLE}"
POLAROID_TAGLINE = f"songs speak louder than words  {SPARKLE}"
LETTER_WATERMARK = f"Created via slowjam.xyz {SPARKLE}"

# Polaroid limit on the message source (letters shrink further instead)
POLAROID_MESSAGE_LIMIT = 500
