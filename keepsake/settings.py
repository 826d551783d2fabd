import os
from pathlib import Path

from dotenv import load_dotenv

# Basic settings helper to read environment configuration.

PACKAGE_DIR = Path(__file__).resolve().parent

# Optional .env at the repository root; real environment variables win.
load_dotenv(PACKAGE_DIR.parent / ".env", override=False)


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.FONT_PATH: str | None = os.getenv("KEEPSAKE_FONT_PATH") or None
        self.BOLD_FONT_PATH: str | None = os.getenv("KEEPSAKE_BOLD_FONT_PATH") or None
        self.ASSETS_DIR: Path = Path(os.getenv("KEEPSAKE_ASSETS_DIR", str(PACKAGE_DIR / "assets")))
        self.EXPORT_DIR: Path = Path(os.getenv("KEEPSAKE_EXPORT_DIR", "exports"))
        self.FETCH_TIMEOUT: float = _as_float(os.getenv("KEEPSAKE_FETCH_TIMEOUT"), 6.0)
        self.USER_AGENT: str = os.getenv("KEEPSAKE_USER_AGENT", "slowjam-keepsake/0.1 (asset-fetch)")
        self.DEBUG_ARTIFACTS: bool = _as_bool(os.getenv("KEEPSAKE_DEBUG_ARTIFACTS"), False)


settings = Settings()
