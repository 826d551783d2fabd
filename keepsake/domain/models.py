"""
Core domain models for the keepsake renderer.
These are framework-agnostic and are created fresh for every render call.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from PIL import Image


class ExportFormat(str, Enum):
    """Export aspect/size selector."""
    IG = "ig"
    TIKTOK = "tiktok"


EXPORT_WIDTH = 1080
FORMAT_SIZES: Dict[ExportFormat, Tuple[int, int]] = {
    ExportFormat.IG: (EXPORT_WIDTH, 1350),
    ExportFormat.TIKTOK: (EXPORT_WIDTH, 1920),
}

DEFAULT_SIGN_OFF = "With love,"
DEFAULT_SENDER = "Someone"


@dataclass(frozen=True)
class Tint:
    r: int = 240
    g: int = 240
    b: int = 240
    strength: float = 0.0


@dataclass(frozen=True)
class FilterConfig:
    """
    Instax-style tone remap parameters.

    shadow_lift raises the black point (0-60); desaturation, grain_amount and
    vignette_strength are 0-1 fractions; contrast_factor scales around mid-grey.
    """
    shadow_lift: float = 20.0
    desaturation: float = 1.0
    contrast_factor: float = 1.08
    grain_amount: float = 0.15
    vignette_strength: float = 0.30
    tint: Tint = field(default_factory=Tint)

    def __post_init__(self) -> None:
        if not 0 <= self.shadow_lift <= 60:
            raise ValueError(f"shadow_lift must be within 0..60, got {self.shadow_lift}")
        for name in ("desaturation", "grain_amount", "vignette_strength"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be within 0..1, got {value}")
        if not 0 <= self.tint.strength <= 1:
            raise ValueError(f"tint.strength must be within 0..1, got {self.tint.strength}")


DEFAULT_FILTER_CONFIG = FilterConfig()
IDENTITY_FILTER_CONFIG = FilterConfig(
    shadow_lift=0.0,
    desaturation=0.0,
    contrast_factor=1.0,
    grain_amount=0.0,
    vignette_strength=0.0,
    tint=Tint(strength=0.0),
)


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in source-image pixel space."""
    x: float
    y: float
    width: float
    height: float

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def as_box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass
class CapsuleRecord:
    """The slice of a capsule row the renderers care about."""
    track_name: str
    artist_name: str
    album_art_url: Optional[str] = None
    message: str = ""
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    song_meaning: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapsuleRecord":
        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        return cls(
            track_name=pick("track_name", "trackName") or "",
            artist_name=pick("artist_name", "artistName") or "",
            album_art_url=pick("album_art_url", "albumArtUrl"),
            message=pick("message") or "",
            receiver_name=pick("receiver_name", "receiverName"),
            sender_name=pick("sender_name", "senderName"),
            song_meaning=pick("song_meaning", "songMeaning"),
        )


@dataclass
class PolaroidRequest:
    """Photo-card render input. processed_image comes from the crop pipeline."""
    processed_image: Image.Image
    track_name: str
    artist_name: str
    album_art_url: Optional[str] = None
    message: str = ""
    receiver_name: Optional[str] = None
    format: ExportFormat = ExportFormat.IG
    # Accepted for compatibility; the live pipeline no longer filters the photo.
    filter_config: Optional[FilterConfig] = None

    kind = "polaroid"


@dataclass
class LetterRequest:
    """Letter render input. background is an image path/URL or a #hex colour."""
    background: str
    message: str
    track_name: str
    artist_name: str
    album_art_url: Optional[str] = None
    receiver_name: Optional[str] = None
    sign_off: Optional[str] = None
    sender_name: Optional[str] = None
    # Letters always render at the ig size; the field is kept for callers that share options.
    format: ExportFormat = ExportFormat.IG

    kind = "letter"


RenderRequest = Union[PolaroidRequest, LetterRequest]


@dataclass(frozen=True)
class RenderedBitmap:
    """Final composition. Treat image as read-only once returned."""
    image: Image.Image
    kind: str
    format: ExportFormat
    message_fit: Any = None
    album_art_loaded: bool = False
    background_loaded: bool = True

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size
