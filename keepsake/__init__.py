"""
SlowJam keepsake renderer.

Deterministic Pillow compositions of a song capsule into a polaroid card or a
handwritten letter, plus the crop pipeline and PNG export around them.
"""
from keepsake.domain.models import (
    CapsuleRecord,
    CropRegion,
    ExportFormat,
    FilterConfig,
    LetterRequest,
    PolaroidRequest,
    RenderedBitmap,
    Tint,
)
from keepsake.render.letter import render_letter
from keepsake.render.polaroid import render_polaroid
from keepsake.services.export import Exporter

__all__ = [
    "CapsuleRecord",
    "CropRegion",
    "ExportFormat",
    "Exporter",
    "FilterConfig",
    "LetterRequest",
    "PolaroidRequest",
    "RenderedBitmap",
    "Tint",
    "render_letter",
    "render_polaroid",
]
