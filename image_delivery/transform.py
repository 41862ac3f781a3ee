"""
Image transform engine — auto-orient, resize, re-encode.

Uses Pillow for decoding and encoding. The pipeline only sees the
``ImageEngine`` protocol, so any library that can honour ``TransformOptions``
can stand in for Pillow.

Behaviour:
  - truncated or slightly corrupt inputs are decoded best-effort
  - EXIF orientation is applied before any geometry change
  - one requested dimension keeps the aspect ratio; two crop to cover
  - colour modes the target format cannot store are converted to RGB(A)
  - animated GIF / WebP / APNG sources stay animated when the target
    format can hold frames, otherwise the first frame is kept

``ratio`` is part of the descriptor and the cache key only; it does not
change the output.
"""
from __future__ import annotations

import io
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, ImageFile, ImageOps, ImageSequence

from image_delivery.constants import (
    ANIMATED_ENCODERS,
    FALLBACK_CONTENT_TYPE,
    FORMAT,
    FORMAT_ENCODINGS,
    HEIGHT,
    QUALITY,
    WIDTH,
)
from image_delivery.exceptions import TransformFailed
from image_delivery.operations import parse_leading_int
from image_delivery.schemas import TransformedArtifact

logger = logging.getLogger(__name__)

ImageFile.LOAD_TRUNCATED_IMAGES = True

_ORIENTATION_TAG = 0x0112
_DEFAULT_FRAME_DURATION = 100  # ms

# Modes each encoder writes as-is; anything else is converted first
_ENCODER_MODES: dict[str, frozenset[str]] = {
    "JPEG": frozenset({"L", "RGB", "CMYK"}),
    "PNG": frozenset({"1", "L", "LA", "P", "RGB", "RGBA", "I"}),
    "GIF": frozenset({"1", "L", "P", "RGB", "RGBA"}),
    "WEBP": frozenset({"RGB", "RGBA"}),
    "AVIF": frozenset({"RGB", "RGBA"}),
}
_WIDE_GRAYSCALE_MODES = frozenset({"I", "I;16", "I;16B", "I;16L", "F"})


def _optional_int(value: str | None) -> int | None:
    number = parse_leading_int(value)
    if number is None or number <= 0:
        return None
    return number


@dataclass(frozen=True)
class TransformOptions:
    width: int | None = None
    height: int | None = None
    format: str | None = None
    quality: int | None = None

    @classmethod
    def from_operations(cls, operations: Mapping[str, str]) -> TransformOptions:
        """Read the transform keys of a descriptor; unusable values are ignored."""
        return cls(
            width=_optional_int(operations.get(WIDTH)),
            height=_optional_int(operations.get(HEIGHT)),
            format=operations.get(FORMAT) or None,
            quality=_optional_int(operations.get(QUALITY)),
        )

    @property
    def resizes(self) -> bool:
        return self.width is not None or self.height is not None


class ImageEngine(Protocol):
    def transform(
        self, body: bytes, content_type: str, options: TransformOptions,
    ) -> TransformedArtifact: ...


class PillowEngine:
    """Staged decode -> orient -> resize -> encode over one buffer."""

    def transform(
        self, body: bytes, content_type: str, options: TransformOptions,
    ) -> TransformedArtifact:
        try:
            return self._transform(body, content_type, options)
        except Exception as exc:
            # Pillow raises a wide mix of OSError / ValueError / KeyError
            raise TransformFailed() from exc

    def _transform(
        self, body: bytes, content_type: str, options: TransformOptions,
    ) -> TransformedArtifact:
        source = Image.open(io.BytesIO(body))
        needs_orient = self._needs_orientation(source)

        encoder, out_type, lossy = self._encoding(source, content_type, options)
        animated = getattr(source, "is_animated", False) and encoder in ANIMATED_ENCODERS

        frames = ImageSequence.Iterator(source) if animated else [source]
        processed: list[Image.Image] = []
        durations: list[int] = []
        for frame in frames:
            durations.append(frame.info.get("duration", _DEFAULT_FRAME_DURATION))
            img = self._process_frame(frame, needs_orient, options)
            if encoder == "JPEG":
                img = self._flatten(img)
            processed.append(self._fit_mode(img, encoder))

        save_kwargs: dict = {}
        if lossy and options.quality is not None:
            save_kwargs["quality"] = options.quality
        if animated and len(processed) > 1:
            save_kwargs.update(
                save_all=True,
                append_images=processed[1:],
                loop=source.info.get("loop", 0),
                duration=durations,
            )

        buf = io.BytesIO()
        processed[0].save(buf, format=encoder, **save_kwargs)
        logger.info(
            "Transformed %dx%d %s -> %dx%d %s (%d frame(s))",
            source.width, source.height, source.format,
            processed[0].width, processed[0].height, encoder, len(processed),
        )
        return TransformedArtifact(body=buf.getvalue(), content_type=out_type)

    @staticmethod
    def _needs_orientation(image: Image.Image) -> bool:
        orientation = image.getexif().get(_ORIENTATION_TAG)
        return bool(orientation) and orientation != 1

    @staticmethod
    def _encoding(
        image: Image.Image, content_type: str, options: TransformOptions,
    ) -> tuple[str, str, bool]:
        """Return (Pillow encoder, content type, lossy) for the output."""
        if not options.format:
            return image.format or "PNG", content_type, False
        if options.format in FORMAT_ENCODINGS:
            return FORMAT_ENCODINGS[options.format]
        return options.format.upper(), FALLBACK_CONTENT_TYPE, True

    def _process_frame(
        self, frame: Image.Image, orient: bool, options: TransformOptions,
    ) -> Image.Image:
        img = frame.copy()
        if img.mode in ("P", "PA", "LA"):
            img = img.convert("RGBA")
        if orient:
            img = ImageOps.exif_transpose(img)
        if options.resizes:
            img = self._resize(img, options.width, options.height)
        return img

    @staticmethod
    def _resize(img: Image.Image, width: int | None, height: int | None) -> Image.Image:
        if width and height:
            return ImageOps.fit(img, (width, height), Image.Resampling.LANCZOS)
        if width:
            height = max(1, round(img.height * width / img.width))
        else:
            width = max(1, round(img.width * height / img.height))
        return img.resize((width, height), Image.Resampling.LANCZOS)

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        """JPEG has no alpha: composite onto white."""
        if img.mode in ("RGBA", "LA", "PA"):
            background = Image.new("RGB", img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        return img

    @staticmethod
    def _fit_mode(img: Image.Image, encoder: str) -> Image.Image:
        """Convert ``img`` to a mode ``encoder`` can write (CMYK, 16-bit, float...)."""
        allowed = _ENCODER_MODES.get(encoder)
        if allowed is None or img.mode in allowed:
            return img
        if img.mode in _WIDE_GRAYSCALE_MODES:
            img = img.convert("L")
            if img.mode in allowed:
                return img
        return img.convert("RGBA" if img.has_transparency_data else "RGB")
