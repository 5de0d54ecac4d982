"""Shared types for ui-compare: RasterImage, FrameReference, Issue, ComparisonResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ui_compare.core.errors import DecodeError

SEVERITY_HIGH = 'High'
SEVERITY_MEDIUM = 'Medium'
SEVERITY_LOW = 'Low'

SEVERITY_RANK = {SEVERITY_HIGH: 3, SEVERITY_MEDIUM: 2, SEVERITY_LOW: 1}

ISSUE_LAYOUT = 'Layout'
ISSUE_COLOR = 'Color'


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Decoded RGBA image. `pixels` has shape (height, width, 4), dtype uint8."""

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise DecodeError(f'Invalid image dimensions {self.width}x{self.height}')
        expected = self.width * self.height * 4
        if self.pixels.dtype != np.uint8 or self.pixels.size != expected:
            raise DecodeError(
                'Pixel buffer does not match image dimensions',
                f'expected {expected} bytes for {self.width}x{self.height}, got {self.pixels.size}',
            )
        if self.pixels.shape != (self.height, self.width, 4):
            object.__setattr__(self, 'pixels', self.pixels.reshape(self.height, self.width, 4))
        self.pixels.flags.writeable = False

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> RasterImage:
        """Build from a flat RGBA byte buffer (length must be width*height*4)."""
        return cls(width, height, np.frombuffer(data, dtype=np.uint8).copy())

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class FrameReference:
    """A Figma frame: file key plus node id (colon form, e.g. '10:20')."""

    file_key: str
    node_id: str


@dataclass(frozen=True)
class FrameDimensions:
    width: int
    height: int


@dataclass(frozen=True)
class Region:
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_dict(self) -> dict[str, int]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class Issue:
    id: str
    type: str  # ISSUE_LAYOUT | ISSUE_COLOR
    message: str
    severity: str  # SEVERITY_*
    region: Region

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'message': self.message,
            'severity': self.severity,
            'region': self.region.to_dict(),
        }


@dataclass
class ComparisonResult:
    """Output of one comparison. Image fields hold encoded bytes (PNG or JPEG)."""

    reference_image: bytes
    captured_image: bytes
    diff_image: bytes
    diff_score: float
    resolution: FrameDimensions
    issues: list[Issue] = field(default_factory=list)
    sensitivity: int = 3
