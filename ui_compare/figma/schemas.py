"""Pydantic models for the two Figma REST responses we consume.

Only the fields we read are declared; everything else Figma sends is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _FigmaModel(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class BoundingBox(_FigmaModel):
    x: float = 0.0
    y: float = 0.0
    width: float
    height: float


class NodeDocument(_FigmaModel):
    id: str = ''
    name: str = ''
    type: str = ''
    absolute_bounding_box: BoundingBox | None = Field(None, alias='absoluteBoundingBox')


class NodeEntry(_FigmaModel):
    document: NodeDocument | None = None


class NodesResponse(_FigmaModel):
    """GET /v1/files/:key/nodes?ids=..."""

    name: str = ''
    nodes: dict[str, NodeEntry | None] = Field(default_factory=dict)


class ImagesResponse(_FigmaModel):
    """GET /v1/images/:key?ids=...&format=png"""

    err: str | None = None
    images: dict[str, str | None] = Field(default_factory=dict)
