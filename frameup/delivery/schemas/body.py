import math
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

from frameup.config.settings import settings
from frameup.domain.geometry import Edges, parse_shorthand

DEFAULT_BORDER_WIDTH = "40"
DEFAULT_BORDER_OUTSET = "0"


class Mode(str, Enum):
    IMAGE = "image"
    FRAME = "frame"
    DECORATION = "decoration"
    SAVE = "save"


# --- Asset settings.json ---

class BorderConfig(BaseModel):
    """frames/<id>/settings.json; each field is a 1-4 value shorthand."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    widths: Edges = Field(default_factory=lambda: parse_shorthand(DEFAULT_BORDER_WIDTH), alias="width")
    outsets: Edges = Field(default_factory=lambda: parse_shorthand(DEFAULT_BORDER_OUTSET), alias="outset")
    slice_widths: Optional[Edges] = Field(default=None, alias="slice")  # None -> 25% fallback

    @field_validator("widths", mode="before")
    @classmethod
    def _expand_widths(cls, v):
        return parse_shorthand(DEFAULT_BORDER_WIDTH if v in (None, "") else v)

    @field_validator("outsets", mode="before")
    @classmethod
    def _expand_outsets(cls, v):
        return parse_shorthand(DEFAULT_BORDER_OUTSET if v in (None, "") else v)

    @field_validator("slice_widths", mode="before")
    @classmethod
    def _expand_slice(cls, v):
        if v in (None, ""):
            return None
        return parse_shorthand(v)


class DecorationConfig(BaseModel):
    """decos/<id>/settings.json"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    default_scale: float = Field(default=settings.DEFAULT_DECORATION_SCALE, alias="defaultScale")

    @field_validator("default_scale", mode="before")
    @classmethod
    def _positive_scale(cls, v):
        try:
            value = float(v)
        except (TypeError, ValueError):
            return settings.DEFAULT_DECORATION_SCALE
        if not math.isfinite(value) or value <= 0:
            return settings.DEFAULT_DECORATION_SCALE
        return min(value, settings.MAX_DECORATION_SCALE)


# --- Persisted project ---

class BorderRecord(BaseModel):
    id: str
    width_ratio: float = Field(default=settings.DEFAULT_WIDTH_RATIO, ge=0, le=1)


class DecorationRecord(BaseModel):
    id: str
    source_ref: str
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    scale: float = Field(gt=0, le=settings.MAX_DECORATION_SCALE)
    rotation: float = Field(default=0.0, allow_inf_nan=False)
    base_size: float = Field(gt=0, allow_inf_nan=False)


class ProjectDocument(BaseModel):
    image_ref: Optional[str] = None
    border: Optional[BorderRecord] = None
    decorations: List[DecorationRecord] = Field(default_factory=list)
    mode: Mode = Mode.IMAGE
    saved_at: Optional[datetime] = None


# --- Requests ---

class SetImageRequest(BaseModel):
    source: str                            # URL, path or base64 (data URLs supported)


class ApplyBorderRequest(BaseModel):
    border_id: Optional[str] = None        # None removes the border
    width_ratio: Optional[float] = Field(default=None, ge=0, le=1)


class BorderRatioRequest(BaseModel):
    width_ratio: float = Field(ge=0, le=1)


class AddDecorationRequest(BaseModel):
    decoration_id: str


class UpdateDecorationRequest(BaseModel):
    x: Optional[float] = Field(default=None, ge=0, le=1)
    y: Optional[float] = Field(default=None, ge=0, le=1)
    scale: Optional[float] = Field(default=None, gt=0, le=settings.MAX_DECORATION_SCALE)
    rotation: Optional[float] = Field(default=None, allow_inf_nan=False)


class SelectionRequest(BaseModel):
    decoration_id: Optional[str] = None


class ModeRequest(BaseModel):
    mode: Mode


class PointerEventBody(BaseModel):
    type: Literal["down", "move", "up"]
    x: float = Field(default=0.0, allow_inf_nan=False)    # canvas pixels
    y: float = Field(default=0.0, allow_inf_nan=False)
