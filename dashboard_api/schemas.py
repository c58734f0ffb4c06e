from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

BoundValue = Optional[Union[float, str]]


class DateRangeModel(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None


class NumericBoundModel(BaseModel):
    min: BoundValue = None
    max: BoundValue = None


class FilterConfigModel(BaseModel):
    query: str = ""
    date_range: DateRangeModel = Field(default_factory=DateRangeModel)
    numeric_bounds: Dict[str, NumericBoundModel] = Field(default_factory=dict)


class FieldModel(BaseModel):
    name: str
    numeric: bool


class UploadResponse(BaseModel):
    source_name: str
    rows: int
    fields: List[FieldModel]


class EmbedVisibilityModel(BaseModel):
    visible: bool


class EmbedTokenResponse(BaseModel):
    embedToken: str
    embedUrl: str
    reportId: str
    expiry: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    type: Optional[str] = None
