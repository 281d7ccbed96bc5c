from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    dataset: Optional[str] = None
    metric: Literal["value", "r12Value", "r12"] = "value"
    view_mode: Literal["line", "bar"] = "line"
    selected_categories: List[str] = Field(default_factory=list)
    selected_branches: List[str] = Field(default_factory=list)
    date_start: Optional[str] = Field(default=None, description="YYYY-MM")
    date_end: Optional[str] = Field(default=None, description="YYYY-MM")
    range_touched: Optional[bool] = None


class DatasetModel(BaseModel):
    id: str
    label: str
    file: str
    instructions: Optional[str] = None
    colors: Dict[str, str] = Field(default_factory=dict)
    default_category: Optional[str] = None
    value_type: Optional[str] = None
    size: Optional[int] = None
    last_modified: Optional[str] = None


class DatasetListResponse(BaseModel):
    datasets: List[DatasetModel]


class DatasetMetaResponse(BaseModel):
    dataset: DatasetModel
    min_month: str
    max_month: str
    years: List[int]
    categories: List[str]
    branches: List[str]
    regions: Dict[str, List[str]]
