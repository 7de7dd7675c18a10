from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    all_time: bool = False
    locations: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)
    sellers: List[str] = Field(default_factory=list)
    payment_methods: List[str] = Field(default_factory=list)
    top_n: int = 5


class FilterOptionsResponse(BaseModel):
    locations: List[str]
    categories: List[str]
    products: List[str]
    sellers: List[str]
    payment_methods: List[str]
    latest_date: Optional[date] = None


class SourceStatus(BaseModel):
    rows: int
    error: Optional[str] = None


class SourcesResponse(BaseModel):
    path: Optional[str] = None
    sources: Dict[str, SourceStatus]
