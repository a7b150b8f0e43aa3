"""Adjustment models - proposed changes produced from disruptions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from backend.tripwatch.models.common import (
    AdjustmentPriority,
    AdjustmentType,
    OverallImpact,
    RiskLevel,
)


class SmartAdjustment(BaseModel):
    """A single proposed replacement for one affected activity."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: AdjustmentType
    priority: AdjustmentPriority
    title: str
    description: str
    affected_day: int | str
    original_activity: str
    suggested_alternative: str
    reason: str
    estimated_cost_change: float
    confidence: int = Field(..., ge=0, le=100)
    requires_approval: bool
    timestamp: datetime


class AdjustmentRecommendation(BaseModel):
    """Aggregated adjustments for one detection cycle."""

    model_config = ConfigDict(frozen=True)

    itinerary_id: str
    adjustments: list[SmartAdjustment]
    overall_impact: OverallImpact
    total_cost_change: float
    risk_level: RiskLevel
    alternative_options: list[str]
    timestamp: datetime


class ItineraryImpact(BaseModel):
    """Per-day summary of how a set of disruptions touches the itinerary."""

    day: int | str
    affected_activities: list[str]
    impact_level: str  # none | minor | moderate | major
    suggestions: list[str]
    alternative_activities: list[str]
