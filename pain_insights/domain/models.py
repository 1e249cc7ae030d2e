"""
Domain models for local pain-pattern analytics.

These models represent the records the analytics consume and the value objects
they produce. Everything is immutable: records are created by the caller's
record source, and every derived object is built fresh per call.
"""

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TimeOfDay(str, Enum):
    """Hour buckets used by every time-of-day heuristic."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class CorrelationStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class InteractionKind(str, Enum):
    SYNERGISTIC = "synergistic"
    ANTAGONISTIC = "antagonistic"
    INDEPENDENT = "independent"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class AnomalySeverity(str, Enum):
    """Outlier tiers derived from the absolute z-score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    """Recommendation priority, ordered from most to least urgent."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class HealthRecord(BaseModel):
    """
    One timestamped observation of tracked severity plus optional context.

    Severity is nominally 0-10 but is not range-checked here: out-of-range
    values are exactly what the anomaly detector exists to flag. Notes are
    carried through untouched and never read by the analytics.
    """

    model_config = ConfigDict(frozen=True)

    id: str | int
    timestamp: datetime
    severity: float | None = None
    medications_active: frozenset[str] = Field(default_factory=frozenset)
    notes: str | None = None
    locations: frozenset[str] = Field(default_factory=frozenset)
    symptoms: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("medications_active")
    @classmethod
    def drop_blank_medications(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(name for name in v if name.strip())


class CorrelationPair(BaseModel):
    """Bounded difference-of-means relationship between two factors."""

    model_config = ConfigDict(frozen=True)

    factor_a: str
    factor_b: str
    correlation: float = Field(ge=-1.0, le=1.0)
    strength: CorrelationStrength
    significance: float = Field(ge=0.0, le=1.0)
    sample_size: int = Field(ge=0)
    interpretation: str
    # Summary of each compared group: mean severity, or record counts for timing pairs
    group_a: float
    group_b: float


class InteractionEffect(BaseModel):
    model_config = ConfigDict(frozen=True)

    factors: tuple[str, str]
    effect: InteractionKind
    impact: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    example: str


class CompoundPattern(BaseModel):
    """A conjunction of conditions that co-occurs with an outcome."""

    model_config = ConfigDict(frozen=True)

    id: str
    conditions: tuple[str, ...]
    outcome: str
    frequency: int = Field(ge=0)
    strength: float = Field(ge=0.0, le=1.0)
    description: str
    actionable: bool
    recommendation: str | None = None


class CausalInsight(BaseModel):
    """
    Temporally ordered association between a condition and the next record.

    This is a heuristic: a cause that is regularly followed by an effect, not
    a validated causal claim. The mechanism text says so explicitly.
    """

    model_config = ConfigDict(frozen=True)

    cause: str
    effect: str
    confidence: float = Field(ge=0.0, le=1.0)
    strength: float = Field(ge=0.0, le=1.0)
    evidence_count: int = Field(ge=0)
    mechanism: str
    reversible: bool
    time_lag: str = "next record"


class ClusterGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    member_ids: frozenset[str | int]
    characteristics: tuple[str, ...]
    centroid: float
    time_of_day: TimeOfDay | Literal["varies"]
    size: int = Field(ge=0)

    @model_validator(mode="after")
    def size_matches_members(self) -> "ClusterGroup":
        if self.size != len(self.member_ids):
            raise ValueError("cluster size must equal the number of member ids")
        return self


class MultiFactorSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    strongest_correlation: CorrelationPair | None
    key_interaction: InteractionEffect | None
    most_actionable_pattern: CompoundPattern | None
    confidence: float = Field(ge=0.0, le=1.0)


class MultiFactorInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    correlation_matrix: list[CorrelationPair]
    interaction_effects: list[InteractionEffect]
    compound_patterns: list[CompoundPattern]
    causal_insights: list[CausalInsight]
    clusters: list[ClusterGroup]
    summary: MultiFactorSummary


class TrendResult(BaseModel):
    """Direction of change between the earlier and later half of a series."""

    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    confidence: float = Field(ge=0.0, le=1.0)
    change_rate_pct: float
    period: Literal["daily", "weekly", "monthly"] = "weekly"
    status: Literal["ok", "insufficient_baseline"] = "ok"
    earlier_mean: float | None = None
    later_mean: float | None = None
    sample_size: int = Field(default=0, ge=0)

    @property
    def has_baseline(self) -> bool:
        return self.status == "ok"


class AnomalyPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str | int
    timestamp: datetime
    value: float
    expected_range: tuple[float, float]
    z_score: float
    severity: AnomalySeverity
    context: str


class EngagementTrend(BaseModel):
    """Check-in frequency in the trailing window against the window before it."""

    model_config = ConfigDict(frozen=True)

    period_days: int = Field(gt=0)
    entries_count: int = Field(ge=0)
    previous_count: int = Field(ge=0)
    trend: TrendDirection
    consistency: float = Field(ge=0.0, le=1.0)


class WindowComparison(BaseModel):
    """Mean severity of the most recent window against the window before it."""

    model_config = ConfigDict(frozen=True)

    window: int = Field(gt=0)
    recent_mean: float
    previous_mean: float | None
    recent_count: int = Field(ge=0)
    previous_count: int = Field(ge=0)
    change_ratio: float | None = None


OverallHealth = Literal["improving", "stable", "declining", "insufficient_data"]


class TrendSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    trend: TrendResult
    engagement: EngagementTrend
    anomalies: list[AnomalyPoint]
    overall_health: OverallHealth


class Prediction(BaseModel):
    """Next-day severity forecast, always clamped to the 0-10 scale."""

    model_config = ConfigDict(frozen=True)

    target_date: date
    predicted_value: float = Field(ge=0.0, le=10.0)
    confidence: float = Field(ge=0.0, le=1.0)
    range: tuple[float, float]
    baseline: float
    slope: float
    seasonal_adjustment: float
    factors: tuple[str, ...]
    explanation: str

    @model_validator(mode="after")
    def range_brackets_prediction(self) -> "Prediction":
        low, high = self.range
        if not (0.0 <= low <= self.predicted_value <= high <= 10.0):
            raise ValueError("prediction range must bracket the predicted value within 0-10")
        return self


class CheckInTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_of_day: TimeOfDay
    hour: float = Field(ge=0.0, lt=24.0)
    confidence: float = Field(ge=0.0, le=1.0)
    historical_share: float = Field(ge=0.0, le=1.0)
    reason: str


class EffectivenessForecast(BaseModel):
    model_config = ConfigDict(frozen=True)

    intervention: str
    kind: Literal["medication", "activity", "rest", "therapy"] = "medication"
    predicted_effectiveness: float = Field(ge=0.0, le=1.0)
    optimal_timing: str
    confidence: float = Field(ge=0.0, le=1.0)
    tried_count: int = Field(ge=0)


Outlook = Literal["improving", "stable", "worsening", "insufficient_data"]


class PredictiveInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    next_day: Prediction | None
    seven_day_outlook: Outlook
    check_in_times: list[CheckInTime]
    effectiveness: list[EffectivenessForecast]
    data_quality: float = Field(ge=0.0, le=1.0)
    pattern_strength: float = Field(ge=0.0, le=1.0)
    overall_confidence: float = Field(ge=0.0, le=1.0)


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: Literal["prevention", "intervention", "tracking", "lifestyle", "medication"]
    priority: Priority
    timing: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: tuple[str, ...]
    action_steps: tuple[str, ...]
    success_metric: str | None = None


class TimingSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    optimal_time: str
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: tuple[str, ...] = ()


class InterventionRanking(BaseModel):
    model_config = ConfigDict(frozen=True)

    intervention: str
    effectiveness_score: float = Field(ge=0.0, le=1.0)
    frequency_used: int = Field(ge=0)
    average_impact: float
    confidence: float = Field(ge=0.0, le=1.0)
    verdict: Literal["highly_recommended", "recommended", "consider", "not_recommended"]


class ActionStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: int = Field(gt=0)
    action: str
    timing: str
    expected: str


class ActionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: str
    timeframe: str
    steps: tuple[ActionStep, ...]
    estimated_impact: str
    confidence: float = Field(ge=0.0, le=1.0)


class RecommendationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    critical_actions: int = Field(ge=0)
    estimated_impact: str
    confidence: float = Field(ge=0.0, le=1.0)


class RecommendationReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    recommendations: list[Recommendation]
    timing: list[TimingSuggestion]
    interventions: list[InterventionRanking]
    action_plans: list[ActionPlan]
    summary: RecommendationSummary


class PainPatternReport(BaseModel):
    """Everything the pipeline derives from one record set."""

    model_config = ConfigDict(frozen=True)

    record_count: int = Field(ge=0)
    usable_count: int = Field(ge=0)
    correlations: list[CorrelationPair]
    multi_factor: MultiFactorInsights
    trends: TrendSummary
    predictive: PredictiveInsights
    recommendations: RecommendationReport
