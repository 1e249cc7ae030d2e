"""
Pain-pattern pipeline: one record set in, one report out.

Key patterns:
- Every analysis is a pure function over a read-only snapshot of the records
- Structured concurrency with asyncio.TaskGroup for the async path
- Synchronous and async paths produce identical reports
"""

import asyncio
import time
from collections.abc import Iterable
from datetime import datetime

import structlog

from pain_insights.config import AppConfig, get_config
from pain_insights.domain.models import (
    HealthRecord,
    MultiFactorInsights,
    PainPatternReport,
    PredictiveInsights,
    RecommendationReport,
    TrendSummary,
)
from pain_insights.domain.records import usable_records
from pain_insights.services.correlation_engine import build_correlation_pairs
from pain_insights.services.forecaster import predictive_insights
from pain_insights.services.multi_factor import multi_factor_insights
from pain_insights.services.recommendations import synthesize
from pain_insights.services.trend_detector import summarize_trends

logger = structlog.get_logger(__name__)


def snapshot(records: Iterable[HealthRecord]) -> tuple[HealthRecord, ...]:
    """Freeze the input into a tuple, rejecting anything that is not a record."""
    frozen = tuple(records)
    for record in frozen:
        if not isinstance(record, HealthRecord):
            raise TypeError(f"expected HealthRecord, got {type(record).__name__}")
    return frozen


class PainPatternPipeline:
    """
    Runs every analysis over the same records and bundles the results.

    The pipeline holds configuration only; no state carries over between
    reports, so one instance can serve any number of callers.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="pain_pattern_pipeline")

    def _recommendations(
        self,
        records: tuple[HealthRecord, ...],
        as_of: datetime | None,
        *,
        multi_factor: MultiFactorInsights,
        trends: TrendSummary,
        predictive: PredictiveInsights,
    ) -> RecommendationReport:
        analytics = self.config.analytics
        return synthesize(
            records,
            as_of=as_of,
            max_recommendations=analytics.max_recommendations,
            engagement_window_days=analytics.engagement_window_days,
            predictive=predictive,
            multi_factor=multi_factor,
            trends=trends,
        )

    def _trends(self, records: tuple[HealthRecord, ...], as_of: datetime | None) -> TrendSummary:
        return summarize_trends(
            records, as_of=as_of, window_days=self.config.analytics.engagement_window_days
        )

    def _assemble(self, records: tuple[HealthRecord, ...], **parts) -> PainPatternReport:
        return PainPatternReport(
            record_count=len(records),
            usable_count=len(usable_records(records)),
            **parts,
        )

    def build_report(
        self, records: Iterable[HealthRecord], as_of: datetime | None = None
    ) -> PainPatternReport:
        """Run all analyses in sequence."""
        frozen = snapshot(records)
        start_time = time.perf_counter()

        multi_factor = multi_factor_insights(frozen)
        trends = self._trends(frozen, as_of)
        predictive = predictive_insights(frozen, as_of=as_of)
        report = self._assemble(
            frozen,
            correlations=build_correlation_pairs(frozen),
            multi_factor=multi_factor,
            trends=trends,
            predictive=predictive,
            recommendations=self._recommendations(
                frozen, as_of, multi_factor=multi_factor, trends=trends, predictive=predictive
            ),
        )

        self.logger.info(
            "report_built",
            record_count=report.record_count,
            usable_count=report.usable_count,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return report

    async def build_report_async(
        self, records: Iterable[HealthRecord], as_of: datetime | None = None
    ) -> PainPatternReport:
        """
        Fan the independent analyses out to worker threads.

        All tasks read the same immutable snapshot, so no synchronisation is
        needed. Recommendations run after the fan-out because they read its
        results. Falls back to the sequential path when parallel analyses are
        disabled in configuration.
        """
        frozen = snapshot(records)
        if not self.config.analytics.parallel_analyses:
            return self.build_report(frozen, as_of=as_of)

        start_time = time.perf_counter()
        async with asyncio.TaskGroup() as task_group:
            correlations = task_group.create_task(asyncio.to_thread(build_correlation_pairs, frozen))
            multi_factor = task_group.create_task(asyncio.to_thread(multi_factor_insights, frozen))
            trends = task_group.create_task(asyncio.to_thread(self._trends, frozen, as_of))
            predictive = task_group.create_task(
                asyncio.to_thread(predictive_insights, frozen, as_of)
            )

        # Recommendations read the results above, so they run once those finish
        recommendations = await asyncio.to_thread(
            self._recommendations,
            frozen,
            as_of,
            multi_factor=multi_factor.result(),
            trends=trends.result(),
            predictive=predictive.result(),
        )
        report = self._assemble(
            frozen,
            correlations=correlations.result(),
            multi_factor=multi_factor.result(),
            trends=trends.result(),
            predictive=predictive.result(),
            recommendations=recommendations,
        )

        self.logger.info(
            "report_built",
            record_count=report.record_count,
            usable_count=report.usable_count,
            parallel=True,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return report
