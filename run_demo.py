"""
End-to-end demo of the pain-pattern pipeline on synthetic records.

This script shows:
1. Configuration loading
2. A 30-day synthetic record history (two check-ins a day)
3. Correlations, trends, forecast and recommendations rendered as tables

Run with: uv run python run_demo.py
"""

import asyncio
import random
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pain_insights.config import get_config, print_config_summary
from pain_insights.domain.models import HealthRecord, PainPatternReport
from pain_insights.observability import configure_logging
from pain_insights.services.pipeline import PainPatternPipeline

console = Console()


def synthetic_history(days: int = 30, seed: int = 7) -> list[HealthRecord]:
    """Morning and evening check-ins; evenings run higher, medication helps a little."""
    rng = random.Random(seed)
    start = datetime(2024, 3, 4, tzinfo=UTC)
    records = []
    for day in range(days):
        drift = day * 0.05
        for hour, offset in ((8, 0.0), (20, 1.8)):
            medicated = rng.random() < 0.5
            severity = 4.0 + drift + offset - (1.2 if medicated else 0.0) + rng.uniform(-1, 1)
            records.append(
                HealthRecord(
                    id=f"r{day:02d}-{hour:02d}",
                    timestamp=start + timedelta(days=day, hours=hour),
                    severity=round(max(0.0, min(10.0, severity)), 1),
                    medications_active=frozenset({"ibuprofen"}) if medicated else frozenset(),
                )
            )
    return records


def render_report(report: PainPatternReport) -> None:
    console.print(
        f"Records: {report.record_count} ({report.usable_count} with usable severity)",
        style="green",
    )

    table = Table(title="Correlations")
    table.add_column("Factor", style="cyan")
    table.add_column("Correlation", style="magenta")
    table.add_column("Strength", style="yellow")
    table.add_column("Interpretation")
    for pair in report.correlations:
        table.add_row(
            pair.factor_a, f"{pair.correlation:+.2f}", pair.strength.value, pair.interpretation
        )
    console.print(table)

    trend = report.trends.trend
    console.print(Panel("Trends", style="blue"))
    if trend.has_baseline:
        console.print(f"Direction: {trend.direction.value} ({trend.change_rate_pct:+.1f}%)")
    else:
        console.print("Not enough records for a trend baseline", style="yellow")
    console.print(f"Overall: {report.trends.overall_health}")
    console.print(f"Anomalies: {len(report.trends.anomalies)}")

    prediction = report.predictive.next_day
    console.print(Panel("Forecast", style="blue"))
    if prediction is None:
        console.print("No forecast yet", style="yellow")
    else:
        low, high = prediction.range
        console.print(
            f"{prediction.target_date.isoformat()}: {prediction.predicted_value:.1f} "
            f"(range {low:.1f}-{high:.1f}, confidence {prediction.confidence:.0%})"
        )
        console.print(prediction.explanation)

    table = Table(title="Recommendations")
    table.add_column("Priority", style="red")
    table.add_column("Title", style="cyan")
    table.add_column("Confidence", style="green")
    table.add_column("Why")
    for recommendation in report.recommendations.recommendations:
        table.add_row(
            recommendation.priority.value,
            recommendation.title,
            f"{recommendation.confidence:.0%}",
            "; ".join(recommendation.reasoning),
        )
    console.print(table)


async def main() -> None:
    config = get_config()
    configure_logging(config.logging)

    console.print(Panel("Pain Pattern Analytics Demo", style="bold blue"))
    print_config_summary()

    records = synthetic_history()
    pipeline = PainPatternPipeline(config)
    report = await pipeline.build_report_async(records)
    render_report(report)


if __name__ == "__main__":
    asyncio.run(main())
