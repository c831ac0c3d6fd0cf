# ABOUTME: Rich renderings of previews, conflicts, duplicates, and enrichment results.
# ABOUTME: Shared by the preview, enrich, and import commands.

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bookmeld.core.duplicates import DuplicateCheckResult
from bookmeld.core.enrich import EnrichmentResult, EnrichmentSummary
from bookmeld.metadata import confidence as tiers
from bookmeld.metadata.types import CoverImage, Identifier, SeriesInfo
from bookmeld.reconcile.conflicts import (
    SEVERITY_CRITICAL,
    SEVERITY_MAJOR,
    SEVERITY_MINOR,
    ConflictSummary,
)
from bookmeld.reconcile.preview import MetadataPreview

_TIER_STYLES = {
    tiers.TIER_EXCEPTIONAL: "bold green",
    tiers.TIER_STRONG: "green",
    tiers.TIER_GOOD: "green",
    tiers.TIER_MODERATE: "yellow",
    tiers.TIER_WEAK: "red",
    tiers.TIER_POOR: "bold red",
}
_SEVERITY_STYLES = {SEVERITY_CRITICAL: "bold red", SEVERITY_MAJOR: "red", SEVERITY_MINOR: "yellow"}
_MAX_VALUE_WIDTH = 80


def format_value(value: Any) -> str:
    """Short display form of a reconciled value."""
    if value is None:
        return "-"
    if isinstance(value, SeriesInfo):
        return f"{value.name} #{value.volume:g}" if value.volume is not None else value.name
    if isinstance(value, CoverImage):
        return value.url
    if isinstance(value, Identifier):
        return f"{value.type}:{value.value}"
    if isinstance(value, (tuple, list)):
        return ", ".join(format_value(v) for v in value)
    text = " ".join(str(value).split())
    if len(text) > _MAX_VALUE_WIDTH:
        text = text[: _MAX_VALUE_WIDTH - 3] + "..."
    return text


def render_preview(console: Console, preview: MetadataPreview) -> None:
    """Print reconciled fields with confidence, tier, and contributing sources."""
    table = Table(title=f"Preview {preview.id[:12]}", show_lines=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_column("Confidence", justify="right")
    table.add_column("Sources", style="dim")

    for name, preview_field in preview.fields.items():
        if preview_field.value is None:
            continue
        style = _TIER_STYLES.get(preview_field.tier, "")
        confidence = f"{preview_field.confidence:.2f}"
        if style:
            confidence = f"[{style}]{confidence}[/{style}]"
        if preview_field.has_conflicts:
            confidence += " [red]![/red]"
        table.add_row(
            name,
            escape(format_value(preview_field.value)),
            confidence,
            ", ".join(s.source for s in preview_field.sources),
        )
    console.print(table)

    summary = preview.summary
    console.print(
        f"Overall confidence [bold]{preview.overall_confidence:.2f}[/bold], "
        f"quality {preview.quality.level} ({preview.quality.score:.2f}), "
        f"{summary.fields_with_data}/{summary.total_fields} fields from "
        f"{preview.source_count} source(s)"
    )
    for strength in summary.strengths:
        console.print(f"  [green]+[/green] {strength}")
    for weakness in summary.weaknesses:
        console.print(f"  [yellow]-[/yellow] {weakness}")


def render_conflicts(console: Console, summary: ConflictSummary) -> None:
    if not summary.total_conflicts:
        console.print("[green]No conflicts between sources.[/green]")
        return

    table = Table(title=f"Conflicts (score {summary.overall_score:.2f})")
    table.add_column("Field", style="bold")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Resolution")
    table.add_column("Values")
    for field_name, conflicts in summary.by_field.items():
        for conflict in conflicts:
            style = _SEVERITY_STYLES.get(conflict.severity, "dim")
            values = "; ".join(
                f"{escape(format_value(v.value))} ({', '.join(v.sources)})"
                for v in conflict.conflicting_values
            )
            table.add_row(
                field_name,
                f"[{style}]{conflict.severity}[/{style}]",
                conflict.type,
                "auto" if conflict.auto_resolvable else "manual",
                values,
            )
    console.print(table)
    for recommendation in summary.recommendations:
        console.print(f"  [dim]{recommendation}[/dim]")


def render_duplicate(console: Console, result: DuplicateCheckResult) -> None:
    if not result.has_duplicate:
        console.print("[green]Not in the library yet.[/green]")
        return
    console.print(
        f"[yellow]Duplicate ({result.type}, {result.confidence:.0%}):[/yellow] {result.description}"
    )


def render_enrichment(
    console: Console, result: EnrichmentResult, summary: EnrichmentSummary
) -> None:
    if not result.enriched:
        console.print("[yellow]No fields could be enriched.[/yellow]")
    else:
        table = Table(title="Enriched fields")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_column("Confidence", justify="right")
        for attribute, value in result.enriched.items():
            if attribute == "series":
                shown = ", ".join(
                    f"{s.name} #{s.position:g}" if s.position is not None else s.name for s in value
                )
            elif attribute == "contributors":
                shown = ", ".join(c.name for c in value)
            else:
                shown = format_value(value)
            table.add_row(attribute, escape(shown), f"{result.confidence.get(attribute, 0.0):.2f}")
        console.print(table)

    console.print(
        f"Providers: {summary.successful}/{summary.total_providers} succeeded"
        + (f", {summary.timed_out} timed out" if summary.timed_out else "")
        + f" in {summary.total_duration:.1f}s"
    )
    for error in summary.errors:
        console.print(f"  [red]{error}[/red]")
