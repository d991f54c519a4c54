"""
Batch analysis of a conjoint survey export.

Loads the survey table, runs the per-respondent pipeline and renders the
group-level results with rich: attribute importance, willingness to pay,
the pricing outcome and the list of respondents that were left out.
"""

from __future__ import annotations

import math
from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tvconjoint.exceptions import ConfigError, DataError
from tvconjoint.io import load_survey, save_report
from tvconjoint.models import AttributeFamily, AttributeKey, StudyConfig
from tvconjoint.pipeline import PipelineReport, run_pipeline

console = Console()

FAMILY_LABELS = {
    AttributeFamily.SCREEN_SIZE.value: "Screen size",
    AttributeFamily.RESOLUTION.value: "Resolution",
    AttributeFamily.BRAND.value: "Brand",
    AttributeFamily.PRICE.value: "Price",
}


def _display_importance(summary: dict) -> None:
    """Bar chart of mean importance shares."""
    console.print()
    console.print("[bold underline]Attribute Importance (group mean ± SD)[/bold underline]")
    console.print()

    imp = summary["importance"]
    max_bar = 40
    max_imp = max((v[0] for v in imp.values()), default=1.0)
    max_name = max((len(FAMILY_LABELS.get(k, k)) for k in imp), default=10)

    for fam in sorted(imp, key=lambda f: -imp[f][0]):
        mean, std, _n = imp[fam]
        bar_len = int((mean / max_imp) * max_bar) if max_imp > 0 else 0
        bar = "█" * bar_len
        name_padded = FAMILY_LABELS.get(fam, fam).ljust(max_name)
        console.print(
            f"  {name_padded}  [cyan]{bar}[/cyan] {100 * mean:5.1f}% ± {100 * std:4.1f}"
        )


def _display_wtp(summary: dict) -> None:
    """Mean willingness to pay per attribute level."""
    console.print()
    table = Table(
        title="Willingness to Pay (group mean ± SD)",
        box=box.SIMPLE, show_header=True, header_style="bold", padding=(0, 1),
    )
    table.add_column("Level", min_width=16)
    table.add_column("Mean WTP", justify="right", min_width=12)
    table.add_column("SD", justify="right", min_width=10)

    for key, (mean, std, _n) in sorted(summary["wtp"].items(), key=lambda kv: -kv[1][0]):
        style = "green" if mean > 0 else ("red" if mean < 0 else "")
        table.add_row(AttributeKey(key).label, f"${mean:,.2f}", f"${std:,.2f}", style=style)
    console.print(table)


def _display_respondents(report: PipelineReport) -> None:
    """One row per completed respondent: fit quality and individual optimum."""
    table = Table(
        title="Individual Optimal Prices",
        box=box.ROUNDED, show_header=True, header_style="bold cyan",
    )
    table.add_column("Respondent", min_width=16)
    table.add_column("R²", justify="right")
    table.add_column("Price coef.", justify="right")
    table.add_column("Optimal price", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Profit", justify="right")

    for pid, result in report.completed.items():
        if result.market is None:
            continue
        opt = result.market.optimum
        r2 = result.model.r_squared
        table.add_row(
            pid,
            "—" if math.isnan(r2) else f"{r2:.3f}",
            f"{result.model.price_coefficient:+.4f}",
            f"${opt.price:,.0f}",
            f"{100 * opt.share:.1f}%",
            f"${opt.profit:,.0f}",
        )
    console.print()
    console.print(table)


def _display_pricing(report: PipelineReport, config: StudyConfig) -> None:
    summary = report.summary()
    focal = config.focal_design
    lines = [
        f"[bold]{focal.name}[/bold] vs "
        + ", ".join(f"{c.name} (${c.price:,.0f})" for c in config.competitors),
        f"Unit cost: ${config.unit_cost(focal):,.0f}   Market size: {config.market_size:,.0f}",
    ]
    if summary["optimal_price"] is not None:
        mean, std, n = summary["optimal_price"]
        lines.append(f"Individual optimum: ${mean:,.0f} ± {std:,.0f} (N = {n})")
        lines.append(f"Most frequent optimum: ${summary['modal_optimal_price']:,.0f}")
        lines.append(f"Optimum of mean profit curve: ${summary['group_optimal_price']:,.0f}")
    if report.extrapolated_prices:
        lines.append(
            f"[yellow]{len(report.extrapolated_prices)} grid price(s) extrapolate "
            f"beyond the competitor price anchors[/yellow]"
        )
    console.print()
    console.print(Panel("\n".join(lines), title="Pricing", border_style="magenta"))


def _display_exclusions(report: PipelineReport) -> None:
    """List every respondent left out of the group results, with the reason."""
    excluded = [(pid, reason) for pid, reason in report.skipped.items()]
    excluded += [
        (pid, "degenerate fit: " + "; ".join(msgs))
        for pid, msgs in report.degenerate.items()
    ]
    if not excluded:
        return
    table = Table(
        title="Excluded Respondents",
        box=box.SIMPLE, show_header=True, header_style="bold red",
    )
    table.add_column("Respondent", min_width=16)
    table.add_column("Reason")
    for pid, reason in excluded:
        table.add_row(pid, reason)
    console.print()
    console.print(table)


def display_report(report: PipelineReport, config: StudyConfig) -> None:
    """Render a full pipeline report to the terminal."""
    summary = report.summary()
    console.print()
    console.print(
        Panel(
            f"[bold]Group-Level Results[/bold] — {config.name}\n"
            f"N = {summary['n_completed']} completed, "
            f"{len(report.degenerate)} degenerate, {len(report.skipped)} skipped",
            border_style="bright_blue",
        )
    )
    if summary["n_completed"]:
        _display_importance(summary)
        _display_wtp(summary)
        _display_respondents(report)
        _display_pricing(report, config)
    else:
        console.print("[yellow]No respondents could be analysed.[/yellow]")
    _display_exclusions(report)


def run_analyze(
    survey_path: Path,
    *,
    config_path: Path | None = None,
    output_dir: Path | None = None,
    workers: int | None = None,
) -> int:
    """
    Analyze a survey export and display the results.

    Returns a process exit code: 0 on success, 1 when the run was aborted
    by a configuration or data error shared by all respondents.
    """
    try:
        config = StudyConfig.from_yaml(config_path) if config_path else StudyConfig()
        data = load_survey(survey_path, config)
        report = run_pipeline(data, config, max_workers=workers)
    except (ConfigError, DataError) as exc:
        console.print(f"[red]Analysis aborted: {exc}[/red]")
        return 1

    display_report(report, config)

    if output_dir is not None:
        for path in save_report(report, output_dir, console=console):
            console.print(f"[green]Report saved → {path}[/green]")
    return 0
