"""
What-if market simulation for a single, hand-entered set of part-worths.

Useful for checking how the focal design's share and profit respond to
price without running a full survey analysis.
"""

from __future__ import annotations

from pathlib import Path

from rich import box
from rich.console import Console
from rich.table import Table

from tvconjoint.analysis import compute_importance, compute_wtp
from tvconjoint.estimation import UtilityModel
from tvconjoint.exceptions import ConjointError
from tvconjoint.models import AttributeKey, StudyConfig
from tvconjoint.simulation import simulate_market

console = Console()


def run_simulate(
    coefficients: dict[AttributeKey, float],
    *,
    intercept: float = 0.0,
    config_path: Path | None = None,
) -> int:
    """Sweep the configured price grid for the given part-worths."""
    try:
        config = StudyConfig.from_yaml(config_path) if config_path else StudyConfig()
        config.check()
        model = UtilityModel.from_coefficients("what-if", intercept, coefficients)
        importance = compute_importance(model)
        wtp = compute_wtp(model, config.reference_price_differential)
        focal = config.focal_design
        sim = simulate_market(
            model,
            focal=focal,
            competitors=config.competitors,
            market_size=config.market_size,
            unit_cost=config.unit_cost(focal),
            price_grid=config.price_grid,
        )
    except ConjointError as exc:
        console.print(f"[red]Simulation failed: {exc}[/red]")
        return 1

    console.print()
    console.print("[bold underline]Importance[/bold underline]")
    for fam, pct in importance.as_percentages().items():
        console.print(f"  {fam.value:<12} {pct:5.1f}%")
    console.print()
    console.print("[bold underline]Willingness to Pay[/bold underline]")
    for key, value in wtp.values.items():
        console.print(f"  {key.label:<14} ${value:,.2f}")

    table = Table(
        title=f"{focal.name}: price sweep (unit cost ${sim.unit_cost:,.0f})",
        box=box.ROUNDED, show_header=True, header_style="bold cyan",
    )
    table.add_column("Price", justify="right")
    table.add_column("Share", justify="right")
    for competitor in config.competitors:
        table.add_column(competitor.name, justify="right")
    table.add_column("Sales", justify="right")
    table.add_column("Profit", justify="right")

    extrapolated = set(sim.extrapolated_prices)
    for outcome in sim.outcomes:
        if outcome.price == sim.optimal_price:
            style = "bold green"
        elif outcome.price in extrapolated:
            style = "dim"
        else:
            style = ""
        table.add_row(
            f"${outcome.price:,.0f}",
            f"{100 * outcome.share:.1f}%",
            *(f"{100 * outcome.competitor_shares[c.name]:.1f}%" for c in config.competitors),
            f"{outcome.sales:.2f}",
            f"${outcome.profit:,.0f}",
            style=style,
        )
    console.print()
    console.print(table)
    console.print(
        f"\n[bold green]Optimal price: ${sim.optimal_price:,.0f}[/bold green] "
        f"[dim](dimmed rows extrapolate beyond the competitor prices)[/dim]"
    )
    return 0
