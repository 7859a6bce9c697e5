import math
from collections.abc import Sequence

import pandas as pd
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hitter_aging.domain.aging_model import FittedAgingModel, PeakAge
from hitter_aging.domain.errors import PeakNotFound
from hitter_aging.domain.result import Err, Ok, Result
from hitter_aging.domain.season_record import SeasonRecord

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def _fmt(value: object, digits: int = 3) -> str:
    if isinstance(value, float):
        return "-" if math.isnan(value) else f"{value:.{digits}f}"
    return str(value)


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {escape(message)}")


def print_model_summary(model: FittedAgingModel) -> None:
    lo, hi = model.age_range
    console.print(f"[bold green]Fit[/bold green] model [bold]'{model.spec.name}'[/bold]")
    console.print(f"  Observations: {model.n_obs}  Players: {model.n_groups}")
    console.print(f"  Training ages: {lo:.1f}-{hi:.1f} (mean {model.mean_age:.2f})")
    console.print(f"  Spline: {model.basis.kind}, df={model.basis.df}  Log-likelihood: {model.log_likelihood:.2f}")


def print_frame(title: str, frame: pd.DataFrame, digits: int = 3) -> None:
    if frame.empty:
        console.print(f"  {title}: no rows")
        return
    table = Table(title=title)
    for col in frame.columns:
        justify = "right" if pd.api.types.is_numeric_dtype(frame[col]) else "left"
        table.add_column(str(col), justify=justify)
    for row in frame.itertuples(index=False):
        table.add_row(*(_fmt(v, digits) for v in row))
    console.print(table)


def print_peak_result(model_name: str, result: Result[PeakAge, PeakNotFound]) -> None:
    match result:
        case Ok(peak):
            console.print(
                f"  [bold]{model_name}[/bold] peak age: {peak.age:.2f} "
                f"(pred OPS {peak.pred_ops:.3f}, bracket {peak.bracket[0]:.1f}-{peak.bracket[1]:.1f})"
            )
        case Err(error):
            console.print(f"  [bold]{model_name}[/bold] peak age: [yellow]not found[/yellow] ({escape(error.message)})")


def print_player_seasons(records: Sequence[SeasonRecord], modeled: Sequence[float]) -> None:
    if not records:
        return
    first = records[0]
    table = Table(title=escape(f"{first.name} ({first.player_id})"))
    for col in ("season", "age", "team", "pa", "ops", "modeled"):
        table.add_column(col, justify="left" if col == "team" else "right")
    for record, pred in zip(records, modeled, strict=True):
        table.add_row(
            str(record.season),
            _fmt(record.age, 1),
            escape(record.team_name or "-"),
            str(record.pa),
            _fmt(record.ops),
            _fmt(pred),
        )
    console.print(table)
