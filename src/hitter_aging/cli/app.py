from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import pandas as pd
import typer

from hitter_aging.cli._logging import configure_logging
from hitter_aging.cli._output import (
    console,
    print_error,
    print_frame,
    print_model_summary,
    print_peak_result,
    print_player_seasons,
)
from hitter_aging.config import AgingConfig, load_aging_config
from hitter_aging.data.loader import (
    filter_min_seasons,
    load_season_table,
    read_table,
    records_from_frame,
    write_season_table,
)
from hitter_aging.data.prepare import build_season_table
from hitter_aging.domain.aging_model import (
    FittedAgingModel,
    ModelSpec,
    random_intercept_spec,
    random_slope_spec,
    random_spline_spec,
)
from hitter_aging.domain.spline_basis import SplineBasis
from hitter_aging.exceptions import AgingException
from hitter_aging.models.forecast import fit_forecaster, predict_next
from hitter_aging.models.mixed import fit_aging_model
from hitter_aging.models.peak import find_peak_age
from hitter_aging.models.predict import predict_player
from hitter_aging.models.serialization import load_model, save_model
from hitter_aging.models.spline import fit_spline_basis
from hitter_aging.services.aggregation import compare_curves, top_contributors
from hitter_aging.services.effects import (
    fixed_effects_table,
    random_effect_components,
    random_effects_table,
    variance_components_table,
)

app = typer.Typer(name="aging", help="Hitter aging curves from spline-basis mixed-effects models.")

_SPEC_BUILDERS: dict[str, Callable[..., ModelSpec]] = {
    "random_intercept": random_intercept_spec,
    "random_slope": random_slope_spec,
    "random_spline": random_spline_spec,
}
_DEFAULT_VARIANTS = ("random_intercept", "random_slope")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log warnings and errors")] = False,
) -> None:
    """Hitter aging curves from spline-basis mixed-effects models."""
    configure_logging(verbose=verbose, quiet=quiet)
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


_DataOpt = Annotated[Path | None, typer.Option("--data", help="Season table (.csv, .parquet or .pkl)")]
_ConfigDirOpt = Annotated[Path, typer.Option("--config-dir", help="Directory containing aging.toml")]
_MinSeasonsOpt = Annotated[int | None, typer.Option("--min-seasons", help="Minimum seasons per player")]
_VariantOpt = Annotated[str, typer.Option("--variant", help="random_intercept, random_slope or random_spline")]


@dataclass(frozen=True)
class _Session:
    config: AgingConfig
    frame: pd.DataFrame
    basis: SplineBasis


@contextmanager
def _exit_on_error() -> Iterator[None]:
    try:
        yield
    except (AgingException, ValueError, FileNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def _load_session(data: Path | None, config_dir: Path, min_seasons: int | None) -> _Session:
    with _exit_on_error():
        config = load_aging_config(config_dir)
        path = data if data is not None else config.data_path
        if path is None:
            raise ValueError("no season table given; pass --data or set [data] path in aging.toml")
        frame = filter_min_seasons(
            load_season_table(path), config.min_seasons if min_seasons is None else min_seasons
        )
        basis = fit_spline_basis(frame["age"], df=config.spline_df, kind=config.spline_kind)
    return _Session(config=config, frame=frame, basis=basis)


def _fit(session: _Session, variant: str) -> FittedAgingModel:
    builder = _SPEC_BUILDERS.get(variant)
    if builder is None:
        print_error(f"unknown variant '{variant}', expected one of {sorted(_SPEC_BUILDERS)}")
        raise typer.Exit(code=1)
    with _exit_on_error():
        return fit_aging_model(session.frame, builder(session.basis, reml=session.config.reml), session.basis)


@app.command()
def fit(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    save_dir: Annotated[Path | None, typer.Option("--save-dir", help="Directory to save fitted models")] = None,
    variants: Annotated[
        list[str] | None, typer.Option("--variant", help="Variants to fit (default random_intercept, random_slope)")
    ] = None,
) -> None:
    """Fit aging models and report their effects and peak ages."""
    session = _load_session(data, config_dir, min_seasons)
    for variant in variants or _DEFAULT_VARIANTS:
        model = _fit(session, variant)
        print_model_summary(model)
        print_frame("Fixed effects", fixed_effects_table(model), digits=4)
        print_frame("Variance components", variance_components_table(model), digits=4)
        cfg = session.config
        print_peak_result(
            model.spec.name,
            find_peak_age(model, bracket=cfg.peak_bracket, seed=cfg.peak_seed, step=cfg.peak_step),
        )
        if save_dir is not None:
            path = save_dir / f"{model.spec.name}.joblib"
            save_model(model, path)
            console.print(f"  Saved to {path}")


@app.command()
def peak(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    variant: _VariantOpt = "random_intercept",
    model_path: Annotated[Path | None, typer.Option("--model", help="Saved model to use instead of fitting")] = None,
) -> None:
    """Report the age of peak predicted OPS."""
    if model_path is not None:
        with _exit_on_error():
            config = load_aging_config(config_dir)
            model = load_model(model_path)
    else:
        session = _load_session(data, config_dir, min_seasons)
        config = session.config
        model = _fit(session, variant)

    result = find_peak_age(model, bracket=config.peak_bracket, seed=config.peak_seed, step=config.peak_step)
    print_peak_result(model.spec.name, result)
    if not result.is_ok():
        raise typer.Exit(code=1)


@app.command()
def naive(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    variant: _VariantOpt = "random_intercept",
) -> None:
    """Compare the modeled aging curve with the naive PA-weighted average."""
    session = _load_session(data, config_dir, min_seasons)
    model = _fit(session, variant)
    comparison = compare_curves(model, session.frame)
    print_frame(f"Modeled vs aggregate OPS ({model.spec.name})", comparison)


@app.command()
def contributors(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    top: Annotated[int, typer.Option("--top", help="Players per age bucket")] = 5,
    age: Annotated[list[int] | None, typer.Option("--age", help="Age bucket(s) to show")] = None,
) -> None:
    """Show which players dominate each age bucket's plate appearances."""
    session = _load_session(data, config_dir, min_seasons)
    table = top_contributors(session.frame, n=top)
    if age:
        table = table[table["age"].isin(age)]
    print_frame("Top contributors by age", table)


@app.command()
def effects(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    variant: _VariantOpt = "random_slope",
    top: Annotated[int | None, typer.Option("--top", help="Show only the top N players")] = None,
) -> None:
    """Rank players by their random-effect estimates."""
    session = _load_session(data, config_dir, min_seasons)
    model = _fit(session, variant)
    ranked = random_effects_table(model, session.frame)
    if top is not None:
        ranked = ranked.head(top)
    print_frame(f"Random effects ({model.spec.name})", ranked, digits=4)

    if model.n_groups >= 2:
        components = random_effect_components(model)
        explained = ", ".join(f"{v:.1%}" for v in components.explained_variance_ratio)
        console.print(f"  Random-effect PCA explained variance: {explained}")


@app.command()
def prepare(
    hitting: Annotated[Path, typer.Option("--hitting", help="Raw season hitting rows (.csv, .parquet or .pkl)")],
    people: Annotated[Path, typer.Option("--people", help="People rows with id and birth_date")],
    out: Annotated[Path, typer.Option("--out", help="Where to write the season table")],
    min_at_bats: Annotated[int, typer.Option("--min-at-bats", help="Keep seasons with more at-bats than this")] = 200,
) -> None:
    """Build the season table from raw hitting rows and birth dates."""
    with _exit_on_error():
        table = build_season_table(read_table(hitting), read_table(people), min_at_bats=min_at_bats)
        write_season_table(table, out)
    console.print(f"Wrote {len(table)} seasons for {table['player_id'].nunique()} players to {out}")


@app.command()
def player(
    player_id: Annotated[int, typer.Argument(help="Player id")],
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    variant: _VariantOpt = "random_intercept",
) -> None:
    """Show a player's seasons next to their modeled aging curve."""
    session = _load_session(data, config_dir, min_seasons)
    rows = session.frame[session.frame["player_id"] == player_id]
    if rows.empty:
        print_error(f"player {player_id} not in the season table")
        raise typer.Exit(code=1)
    records = records_from_frame(rows.sort_values("season"))
    model = _fit(session, variant)
    curve = predict_player([r.age for r in records], model, player_id)
    print_player_seasons(records, curve["pred_ops"].tolist())


@app.command()
def forecast(
    data: _DataOpt = None,
    config_dir: _ConfigDirOpt = Path("."),
    min_seasons: _MinSeasonsOpt = None,
    splits: Annotated[int, typer.Option("--splits", help="Player-grouped cross-validation folds")] = 5,
    top: Annotated[int | None, typer.Option("--top", help="Show only the top N forecasts")] = None,
) -> None:
    """Forecast next-season OPS from age and the previous two seasons."""
    session = _load_session(data, config_dir, min_seasons)
    with _exit_on_error():
        forecaster = fit_forecaster(session.frame, n_splits=splits)
        upcoming = predict_next(forecaster, session.frame)
    console.print(
        f"  Trained on {forecaster.n_train} seasons, CV RMSE {forecaster.cv_rmse:.4f}, params {forecaster.params}"
    )
    if top is not None:
        upcoming = upcoming.head(top)
    print_frame("Next-season OPS forecast", upcoming)
