"""Naive by-age aggregates for contrast with the modeled aging curve.

A plate-appearance-weighted average by age only sees players who are still
playing at that age. At the extremes the buckets are dominated by a few elite
survivors, which is the selection bias the mixed model corrects for.
"""

import logging
from collections.abc import Iterable

import numpy as np
import pandas as pd

from hitter_aging.domain.aging_model import FittedAgingModel
from hitter_aging.domain.season_record import RATE_STATS
from hitter_aging.models.predict import predict_population

logger = logging.getLogger(__name__)

REFERENCE_AGE = 28


def player_contributions(frame: pd.DataFrame, reference_age: float = REFERENCE_AGE) -> pd.DataFrame:
    """Add ``age_bucket``, ``player_contribution`` and reference-age columns.

    ``player_contribution`` is the season's share of its age bucket's plate
    appearances. ``age_28_ops``/``age_28_pa`` come from the player's season
    closest to ``reference_age``.
    """
    out = frame.reset_index(drop=True)
    out["age_bucket"] = np.floor(out["age"]).astype(int)

    distance = (out["age"] - reference_age).abs()
    nearest = out.loc[distance.groupby(out["player_id"]).idxmin(), ["player_id", "ops", "pa"]]
    nearest = nearest.rename(columns={"ops": "age_28_ops", "pa": "age_28_pa"})
    out = out.merge(nearest, on="player_id", how="left")

    out["player_contribution"] = out["pa"] / out.groupby("age_bucket")["pa"].transform("sum")
    return out


def naive_aging_table(frame: pd.DataFrame) -> pd.DataFrame:
    """PA-weighted rate stats per integer age bucket."""
    contrib = player_contributions(frame)
    stats = [s for s in RATE_STATS if s in contrib.columns]

    rows: list[dict[str, float | int]] = []
    for age, group in contrib.groupby("age_bucket", sort=True):
        row: dict[str, float | int] = {"age": int(age)}
        for stat in stats:
            row[stat] = float(np.average(group[stat], weights=group["pa"]))
        row["age_28_ops"] = float(np.average(group["age_28_ops"], weights=group["age_28_pa"]))
        row["n_players"] = int(group["player_id"].nunique())
        row["total_pa"] = int(group["pa"].sum())
        rows.append(row)

    table = pd.DataFrame(rows)
    logger.debug("Naive aging table: %d age buckets", len(table))
    return table


def top_contributors(frame: pd.DataFrame, n: int = 5) -> pd.DataFrame:
    """The ``n`` largest PA shares in each age bucket, ranked."""
    contrib = player_contributions(frame)
    ranked = contrib.sort_values(["age_bucket", "player_contribution"], ascending=[True, False])
    top = ranked.groupby("age_bucket", sort=True).head(n).copy()
    top["rank"] = top.groupby("age_bucket").cumcount() + 1
    columns = ["age_bucket", "rank", "player_id", "name", "pa", "ops", "age_28_ops", "player_contribution"]
    return top[[c for c in columns if c in top.columns]].rename(columns={"age_bucket": "age"}).reset_index(drop=True)


def compare_curves(
    model: FittedAgingModel,
    frame: pd.DataFrame,
    ages: Iterable[float] | None = None,
) -> pd.DataFrame:
    """Modeled population curve next to the naive aggregate, by age."""
    naive = naive_aging_table(frame)
    grid = naive["age"].to_numpy(dtype=np.float64) if ages is None else np.asarray(list(ages), dtype=np.float64)

    modeled = predict_population(grid, model).rename(columns={"pred_ops": "modeled"})
    aggregate = naive[["age", "ops", "age_28_ops", "total_pa"]].rename(columns={"ops": "aggregate"})
    aggregate["age"] = aggregate["age"].astype(np.float64)
    return modeled.merge(aggregate, on="age", how="left")
