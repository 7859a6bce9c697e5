"""Turn raw season hitting rows plus player birth dates into the season table.

Inputs are frames already fetched from the stats API (hitting rows keyed by
``player_id``, people rows keyed by ``id`` with a ``birth_date``).
"""

import logging
from datetime import date, datetime

import pandas as pd

from hitter_aging.data.loader import add_centered_age, add_season_counts
from hitter_aging.domain.season_record import RATE_STATS, SEASON_COLUMNS

logger = logging.getLogger(__name__)

_DAYS_PER_YEAR = 365.25

_HITTING_RENAMES = {
    "player_full_name": "name",
    "at_bats": "ab",
    "plate_appearances": "pa",
}


def mid_season_age(birth_date: date | datetime | str, season: int) -> float:
    """Age in fractional years on July 1 of ``season``."""
    if isinstance(birth_date, str):
        born = date.fromisoformat(birth_date[:10])
    elif isinstance(birth_date, datetime):
        born = birth_date.date()
    else:
        born = birth_date
    return (date(season, 7, 1) - born).days / _DAYS_PER_YEAR


def build_season_table(hitting: pd.DataFrame, people: pd.DataFrame, min_at_bats: int = 200) -> pd.DataFrame:
    """Join birth dates, compute mid-season age and keep qualifying seasons.

    Seasons with ``ab <= min_at_bats`` and players without a birth date are
    dropped.
    """
    hit = hitting.rename(columns=_HITTING_RENAMES)
    hit = hit.drop(columns=[c for c in ("birth_date", "age") if c in hit.columns])
    hit = hit.dropna(subset=["player_id"]).copy()
    hit["player_id"] = hit["player_id"].astype(int)
    hit["ab"] = pd.to_numeric(hit["ab"], errors="coerce")
    hit = hit[hit["ab"] > min_at_bats]

    births = people[["id", "birth_date"]].rename(columns={"id": "player_id"})
    merged = hit.merge(births, on="player_id", how="left")

    missing = int(merged["birth_date"].isna().sum())
    if missing:
        logger.info("Dropped %d seasons without a birth date", missing)
    merged = merged.dropna(subset=["birth_date"]).copy()

    born = pd.to_datetime(merged["birth_date"])
    merged["age"] = [mid_season_age(b, int(s)) for b, s in zip(born, merged["season"], strict=True)]

    for col in (*RATE_STATS, "pa"):
        merged[col] = pd.to_numeric(merged[col], errors="coerce")

    keep = [c for c in SEASON_COLUMNS if c in merged.columns]
    if "team_name" in merged.columns:
        keep.append("team_name")
    table = merged[keep].sort_values(["player_id", "season"]).reset_index(drop=True)
    table = add_centered_age(add_season_counts(table))
    logger.info("Built season table: %d seasons, %d players", len(table), table["player_id"].nunique())
    return table
