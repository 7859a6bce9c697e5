import logging
from pathlib import Path

import pandas as pd

from hitter_aging.domain.season_record import RATE_STATS, SeasonRecord
from hitter_aging.exceptions import DataLoadError

logger = logging.getLogger(__name__)

_REQUIRED_COLUMNS = frozenset({"player_id", "season", "age", "pa", "ops"})

# Stats-API style names mapped onto the season columns.
_COLUMN_ALIASES = {
    "id": "player_id",
    "player_full_name": "name",
    "at_bats": "ab",
    "plate_appearances": "pa",
}

_NUMERIC_COLUMNS = ("age", "pa", "ab", *RATE_STATS)


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV, parquet or pickled DataFrame as-is."""
    if not path.exists():
        raise DataLoadError(f"Table not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix in (".pkl", ".pickle"):
        frame = pd.read_pickle(path)
        if not isinstance(frame, pd.DataFrame):
            raise DataLoadError(f"{path} does not contain a DataFrame")
        return frame
    raise DataLoadError(f"Unsupported table format '{suffix}' for {path}")


def write_season_table(frame: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame.to_csv(path, index=False)
    elif suffix == ".parquet":
        frame.to_parquet(path, index=False)
    elif suffix in (".pkl", ".pickle"):
        frame.to_pickle(path)
    else:
        raise DataLoadError(f"Unsupported table format '{suffix}' for {path}")
    logger.info("Wrote %d seasons to %s", len(frame), path)


def _normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.rename(columns={c: str(c).strip().lower() for c in frame.columns})
    aliases = {k: v for k, v in _COLUMN_ALIASES.items() if k in frame.columns and v not in frame.columns}
    return frame.rename(columns=aliases)


def add_season_counts(frame: pd.DataFrame) -> pd.DataFrame:
    """Attach ``n_seasons``, the number of distinct seasons per player."""
    out = frame.copy()
    out["n_seasons"] = out.groupby("player_id")["season"].transform("nunique").astype(int)
    return out


def add_centered_age(frame: pd.DataFrame, mean_age: float | None = None) -> pd.DataFrame:
    """Attach ``centered_age = age - mean_age`` (population mean by default)."""
    out = frame.copy()
    center = float(out["age"].mean()) if mean_age is None else mean_age
    out["centered_age"] = out["age"] - center
    return out


def filter_min_seasons(frame: pd.DataFrame, min_seasons: int = 5) -> pd.DataFrame:
    """Keep players with at least ``min_seasons`` distinct seasons.

    ``centered_age`` is left untouched so it stays relative to the full
    population mean.
    """
    if "n_seasons" not in frame.columns:
        frame = add_season_counts(frame)
    kept = frame[frame["n_seasons"] >= min_seasons].reset_index(drop=True)
    logger.debug(
        "Kept %d of %d players with >= %d seasons",
        kept["player_id"].nunique(),
        frame["player_id"].nunique(),
        min_seasons,
    )
    return kept


def load_season_table(path: Path) -> pd.DataFrame:
    """Read a per-player-season hitting table from CSV, parquet or pickle.

    Rows without an age, PA, OPS or player id are dropped rather than
    imputed; ``n_seasons`` and ``centered_age`` are recomputed from what
    remains.
    """
    frame = _normalize_columns(read_table(path))
    missing = _REQUIRED_COLUMNS - set(frame.columns)
    if missing:
        raise DataLoadError(f"{path} is missing required columns: {sorted(missing)}")

    for col in _NUMERIC_COLUMNS:
        if col in frame.columns:
            frame[col] = pd.to_numeric(frame[col], errors="coerce")

    total = len(frame)
    frame = frame.dropna(subset=sorted(_REQUIRED_COLUMNS))
    frame = frame[frame["pa"] > 0].copy()
    dropped = total - len(frame)
    if dropped:
        logger.info("Dropped %d of %d rows with missing age, PA or OPS", dropped, total)

    if "name" not in frame.columns:
        frame["name"] = frame["player_id"].astype(str)

    frame = add_centered_age(add_season_counts(frame))
    logger.info("Loaded %d seasons for %d players from %s", len(frame), frame["player_id"].nunique(), path)
    return frame.reset_index(drop=True)


def _int_or_zero(value: object) -> int:
    return 0 if value is None or pd.isna(value) else int(value)


def _float_or_nan(value: object) -> float:
    return float("nan") if value is None or pd.isna(value) else float(value)


def records_from_frame(frame: pd.DataFrame) -> list[SeasonRecord]:
    """Season rows as records; a missing AB count becomes 0 and missing rate stats NaN."""
    records: list[SeasonRecord] = []
    for row in frame.to_dict(orient="records"):
        team = row.get("team_name")
        records.append(
            SeasonRecord(
                player_id=int(row["player_id"]),
                name=str(row["name"]),
                season=int(row["season"]),
                age=float(row["age"]),
                centered_age=float(row["centered_age"]),
                pa=int(row["pa"]),
                ab=_int_or_zero(row.get("ab")),
                avg=_float_or_nan(row.get("avg")),
                obp=_float_or_nan(row.get("obp")),
                slg=_float_or_nan(row.get("slg")),
                ops=float(row["ops"]),
                n_seasons=int(row["n_seasons"]),
                team_name=team if isinstance(team, str) else None,
            )
        )
    return records
