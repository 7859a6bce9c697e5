"""Next-season OPS from age and the two previous seasons' OPS.

A gradient-boosted regressor is tuned over a small parameter grid with
player-grouped cross-validation, so a player's seasons never appear in both
the training and the scoring side of a fold, then refit on every row.
"""

import itertools
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.ensemble import HistGradientBoostingRegressor
from sklearn.model_selection import GroupKFold

from hitter_aging.domain.season_record import RATE_STATS

logger = logging.getLogger(__name__)

TARGET = "ops"
FEATURE_COLUMNS: tuple[str, ...] = ("age", "ops_lag1", "ops_lag2")

DEFAULT_PARAM_GRID: dict[str, list[Any]] = {
    "max_depth": [2, 4],
    "learning_rate": [0.05, 0.1],
    "max_iter": [100],
}

_ALLOWED_PARAMS = frozenset({"max_iter", "max_depth", "learning_rate", "min_samples_leaf", "max_leaf_nodes"})


def add_lag_features(
    frame: pd.DataFrame,
    stats: Sequence[str] = RATE_STATS,
    lags: Sequence[int] = (1, 2),
) -> pd.DataFrame:
    """Attach ``<stat>_lag<k>``: the player's value ``k`` calendar seasons earlier.

    A skipped season leaves the lag missing rather than reaching back to an
    older one. Only the first row of a repeated player-season is used as a
    lag source.
    """
    source = frame[["player_id", "season", *stats]].drop_duplicates(["player_id", "season"])
    out = frame.copy()
    for k in lags:
        lagged = source.assign(season=source["season"] + k)
        lagged = lagged.rename(columns={s: f"{s}_lag{k}" for s in stats})
        out = out.merge(lagged, on=["player_id", "season"], how="left")
    return out


def forecast_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Rows usable for training: OPS and both OPS lags present."""
    lagged = add_lag_features(frame)
    usable = lagged.dropna(subset=[TARGET, "ops_lag1", "ops_lag2"]).reset_index(drop=True)
    logger.debug("Forecast rows: %d of %d seasons have two prior seasons", len(usable), len(frame))
    return usable


@dataclass(frozen=True)
class CVFold:
    X_train: np.ndarray
    y_train: np.ndarray
    X_test: np.ndarray
    y_test: np.ndarray
    train_players: frozenset[int]
    test_players: frozenset[int]


@dataclass(frozen=True)
class GridSearchResult:
    best_params: dict[str, Any]
    best_mean_rmse: float
    all_results: list[dict[str, Any]]


@dataclass(frozen=True)
class OpsForecaster:
    regressor: HistGradientBoostingRegressor
    params: dict[str, Any]
    cv_rmse: float
    n_train: int
    feature_columns: tuple[str, ...] = FEATURE_COLUMNS


def _features(frame: pd.DataFrame) -> np.ndarray:
    return frame[list(FEATURE_COLUMNS)].to_numpy(dtype=np.float64)


def _rmse(y_actual: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.sqrt(np.mean((y_actual - y_pred) ** 2)))


def grouped_folds(data: pd.DataFrame, n_splits: int = 5) -> list[CVFold]:
    """Split ``forecast_frame`` rows into folds grouped by player."""
    players = data["player_id"].to_numpy()
    n_players = len(np.unique(players))
    if n_players < 2:
        raise ValueError(f"grouped cross-validation needs at least two players, got {n_players}")
    splitter = GroupKFold(n_splits=min(n_splits, n_players))

    X = _features(data)
    y = data[TARGET].to_numpy(dtype=np.float64)
    folds: list[CVFold] = []
    for train_idx, test_idx in splitter.split(X, y, groups=players):
        folds.append(
            CVFold(
                X_train=X[train_idx],
                y_train=y[train_idx],
                X_test=X[test_idx],
                y_test=y[test_idx],
                train_players=frozenset(int(p) for p in players[train_idx]),
                test_players=frozenset(int(p) for p in players[test_idx]),
            )
        )
    return folds


def fit_regressor(X: np.ndarray, y: np.ndarray, params: dict[str, Any]) -> HistGradientBoostingRegressor:
    filtered = {k: v for k, v in params.items() if k in _ALLOWED_PARAMS}
    model = HistGradientBoostingRegressor(**filtered)
    model.fit(X, y)
    return model


def _evaluate_combination(folds: list[CVFold], params: dict[str, Any]) -> dict[str, Any]:
    fold_rmse = [_rmse(f.y_test, fit_regressor(f.X_train, f.y_train, params).predict(f.X_test)) for f in folds]
    return {"params": params, "mean_rmse": sum(fold_rmse) / len(fold_rmse), "fold_rmse": fold_rmse}


def grid_search_forecast(folds: list[CVFold], param_grid: dict[str, list[Any]] | None = None) -> GridSearchResult:
    """Exhaustive search; the combination with the lowest mean fold RMSE wins."""
    grid = param_grid if param_grid is not None else DEFAULT_PARAM_GRID
    names = list(grid.keys())
    combos = [dict(zip(names, combo, strict=True)) for combo in itertools.product(*grid.values())]
    if not combos:
        raise ValueError("parameter grid is empty")

    logger.info("Grid search: %d combos, %d folds", len(combos), len(folds))
    t0 = time.perf_counter()
    all_results = [_evaluate_combination(folds, params) for params in combos]
    best = min(all_results, key=lambda entry: entry["mean_rmse"])
    logger.info(
        "Grid search done in %.1fs: best RMSE=%.4f params=%s",
        time.perf_counter() - t0,
        best["mean_rmse"],
        best["params"],
    )
    return GridSearchResult(best_params=best["params"], best_mean_rmse=best["mean_rmse"], all_results=all_results)


def fit_forecaster(
    frame: pd.DataFrame,
    param_grid: dict[str, list[Any]] | None = None,
    n_splits: int = 5,
) -> OpsForecaster:
    """Tune on player-grouped folds, then refit the best parameters on all usable rows."""
    data = forecast_frame(frame)
    search = grid_search_forecast(grouped_folds(data, n_splits), param_grid)
    regressor = fit_regressor(_features(data), data[TARGET].to_numpy(dtype=np.float64), search.best_params)
    logger.info("Fit OPS forecaster on %d seasons", len(data))
    return OpsForecaster(
        regressor=regressor,
        params=search.best_params,
        cv_rmse=search.best_mean_rmse,
        n_train=len(data),
    )


def predict_next(forecaster: OpsForecaster, frame: pd.DataFrame) -> pd.DataFrame:
    """Forecast the season after each player's latest one.

    Players whose latest two seasons are not consecutive have no
    ``ops_lag2`` for the next season and are left out.
    """
    lagged = add_lag_features(frame, stats=(TARGET,), lags=(1,))
    latest = lagged.sort_values("season").groupby("player_id", sort=True).tail(1)
    upcoming = pd.DataFrame(
        {
            "player_id": latest["player_id"].to_numpy(),
            "season": latest["season"].to_numpy() + 1,
            "age": latest["age"].to_numpy() + 1.0,
            "ops_lag1": latest[TARGET].to_numpy(),
            "ops_lag2": latest["ops_lag1"].to_numpy(),
        }
    )
    if "name" in latest.columns:
        upcoming.insert(1, "name", latest["name"].to_numpy())

    skipped = int(upcoming["ops_lag2"].isna().sum())
    if skipped:
        logger.info("Skipped %d players without two consecutive recent seasons", skipped)
    upcoming = upcoming.dropna(subset=["ops_lag1", "ops_lag2"]).reset_index(drop=True)
    upcoming["pred_ops"] = np.nan
    if len(upcoming):
        upcoming["pred_ops"] = forecaster.regressor.predict(_features(upcoming))
    return upcoming.sort_values("pred_ops", ascending=False).reset_index(drop=True)
