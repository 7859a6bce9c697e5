"""Tidy summaries of a fitted aging model's fixed and random effects."""

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

from hitter_aging.domain.aging_model import FittedAgingModel


@dataclass(frozen=True)
class RandomEffectComponents:
    scores: pd.DataFrame  # player_id plus one pcN column per component
    loadings: pd.DataFrame  # component x random term
    explained_variance_ratio: tuple[float, ...]


def fixed_effects_table(model: FittedAgingModel) -> pd.DataFrame:
    return pd.DataFrame(
        {"term": list(model.fixed_effects), "estimate": list(model.fixed_effects.values())}
    )


def variance_components_table(model: FittedAgingModel) -> pd.DataFrame:
    """Random-effect SDs and correlations, plus the residual SD."""
    group = model.spec.group
    terms = model.spec.random_terms
    cov = model.random_effects_cov
    sds = [math.sqrt(max(cov[i][i], 0.0)) for i in range(len(terms))]

    rows: list[dict[str, object]] = []
    for term, sd in zip(terms, sds, strict=True):
        rows.append({"group": group, "term": f"sd__{term}", "estimate": sd})
    for i in range(len(terms)):
        for j in range(i + 1, len(terms)):
            denom = sds[i] * sds[j]
            corr = cov[i][j] / denom if denom > 0 else float("nan")
            rows.append({"group": group, "term": f"cor__{terms[i]}.{terms[j]}", "estimate": corr})
    rows.append({"group": "Residual", "term": "sd__Observation", "estimate": math.sqrt(model.residual_variance)})
    return pd.DataFrame(rows)


def random_effects_table(model: FittedAgingModel, frame: pd.DataFrame | None = None) -> pd.DataFrame:
    """Per-player random effects ranked by the first term (highest first).

    When ``frame`` is given, player names are joined in from it.
    """
    terms = list(model.spec.random_terms)
    table = pd.DataFrame(
        [(pid, *effects) for pid, effects in model.random_effects.items()],
        columns=["player_id", *terms],
    )
    if frame is not None and "name" in frame.columns:
        names = frame.drop_duplicates("player_id")[["player_id", "name"]]
        table = table.merge(names, on="player_id", how="left")
        table = table[["player_id", "name", *terms]]
    table = table.sort_values(terms[0], ascending=False).reset_index(drop=True)
    table.insert(0, "rank", np.arange(1, len(table) + 1))
    return table


def random_effect_components(model: FittedAgingModel, n_components: int = 2) -> RandomEffectComponents:
    """PCA of the per-player random-effect vectors."""
    if len(model.random_effects) < 2:
        raise ValueError("PCA needs random effects for at least two players")
    terms = list(model.spec.random_terms)
    player_ids = list(model.random_effects)
    matrix = np.array([model.random_effects[pid] for pid in player_ids], dtype=np.float64)

    k = min(n_components, matrix.shape[0], matrix.shape[1])
    pca = PCA(n_components=k)
    scores = pca.fit_transform(matrix)
    names = [f"pc{i}" for i in range(1, k + 1)]

    score_frame = pd.DataFrame(scores, columns=names)
    score_frame.insert(0, "player_id", player_ids)
    return RandomEffectComponents(
        scores=score_frame,
        loadings=pd.DataFrame(pca.components_, index=names, columns=terms),
        explained_variance_ratio=tuple(float(v) for v in pca.explained_variance_ratio_),
    )
