"""Aggregations and summaries built on top of fitted aging models."""

from hitter_aging.services.aggregation import (
    compare_curves,
    naive_aging_table,
    player_contributions,
    top_contributors,
)
from hitter_aging.services.effects import (
    RandomEffectComponents,
    fixed_effects_table,
    random_effect_components,
    random_effects_table,
    variance_components_table,
)

__all__ = [
    "RandomEffectComponents",
    "compare_curves",
    "fixed_effects_table",
    "naive_aging_table",
    "player_contributions",
    "random_effect_components",
    "random_effects_table",
    "top_contributors",
    "variance_components_table",
]
