from dataclasses import dataclass, fields


@dataclass(frozen=True)
class SeasonRecord:
    player_id: int
    name: str
    season: int
    age: float  # mid-season (July 1) age in fractional years
    centered_age: float
    pa: int
    ab: int
    avg: float
    obp: float
    slg: float
    ops: float
    n_seasons: int
    team_name: str | None = None


# team_name is optional in season tables.
SEASON_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(SeasonRecord) if f.name != "team_name")

RATE_STATS: tuple[str, ...] = ("avg", "obp", "slg", "ops")
