import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from config import ConfigurationSet, config_from_dict, config_from_env

from hitter_aging.exceptions import AgingConfigError
from hitter_aging.models.spline import SPLINE_KINDS

_CONFIG_FILENAME = "aging.toml"
_ENV_PREFIX = "AGING"
_SECTIONS = ("data", "spline", "model", "peak")
_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})

_DEFAULTS: dict[str, object] = {
    "data": {
        "path": "",
        "min_seasons": 5,
    },
    "spline": {
        "df": 3,
        "kind": "bs",
    },
    "model": {
        "reml": True,
    },
    "peak": {
        "lower": 24.0,
        "upper": 36.0,
        "seed": 30.0,
        "step": 1e-3,
    },
}


@dataclass(frozen=True)
class AgingConfig:
    data_path: Path | None = None
    min_seasons: int = 5
    spline_df: int = 3
    spline_kind: str = "bs"
    reml: bool = True
    peak_lower: float = 24.0
    peak_upper: float = 36.0
    peak_seed: float = 30.0
    peak_step: float = 1e-3

    @property
    def peak_bracket(self) -> tuple[float, float]:
        return (self.peak_lower, self.peak_upper)


def _check_sections(data: dict[str, Any]) -> None:
    for name in _SECTIONS:
        if name in data and not isinstance(data[name], dict):
            raise AgingConfigError(f"[{name}] must be a table")


def _as_bool(value: object) -> bool:
    # Environment values arrive as strings.
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"not a boolean: '{value}'")
    return bool(value)


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise AgingConfigError(f"Could not parse {path}: {e}") from e
    _check_sections(data)
    return data


def create_config(
    config_dir: Path,
    env_prefix: str = _ENV_PREFIX,
    defaults: dict[str, object] | None = None,
) -> ConfigurationSet:
    """Layer the aging settings.

    Priority (highest to lowest): ``AGING__SECTION__KEY`` env vars >
    ``aging.toml`` in ``config_dir`` > defaults.
    """
    layers = [config_from_env(env_prefix, separator="__", lowercase_keys=True)]
    toml_path = config_dir / _CONFIG_FILENAME
    if toml_path.exists():
        layers.append(config_from_dict(_read_toml(toml_path)))
    layers.append(config_from_dict(defaults if defaults is not None else _DEFAULTS))
    return ConfigurationSet(*layers)


def validate_config(config: AgingConfig) -> None:
    if config.min_seasons < 1:
        raise AgingConfigError(f"[data] min_seasons must be >= 1, got {config.min_seasons}")
    if config.spline_kind not in SPLINE_KINDS:
        raise AgingConfigError(f"[spline] kind must be one of {sorted(SPLINE_KINDS)}, got '{config.spline_kind}'")
    # Cubic B-splines need df >= degree; natural splines need one interior-knot slot.
    min_df = 3 if config.spline_kind == "bs" else 1
    if config.spline_df < min_df:
        raise AgingConfigError(
            f"[spline] df must be >= {min_df} for kind '{config.spline_kind}', got {config.spline_df}"
        )
    if config.peak_lower >= config.peak_upper:
        raise AgingConfigError(f"[peak] lower ({config.peak_lower}) must be below upper ({config.peak_upper})")
    if config.peak_step <= 0:
        raise AgingConfigError(f"[peak] step must be > 0, got {config.peak_step}")


def aging_config_from(cfg: ConfigurationSet) -> AgingConfig:
    raw_path = str(cfg["data.path"] or "")
    try:
        config = AgingConfig(
            data_path=Path(raw_path) if raw_path else None,
            min_seasons=int(str(cfg["data.min_seasons"])),
            spline_df=int(str(cfg["spline.df"])),
            spline_kind=str(cfg["spline.kind"]),
            reml=_as_bool(cfg["model.reml"]),
            peak_lower=float(str(cfg["peak.lower"])),
            peak_upper=float(str(cfg["peak.upper"])),
            peak_seed=float(str(cfg["peak.seed"])),
            peak_step=float(str(cfg["peak.step"])),
        )
    except (TypeError, ValueError) as e:
        raise AgingConfigError(f"Invalid value in aging config: {e}") from e
    validate_config(config)
    return config


def parse_config(data: dict[str, Any]) -> AgingConfig:
    """Build a validated config from an ``aging.toml``-shaped dict over the defaults."""
    _check_sections(data)
    return aging_config_from(ConfigurationSet(config_from_dict(data), config_from_dict(_DEFAULTS)))


def load_aging_config(config_dir: Path) -> AgingConfig:
    """Load settings from aging.toml in ``config_dir`` and ``AGING__*`` env vars.

    Defaults apply when the file is absent.
    """
    return aging_config_from(create_config(config_dir))
