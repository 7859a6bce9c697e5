from dataclasses import dataclass


@dataclass(frozen=True)
class AgingError:
    message: str


@dataclass(frozen=True)
class PeakNotFound(AgingError):
    model_name: str
    search_domain: tuple[float, float]
