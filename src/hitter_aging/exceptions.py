class AgingException(Exception):
    """Base class for hitter-aging errors."""


class DataLoadError(AgingException):
    """Raised when the season table cannot be read or is missing columns."""


class ModelSpecError(AgingException):
    """Raised when a model spec does not match the data it is fit on."""


class ModelConvergenceError(AgingException):
    def __init__(self, spec_name: str, diagnostic: str) -> None:
        self.spec_name = spec_name
        self.diagnostic = diagnostic
        super().__init__(f"Model '{spec_name}' did not converge: {diagnostic}")


class AgingConfigError(AgingException):
    """Raised when aging.toml is invalid."""
