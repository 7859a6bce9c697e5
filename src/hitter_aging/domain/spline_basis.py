from dataclasses import dataclass


@dataclass(frozen=True)
class SplineBasis:
    """Knot placement for a spline basis of age, fixed at fit time.

    ``kind`` is ``"bs"`` (B-spline, polynomial continuation outside the
    boundary knots) or ``"ns"`` (natural cubic spline, linear outside the
    boundary knots).
    """

    kind: str
    df: int
    degree: int
    interior_knots: tuple[float, ...]
    boundary_knots: tuple[float, float]

    def term_names(self) -> tuple[str, ...]:
        return tuple(f"spline{i}" for i in range(1, self.df + 1))
