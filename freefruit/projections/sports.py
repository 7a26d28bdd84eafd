"""Per-league projection profiles (stat sets, decay weights, rounding)."""

from dataclasses import dataclass

NBA = "NBA"
NFL = "NFL"


@dataclass(frozen=True)
class SportProfile:
    """Static projection settings for one league."""

    code: str
    stats: tuple[str, ...]
    # Most recent game first; monotonically decreasing, sums to 1
    weights: tuple[float, ...]
    # Candidates for the confidence/trend stat, in priority order
    primary_stats: tuple[str, ...]
    integer_rounding: bool

    @property
    def lookback(self) -> int:
        return len(self.weights)

    def primary_stat(self, samples) -> str:
        """First candidate stat with a non-zero value in the history."""
        for stat in self.primary_stats:
            if any(sample.value(stat) for sample in samples):
                return stat
        return self.primary_stats[0]


SPORT_PROFILES: dict[str, SportProfile] = {
    NBA: SportProfile(
        code=NBA,
        stats=("points", "rebounds", "assists"),
        weights=(0.40, 0.30, 0.20, 0.07, 0.03),
        primary_stats=("points",),
        integer_rounding=False,
    ),
    NFL: SportProfile(
        code=NFL,
        stats=("passing_yards", "rushing_yards", "receiving_yards"),
        weights=(0.50, 0.30, 0.20),
        primary_stats=("passing_yards", "rushing_yards", "receiving_yards"),
        integer_rounding=True,
    ),
}


def get_sport_profile(sport: str) -> SportProfile:
    """Look up a profile by sport code (case-insensitive)."""
    try:
        return SPORT_PROFILES[sport.upper()]
    except KeyError:
        raise ValueError(f"Unsupported sport: {sport}") from None
