"""
League tiers.

Maps a member's point total to a named league. Pure functions, no
database access. Negative totals count as zero; anything that is not an
integer is rejected with InvalidInputError.
"""

from bisect import bisect_right
from dataclasses import dataclass
from numbers import Integral
from typing import Iterable, Optional, Tuple

from .errors import InvalidInputError


@dataclass(frozen=True)
class League:
    name: str
    min_points: int
    description: str = ""


DEFAULT_LEAGUES = (
    League("FERRO", 0, "Início da jornada"),
    League("BRONZE", 1000, "Guerreiro em ascensão"),
    League("PRATA", 3000, "Brilho da determinação"),
    League("OURO", 6000, "Excelência dourada"),
    League("DIAMANTE", 10000, "Lenda do clube"),
)


def normalize_points(points) -> int:
    """Validate a point total and clamp negatives to zero."""
    if isinstance(points, bool) or not isinstance(points, Integral):
        raise InvalidInputError(f"Point total must be an integer, got {points!r}")
    return max(0, int(points))


class LeagueTable:
    """
    Ordered set of leagues.

    Thresholds must start at zero and strictly increase, so every
    non-negative total falls in exactly one league.
    """

    def __init__(self, leagues: Iterable[League]):
        leagues = tuple(leagues)
        if not leagues:
            raise InvalidInputError("A league table needs at least one league")
        if leagues[0].min_points != 0:
            raise InvalidInputError("The lowest league must start at 0 points")
        for lower, upper in zip(leagues, leagues[1:]):
            if upper.min_points <= lower.min_points:
                raise InvalidInputError(
                    f"League thresholds must increase: {lower.name}={lower.min_points}, "
                    f"{upper.name}={upper.min_points}"
                )
        names = [league.name for league in leagues]
        if len(set(names)) != len(names):
            raise InvalidInputError("League names must be unique")

        self.leagues: Tuple[League, ...] = leagues
        self._thresholds = [league.min_points for league in leagues]

    def _index(self, points) -> int:
        return bisect_right(self._thresholds, normalize_points(points)) - 1

    def get(self, points) -> League:
        """Highest league whose threshold does not exceed `points`."""
        return self.leagues[self._index(points)]

    def classify(self, points) -> str:
        return self.get(points).name

    def next_league(self, points) -> Optional[League]:
        index = self._index(points) + 1
        return self.leagues[index] if index < len(self.leagues) else None

    def points_to_next(self, points) -> Optional[int]:
        upcoming = self.next_league(points)
        if upcoming is None:
            return None
        return upcoming.min_points - normalize_points(points)


DEFAULT_TABLE = LeagueTable(DEFAULT_LEAGUES)


def classify(points) -> str:
    """
    Name of the league for a point total.

    Example:
        classify(999) -> "FERRO"
        classify(1000) -> "BRONZE"
    """
    return DEFAULT_TABLE.classify(points)


def get_league(points) -> League:
    return DEFAULT_TABLE.get(points)


def next_league(points) -> Optional[League]:
    return DEFAULT_TABLE.next_league(points)


def points_to_next_league(points) -> Optional[int]:
    """Points still missing to reach the next league; None at the top."""
    return DEFAULT_TABLE.points_to_next(points)
