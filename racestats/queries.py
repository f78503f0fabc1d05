"""Read-only queries behind the statistics pages.

Every function returns a :class:`QueryResult`. Store failures are logged
here and come back as ``store_error``; missing data comes back as
``not_found``. Times are returned as ``HH:MM:SS`` strings unless a field
says otherwise.
"""

from __future__ import annotations

import functools
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from . import datastore as ds
from .names import name_matches
from .timecodec import seconds_to_time

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
STORE_ERROR = "store_error"

TOP_LIMIT = 50
NEIGHBOR_WINDOW = 4


@dataclass(frozen=True)
class QueryError:
    code: str
    message: str


@dataclass(frozen=True)
class QueryResult:
    data: Any = None
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, data: Any) -> "QueryResult":
        return cls(data=data)

    @classmethod
    def not_found(cls, message: str) -> "QueryResult":
        return cls(error=QueryError(NOT_FOUND, message))

    @classmethod
    def store_error(cls, message: str) -> "QueryResult":
        return cls(error=QueryError(STORE_ERROR, message))


def _query(fn: Callable[..., QueryResult]) -> Callable[..., QueryResult]:
    """Turn exceptions raised while querying into ``store_error`` results."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> QueryResult:
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            logger.exception("Query %s failed", fn.__name__)
            return QueryResult.store_error(str(e))

    return wrapper


def _ranking_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["time"] = seconds_to_time(row.get("time"))
    return out


@_query
def top_athletes(limit: int = TOP_LIMIT) -> QueryResult:
    rows = ds.list_global_ranking(limit=limit)
    return QueryResult.success([_ranking_row(r) for r in rows])


@_query
def search_athletes(fullname: str) -> QueryResult:
    """Ranking rows whose name contains ``fullname``, ignoring case and accents."""
    query = fullname or ""
    rows = ds.list_global_ranking()
    return QueryResult.success(
        [_ranking_row(r) for r in rows if name_matches(query, r.get("athlete_fullname") or "")]
    )


@_query
def competition_counts() -> QueryResult:
    rows = ds.list_competitions()
    return QueryResult.success(
        [
            {"year": r.get("year"), "num": int(r.get("participants") or 0)}
            for r in rows
            if r.get("participants")
        ]
    )


@_query
def competition_by_year(year: int) -> QueryResult:
    """Participants, winner and winning time of the competition held in ``year``."""
    results = ds.list_results(year=int(year))
    if not results:
        return QueryResult.not_found(f"No results for {year}")
    # A year maps to one competition; the first one wins if several exist.
    competition_id = results[0].get("competition")
    field = [r for r in results if r.get("competition") == competition_id]
    winner = next((r for r in field if r.get("rank") == 1), None)
    if winner is None:
        return QueryResult.not_found(f"No winner recorded for {year}")
    return QueryResult.success(
        {
            "year": int(year),
            "participants": len(field),
            "winner": winner.get("fullname"),
            "time": seconds_to_time(winner.get("time")),
        }
    )


@_query
def distribution_by_year(year: int) -> QueryResult:
    """Result counts bucketed by whole minute of finishing time."""
    results = ds.list_results(year=int(year))
    buckets = Counter(int(r["time"]) // 60 for r in results if r.get("time") is not None)
    return QueryResult.success([{"minute": m, "num": buckets[m]} for m in sorted(buckets)])


@_query
def best_times_by_year() -> QueryResult:
    """Winning time per year, ascending. ``mark`` stays in seconds for charts."""
    rows = sorted(ds.list_results(rank=1), key=lambda r: (r.get("year") or 0, r.get("competition") or 0))
    return QueryResult.success(
        [{"year": r.get("year"), "mark": r.get("time"), "time": seconds_to_time(r.get("time"))} for r in rows]
    )


@_query
def best_times_for_athlete(athlete_id: int) -> QueryResult:
    """Every result of one athlete with field size and percentile."""
    results = ds.list_results(athlete_id=int(athlete_id))
    field_sizes = {c.get("id"): int(c.get("participants") or 0) for c in ds.list_competitions()}
    out: List[Dict[str, Any]] = []
    for r in sorted(results, key=lambda r: (r.get("year") or 0, r.get("competition") or 0)):
        num = field_sizes.get(r.get("competition")) or 0
        rank = r.get("rank")
        out.append(
            {
                "year": r.get("year"),
                "mark": r.get("time"),
                "time": seconds_to_time(r.get("time")),
                "rank": rank,
                "num": num,
                "percentile": (rank * 100 / num) if (num and rank is not None) else None,
            }
        )
    return QueryResult.success(out)


@_query
def winners() -> QueryResult:
    rows = sorted(ds.list_results(rank=1), key=lambda r: (r.get("year") or 0, r.get("competition") or 0), reverse=True)
    return QueryResult.success(
        [{"year": r.get("year"), "mark": seconds_to_time(r.get("time")), "fullname": r.get("fullname")} for r in rows]
    )


@_query
def athlete_profile(athlete_id: int) -> QueryResult:
    rows = ds.list_global_ranking(athlete_id=int(athlete_id))
    if not rows:
        return QueryResult.not_found(f"Athlete {athlete_id} is not ranked")
    return QueryResult.success(_ranking_row(rows[0]))


@_query
def ranking_neighbors(athlete_id: int, window: int = NEIGHBOR_WINDOW) -> QueryResult:
    """Ranking rows within ``window`` positions of the athlete, excluding the athlete."""
    own = ds.list_global_ranking(athlete_id=int(athlete_id))
    if not own:
        return QueryResult.not_found(f"Athlete {athlete_id} is not ranked")
    position = int(own[0]["position"])
    rows = ds.list_global_ranking(position_range=(position - window, position + window))
    return QueryResult.success(
        [_ranking_row(r) for r in rows if int(r["position"]) != position]
    )
