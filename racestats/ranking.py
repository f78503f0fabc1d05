"""All-time ranking built from every athlete's personal best."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from . import datastore as ds

logger = logging.getLogger(__name__)

RankingEntry = Dict[str, Any]


def _best_result_key(row: Dict[str, Any]):
    # Equal times go to the earliest competition.
    return (int(row["time"]), int(row.get("year") or 0), int(row.get("competition") or 0), int(row.get("id") or 0))


def compute_global_ranking(results: Iterable[Dict[str, Any]]) -> List[RankingEntry]:
    """Return one ranking entry per athlete holding their minimum time.

    ``results`` rows need ``athlete``, ``fullname``, ``competition``,
    ``year`` and ``time`` (seconds). Athletes are ordered by best time, then
    by athlete id, and numbered 1..N without gaps.
    """
    best: Dict[int, Dict[str, Any]] = {}
    for row in results:
        if row.get("time") is None or row.get("athlete") is None:
            continue
        aid = int(row["athlete"])
        current = best.get(aid)
        if current is None or _best_result_key(row) < _best_result_key(current):
            best[aid] = row

    ordered = sorted(best.items(), key=lambda item: (int(item[1]["time"]), item[0]))
    entries: List[RankingEntry] = []
    for position, (aid, row) in enumerate(ordered, start=1):
        entries.append(
            {
                "position": position,
                "athlete_id": aid,
                "athlete_fullname": row.get("fullname"),
                "competition_id": row.get("competition"),
                "competition_year": row.get("year"),
                "time": int(row["time"]),
            }
        )
    return entries


def build_global_ranking() -> List[RankingEntry]:
    """Recompute the ranking from all stored results and replace the table.

    Errors are logged and re-raised; the previous table survives a failed
    rebuild.
    """
    logger.info("Generating global ranking")
    try:
        entries = compute_global_ranking(ds.list_results())
        written = ds.replace_global_ranking(entries)
    except Exception:
        logger.exception("Global ranking build failed")
        raise
    logger.info("Global ranking holds %d athletes", written)
    return entries
