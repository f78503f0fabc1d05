"""One-shot startup steps.

Each step runs at most once per database and is recorded in
``schema_migrations`` after it completes. Steps run in the order listed in
``MIGRATIONS``.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from . import datastore as ds
from .ingest import CompetitionSource, discover_competitions, load_competitions
from .ranking import build_global_ranking

logger = logging.getLogger(__name__)

INGEST_RESULTS = "0001_ingest_results"
GLOBAL_RANKING = "0002_global_ranking"

MIGRATIONS = (INGEST_RESULTS, GLOBAL_RANKING)


def _ingest_step(sources: Optional[Iterable[CompetitionSource]]) -> None:
    existing = ds.count_results()
    if existing:
        # Results loaded before steps were tracked; never ingest twice.
        logger.info("Store already holds %d results; skipping ingestion", existing)
        return
    if sources is None:
        sources = discover_competitions()
    reports = load_competitions(sources)
    logger.info(
        "Ingested %d competitions (%d results, %d skipped, %d failed)",
        len(reports),
        sum(r.loaded for r in reports),
        sum(r.skipped for r in reports),
        sum(r.failed for r in reports),
    )


def run_startup(sources: Optional[Iterable[CompetitionSource]] = None) -> List[str]:
    """Create tables and apply pending steps. Returns the step names applied.

    ``sources`` defaults to the result files found in the data directory.
    A failing step is not recorded and stops the remaining steps.
    """
    ds.create_tables()
    done = ds.applied_migrations()
    steps: Dict[str, Callable[[], object]] = {
        INGEST_RESULTS: lambda: _ingest_step(sources),
        GLOBAL_RANKING: build_global_ranking,
    }
    applied: List[str] = []
    for name in MIGRATIONS:
        if name in done:
            continue
        logger.info("Applying startup step %s", name)
        steps[name]()
        ds.record_migration(name)
        applied.append(name)
    return applied


def rebuild_ranking() -> int:
    """Rebuild the global ranking regardless of recorded steps."""
    entries = build_global_ranking()
    ds.record_migration(GLOBAL_RANKING)
    return len(entries)
