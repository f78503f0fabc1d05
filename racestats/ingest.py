"""Load per-year result files into the datastore.

A result file is a comma-separated table without a header. Only four
columns are used, by position: rank (0), given name (2), surname (3) and
finishing time (6, ``HH:MM:SS``).
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from . import datastore as ds
from .names import athlete_key, full_name
from .timecodec import time_to_seconds

logger = logging.getLogger(__name__)

# Data directory lives at the project root under ``data``.
DATA_DIR = Path(__file__).resolve().parent.parent / "data"

RANK_COL = 0
GIVEN_NAME_COL = 2
SURNAME_COL = 3
TIME_COL = 6

_RESULT_FILE = re.compile(r"^results-(\d{4})\.csv$")


@dataclass(frozen=True)
class ResultRow:
    rank: str
    given_name: str
    surname: str
    time: str


@dataclass(frozen=True)
class CompetitionSource:
    name: str
    year: int
    path: Path


@dataclass
class IngestReport:
    name: str
    year: int
    competition_id: Optional[int] = None
    loaded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def data_dir() -> Path:
    override = os.environ.get("RESULTS_DATA_DIR")
    return Path(override) if override else DATA_DIR


def discover_competitions(directory: Optional[Path] = None, prefix: Optional[str] = None) -> List[CompetitionSource]:
    """Return one source per ``results-YYYY.csv`` file, ascending by year.

    Competitions are named ``<prefix><YY>``, e.g. ``SM18`` for 2018.
    """
    directory = Path(directory) if directory is not None else data_dir()
    if prefix is None:
        prefix = os.environ.get("COMPETITION_PREFIX", "SM")
    if not directory.is_dir():
        logger.warning("Results directory %s does not exist", directory)
        return []
    sources: List[CompetitionSource] = []
    for path in directory.iterdir():
        m = _RESULT_FILE.match(path.name)
        if not m or not path.is_file():
            continue
        year = int(m.group(1))
        sources.append(CompetitionSource(name=f"{prefix}{year % 100:02d}", year=year, path=path))
    sources.sort(key=lambda s: (s.year, s.name))
    return sources


def read_result_rows(path: Path) -> List[ResultRow]:
    """Read the positional columns of a result file.

    Every cell is read as text; missing cells become empty strings. Fields
    past the time column are ignored and short rows are padded.
    """
    wanted = (RANK_COL, GIVEN_NAME_COL, SURNAME_COL, TIME_COL)
    frame = pd.read_csv(
        path,
        header=None,
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        # Selecting columns lets rows carry more fields than the first line.
        usecols=lambda col: col in wanted,
    ).fillna("")
    for col in wanted:
        if col not in frame.columns:
            frame[col] = ""
    rows: List[ResultRow] = []
    for rec in frame[list(wanted)].itertuples(index=False, name=None):
        rank, given, surname, time = (str(v).strip() for v in rec)
        rows.append(ResultRow(rank=rank, given_name=given, surname=surname, time=time))
    return rows


def resolve_athlete(fullname: str) -> int:
    """Return the athlete id for ``fullname``, creating the athlete on first sight.

    The normalized (accent-free) name is both the lookup key and the stored
    name.
    """
    key = athlete_key(fullname)
    existing = ds.find_athlete_id(key)
    if existing is not None:
        return existing
    return ds.insert_athlete(key)


def ingest_competition(name: str, year: int, rows: Iterable[ResultRow]) -> IngestReport:
    """Create the competition and store one result per source row, in order.

    Rows with an unparseable rank or time are skipped. A store failure on a
    row is logged and ingestion moves on to the next row.
    """
    report = IngestReport(name=name, year=int(year))
    try:
        report.competition_id = ds.insert_competition(name, int(year))
    except Exception:
        logger.exception("Could not create competition %s/%s", name, year)
        report.errors.append("competition insert failed")
        return report
    logger.info("Loading %s (%s) as competition %s", name, year, report.competition_id)

    for idx, row in enumerate(rows, start=1):
        try:
            rank = int(row.rank)
            seconds = time_to_seconds(row.time)
        except ValueError as e:
            logger.warning("Skipping %s row %d (%s %s): %s", name, idx, row.given_name, row.surname, e)
            report.skipped += 1
            report.errors.append(f"row {idx}: {e}")
            continue
        try:
            athlete_id = resolve_athlete(full_name(row.given_name, row.surname))
            ds.insert_result(athlete_id, report.competition_id, seconds, rank)
        except Exception as e:
            logger.exception("Failed to store %s row %d", name, idx)
            report.failed += 1
            report.errors.append(f"row {idx}: {e}")
            continue
        report.loaded += 1

    logger.info(
        "Loaded %s: loaded=%d skipped=%d failed=%d",
        name, report.loaded, report.skipped, report.failed,
    )
    return report


def load_competitions(sources: Iterable[CompetitionSource]) -> List[IngestReport]:
    """Ingest each source in turn. Unreadable files are logged and skipped."""
    reports: List[IngestReport] = []
    for source in sources:
        try:
            rows = read_result_rows(source.path)
        except (OSError, ValueError, pd.errors.ParserError):
            logger.exception("Could not read results for %s from %s", source.name, source.path)
            continue
        reports.append(ingest_competition(source.name, source.year, rows))
    return reports
