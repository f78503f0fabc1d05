from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

# Datastore proxy
# Every call is forwarded to datastore_pg at call time, so the PostgreSQL
# module can be swapped (or patched in tests) without touching callers.

from . import datastore_pg as _pg


def create_tables() -> None:
    _pg.create_tables()


def applied_migrations() -> Set[str]:
    return _pg.applied_migrations()


def record_migration(name: str) -> None:
    _pg.record_migration(name)


def count_results() -> int:
    return _pg.count_results()


def insert_competition(name: str, year: int) -> int:
    return _pg.insert_competition(name, year)


def find_athlete_id(fullname: str) -> Optional[int]:
    return _pg.find_athlete_id(fullname)


def insert_athlete(fullname: str) -> int:
    return _pg.insert_athlete(fullname)


def insert_result(athlete_id: int, competition_id: int, time_s: int, rank: Optional[int]) -> None:
    _pg.insert_result(athlete_id, competition_id, time_s, rank)


def list_competitions() -> List[Dict[str, Any]]:
    return _pg.list_competitions()


def list_results(year: Optional[int] = None, athlete_id: Optional[int] = None, rank: Optional[int] = None) -> List[Dict[str, Any]]:
    return _pg.list_results(year=year, athlete_id=athlete_id, rank=rank)


def replace_global_ranking(entries: Iterable[Dict[str, Any]]) -> int:
    return _pg.replace_global_ranking(entries)


def list_global_ranking(
    limit: Optional[int] = None,
    athlete_id: Optional[int] = None,
    position_range: Optional[Tuple[int, int]] = None,
) -> List[Dict[str, Any]]:
    return _pg.list_global_ranking(limit=limit, athlete_id=athlete_id, position_range=position_range)
