import os
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor, execute_values


_POOL: Optional[pg_pool.AbstractConnectionPool] = None

_RANKING_COLUMNS = (
    "position",
    "athlete_id",
    "athlete_fullname",
    "competition_id",
    "competition_year",
    "time",
)


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except Exception:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Common connection kwargs: connect_timeout + TCP keepalives.

    Defaults:
      - connect_timeout: 10 seconds (overridable via DB_CONNECT_TIMEOUT)
      - keepalives: enabled by default; can be disabled by DB_KEEPALIVES=0
      - keepalive tunables applied if provided (IDLE/INTERVAL/COUNT)
    """
    kwargs: Dict[str, Any] = {}
    ct_env = _env_int("DB_CONNECT_TIMEOUT")
    kwargs["connect_timeout"] = ct_env if ct_env is not None else 10

    ka_env = os.environ.get("DB_KEEPALIVES")
    if ka_env is None:
        kwargs["keepalives"] = 1
    else:
        kwargs["keepalives"] = 0 if str(ka_env).lower() in ("0", "false") else 1

    for env_name, key in (
        ("DB_KEEPALIVES_IDLE", "keepalives_idle"),
        ("DB_KEEPALIVES_INTERVAL", "keepalives_interval"),
        ("DB_KEEPALIVES_COUNT", "keepalives_count"),
    ):
        val = _env_int(env_name)
        if val is not None:
            kwargs[key] = val
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Initialize the process-wide connection pool using DATABASE_URL.

    Safe to call multiple times; subsequent calls are ignored once a pool exists.
    """
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        # Leave _POOL as None; callers will fall back to direct connections
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


def _ping(conn) -> bool:
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
        if not getattr(conn, "autocommit", False):
            conn.rollback()
        return True
    except Exception:
        return False


@contextmanager
def _get_conn():
    """Yield a database connection from the pool if available, else direct.

    Pooled connections are pinged on checkout; a dead one is discarded and
    the checkout retried once. The transaction is committed when the block
    exits cleanly and rolled back otherwise.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    if _POOL is None:
        conn = psycopg2.connect(url, **_connect_kwargs())
        try:
            try:
                yield conn
                conn.commit()
            except Exception:
                try:
                    conn.rollback()
                except Exception:
                    pass
                raise
        finally:
            try:
                conn.close()
            except Exception:
                pass
        return

    conn = None
    for _ in range(2):
        candidate = _POOL.getconn()
        if _ping(candidate):
            conn = candidate
            break
        try:
            _POOL.putconn(candidate, close=True)
        except Exception:
            pass
    if conn is None:
        raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")

    try:
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except Exception:
                pass
            raise
    finally:
        _POOL.putconn(conn)


# --- schema ---------------------------------------------------------------

def create_tables() -> None:
    """Create the base tables and lookup indexes if they do not exist."""
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS athletes (
                id SERIAL PRIMARY KEY,
                fullname TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS competitions (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                year INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS results (
                id SERIAL PRIMARY KEY,
                athlete INTEGER REFERENCES athletes(id),
                competition INTEGER REFERENCES competitions(id),
                time INTEGER NOT NULL,
                rank INTEGER
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL DEFAULT now()
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_athletes_fullname ON athletes(fullname)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_competitions_year ON competitions(year)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_results_athlete ON results(athlete)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_results_competition ON results(competition)")


def applied_migrations() -> Set[str]:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("SELECT name FROM schema_migrations")
        return {row[0] for row in cur.fetchall()}


def record_migration(name: str) -> None:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "INSERT INTO schema_migrations (name) VALUES (%s) ON CONFLICT (name) DO NOTHING",
            (name,),
        )


# --- ingestion writes ------------------------------------------------------

def count_results() -> int:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM results")
        row = cur.fetchone()
        return int(row[0]) if row else 0


def insert_competition(name: str, year: int) -> int:
    """Insert a competition row and return its id. Never checks for duplicates."""
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "INSERT INTO competitions (name, year) VALUES (%s, %s) RETURNING id",
            (name, int(year)),
        )
        return int(cur.fetchone()[0])


def find_athlete_id(fullname: str) -> Optional[int]:
    """Return the id of the athlete stored under exactly ``fullname``."""
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "SELECT id FROM athletes WHERE fullname = %s ORDER BY id LIMIT 1",
            (fullname,),
        )
        row = cur.fetchone()
        return int(row[0]) if row else None


def insert_athlete(fullname: str) -> int:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "INSERT INTO athletes (fullname) VALUES (%s) RETURNING id",
            (fullname,),
        )
        return int(cur.fetchone()[0])


def insert_result(athlete_id: int, competition_id: int, time_s: int, rank: Optional[int]) -> None:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "INSERT INTO results (athlete, competition, time, rank) VALUES (%s, %s, %s, %s)",
            (int(athlete_id), int(competition_id), int(time_s), rank),
        )


# --- reads -----------------------------------------------------------------

def list_competitions() -> List[Dict[str, Any]]:
    """Return competitions holding results with their counts, ascending by year."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT c.id, c.name, c.year, COUNT(r.id) AS participants
            FROM competitions c
            JOIN results r ON r.competition = c.id
            GROUP BY c.id, c.name, c.year
            ORDER BY c.year, c.id
            """
        )
        return [dict(r) for r in cur.fetchall()]


def list_results(
    year: Optional[int] = None,
    athlete_id: Optional[int] = None,
    rank: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Return result rows joined with competition and athlete details.

    Each row carries: id, athlete, competition, time, rank, year,
    competition_name, fullname. Ordered by year, competition, rank, id.
    """
    clauses: List[str] = []
    params: List[Any] = []
    if year is not None:
        clauses.append("c.year = %s")
        params.append(int(year))
    if athlete_id is not None:
        clauses.append("r.athlete = %s")
        params.append(int(athlete_id))
    if rank is not None:
        clauses.append("r.rank = %s")
        params.append(int(rank))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT r.id, r.athlete, r.competition, r.time, r.rank,
                   c.year, c.name AS competition_name, a.fullname
            FROM results r
            JOIN competitions c ON c.id = r.competition
            JOIN athletes a ON a.id = r.athlete
            {where}
            ORDER BY c.year, r.competition, r.rank NULLS LAST, r.id
            """,
            tuple(params),
        )
        return [dict(r) for r in cur.fetchall()]


# --- global ranking --------------------------------------------------------

def replace_global_ranking(entries: Iterable[Dict[str, Any]]) -> int:
    """Drop and recreate ``global_ranking`` holding exactly ``entries``.

    Runs in a single transaction so a failed rebuild leaves the previous
    table in place. Returns the number of rows written.
    """
    rows: List[Tuple[Any, ...]] = [tuple(e.get(col) for col in _RANKING_COLUMNS) for e in entries]
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("DROP TABLE IF EXISTS global_ranking")
        cur.execute(
            """
            CREATE TABLE global_ranking (
                position INTEGER PRIMARY KEY,
                athlete_id INTEGER,
                athlete_fullname TEXT,
                competition_id INTEGER,
                competition_year INTEGER,
                time INTEGER
            )
            """
        )
        if rows:
            execute_values(
                cur,
                f"INSERT INTO global_ranking ({', '.join(_RANKING_COLUMNS)}) VALUES %s",
                rows,
            )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_global_ranking_athlete ON global_ranking(athlete_id)")
    return len(rows)


def list_global_ranking(
    limit: Optional[int] = None,
    athlete_id: Optional[int] = None,
    position_range: Optional[Tuple[int, int]] = None,
) -> List[Dict[str, Any]]:
    """Return ranking rows ordered by position.

    ``position_range`` is inclusive on both ends.
    """
    clauses: List[str] = []
    params: List[Any] = []
    if athlete_id is not None:
        clauses.append("athlete_id = %s")
        params.append(int(athlete_id))
    if position_range is not None:
        lo, hi = position_range
        clauses.append("position BETWEEN %s AND %s")
        params.extend([int(lo), int(hi)])
    sql = f"SELECT {', '.join(_RANKING_COLUMNS)} FROM global_ranking"
    if clauses:
        sql += f" WHERE {' AND '.join(clauses)}"
    sql += " ORDER BY position"
    if limit is not None:
        sql += " LIMIT %s"
        params.append(int(limit))
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, tuple(params))
        return [dict(r) for r in cur.fetchall()]
