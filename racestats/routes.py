from flask import Blueprint, abort, current_app, jsonify, render_template, request
import json
import os
from pathlib import Path

from . import queries
from .bootstrap import rebuild_ranking


bp = Blueprint('main', __name__)

# Page metadata ships inside the package.
SEO_FILE = Path(__file__).resolve().parent / 'data' / 'seo.json'

DEFAULT_ERROR_MESSAGE = 'Whoops! Error connecting to the database. Please try again!'


def _seo() -> dict:
    """Page metadata from ``SEO_FILE`` (empty when missing)."""
    path = SEO_FILE
    try:
        with path.open() as f:
            return json.load(f)
    except (OSError, ValueError):
        current_app.logger.warning('No usable SEO metadata at %s', path)
        return {}


def _error_message() -> str:
    return os.environ.get('ERROR_MESSAGE', DEFAULT_ERROR_MESSAGE)


def _wants_raw() -> bool:
    return bool(request.args.get('raw'))


def _params() -> dict:
    # SEO data is only useful to rendered pages
    return {} if _wants_raw() else {'seo': _seo()}


def _respond(template: str, params: dict, status: int = 200):
    """Return ``params`` as JSON for raw clients, else render ``template``."""
    if _wants_raw():
        return jsonify(params), status
    return render_template(template, **params), status


def _int_arg(name: str) -> int:
    value = request.args.get(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{name} must be an integer')


@bp.route('/')
def index():
    params = _params()
    top = queries.top_athletes()
    params['top_athletes'] = top.data if top else None
    params['error'] = None if top else _error_message()
    return _respond('index.html', params)


@bp.route('/search', methods=['POST'])
def search():
    params = _params()
    payload = request.get_json(silent=True) or {}
    fullname = request.form.get('fullname') or payload.get('fullname') or ''
    current_app.logger.info('Searching ranking for %r', fullname)
    params['fullname'] = fullname
    found = queries.search_athletes(fullname)
    params['top_athletes'] = found.data if found else None
    params['error'] = None if found else _error_message()
    return _respond('index.html', params)


@bp.route('/competitions')
def competitions():
    params = _params()
    params['results'] = True

    counts = queries.competition_counts()
    if counts:
        params['option_names'] = [c['year'] for c in counts.data]
        params['option_counts'] = [c['num'] for c in counts.data]

    # Distribution of the most recent competition
    latest = max((c['year'] for c in counts.data), default=None) if counts else None
    params['distrib_year'] = latest
    distrib = queries.distribution_by_year(latest) if latest is not None else None
    if distrib:
        params['distrib_names'] = [d['minute'] for d in distrib.data]
        params['distrib_counts'] = [d['num'] for d in distrib.data]

    times = queries.best_times_by_year()
    if times:
        params['time_year'] = [t['year'] for t in times.data]
        params['time_mark'] = [t['mark'] for t in times.data]

    winners = queries.winners()
    if winners:
        params['winners'] = winners.data

    ok = all(r for r in (counts, times, winners)) and (distrib is None or bool(distrib))
    params['error'] = None if ok else _error_message()
    return _respond('competitions.html', params)


@bp.route('/competition')
def competition():
    year = _int_arg('year')
    params = _params()
    params['results'] = True
    params['year'] = year

    details = queries.competition_by_year(year)
    if details:
        params['competition_details'] = details.data

    distrib = queries.distribution_by_year(year)
    if distrib:
        params['distrib_names'] = [d['minute'] for d in distrib.data]
        params['distrib_counts'] = [d['num'] for d in distrib.data]

    params['error'] = None if (details and distrib) else _error_message()
    return _respond('competition.html', params)


@bp.route('/athlete')
def athlete():
    athlete_id = _int_arg('athlete')
    params = _params()

    info = queries.athlete_profile(athlete_id)
    if info:
        params['athlete_info'] = info.data

    times = queries.best_times_for_athlete(athlete_id)
    if times:
        params['time_year'] = [t['year'] for t in times.data]
        params['time_mark'] = [t['mark'] for t in times.data]
        params['time_display'] = [t['time'] for t in times.data]
        params['time_rank'] = [t['rank'] for t in times.data]
        params['time_percentil'] = [t['percentile'] for t in times.data]

    neighbors = queries.ranking_neighbors(athlete_id)
    if neighbors:
        params['rankinfo'] = neighbors.data

    params['error'] = None if (info and times and neighbors) else _error_message()
    return _respond('athlete.html', params)


@bp.route('/health/db')
def health_db():
    """Database connectivity health check.

    Attempts to connect using the ``DATABASE_URL`` environment variable and
    reports row counts for the result tables. Always returns HTTP 200 with a
    JSON body describing connection status.
    """
    url = os.environ.get('DATABASE_URL')
    if not url:
        return {
            'connected': False,
            'status': 'no_database_url',
            'message': 'DATABASE_URL is not set.'
        }
    try:
        import psycopg2  # type: ignore
        with psycopg2.connect(url, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute('SELECT current_user, current_database()')
                user, db = cur.fetchone()
                counts = {}
                for table in ('athletes', 'competitions', 'results', 'global_ranking'):
                    cur.execute('SELECT to_regclass(%s)', (f'public.{table}',))
                    if cur.fetchone()[0] is None:
                        counts[table] = None
                        continue
                    cur.execute(f'SELECT COUNT(*) FROM {table}')
                    counts[table] = cur.fetchone()[0]
        return {
            'connected': True,
            'status': 'ok',
            'user': user,
            'database': db,
            'rows': counts,
        }
    except Exception as e:  # pragma: no cover - best-effort health output
        return {
            'connected': False,
            'status': 'error',
            'error': str(e),
        }


@bp.route('/admin/ranking/rebuild', methods=['POST'])
def ranking_rebuild():
    """Drop and rebuild the global ranking from the stored results."""
    try:
        athletes = rebuild_ranking()
    except Exception as e:
        current_app.logger.exception('Ranking rebuild failed')
        return {'ok': False, 'status': 'error', 'error': str(e)}, 500
    return {'ok': True, 'athletes': athletes}
