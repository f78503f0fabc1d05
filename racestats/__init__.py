import os
from flask import Flask


def create_app():
    app = Flask(__name__)

    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError(
            "DATABASE_URL is required. Point it at the PostgreSQL database holding the results."
        )

    # Initialize connection pool early (optional; direct connect works if pool init fails)
    try:
        from . import datastore_pg as _pg
        try:
            minconn = int(os.environ.get("DB_POOL_MIN", "1"))
        except ValueError:
            minconn = 1
        try:
            maxconn = int(os.environ.get("DB_POOL_MAX", "10"))
        except ValueError:
            maxconn = 10
        _pg.init_pool(minconn=minconn, maxconn=maxconn)
    except Exception:  # pragma: no cover
        app.logger.exception("PostgreSQL pool initialization failed; continuing without pool")

    from . import routes  # type: ignore
    app.register_blueprint(routes.bp)

    if os.environ.get("INIT_ON_STARTUP", "1").lower() not in ("0", "false"):
        from .bootstrap import run_startup
        app.logger.info("Applying startup steps")
        try:
            applied = run_startup()
            app.logger.info("Startup steps applied: %s", ", ".join(applied) or "none")
        except Exception:  # pylint: disable=broad-except
            app.logger.exception("Error applying startup steps")

    return app
