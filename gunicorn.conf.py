"""Gunicorn configuration.

The application is built by the factory in each worker:
    gunicorn -c gunicorn.conf.py
"""
import os

wsgi_app = "procurement.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))
accesslog = "-"


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    Pooled database connections must not be shared with the parent process.
    """
    from procurement.db.engine import dispose_engine

    dispose_engine()
    worker.log.info(f"Worker {worker.pid} ready (database pool reset)")
