"""Gunicorn settings for ``gunicorn -c gunicorn.conf.py wsgi:app``."""
import os
import sys


def _number(key, default, cast=int):
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        sys.stderr.write(f"Ignoring {key}={raw!r}; using {default}\n")
        return default


def _worker_count():
    # GUNICORN_WORKERS wins over the platform's WEB_CONCURRENCY hint
    fallback = max(2, min(8, (os.cpu_count() or 1) * 2))
    return _number("GUNICORN_WORKERS", _number("WEB_CONCURRENCY", fallback))


def _flora_bound_timeout():
    """A wizard request makes at most three sequential Flora calls."""
    per_call = _number("FLORA_REQUEST_TIMEOUT", 10.0, float)
    return max(_number("GUNICORN_TIMEOUT", 30), int(per_call * 3) + 5)


bind = f"0.0.0.0:{os.environ.get('PORT', 5000)}"
proc_name = "flora-console"

# Workers spend most of their time waiting on the Flora API
worker_class = os.environ.get("GUNICORN_WORKER_CLASS", "gevent")
workers = _worker_count()
worker_connections = _number("GUNICORN_WORKER_CONNECTIONS", 500)
timeout = _flora_bound_timeout()
graceful_timeout = timeout
keepalive = _number("GUNICORN_KEEPALIVE", 5)
max_requests = _number("GUNICORN_MAX_REQUESTS", 1000)
max_requests_jitter = max_requests // 20
preload_app = True

accesslog = errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s'
loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")


def on_starting(server):
    server.log.info(
        "flora-console: %s x%d on %s, timeout %ss", worker_class, workers, bind, timeout
    )
