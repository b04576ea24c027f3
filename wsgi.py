import logging
import os
import sys

LOG = logging.getLogger(__name__)
_TRUTHY = {"1", "true", "on", "yes"}
_FALSY = {"0", "false", "off", "no"}


def _gevent_patch_kwargs() -> dict[str, bool]:
    """Leave threads unpatched on Python 3.13+ unless GEVENT_PATCH_THREADS says otherwise."""
    env_value = os.environ.get("GEVENT_PATCH_THREADS", "").strip().lower()
    if env_value in _TRUTHY:
        return {}
    if env_value in _FALSY or sys.version_info >= (3, 13):
        return {"thread": False, "threading": False}
    return {}


# requests must see the patched socket module, so patch before the app import
if os.environ.get("GUNICORN_WORKER_CLASS", "gevent") == "gevent":
    from gevent import monkey

    monkey.patch_all(**_gevent_patch_kwargs())

from flora_console import create_app  # noqa: E402

app = create_app()
LOG.debug("WSGI application created for %s", app.config.get("FLORA_API_URL"))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=bool(app.config.get("DEBUG")))
