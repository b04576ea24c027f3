#!/usr/bin/env python3
"""
Local development server. Use gunicorn anywhere else.
"""
import os

from flora_console import create_app

app = create_app()

if __name__ == '__main__':
    flask_env = app.config.get('ENV', 'development')
    if flask_env in ('staging', 'production') and os.environ.get('ALLOW_DEV_SERVER') != '1':
        app.logger.error(
            "Not starting the dev server with FLASK_ENV=%s; run `gunicorn -c gunicorn.conf.py wsgi:app`.",
            flask_env,
        )
        raise SystemExit(2)

    debug = flask_env == 'development' and os.environ.get('FLASK_DEBUG', '1') not in ('0', 'false', 'no')
    app.run(host='127.0.0.1', port=int(os.environ.get('PORT', 5000)), debug=debug)
