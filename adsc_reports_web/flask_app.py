"""Server start-up script for the daily reports API.

Loads ``.env``, configures logging and builds the app with
:func:`adsc_reports_web.create_app`. Gunicorn deployments point at
``adsc_reports_web.flask_app:app``; ``python -m adsc_reports_web.flask_app``
runs the Flask development server.
"""

from __future__ import annotations

import atexit
import logging
import os

from dotenv import load_dotenv

from adsc_reports_web import create_app, dispose_engine
from adsc_reports_web.config import env_flag


def resolve_debug_flag(env_var: str = "FLASK_DEBUG") -> bool:
    """Return whether the development server should run in debug mode.

    Debugging stays off unless ``env_var`` holds a recognised true value.
    """

    return env_flag(env_var, False)


load_dotenv()
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
app.config["DEBUG"] = resolve_debug_flag()
atexit.register(dispose_engine, app)


if __name__ == "__main__":
    app.run(debug=app.debug, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
