"""App shim: re-export the FastAPI application from the package.

Lets gunicorn, a Procfile or uvicorn reference "app:app".
"""

import logging
import os

from moodpulse.core import app  # re-export the FastAPI app created in moodpulse.core

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 5001))
    debug_mode = os.environ.get("FLASK_ENV", "production") == "development"
    log_level = "debug" if debug_mode else "info"
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    uvicorn.run("app:app", host="0.0.0.0", port=port, reload=debug_mode, log_level=log_level)
