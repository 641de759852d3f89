"""
threadline.api.__main__ — Entry point for ``python -m threadline.api``
=======================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the FastAPI app with uvicorn.
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from threadline.config import load_config
from threadline.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("threadline")


def main() -> None:
    """Bootstrap and serve the Threadline API."""
    load_dotenv()

    config_path = os.getenv("THREADLINE_CONFIG", "config.yaml")
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    logger.info("Config loaded: %s (max reply depth %d)", cfg.forum_name, cfg.max_reply_depth)

    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    init_db(engine)

    uvicorn.run("threadline.api.main:app", host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
