"""
Entry point for the SwissHarness web API.

    uv run python web_main.py

Host and port come from the `web` section of config.yaml.
"""

import sys

import uvicorn

from swissharness.config import load_config
from swissharness.log import setup_logging

if __name__ == "__main__":
    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    uvicorn.run(
        "swissharness.web.app:app",
        host=config.web.host,
        port=config.web.port,
        log_config=None,      # keep the handlers installed by setup_logging()
    )
