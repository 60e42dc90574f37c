"""authgate entrypoint.

Run with:
  python -m authgate
"""

import logging
import os

import uvicorn


def main() -> None:
    host = os.getenv("AUTHGATE_HOST", "0.0.0.0")
    port = int(os.getenv("AUTHGATE_PORT", "5000"))
    reload = os.getenv("AUTHGATE_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    level = os.getenv("AUTHGATE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger(__name__).info(f"=== Listening on port {port} ===")
    uvicorn.run("authgate.app:app", host=host, port=port, reload=reload, log_level=level.lower())

if __name__ == "__main__":
    main()
