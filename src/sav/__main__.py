"""SAV entrypoint.

Run with:
  python -m sav
"""

import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("SAV_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    host = os.getenv("SAV_HOST", "0.0.0.0")
    port = int(os.getenv("SAV_PORT") or os.getenv("PORT") or "3000")
    reload = os.getenv("SAV_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("sav.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
