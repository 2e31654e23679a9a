import logging
import os

import uvicorn

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "DEBUG").upper(),
    format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
)
# SDK request logs drown out the service's own at DEBUG
for noisy in ("httpx", "httpcore", "openai", "anthropic", "aiosqlite"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

if __name__ == "__main__":
    uvicorn.run(
        "skilltrack.server:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        reload=os.environ.get("DEV_RELOAD", "0") == "1",
    )
