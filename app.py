"""Cloud Run entrypoint for the shot-form analysis worker."""

import os

from utils.config import configure_logging, load_env
from worker.app import create_app

load_env()
configure_logging()

app = create_app()


if __name__ == "__main__":
    import uvicorn  # type: ignore

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))
