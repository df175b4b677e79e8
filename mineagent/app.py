import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from mineagent import storage
from mineagent.routes import router
from mineagent.runtime import Runtime

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, runtime: Runtime | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)
    runtime = runtime or Runtime.build()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.engine.start()
        logger.info("MineAgent started (data dir: %s)", resolved)
        yield
        await runtime.engine.shutdown()
        logger.info("MineAgent stopped")

    app = FastAPI(title="MineAgent", lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
