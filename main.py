import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

import config
from seed import seed_demo_data
from storage import UnifiedStorage, build_storage

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("portfolio-api")


# =======
# Storage
# =======
async def connect_in_background(storage: UnifiedStorage) -> None:
    if not await storage.connection.connect():
        return
    try:
        await storage.durable.ensure_indexes()
    except PyMongoError:
        logger.exception("Could not create MongoDB indexes")
    logger.info("MongoDB connection completed in the background")


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage = build_storage()
    app.state.storage = storage

    if config.SEED_DEMO_DATA:
        await seed_demo_data(storage.volatile)

    connect_task = None
    if storage.connection.uri:
        logger.info("MONGODB_URI found, connecting to MongoDB in the background...")
        connect_task = asyncio.create_task(connect_in_background(storage))
        logger.info("Server will start with in-memory storage and switch to MongoDB when available")
    else:
        logger.info("No MONGODB_URI found, using in-memory storage only")
        await storage.connection.connect()

    try:
        yield
    finally:
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await connect_task
        await storage.connection.close()


def get_storage(request: Request) -> UnifiedStorage:
    return request.app.state.storage


# ==================
# FastAPI app config
# ==================
app = FastAPI(title="Portfolio API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ======
# Routes
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/test")
async def test_database(storage: UnifiedStorage = Depends(get_storage)) -> Dict[str, Any]:
    connected = storage.connection.has_active_connection()
    collections = []
    if connected:
        try:
            collections = await storage.connection.get_database().list_collection_names()
        except PyMongoError as e:
            logger.warning("Could not list MongoDB collections: %s", e)
    return {
        "backend": "running",
        "database": "connected" if connected else "not-available",
        "storage_status": storage.connection.get_status(),
        "collections": collections[:10],
    }


@app.get("/api/system/db-status")
def db_status(storage: UnifiedStorage = Depends(get_storage)) -> Dict[str, Any]:
    return storage.status_report()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
