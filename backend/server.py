"""
Ledger Guard hook server.

The document store host calls these endpoints before committing a write:

    POST /api/hooks/assert-set     {collection, key?, proposed, previous?}
    POST /api/hooks/assert-delete  {collection, key}
    GET  /api/health

Run with:
    uvicorn server:create_app --factory
"""

from fastapi import FastAPI, APIRouter
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import BaseModel
import os
import time
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ledger_guard import (
    GuardSettings,
    LedgerGuard,
    MongoDocumentStore,
    settings_from_env,
)
from ledger_guard.store import DocumentStore

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================
# REQUEST MODELS
# ============================================
class AssertSetRequest(BaseModel):
    collection: str
    key: Optional[str] = None
    proposed: Union[Dict[str, Any], str]
    previous: Optional[Union[Dict[str, Any], str]] = None


class AssertDeleteRequest(BaseModel):
    collection: str
    key: str


def create_app(
    store: Optional[DocumentStore] = None,
    settings: Optional[GuardSettings] = None,
    clock: Callable[[], int] = time.time_ns
) -> FastAPI:
    """
    Build the hook app.

    Without an explicit store, connects to MongoDB using MONGO_URL / DB_NAME
    and makes sure the unique indexes exist on startup.
    """
    client: Optional[AsyncIOMotorClient] = None
    mongo_store: Optional[MongoDocumentStore] = None

    if store is None:
        client = AsyncIOMotorClient(os.environ['MONGO_URL'])
        mongo_store = MongoDocumentStore(client[os.environ['DB_NAME']])
        store = mongo_store

    guard = LedgerGuard(store, settings or settings_from_env(), clock=clock)

    app = FastAPI(
        title="Ledger Guard",
        version="1.0.0",
        description="Pre-commit write validation for school finance records"
    )
    api_router = APIRouter(prefix="/api")

    @api_router.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "collections": guard.pipelines.collections(),
            "allow_unknown_collections": guard.settings.allow_unknown_collections,
        }

    @api_router.post("/hooks/assert-set")
    async def assert_set(request: AssertSetRequest):
        result = await guard.validate(
            request.collection,
            request.proposed,
            previous=request.previous,
            key=request.key
        )
        status_code = 200 if result.accepted else 422
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @api_router.post("/hooks/assert-delete")
    async def assert_delete(request: AssertDeleteRequest):
        result = await guard.validate_delete(request.collection, request.key)
        return result.to_dict()

    app.include_router(api_router)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def ensure_indexes():
        if mongo_store is not None:
            await mongo_store.ensure_unique_indexes()

    @app.on_event("shutdown")
    async def shutdown_db_client():
        if client is not None:
            client.close()

    logger.info(
        f"Ledger Guard ready: {len(guard.pipelines.collections())} collections, "
        f"unknown collections {'accepted' if guard.settings.allow_unknown_collections else 'rejected'}"
    )
    return app
