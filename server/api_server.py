"""FastAPI application entry point of the workspace index service."""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.indexing.IndexingRuntime import IndexingRuntime
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from server.routers.HealthRouter import router as health_router
from server.routers.QueryRouter import router as query_router
from server.routers.WebhookRouter import router as webhook_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    runtime = IndexingRuntime(app.state.helper_config)
    await runtime.boot()

    app.state.runtime = runtime
    app.state.gateway = runtime.gateway
    app.state.dispatcher = runtime.dispatcher
    app.state.webhook_service = runtime.webhook_service
    app.state.initial_service = runtime.initial_service

    reconcile_task: asyncio.Task | None = None
    interval = runtime.settings.reconcile_interval_seconds
    if interval > 0:
        reconcile_task = asyncio.create_task(runtime.reconciler.run_forever(interval), name="index-reconciler")
        logging.info("Reconciler scheduled every %d seconds.", interval)

    # while the app is running...
    yield

    # when the app shuts down, stop the sweep and close all client connections
    logging.info("Shutting down, closing all clients...")
    if reconcile_task is not None:
        reconcile_task.cancel()
        await asyncio.gather(reconcile_task, return_exceptions=True)
    await runtime.close()


app = FastAPI(
    title="workspace_rag_index",
    description=(
        "Keeps a vector index in sync with Notion workspace content. "
        "Pages are re-indexed on Notion webhooks (POST /webhook/notion), "
        "bulk loaded on connection (POST /webhook/connected) and searched via POST /query."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(webhook_router)
app.include_router(query_router)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting workspace_rag_index API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
