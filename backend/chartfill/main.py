import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chartfill.config import settings
from chartfill.routers import charts
from chartfill.services.worker_pool import WorkerPool

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Audio fingerprint jobs share one pool for the life of the process
    app.state.worker_pool = WorkerPool(settings.fingerprint_max_workers).start()
    try:
        yield
    finally:
        app.state.worker_pool.stop()


app = FastAPI(title="Chartfill API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(charts.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    run()
