"""Health endpoint served by the worker process."""
from fastapi import FastAPI, Request

from worker.worker import JobWorker


def create_health_app(worker: JobWorker) -> FastAPI:
    """Build a small app exposing the worker's status and queue depth."""
    app = FastAPI(title="News Pipeline Worker", version="1.0.0")
    app.state.worker = worker

    @app.get("/health")
    async def health_check(request: Request):
        """Worker health with per-type queue counts."""
        return await request.app.state.worker.get_health()

    return app
