import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

from fastapi import Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from config import Settings
from database import open_repository
from identity import Caller, resolve_caller
from logging_utils import configure_logging
from persistence import MAX_RECORD_ID, BackendFailure, BaseRepo, RepoError
from schemas import HistoryEntry, Idea, MoodBody, TextBody, TodayBundle

logger = logging.getLogger(__name__)

RecordId = Annotated[int, Path(ge=-MAX_RECORD_ID - 1, le=MAX_RECORD_ID)]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def create_app(settings: Optional[Settings] = None, repo: Optional[BaseRepo] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    repo = repo or open_repository(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        repo.close()

    app = FastAPI(title="Daybook API", lifespan=lifespan)
    app.state.settings = settings
    app.state.repo = repo

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
        return response

    # ---------- Errors ----------
    @app.exception_handler(RepoError)
    async def repo_error(request: Request, exc: RepoError):
        if exc.status_code >= 500:
            logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request")

    # Starlette sends this response, then re-raises to the server
    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception):
        logger.error("%s %s crashed", request.method, request.url.path, exc_info=exc)
        return _error(500, BackendFailure.default_message)

    def get_caller(request: Request) -> Optional[Caller]:
        return resolve_caller(request.headers, production=settings.production)

    # ---------- Status ----------
    @app.get("/api/status")
    def status():
        return {"backend": "running", "mode": repo.mode}

    # ---------- Today ----------
    @app.get("/api/today", response_model=TodayBundle)
    def today(caller: Optional[Caller] = Depends(get_caller)):
        return repo.get_today(caller, repo.current_day())

    # ---------- Tasks ----------
    @app.post("/api/tasks")
    def add_task(payload: TextBody, caller: Optional[Caller] = Depends(get_caller)):
        task = repo.add_task(caller, payload.text)
        return {"ok": True, "task": task}

    @app.post("/api/tasks/{task_id}/toggle")
    def toggle_task(task_id: RecordId, caller: Optional[Caller] = Depends(get_caller)):
        completed = repo.toggle_task(caller, task_id)
        return {"ok": True, "completed": completed}

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: RecordId, caller: Optional[Caller] = Depends(get_caller)):
        repo.delete_task(caller, task_id)
        return {"ok": True}

    # ---------- Ideas ----------
    @app.get("/api/ideas", response_model=List[Idea])
    def list_ideas(caller: Optional[Caller] = Depends(get_caller)):
        return repo.list_ideas(caller)

    @app.post("/api/ideas")
    def add_idea(payload: TextBody, caller: Optional[Caller] = Depends(get_caller)):
        idea = repo.add_idea(caller, payload.text)
        return {"ok": True, "idea": idea}

    @app.delete("/api/ideas/{idea_id}")
    def delete_idea(idea_id: RecordId, caller: Optional[Caller] = Depends(get_caller)):
        repo.delete_idea(caller, idea_id)
        return {"ok": True}

    # ---------- Mood / reflection ----------
    @app.post("/api/mood")
    def set_mood(payload: MoodBody, caller: Optional[Caller] = Depends(get_caller)):
        row = repo.set_mood(caller, repo.current_day(), payload.mood)
        return {"ok": True, "row": row}

    @app.post("/api/reflection")
    def set_reflection(payload: TextBody, caller: Optional[Caller] = Depends(get_caller)):
        row = repo.set_reflection(caller, repo.current_day(), payload.text)
        return {"ok": True, "row": row}

    # ---------- History ----------
    @app.get("/api/history", response_model=List[HistoryEntry])
    def history(caller: Optional[Caller] = Depends(get_caller)):
        return repo.get_history(caller)

    # ---------- Frontend ----------
    @app.api_route("/api/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    def api_not_found(rest: str):
        return _error(404, "Not found")

    dist = os.path.abspath(settings.frontend_dist)
    index_path = os.path.join(dist, "index.html")

    @app.get("/{full_path:path}", include_in_schema=False)
    def frontend(full_path: str):
        if full_path:
            candidate = os.path.abspath(os.path.join(dist, full_path))
            if candidate.startswith(dist + os.sep) and os.path.isfile(candidate):
                return FileResponse(candidate)
        # client-side routes all land on the entry document
        if os.path.isfile(index_path):
            return FileResponse(index_path)
        return _error(404, "Frontend not built")

    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `uvicorn main:app` builds the app on first access, not at import
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    app = create_app(settings)
    logger.info("Daybook listening on http://localhost:%d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
