"""File-backed HTTP leaderboard service.

GET  /api/leaderboard  -> sorted entries (score desc, time asc, top 100)
POST /api/leaderboard  -> {name, score, totalTime}; 400 on a bad payload
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Annotated, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from .leaderboard import LeaderboardEntry, make_entry
from .logging_conf import setup_logging
from .persistence import LEADERBOARD_PATH_ENV, JsonFileLeaderboardStore

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3001

# Ints stay ints; floats must be finite.
FiniteNumber = Union[StrictInt, Annotated[float, Field(strict=True, allow_inf_nan=False)]]


class LeaderboardEntryIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: StrictStr = Field(min_length=1)
    score: FiniteNumber
    total_time: FiniteNumber = Field(alias="totalTime")


class LeaderboardEntryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    score: int | float
    total_time: int | float = Field(alias="totalTime")
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> "LeaderboardEntryOut":
        return cls(name=entry.name, score=entry.score, totalTime=entry.total_time, createdAt=entry.created_at)


def default_store_path() -> Path:
    explicit = os.environ.get(LEADERBOARD_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.cwd() / "leaderboard.json"


def create_app(store: JsonFileLeaderboardStore | None = None) -> FastAPI:
    store = store or JsonFileLeaderboardStore(default_store_path())
    store.ensure_exists()

    app = FastAPI(title="Math Recall - Leaderboard API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_payload(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"message": "Invalid payload"})

    @app.get("/api/leaderboard", response_model=list[LeaderboardEntryOut], response_model_by_alias=True)
    def read_leaderboard() -> list[LeaderboardEntryOut]:
        return [LeaderboardEntryOut.from_entry(e) for e in store.read_all()]

    @app.post("/api/leaderboard")
    def add_to_leaderboard(payload: LeaderboardEntryIn) -> dict[str, bool]:
        entry = make_entry(name=payload.name, score=payload.score, total_time=payload.total_time)
        store.add(entry)
        logger.info("leaderboard entry added: %s (%s)", entry.name, entry.score)
        return {"ok": True}

    return app


def main() -> int:
    import uvicorn

    setup_logging()
    port = int(os.getenv("PORT", DEFAULT_PORT))
    app = create_app()
    logger.info("Leaderboard server running at http://localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
