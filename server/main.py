"""FastAPI server exposing a local Tentaizu match API for human and automated play."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from framework.env_utils import getenv_any, getenv_list
from framework.errors import TentaizuError
from framework.logging_utils import configure_logging
from framework.serialize import json_dumps
from server.schemas import AdvanceRequest, CreateMatchRequest, SubmitMoveRequest
from server.session import SessionStore
from tentaizu.tentaizu_board import new_seed

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


app = FastAPI(title="Tentaizu Local API", version="0.1.0")
store = SessionStore()

app.add_middleware(
    CORSMiddleware,
    allow_origins=getenv_list("TENTAIZU_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""
    return {"status": "ok"}


@app.post("/api/match/new")
def new_match(request: CreateMatchRequest) -> dict:
    """Create a new in-memory match session; the board is built and the countdown started."""
    seed = request.seed if request.seed is not None else new_seed()
    try:
        session = store.create_match(
            seed=seed,
            config=request.config,
            players=request.players,
            human_player_id=request.human_player_id,
            viewer_player_id=request.viewer_player_id,
        )
    except (TentaizuError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    player_id = session.selected_player(request.viewer_player_id or request.human_player_id)
    return session.view(player_id)


@app.get("/api/match/{match_id}/observation")
def get_observation(match_id: str, player_id: str = Query(...)) -> dict:
    """Get the latest observation and legal intents for one player."""
    try:
        session = store.get(match_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown match_id: {match_id}") from exc
    try:
        return session.view(player_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/match/{match_id}/move")
def submit_move(match_id: str, request: SubmitMoveRequest) -> dict:
    """Submit a JSON intent for a human seat."""
    try:
        session = store.get(match_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown match_id: {match_id}") from exc

    try:
        return session.submit_human_move(player_id=request.player_id, move_payload=request.move)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (TentaizuError, ValueError) as exc:
        # Include refreshed state for convenient UI recovery.
        payload: dict[str, Any] = {"error": str(exc)}
        if request.player_id in session.match.peers:
            payload = session.view(request.player_id)
            payload["error"] = str(exc)
        raise HTTPException(status_code=400, detail=payload) from exc


@app.post("/api/match/{match_id}/advance")
def advance_match(match_id: str, request: AdvanceRequest) -> dict:
    """Advance the simulated clock so countdowns and turn deadlines elapse."""
    try:
        session = store.get(match_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown match_id: {match_id}") from exc
    return session.advance(request.seconds, request.step)


@app.get("/api/match/{match_id}/events", response_model=None)
def get_events(match_id: str, format: str = Query(default="array")) -> Any:
    """Return the applied event history as an array (default) or JSONL text."""
    try:
        events = store.all_events(match_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown match_id: {match_id}") from exc

    if format == "jsonl":
        text = "\n".join(json_dumps(event) for event in events)
        return PlainTextResponse(content=text, media_type="application/jsonl")
    return events


if __name__ == "__main__":
    import uvicorn

    configure_logging(getenv_any("TENTAIZU_LOG_LEVEL", default="INFO"), getenv_any("TENTAIZU_LOG_DIR"))
    uvicorn.run("server.main:app", host="0.0.0.0", port=8000, reload=True)
