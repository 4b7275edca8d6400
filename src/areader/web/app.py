"""FastAPI application exposing the reader dispatch point over HTTP."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from areader.config import AppConfig
from areader.dispatch import (
    DispatchError,
    InvalidMessageError,
    NoDocumentOpenError,
    ReaderService,
    UnknownCommandError,
)
from areader.reader.session import DocumentOpenError

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="A-Reader", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: ReaderService | None = None


class MessagePayload(BaseModel):
    """Collaborator message; fields beyond ``command`` depend on the command."""

    model_config = ConfigDict(extra="allow")

    command: str


def configure(config: AppConfig) -> ReaderService:
    """Replace the app-wide service, e.g. with CLI-supplied settings."""
    global _service
    _service = ReaderService(config)
    return _service


def get_service() -> ReaderService:
    global _service
    if _service is None:
        _service = ReaderService(AppConfig())
    return _service


async def _dispatch(message: dict[str, Any]) -> dict[str, Any]:
    try:
        return await get_service().dispatch(message)
    except (UnknownCommandError, InvalidMessageError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoDocumentOpenError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DocumentOpenError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DispatchError as exc:  # pragma: no cover - defensive
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if _service is not None:
        await _service.shutdown()


@app.get("/commands")
async def list_commands() -> dict[str, list[str]]:
    return {"commands": get_service().commands}


@app.post("/dispatch")
async def dispatch_message(payload: MessagePayload) -> dict[str, Any]:
    return await _dispatch(payload.model_dump())


@app.get("/library")
async def list_library(directory: str | None = None) -> dict[str, Any]:
    """List documents in the given or configured library directory."""
    message: dict[str, Any] = {"command": "listLibrary"}
    if directory:
        message["directory"] = directory
    return await _dispatch(message)
