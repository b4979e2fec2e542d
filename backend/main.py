"""FastAPI entrypoint for the Glosslink backend."""

from __future__ import annotations

import asyncio
import logging
import os

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from app_state import GlosslinkAppState
from errors import SpellingCollisionError, TermNotFoundError
from models import (
    CandidateClusterPayload,
    DelinkResultPayload,
    EntryPayload,
    IgnoreRequest,
    IgnoreResponsePayload,
    InitProjectRequest,
    OpenProjectRequest,
    ProjectInfoPayload,
    RelinkResultPayload,
    RenameRequest,
    RenameResultPayload,
    SearchResponsePayload,
    StatsPayload,
    SuggestResponsePayload,
    TermsResponsePayload,
    TocResultPayload,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Glosslink Backend", description="Glossary linking and cross-reference API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

state = GlosslinkAppState()


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (FileNotFoundError, TermNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (FileExistsError, SpellingCollisionError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=422, detail=str(exc))
    logger.exception("Request failed")
    return HTTPException(status_code=500, detail=str(exc))


def _project_payload(service) -> ProjectInfoPayload:
    project = service.project
    return ProjectInfoPayload(root=str(project.root), glossary_dir=str(project.glossary_dir), strict=project.strict)


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok", "message": "Glosslink backend is running"}


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "message": "Glosslink backend is running"}


@app.get("/project", response_model=ProjectInfoPayload, tags=["project"])
async def project():
    try:
        return _project_payload(state.current())
    except Exception as exc:
        raise _http_error(exc)


@app.post("/project/open", response_model=ProjectInfoPayload, tags=["project"])
async def open_project(request: OpenProjectRequest):
    try:
        return _project_payload(state.open_project(request.path))
    except Exception as exc:
        raise _http_error(exc)


@app.post("/project/init", response_model=ProjectInfoPayload, tags=["project"])
async def init_project(request: InitProjectRequest):
    try:
        return _project_payload(state.init_project(request.path, request.glossary_dir))
    except Exception as exc:
        raise _http_error(exc)


@app.get("/terms", response_model=TermsResponsePayload, tags=["terms"])
async def terms():
    try:
        return TermsResponsePayload(terms=state.current().list_terms())
    except Exception as exc:
        raise _http_error(exc)


@app.get("/terms/{singular}", response_model=EntryPayload, response_model_exclude_none=True, tags=["terms"])
async def get_term(singular: str):
    try:
        return state.current().get_term(singular)
    except Exception as exc:
        raise _http_error(exc)


@app.post("/terms", response_model=EntryPayload, response_model_exclude_none=True, tags=["terms"])
async def add_term(request: EntryPayload):
    try:
        term = state.current().add_term(request.to_term())
        return EntryPayload.from_term(term)
    except Exception as exc:
        raise _http_error(exc)


@app.post("/gloss", response_model=RelinkResultPayload, tags=["passes"])
async def gloss():
    try:
        return await asyncio.to_thread(state.current().relink)
    except Exception as exc:
        raise _http_error(exc)


@app.post("/rename", response_model=RenameResultPayload, tags=["passes"])
async def rename(request: RenameRequest):
    try:
        return await asyncio.to_thread(state.current().rename, request)
    except Exception as exc:
        raise _http_error(exc)


@app.get("/suggest", response_model=SuggestResponsePayload, tags=["passes"])
async def suggest(
    min_count: int | None = Query(default=None, ge=1),
    min_files: int | None = Query(default=None, ge=1),
    similarity: float | None = Query(default=None, ge=0.0, le=1.0),
):
    try:
        clusters = await asyncio.to_thread(state.current().suggest, min_count, min_files, similarity)
        return SuggestResponsePayload(
            clusters=[
                CandidateClusterPayload(
                    members=cluster.members,
                    total_frequency=cluster.total_frequency,
                    files=cluster.files,
                )
                for cluster in clusters
            ]
        )
    except Exception as exc:
        raise _http_error(exc)


@app.post("/ignore", response_model=IgnoreResponsePayload, tags=["passes"])
async def ignore(request: IgnoreRequest):
    try:
        return state.current().add_ignored(request.words)
    except Exception as exc:
        raise _http_error(exc)


@app.get("/stats", response_model=StatsPayload, tags=["reports"])
async def stats():
    try:
        return await asyncio.to_thread(state.current().stats)
    except Exception as exc:
        raise _http_error(exc)


@app.post("/toc", response_model=TocResultPayload, tags=["reports"])
async def toc():
    try:
        return TocResultPayload(entries=state.current().rebuild_toc())
    except Exception as exc:
        raise _http_error(exc)


@app.get("/search", response_model=SearchResponsePayload, tags=["reports"])
async def search(q: str = Query(default=""), limit: int = Query(default=20, ge=1, le=100)):
    try:
        return SearchResponsePayload(results=state.current().search(q, limit))
    except Exception as exc:
        raise _http_error(exc)


@app.post("/delink", response_model=DelinkResultPayload, tags=["passes"])
async def delink():
    try:
        return await asyncio.to_thread(state.current().delink)
    except Exception as exc:
        raise _http_error(exc)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=int(os.environ.get("GLOSSLINK_PORT", "8000")))
