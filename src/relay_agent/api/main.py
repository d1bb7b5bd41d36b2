"""FastAPI entrypoint for query, memory and trace endpoints."""

from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from relay_agent.agent.orchestrator import Orchestrator
from relay_agent.config import AgentConfig, LLMConfig, MemoryConfig
from relay_agent.errors import MemoryPersistenceError
from relay_agent.llm.fallback import DeterministicBackend
from relay_agent.llm.langchain import LangChainBackend, create_chat_model
from relay_agent.memory.store import MemoryStore, MemoryType
from relay_agent.obs.tracing import TraceStore
from relay_agent.result import Maybe
from relay_agent.tools.builtin import build_registry


def _create_backend() -> LangChainBackend | DeterministicBackend:
    config = LLMConfig.from_env()
    if not config.api_key:
        return DeterministicBackend()
    return LangChainBackend(create_chat_model(config))


class QueryRequest(BaseModel):
    input: str = Field(min_length=1)
    context: str | None = None


class MemoryWriteRequest(BaseModel):
    key: str = Field(min_length=1)
    value: str = Field(min_length=1)
    append: bool = False
    type: MemoryType | None = None
    tags: list[str] = Field(default_factory=list)
    ttl: float | None = Field(default=None, gt=0)


class MemorySearchRequest(BaseModel):
    query: str = Field(min_length=1)


class MemoryForgetRequest(BaseModel):
    key: str | None = None
    type: MemoryType | None = None
    before: float | None = None
    tags: list[str] | None = None


app = FastAPI(title="Relay Agent", version="0.1.0")

_memory = MemoryStore(MemoryConfig(base_path=os.getenv("RELAY_MEMORY_PATH", ".discord/memory")))
_memory.load()
_http = httpx.AsyncClient(timeout=httpx.Timeout(15.0))
_registry = build_registry(memory=_memory, http=_http)

_trace_store = TraceStore()
_backend = _create_backend()
_orchestrator = Orchestrator(
    registry=_registry,
    classifier=_backend,
    synthesizer=_backend,
    memory=_memory,
    trace_store=_trace_store,
    config=AgentConfig(),
)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": isinstance(_backend, LangChainBackend),
        "backend_mode": "langchain" if isinstance(_backend, LangChainBackend) else "deterministic",
        "tools": _registry.names(),
        "memory_documents": len(_memory),
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.post("/query")
async def query(request: QueryRequest) -> dict[str, Any]:
    context = Maybe.just(request.context) if request.context else None
    record = await _orchestrator.run(request.input, context)
    return {
        "answer": record.answer,
        "trace_id": record.trace_id,
        "tool_calls": record.tool_calls,
        "fell_back": record.fell_back,
        "latency_ms": record.latency_ms,
    }


@app.post("/memory")
def memory_write(request: MemoryWriteRequest) -> dict[str, Any]:
    try:
        document = _memory.set(
            request.key,
            request.value,
            request.append,
            type=request.type,
            tags=request.tags,
            ttl=request.ttl,
        )
    except MemoryPersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"key": document.key, "length": len(document.value), "total_length": _memory.total_length}


@app.post("/memory/search")
def memory_search(request: MemorySearchRequest) -> dict[str, Any]:
    result = _memory.get(request.query)
    return {"found": not result.is_nothing, "text": result.get_or_else(None)}


@app.post("/memory/forget")
def memory_forget(request: MemoryForgetRequest) -> dict[str, Any]:
    try:
        removed = _memory.forget(
            key=request.key, type=request.type, before=request.before, tags=request.tags
        )
    except MemoryPersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"removed": removed}


@app.get("/memory/stats")
def memory_stats() -> dict[str, Any]:
    return _memory.stats()


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
