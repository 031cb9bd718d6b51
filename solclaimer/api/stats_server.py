"""
Stats Service
=============
HTTP front for a StatsStore backend.

    GET /api/health
    GET /api/stats/{owner}    absent owner → all-zero record
    PUT /api/stats/{owner}    whole-record replacement (no server-side merge)

Run:
    solclaimer serve-stats --port 8000
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from solclaimer.modules.reclaimer.models import ReclamationStats
from solclaimer.shared.infrastructure.stats_store import StatsStore, create_stats_store
from solclaimer.shared.system.logging import Logger


# --- Pydantic Models ---
class EventModel(BaseModel):
    ts: int
    lamports: int = Field(ge=0)
    signatures: List[str] = []
    closed: int = Field(ge=0)


class StatsModel(BaseModel):
    totalClosed: int = Field(0, ge=0)
    totalReclaimedLamports: int = Field(0, ge=0)
    events: List[EventModel] = []


def create_app(store: Optional[StatsStore] = None) -> FastAPI:
    backing = store or create_stats_store()

    # --- Lifecycle ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Logger.info(f"[API] Stats service online ({type(backing).__name__})")
        yield
        Logger.info("[API] Stats service shutting down")

    app = FastAPI(title="Solclaimer Stats", version="1.0.0", lifespan=lifespan)
    app.state.store = backing

    def get_store() -> StatsStore:
        return app.state.store

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/stats/{owner}", response_model=StatsModel)
    async def read_stats(owner: str, store: StatsStore = Depends(get_store)):
        stats = await store.get(owner)
        return stats.to_dict()

    @app.put("/api/stats/{owner}", response_model=StatsModel)
    async def write_stats(owner: str, body: StatsModel, store: StatsStore = Depends(get_store)):
        stats = ReclamationStats.from_dict(body.model_dump())
        if not stats.is_consistent():
            raise HTTPException(status_code=422, detail="totals must equal the sum of events")
        await store.put(owner, stats)
        Logger.debug(f"[API] Stored stats for {owner[:8]}… ({len(stats.events)} events)")
        return stats.to_dict()

    return app
