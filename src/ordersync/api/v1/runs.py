"""Ingestion run endpoints."""

from typing import List

from fastapi import APIRouter, HTTPException

from ordersync.core.models import RunSummary
from ordersync.core.runs import RunStore


def create_runs_router(runs: RunStore) -> APIRouter:
    router = APIRouter(prefix="/runs", tags=["runs"])

    @router.get("/{run_id}", response_model=RunSummary)
    def get_run(run_id: str) -> RunSummary:
        """Status and counters of one ingestion run."""
        run = runs.get(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return run

    @router.get("", response_model=List[RunSummary])
    def list_runs(instance_id: str, limit: int = 20) -> List[RunSummary]:
        """Most recent runs of an instance, newest first."""
        return runs.list_for_instance(instance_id, limit=limit)

    return router
