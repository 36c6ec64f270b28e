"""Persistence of ingestion runs."""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ordersync.core.models import IngestionRun, RunStatus, RunSummary, utcnow


class RunStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def create(self, instance_id: str) -> RunSummary:
        with self.session_factory.begin() as db:
            run = IngestionRun(instance_id=instance_id, status=RunStatus.PENDING.value, started_at=utcnow())
            db.add(run)
            db.flush()
            return RunSummary.model_validate(run)

    def update(self, run_id: str, status: Optional[RunStatus] = None, **counts: Any) -> RunSummary:
        """Record a state transition and/or new counters; terminal states set `finished_at`."""
        with self.session_factory.begin() as db:
            run = db.get(IngestionRun, run_id)
            if run is None:
                raise KeyError(run_id)
            if status is not None:
                run.status = status.value
                if status.is_terminal:
                    run.finished_at = utcnow()
            for name, value in counts.items():
                setattr(run, name, value)
            db.flush()
            return RunSummary.model_validate(run)

    def get(self, run_id: str) -> Optional[RunSummary]:
        with self.session_factory() as db:
            run = db.get(IngestionRun, run_id)
            return RunSummary.model_validate(run) if run else None

    def list_for_instance(self, instance_id: str, limit: int = 20) -> List[RunSummary]:
        with self.session_factory() as db:
            runs = db.scalars(
                select(IngestionRun)
                .where(IngestionRun.instance_id == instance_id)
                .order_by(IngestionRun.started_at.desc())
                .limit(limit)
            ).all()
            return [RunSummary.model_validate(run) for run in runs]
