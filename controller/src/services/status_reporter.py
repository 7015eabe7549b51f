"""
Report pipeline and step status.

DatabaseReporter writes to the runs/steps tables for queued runs;
LogReporter only logs, for one-shot CLI runs.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import List, Optional
from sqlalchemy import create_engine, update, delete
from sqlalchemy.orm import sessionmaker

from controller.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

@lru_cache()
def get_session_factory() -> sessionmaker:
    """Sync database connection for controller."""
    engine = create_engine(settings.database_url)
    return sessionmaker(bind=engine)

class LogReporter:
    def create_steps(self, run_id: str, names: List[str]):
        logger.info(f"Run {run_id} steps: {', '.join(names)}")

    def update_run_status(
        self,
        run_id: str,
        status: str,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        if error:
            logger.info(f"Run {run_id} {status}: {error}")
        else:
            logger.info(f"Run {run_id} {status}")

    def update_step_status(
        self,
        run_id: str,
        step_order: int,
        status: str,
        logs: Optional[str] = None,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        logger.debug(f"Run {run_id} step {step_order} {status}")

class DatabaseReporter:
    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    def create_steps(self, run_id: str, names: List[str]):
        """Insert pending step rows for a run, replacing any earlier attempt."""
        from controller.src.models.db import PipelineStep

        with self.session_factory() as session:
            session.execute(delete(PipelineStep).where(PipelineStep.run_id == run_id))
            for i, name in enumerate(names):
                session.add(PipelineStep(
                    run_id=run_id,
                    name=name,
                    status="pending",
                    step_order=i,
                ))
            session.commit()

    def update_run_status(
        self,
        run_id: str,
        status: str,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        """Update pipeline run status in database."""
        from controller.src.models.db import PipelineRun

        with self.session_factory() as session:
            values = {"status": status, "updated_at": datetime.utcnow()}

            if error is not None:
                values["error"] = error
            if started_at:
                values["started_at"] = started_at
            if finished_at:
                values["finished_at"] = finished_at

            session.execute(
                update(PipelineRun)
                .where(PipelineRun.id == run_id)
                .values(**values)
            )
            session.commit()
            logger.info(f"Updated run {run_id} status to {status}")

    def update_step_status(
        self,
        run_id: str,
        step_order: int,
        status: str,
        logs: Optional[str] = None,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        """Update pipeline step status in database."""
        from controller.src.models.db import PipelineStep

        with self.session_factory() as session:
            values = {"status": status, "updated_at": datetime.utcnow()}

            if logs is not None:
                values["logs"] = logs
            if error is not None:
                values["error"] = error
            if started_at:
                values["started_at"] = started_at
            if finished_at:
                values["finished_at"] = finished_at

            session.execute(
                update(PipelineStep)
                .where(PipelineStep.run_id == run_id)
                .where(PipelineStep.step_order == step_order)
                .values(**values)
            )
            session.commit()
            logger.debug(f"Updated step {step_order} of run {run_id} to {status}")
