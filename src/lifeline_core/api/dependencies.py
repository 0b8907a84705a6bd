"""Service wiring shared by the HTTP routes"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from redis.asyncio import Redis

from lifeline_core.core.interview import IntakeInterviewer
from lifeline_core.core.monitoring import ProgressMonitor
from lifeline_core.core.review import CaseReviewer
from lifeline_core.core.workflow import InvestigationWorkflow


@dataclass
class LifelineServices:
    """Everything a request handler may call"""

    workflow: InvestigationWorkflow
    interviewer: IntakeInterviewer
    monitor: ProgressMonitor
    reviewer: CaseReviewer
    # Closed on shutdown when the app opened it
    redis_client: Optional[Redis] = None


def get_services(request: Request) -> LifelineServices:
    return request.app.state.services
