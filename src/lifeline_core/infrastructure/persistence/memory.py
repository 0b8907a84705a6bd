"""In-process investigation store.

Used by tests and single-process development setups. Records are kept as
serialized JSON so callers can never mutate stored state through a shared
object reference.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from lifeline_core.exceptions import InvestigationNotFound
from lifeline_core.interfaces import IInvestigationStore
from lifeline_core.models import CaseMessage, Investigation, InvestigationStatus, Step
from lifeline_core.infrastructure.persistence.base import check_commit_preconditions, summarize_message

logger = logging.getLogger(__name__)


class InMemoryInvestigationStore(IInvestigationStore):
    """Investigation store backed by dictionaries and one asyncio lock"""

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._messages: Dict[str, List[str]] = {}
        self._lock = asyncio.Lock()

    async def create(self, investigation: Investigation) -> Investigation:
        async with self._lock:
            if investigation.investigation_id in self._records:
                raise ValueError(f"Investigation {investigation.investigation_id} already exists")
            self._records[investigation.investigation_id] = investigation.model_dump_json()
            self._messages[investigation.investigation_id] = []
        logger.debug(f"Created investigation {investigation.investigation_id}")
        return investigation

    async def get(self, investigation_id: str) -> Investigation:
        async with self._lock:
            return self._load(investigation_id)

    async def commit(
        self,
        investigation: Investigation,
        expected_status: InvestigationStatus,
        new_step: Optional[Step] = None,
    ) -> Investigation:
        async with self._lock:
            stored = self._load(investigation.investigation_id)
            check_commit_preconditions(
                investigation=investigation,
                stored_status=stored.status,
                stored_step_count=len(stored.steps),
                expected_status=expected_status,
                new_step=new_step,
            )
            # Keep denormalized message fields owned by append_message
            merged = investigation.model_copy(update={
                "last_message_timestamp": stored.last_message_timestamp,
                "last_message_summary": stored.last_message_summary,
            })
            self._records[investigation.investigation_id] = merged.model_dump_json()
            return merged

    async def append_message(self, message: CaseMessage) -> CaseMessage:
        async with self._lock:
            stored = self._load(message.investigation_id)
            self._messages[message.investigation_id].append(message.model_dump_json())
            updated = stored.model_copy(update={
                "last_message_timestamp": message.created_at,
                "last_message_summary": summarize_message(message.content),
            })
            self._records[message.investigation_id] = updated.model_dump_json()
        return message

    async def list_messages(self, investigation_id: str) -> List[CaseMessage]:
        async with self._lock:
            if investigation_id not in self._records:
                raise InvestigationNotFound(
                    f"Investigation {investigation_id} not found",
                    context={"investigation_id": investigation_id},
                )
            return [CaseMessage.model_validate_json(raw) for raw in self._messages[investigation_id]]

    def _load(self, investigation_id: str) -> Investigation:
        raw = self._records.get(investigation_id)
        if raw is None:
            raise InvestigationNotFound(
                f"Investigation {investigation_id} not found",
                context={"investigation_id": investigation_id},
            )
        return Investigation.model_validate_json(raw)


__all__ = ["InMemoryInvestigationStore"]
