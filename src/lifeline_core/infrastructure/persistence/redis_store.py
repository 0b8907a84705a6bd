"""Redis-backed investigation store.

Key layout:
    investigations:{id}               JSON record without steps or last-message fields
    investigations:{id}:steps         list of step JSON, append-only
    investigations:{id}:messages      list of message JSON, append-only
    investigations:{id}:last_message  hash with "timestamp" and "summary"

Commits use optimistic locking: the record and steps keys are WATCHed, the
stored status and step count are checked, and the record write plus the step
append are queued in one MULTI/EXEC. Any interleaved write aborts the EXEC.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import WatchError

from lifeline_core.exceptions import ConcurrentModification, InvestigationNotFound
from lifeline_core.interfaces import IInvestigationStore
from lifeline_core.models import CaseMessage, Investigation, InvestigationStatus, Step
from lifeline_core.infrastructure.persistence.base import check_commit_preconditions, summarize_message

logger = logging.getLogger(__name__)

KEY_PREFIX = "investigations"

_RECORD_EXCLUDE = {"steps", "last_message_timestamp", "last_message_summary"}


class RedisInvestigationStore(IInvestigationStore):
    """Investigation store on a single Redis (or Sentinel-managed master)"""

    def __init__(self, redis_client: Redis, key_prefix: str = KEY_PREFIX):
        self._redis = redis_client
        self._prefix = key_prefix

    # ------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------
    def _record_key(self, investigation_id: str) -> str:
        return f"{self._prefix}:{investigation_id}"

    def _steps_key(self, investigation_id: str) -> str:
        return f"{self._prefix}:{investigation_id}:steps"

    def _messages_key(self, investigation_id: str) -> str:
        return f"{self._prefix}:{investigation_id}:messages"

    def _last_message_key(self, investigation_id: str) -> str:
        return f"{self._prefix}:{investigation_id}:last_message"

    # ------------------------------------------------------------
    # IInvestigationStore
    # ------------------------------------------------------------
    async def create(self, investigation: Investigation) -> Investigation:
        inv_id = investigation.investigation_id
        created = await self._redis.set(self._record_key(inv_id), self._serialize_record(investigation), nx=True)
        if not created:
            raise ValueError(f"Investigation {inv_id} already exists")

        if investigation.steps:
            await self._redis.rpush(self._steps_key(inv_id), *[s.model_dump_json() for s in investigation.steps])

        logger.info(f"Created investigation {inv_id} for patient {investigation.patient_id}")
        return investigation

    async def get(self, investigation_id: str) -> Investigation:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.get(self._record_key(investigation_id))
            pipe.lrange(self._steps_key(investigation_id), 0, -1)
            pipe.hgetall(self._last_message_key(investigation_id))
            raw_record, raw_steps, last_message = await pipe.execute()

        if raw_record is None:
            raise InvestigationNotFound(
                f"Investigation {investigation_id} not found",
                context={"investigation_id": investigation_id},
            )
        return self._assemble(raw_record, raw_steps, last_message)

    async def commit(
        self,
        investigation: Investigation,
        expected_status: InvestigationStatus,
        new_step: Optional[Step] = None,
    ) -> Investigation:
        inv_id = investigation.investigation_id
        record_key = self._record_key(inv_id)
        steps_key = self._steps_key(inv_id)

        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(record_key, steps_key)

                raw_record = await pipe.get(record_key)
                if raw_record is None:
                    raise InvestigationNotFound(
                        f"Investigation {inv_id} not found",
                        context={"investigation_id": inv_id},
                    )
                stored_status = InvestigationStatus(json.loads(raw_record)["status"])
                stored_step_count = await pipe.llen(steps_key)
                last_message = await pipe.hgetall(self._last_message_key(inv_id))

                check_commit_preconditions(
                    investigation=investigation,
                    stored_status=stored_status,
                    stored_step_count=stored_step_count,
                    expected_status=expected_status,
                    new_step=new_step,
                )

                pipe.multi()
                pipe.set(record_key, self._serialize_record(investigation))
                if new_step is not None:
                    pipe.rpush(steps_key, new_step.model_dump_json())
                await pipe.execute()
            except WatchError:
                logger.warning(f"Commit on {inv_id} aborted by a concurrent write")
                raise ConcurrentModification(
                    f"Investigation {inv_id} was modified concurrently; refresh and retry",
                    context={"investigation_id": inv_id, "expected_status": expected_status.value},
                )

        logger.debug(f"Committed investigation {inv_id}: {expected_status.value} -> {investigation.status.value}")
        return investigation.model_copy(update=self._last_message_fields(last_message))

    async def append_message(self, message: CaseMessage) -> CaseMessage:
        inv_id = message.investigation_id
        if not await self._redis.exists(self._record_key(inv_id)):
            raise InvestigationNotFound(
                f"Investigation {inv_id} not found",
                context={"investigation_id": inv_id},
            )

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.rpush(self._messages_key(inv_id), message.model_dump_json())
            pipe.hset(self._last_message_key(inv_id), mapping={
                "timestamp": message.created_at.isoformat(),
                "summary": summarize_message(message.content),
            })
            await pipe.execute()
        return message

    async def list_messages(self, investigation_id: str) -> List[CaseMessage]:
        if not await self._redis.exists(self._record_key(investigation_id)):
            raise InvestigationNotFound(
                f"Investigation {investigation_id} not found",
                context={"investigation_id": investigation_id},
            )
        raw_messages = await self._redis.lrange(self._messages_key(investigation_id), 0, -1)
        return [CaseMessage.model_validate_json(raw) for raw in raw_messages]

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------
    @staticmethod
    def _serialize_record(investigation: Investigation) -> str:
        return json.dumps(investigation.model_dump(mode="json", exclude=_RECORD_EXCLUDE))

    @staticmethod
    def _last_message_fields(last_message: Dict[str, str]) -> Dict[str, Any]:
        if not last_message:
            return {"last_message_timestamp": None, "last_message_summary": None}
        return {
            "last_message_timestamp": datetime.fromisoformat(last_message["timestamp"]),
            "last_message_summary": last_message.get("summary"),
        }

    def _assemble(self, raw_record: str, raw_steps: List[str], last_message: Dict[str, str]) -> Investigation:
        data = json.loads(raw_record)
        data["steps"] = [json.loads(raw) for raw in raw_steps]
        if last_message:
            data["last_message_timestamp"] = last_message["timestamp"]
            data["last_message_summary"] = last_message.get("summary")
        return Investigation.model_validate(data)


async def create_redis_store(redis_client: Optional[Redis] = None) -> RedisInvestigationStore:
    """Build a store on the configured Redis, connecting if no client is given"""
    if redis_client is None:
        from lifeline_core.infrastructure.redis_setup import get_redis_client
        redis_client = await get_redis_client()
    return RedisInvestigationStore(redis_client)


__all__ = ["RedisInvestigationStore", "create_redis_store", "KEY_PREFIX"]
