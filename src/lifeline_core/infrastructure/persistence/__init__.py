"""Investigation store implementations"""

from lifeline_core.infrastructure.persistence.base import check_commit_preconditions, summarize_message
from lifeline_core.infrastructure.persistence.memory import InMemoryInvestigationStore
from lifeline_core.infrastructure.persistence.redis_store import RedisInvestigationStore, create_redis_store

__all__ = [
    "InMemoryInvestigationStore",
    "RedisInvestigationStore",
    "create_redis_store",
    "check_commit_preconditions",
    "summarize_message",
]
