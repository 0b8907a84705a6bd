"""Boundary interfaces consumed by the workflow core.

The core never talks to storage, the inference service or other services
directly; it receives implementations of these interfaces through constructors,
so tests substitute doubles per test.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from lifeline_core.models import (
    CaseMessage,
    Investigation,
    InvestigationStatus,
    MessageAudience,
    Step,
)


class IInvestigationStore(ABC):
    """Document store for investigations.

    Keyed record ``investigations/{id}`` with an appendable ``steps``
    sub-collection and an append-only ``messages`` sub-collection.
    Writes are conditioned on the status read in the same transaction;
    last-writer-wins is never acceptable.
    """

    @abstractmethod
    async def create(self, investigation: Investigation) -> Investigation:
        """Persist a new investigation. Raises ValueError if the ID exists."""

    @abstractmethod
    async def get(self, investigation_id: str) -> Investigation:
        """Load an investigation with all its steps.

        Raises:
            InvestigationNotFound: If no record exists
        """

    @abstractmethod
    async def commit(
        self,
        investigation: Investigation,
        expected_status: InvestigationStatus,
        new_step: Optional[Step] = None,
    ) -> Investigation:
        """Atomically write the updated record, appending new_step if given.

        The write only happens if the stored status still equals
        expected_status and the stored step count equals the count the
        caller read. Record update and step append succeed or fail together.

        Raises:
            ConcurrentModification: If the stored record changed since it was read
            InvestigationNotFound: If no record exists
        """

    @abstractmethod
    async def append_message(self, message: CaseMessage) -> CaseMessage:
        """Append to the message log and refresh the denormalized last-message fields."""

    @abstractmethod
    async def list_messages(self, investigation_id: str) -> List[CaseMessage]:
        """Messages in chronological order"""


class IInferenceClient(ABC):
    """Prompt-based inference service returning structured JSON."""

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        media: Optional[List[str]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run one inference call.

        Args:
            prompt: Fully rendered prompt
            media: Image references (URLs or data URIs) to attach
            response_schema: JSON schema the output must follow

        Returns:
            The decoded JSON object

        Raises:
            InferenceOutputError: If no valid JSON object came back
            InferenceUnavailable: If the service could not be reached
        """


class IAccessPolicy(ABC):
    """Identity/authorization boundary: is this actor allowed on this case?"""

    @abstractmethod
    async def is_authorized(self, actor_id: str, investigation: Optional[Investigation], role: str) -> bool:
        """role is one of "patient", "clinician", "field_worker"."""


class IPaymentLedger(ABC):
    """Prepaid balance used to gate new investigations."""

    @abstractmethod
    async def debit(self, actor_id: str, amount: int, reason: str) -> str:
        """Deduct amount from the actor's balance.

        Returns:
            Ledger transaction ID

        Raises:
            InsufficientFunds: If the balance is too low
        """


class INotifier(ABC):
    """Fire-and-forget notification dispatch."""

    @abstractmethod
    async def notify(self, investigation_id: str, audience: MessageAudience, message: str) -> None:
        """Deliver at most once. Failures are the caller's to log and drop."""
