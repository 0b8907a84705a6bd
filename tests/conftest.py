"""Shared fakes and builders for the Lifeline test suite"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from lifeline_core.auth import AllowAllAccessPolicy
from lifeline_core.config import WorkflowSettings
from lifeline_core.core.interview import IntakeAnalyzer
from lifeline_core.core.refinement import DiagnosticRefinementEngine
from lifeline_core.core.workflow import InvestigationWorkflow
from lifeline_core.exceptions import InsufficientFunds
from lifeline_core.infrastructure.persistence import InMemoryInvestigationStore
from lifeline_core.interfaces import IInferenceClient, INotifier, IPaymentLedger
from lifeline_core.models import (
    INTERVIEW_QUESTION_COUNT,
    ContributedEvidence,
    MessageAudience,
    TranscriptMessage,
    TranscriptRole,
)


def run(coro):
    """Run a coroutine, then let the background notifications it scheduled finish"""

    async def main():
        result = await coro
        await settle()
        return result

    return asyncio.run(main())


async def settle():
    others = asyncio.all_tasks() - {asyncio.current_task()}
    if others:
        await asyncio.wait(others)


class ScriptedInference(IInferenceClient):
    """Returns queued outputs in order; queued exceptions are raised"""

    def __init__(self, *outputs: Any):
        self.outputs: List[Any] = list(outputs)
        self.prompts: List[str] = []
        self.media: List[Optional[List[str]]] = []
        self.schemas: List[Optional[Dict[str, Any]]] = []

    def queue(self, *outputs: Any) -> None:
        self.outputs.extend(outputs)

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def generate_json(self, prompt, media=None, response_schema=None):
        self.prompts.append(prompt)
        self.media.append(media)
        self.schemas.append(response_schema)
        # Yield so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        if not self.outputs:
            raise AssertionError("ScriptedInference ran out of outputs")
        output = self.outputs.pop(0)
        if isinstance(output, BaseException):
            raise output
        return output


class RecordingNotifier(INotifier):
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.sent: List[tuple] = []

    async def notify(self, investigation_id, audience, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("notification service down")
        self.sent.append((investigation_id, audience, message))

    def to(self, audience: MessageAudience) -> List[str]:
        return [message for _, a, message in self.sent if a == audience]


class FakeLedger(IPaymentLedger):
    def __init__(self, balance: int = 1000):
        self.balance = balance
        self.debits: List[tuple] = []

    async def debit(self, actor_id, amount, reason):
        if amount > self.balance:
            raise InsufficientFunds(
                f"Balance {self.balance} is below {amount}",
                context={"balance": self.balance, "amount": amount},
            )
        self.balance -= amount
        self.debits.append((actor_id, amount, reason))
        return f"txn_{len(self.debits)}"


# ============================================================
# Payload builders
# ============================================================

def condition(name: str = "Type 2 Diabetes", probability: int = 70) -> Dict[str, Any]:
    return {"condition": name, "probability": probability, "reasoning": f"Findings consistent with {name}"}


def intake_analysis(lab_tests=("Complete Blood Count", "Fasting Glucose"), probability: int = 70) -> Dict[str, Any]:
    return {
        "analysis_summary": "Fatigue and thirst for three weeks.",
        "potential_conditions": [condition(probability=probability)],
        "suggested_next_steps": {
            "preliminary_medications": [{"name": "Paracetamol", "dosage": "500mg as needed"}],
            "suggested_lab_tests": list(lab_tests),
        },
        "justification": "Glucose and blood count separate metabolic from infectious causes.",
        "urgency": "Medium",
        "follow_up_plan": "Request lab results within 3 days.",
    }


def refinement(final: bool = False, additional_tests=(), medications=(), urgency: str = "Medium",
               probability: int = 80) -> Dict[str, Any]:
    return {
        "refined_analysis": "Results narrow the differential.",
        "potential_conditions": [condition(probability=probability), condition("Hypothyroidism", 10)],
        "next_steps": {
            "additional_lab_tests": list(additional_tests),
            "medications": list(medications),
        },
        "is_final_diagnosis_possible": final,
        "justification": "Based on the submitted results.",
        "urgency": urgency,
    }


def completed_transcript(questions: int = INTERVIEW_QUESTION_COUNT) -> List[TranscriptMessage]:
    """Greeting, first complaint, then `questions` answered questions"""
    messages = [
        TranscriptMessage(role=TranscriptRole.INTERVIEWER, text="Hello, what brings you here?"),
        TranscriptMessage(role=TranscriptRole.PATIENT, text="I feel tired and thirsty all the time."),
    ]
    for number in range(1, questions + 1):
        messages.append(TranscriptMessage(role=TranscriptRole.INTERVIEWER, text=f"Question {number}?"))
        messages.append(TranscriptMessage(role=TranscriptRole.PATIENT, text=f"Answer {number}."))
    return messages


def lab_evidence(*tests: str, text: Optional[str] = None) -> Dict[str, Any]:
    evidence: Dict[str, Any] = {
        "lab_results": [
            {"test_name": name, "image_reference": f"https://files.example/{name.replace(' ', '_')}.png"}
            for name in tests
        ],
    }
    if text is not None:
        evidence["field_report"] = {"text": text}
    return evidence


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def store():
    return InMemoryInvestigationStore()


@pytest.fixture
def inference():
    return ScriptedInference()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def workflow_settings():
    return WorkflowSettings(investigation_cost=500, allow_follow_up_override=False, notification_timeout=0.5)


@pytest.fixture
def workflow(store, inference, notifier, ledger, workflow_settings):
    return InvestigationWorkflow(
        store=store,
        refinement_engine=DiagnosticRefinementEngine(inference),
        access_policy=AllowAllAccessPolicy(),
        notifier=notifier,
        ledger=ledger,
        analyzer=IntakeAnalyzer(inference),
        settings=workflow_settings,
    )


@pytest.fixture
def open_case(workflow, inference):
    """Factory opening an UNDER_REVIEW investigation for patient-1"""

    def _open(lab_tests=("Complete Blood Count", "Fasting Glucose")):
        inference.queue(intake_analysis(lab_tests=lab_tests))
        return run(workflow.open_investigation("patient-1", "Amina", completed_transcript()))

    return _open


@pytest.fixture
def completed_case(workflow, inference, open_case):
    """Factory driving one investigation through dispatch, one visit and finalization"""

    def _complete():
        investigation = open_case()
        investigation_id = investigation.investigation_id
        run(workflow.dispatch_field_visit(
            investigation_id, "clinician-1", "nurse-1",
            suggested_lab_tests=["Complete Blood Count", "Fasting Glucose"],
        ))
        inference.queue(refinement(final=True, medications=["Metformin 500mg twice daily"]))
        evidence = ContributedEvidence.model_validate(lab_evidence("Complete Blood Count", "Fasting Glucose"))
        run(workflow.submit_field_visit(investigation_id, "nurse-1", evidence))
        return run(workflow.finalize(investigation_id, "clinician-1", lifestyle_changes=["Daily walk"]))

    return _complete
