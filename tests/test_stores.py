"""
Test investigation stores

Both stores share the commit rules in persistence.base. The Redis store runs
against a small in-test double covering the commands it issues, including
WATCH/MULTI/EXEC version checks.
"""

from collections import defaultdict

import pytest
from redis.exceptions import WatchError

from lifeline_core.exceptions import ConcurrentModification, InvestigationNotFound
from lifeline_core.infrastructure.persistence import (
    InMemoryInvestigationStore,
    RedisInvestigationStore,
    check_commit_preconditions,
    summarize_message,
)
from lifeline_core.infrastructure.persistence.base import SUMMARY_MAX_CHARS
from lifeline_core.models import (
    CaseMessage,
    ClinicianPlan,
    ContributedEvidence,
    IntakeRecord,
    Investigation,
    InvestigationStatus,
    MessageAudience,
    RefinementResult,
    StatusTransition,
    Step,
    StepType,
)

from conftest import completed_transcript, lab_evidence, refinement, run


class FakeRedis:
    """In-memory double for the redis.asyncio commands the store issues"""

    def __init__(self):
        self.strings = {}
        self.lists = defaultdict(list)
        self.hashes = defaultdict(dict)
        self.versions = defaultdict(int)
        self.before_exec = None

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    # Commands are plain methods here; async wrappers below
    def _apply(self, name, *args, **kwargs):
        if name == "set":
            key, value = args
            if kwargs.get("nx") and key in self.strings:
                return None
            self.strings[key] = value
            self.versions[key] += 1
            return True
        if name == "get":
            return self.strings.get(args[0])
        if name == "exists":
            return int(args[0] in self.strings)
        if name == "rpush":
            key, *values = args
            self.lists[key].extend(values)
            self.versions[key] += 1
            return len(self.lists[key])
        if name == "lrange":
            key, start, end = args
            items = self.lists.get(key, [])
            return list(items[start:] if end == -1 else items[start:end + 1])
        if name == "llen":
            return len(self.lists.get(args[0], []))
        if name == "hset":
            key = args[0]
            self.hashes[key].update(kwargs["mapping"])
            self.versions[key] += 1
            return len(kwargs["mapping"])
        if name == "hgetall":
            return dict(self.hashes.get(args[0], {}))
        raise NotImplementedError(name)

    def __getattr__(self, name):
        async def command(*args, **kwargs):
            return self._apply(name, *args, **kwargs)
        return command


class FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._queue = []
        self._watched = {}
        self._immediate = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def watch(self, *keys):
        self._immediate = True
        self._watched = {key: self._redis.versions[key] for key in keys}

    def multi(self):
        self._immediate = False

    async def execute(self):
        if self._redis.before_exec is not None:
            hook, self._redis.before_exec = self._redis.before_exec, None
            hook(self._redis)
        if any(self._redis.versions[key] != version for key, version in self._watched.items()):
            raise WatchError("Watched variable changed.")
        results = [self._redis._apply(name, *args, **kwargs) for name, args, kwargs in self._queue]
        self._queue = []
        return results

    def __getattr__(self, name):
        def command(*args, **kwargs):
            if self._immediate:
                async def run_now():
                    return self._redis._apply(name, *args, **kwargs)
                return run_now()
            self._queue.append((name, args, kwargs))
            return self
        return command


def _new_investigation():
    return Investigation(
        patient_id="patient-1",
        patient_display_name="Amina",
        intake=IntakeRecord(transcript=completed_transcript()),
        status_history=[StatusTransition(
            from_status=None,
            to_status=InvestigationStatus.UNDER_REVIEW,
            triggered_by="patient-1",
        )],
    )


def _advance(investigation, to_status, **updates):
    data = investigation.model_dump()
    data.update(updates)
    data["status"] = to_status
    data["status_history"] = [
        *investigation.status_history,
        StatusTransition(from_status=investigation.status, to_status=to_status, triggered_by="someone"),
    ]
    return Investigation.model_validate(data)


def _dispatched(investigation):
    plan = ClinicianPlan(suggested_lab_tests=["CBC"], field_worker_id="nurse-1", dispatched_by="clinician-1")
    return _advance(investigation, InvestigationStatus.AWAITING_FIELD_VISIT, clinician_plan=plan)


def _with_step(investigation):
    step = Step(
        step_type=StepType.LAB_RESULT_SUBMISSION,
        submitted_by="nurse-1",
        contributed_evidence=ContributedEvidence.model_validate(lab_evidence("CBC")),
        ai_analysis=RefinementResult.model_validate(refinement()),
    )
    updated = _advance(investigation, InvestigationStatus.PENDING_FINAL_REVIEW, steps=[step])
    return updated, step


@pytest.fixture(params=["memory", "redis"])
def any_store(request):
    if request.param == "memory":
        return InMemoryInvestigationStore()
    return RedisInvestigationStore(FakeRedis())


# ========== Shared behaviour ==========

def test_create_and_get_round_trip(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))

    loaded = run(any_store.get(investigation.investigation_id))

    assert loaded.investigation_id == investigation.investigation_id
    assert loaded.status == InvestigationStatus.UNDER_REVIEW
    assert loaded.intake.transcript == investigation.intake.transcript


def test_create_twice_fails(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))
    with pytest.raises(ValueError):
        run(any_store.create(investigation))


def test_get_unknown_investigation(any_store):
    with pytest.raises(InvestigationNotFound):
        run(any_store.get("inv_000000000000"))


def test_commit_with_step(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))
    dispatched = _dispatched(investigation)
    run(any_store.commit(dispatched, expected_status=InvestigationStatus.UNDER_REVIEW))

    updated, step = _with_step(dispatched)
    run(any_store.commit(updated, expected_status=InvestigationStatus.AWAITING_FIELD_VISIT, new_step=step))

    loaded = run(any_store.get(investigation.investigation_id))
    assert loaded.status == InvestigationStatus.PENDING_FINAL_REVIEW
    assert [s.step_id for s in loaded.steps] == [step.step_id]
    assert loaded.steps[0].ai_analysis == step.ai_analysis


def test_commit_on_stale_status_is_rejected(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))
    dispatched = _dispatched(investigation)
    run(any_store.commit(dispatched, expected_status=InvestigationStatus.UNDER_REVIEW))

    with pytest.raises(ConcurrentModification):
        run(any_store.commit(dispatched, expected_status=InvestigationStatus.UNDER_REVIEW))


def test_messages_update_last_message_fields(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))

    run(any_store.append_message(CaseMessage(
        investigation_id=investigation.investigation_id,
        role="system",
        audience=MessageAudience.PATIENT,
        content="Your case has been sent for review.",
    )))

    messages = run(any_store.list_messages(investigation.investigation_id))
    loaded = run(any_store.get(investigation.investigation_id))
    assert [m.content for m in messages] == ["Your case has been sent for review."]
    assert loaded.last_message_summary == "Your case has been sent for review."
    assert loaded.last_message_timestamp == messages[0].created_at


def test_commit_keeps_last_message_fields(any_store):
    investigation = _new_investigation()
    run(any_store.create(investigation))
    run(any_store.append_message(CaseMessage(
        investigation_id=investigation.investigation_id,
        role="system",
        audience=MessageAudience.CLINICIAN,
        content="New case",
    )))

    committed = run(any_store.commit(_dispatched(investigation), expected_status=InvestigationStatus.UNDER_REVIEW))

    assert committed.last_message_summary == "New case"
    assert run(any_store.get(investigation.investigation_id)).last_message_summary == "New case"


def test_message_for_unknown_investigation(any_store):
    with pytest.raises(InvestigationNotFound):
        run(any_store.append_message(CaseMessage(
            investigation_id="inv_000000000000",
            role="system",
            audience=MessageAudience.PATIENT,
            content="hello",
        )))


# ========== Redis specifics ==========

def test_redis_interleaved_write_aborts_commit():
    redis = FakeRedis()
    store = RedisInvestigationStore(redis)
    investigation = _new_investigation()
    run(store.create(investigation))
    record_key = f"investigations:{investigation.investigation_id}"
    redis.before_exec = lambda r: r._apply("set", record_key, r.strings[record_key])

    with pytest.raises(ConcurrentModification):
        run(store.commit(_dispatched(investigation), expected_status=InvestigationStatus.UNDER_REVIEW))

    assert run(store.get(investigation.investigation_id)).status == InvestigationStatus.UNDER_REVIEW


def test_redis_record_excludes_steps():
    redis = FakeRedis()
    store = RedisInvestigationStore(redis)
    investigation = _new_investigation()
    run(store.create(investigation))

    raw = redis.strings[f"investigations:{investigation.investigation_id}"]
    assert '"steps"' not in raw
    assert '"last_message_summary"' not in raw


# ========== Commit rules ==========

def test_preconditions_detect_step_count_drift():
    investigation = _dispatched(_new_investigation())
    updated, step = _with_step(investigation)
    with pytest.raises(ConcurrentModification):
        check_commit_preconditions(
            investigation=updated,
            stored_status=InvestigationStatus.AWAITING_FIELD_VISIT,
            stored_step_count=1,
            expected_status=InvestigationStatus.AWAITING_FIELD_VISIT,
            new_step=step,
        )


def test_preconditions_require_new_step_last():
    investigation = _dispatched(_new_investigation())
    updated, _ = _with_step(investigation)
    other = updated.steps[0].model_copy(update={"step_id": "step_aaaaaaaaaaaa"})
    with pytest.raises(ValueError):
        check_commit_preconditions(
            investigation=updated,
            stored_status=InvestigationStatus.AWAITING_FIELD_VISIT,
            stored_step_count=0,
            expected_status=InvestigationStatus.AWAITING_FIELD_VISIT,
            new_step=other,
        )


def test_summary_is_single_line_and_truncated():
    assert summarize_message("Line one\n\nline   two") == "Line one line two"
    summary = summarize_message("word " * 100)
    assert len(summary) <= SUMMARY_MAX_CHARS
    assert summary.endswith("...")
