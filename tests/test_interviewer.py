"""Test the intake interviewer question protocol"""

import pytest

from lifeline_core.core.interview import (
    FINAL_INVITATION,
    GREETING,
    IntakeInterviewer,
    count_questions,
    is_interview_complete,
)
from lifeline_core.exceptions import InferenceOutputError, InferenceUnavailable, InvalidTransition
from lifeline_core.models import INTERVIEW_QUESTION_COUNT, TranscriptMessage, TranscriptRole

from conftest import ScriptedInference, completed_transcript, run


def test_greeting_is_interviewer_message():
    greeting = IntakeInterviewer.greeting()
    assert greeting.role == TranscriptRole.INTERVIEWER
    assert greeting.text == GREETING


def test_greeting_is_not_counted():
    assert count_questions(completed_transcript(0)) == 0
    assert count_questions(completed_transcript(4)) == 4


def test_interview_complete_only_after_last_answer():
    transcript = completed_transcript()
    assert is_interview_complete(transcript)
    assert not is_interview_complete(transcript[:-1])
    assert not is_interview_complete(completed_transcript(INTERVIEW_QUESTION_COUNT - 1))


def test_first_question_has_index_one():
    inference = ScriptedInference({"question": "How long have you felt tired?"})
    turn = run(IntakeInterviewer(inference).next_turn(completed_transcript(0)))

    assert turn.question_index == 1
    assert not turn.is_final
    assert turn.question == "How long have you felt tired?"
    assert "question 1 of 15" in inference.prompts[0]


def test_index_comes_from_transcript_not_model():
    inference = ScriptedInference({"question": "Any fever?", "question_index": 1})
    turn = run(IntakeInterviewer(inference).next_turn(completed_transcript(6)))
    assert turn.question_index == 7


def test_final_question_is_flagged():
    inference = ScriptedInference({"question": "Is there anything else you would like to share?"})
    turn = run(IntakeInterviewer(inference).next_turn(completed_transcript(INTERVIEW_QUESTION_COUNT - 1)))

    assert turn.question_index == INTERVIEW_QUESTION_COUNT
    assert turn.is_final
    assert turn.question == "Is there anything else you would like to share?"
    assert "FINAL question" in inference.prompts[0]


def test_final_question_gets_invitation_when_missing():
    inference = ScriptedInference({"question": "Do you smoke?"})
    turn = run(IntakeInterviewer(inference).next_turn(completed_transcript(INTERVIEW_QUESTION_COUNT - 1)))
    assert turn.question.endswith(FINAL_INVITATION)


def test_no_question_after_interview_is_complete():
    inference = ScriptedInference({"question": "One more?"})
    with pytest.raises(InvalidTransition):
        run(IntakeInterviewer(inference).next_turn(completed_transcript()))
    assert inference.call_count == 0


def test_question_must_follow_patient_answer():
    transcript = completed_transcript(2)
    transcript.append(TranscriptMessage(role=TranscriptRole.INTERVIEWER, text="Pending question?"))
    with pytest.raises(InvalidTransition):
        run(IntakeInterviewer(ScriptedInference()).next_turn(transcript))


def test_blank_question_is_inference_failure():
    inference = ScriptedInference({"question": "   "})
    with pytest.raises(InferenceUnavailable):
        run(IntakeInterviewer(inference).next_turn(completed_transcript(1)))


def test_unparseable_output_is_inference_failure():
    inference = ScriptedInference(InferenceOutputError("not json"))
    with pytest.raises(InferenceUnavailable):
        run(IntakeInterviewer(inference).next_turn(completed_transcript(1)))
