"""
Intake interviewer.

Runs the fixed-length intake chat: a greeting, then exactly
INTERVIEW_QUESTION_COUNT questions, each chosen by the model from the
conversation so far. The question count is derived from the transcript on
every call, so the model never decides where the interview stands.
"""

import logging
from typing import List, Sequence

from lifeline_core.core.structured_output import request_structured
from lifeline_core.exceptions import InvalidTransition
from lifeline_core.interfaces import IInferenceClient
from lifeline_core.models import (
    INTERVIEW_QUESTION_COUNT,
    InterviewQuestionOutput,
    InterviewTurn,
    TranscriptMessage,
    TranscriptRole,
)

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm your AI Investigator. To get started, please briefly describe "
    "your main health concern."
)

FINAL_INVITATION = (
    "Is there anything else you think is important for me to know about your "
    "condition before we proceed?"
)

_INVITATION_MARKERS = ("anything else", "anything more", "final remarks")

INTERVIEW_PROMPT = """You are a highly skilled and empathetic AI Doctor conducting an initial health consultation via chat. Your goal is to gather detailed information about the patient's condition over exactly {total} questions.

**Your Instructions:**
1. **Review the History:** Carefully read the entire chat history below.
2. **Ask One Question at a Time:** Based on the patient's previous answers, formulate the single most important and logical next question. It must be clear, concise and easy for a non-medical person to understand.
3. **Stay Focused:** Guide the conversation to understand the symptoms, their duration, severity and any related factors.
4. **Do not diagnose** and do not recommend treatment during the interview.

You are now asking question {index} of {total}.
{final_instruction}

**Chat History:**
{history}

Respond with a JSON object containing only "question"."""

_FINAL_INSTRUCTION = (
    "This is the FINAL question. It must naturally conclude the interview and invite "
    "the patient to share anything else they think is important before the case is "
    "sent to a doctor."
)


def count_questions(transcript: Sequence[TranscriptMessage]) -> int:
    """Count interviewer questions in a transcript.

    Interviewer messages before the first patient message are the greeting and
    do not count.
    """
    seen_patient = False
    count = 0
    for message in transcript:
        if message.role == TranscriptRole.PATIENT:
            seen_patient = True
        elif seen_patient:
            count += 1
    return count


def is_interview_complete(transcript: Sequence[TranscriptMessage]) -> bool:
    """All questions were asked and the patient answered the last one"""
    return (
        bool(transcript)
        and count_questions(transcript) == INTERVIEW_QUESTION_COUNT
        and transcript[-1].role == TranscriptRole.PATIENT
    )


def render_history(transcript: Sequence[TranscriptMessage]) -> str:
    lines = []
    for message in transcript:
        speaker = "Patient" if message.role == TranscriptRole.PATIENT else "AI Doctor"
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


class IntakeInterviewer:
    """Produces the next interviewer turn of an intake chat"""

    def __init__(self, inference: IInferenceClient):
        self.inference = inference

    @staticmethod
    def greeting() -> TranscriptMessage:
        """Opening message; not counted as a question"""
        return TranscriptMessage(role=TranscriptRole.INTERVIEWER, text=GREETING)

    @staticmethod
    def count_questions(transcript: Sequence[TranscriptMessage]) -> int:
        return count_questions(transcript)

    async def next_turn(self, transcript: List[TranscriptMessage]) -> InterviewTurn:
        """
        Ask the model for the next question.

        Args:
            transcript: Full chat so far, ending with a patient answer

        Returns:
            InterviewTurn with question_index computed from the transcript

        Raises:
            InvalidTransition: If the interview is already over or the last
                message is not a patient answer
            InferenceUnavailable: If the model gave no usable question
        """
        if not transcript or transcript[-1].role != TranscriptRole.PATIENT:
            raise InvalidTransition(
                "The next question can only follow a patient answer",
                context={"messages": len(transcript)},
            )

        asked = count_questions(transcript)
        if asked >= INTERVIEW_QUESTION_COUNT:
            raise InvalidTransition(
                f"Interview already has {asked} questions",
                context={"questions_asked": asked},
            )

        index = asked + 1
        is_final = index == INTERVIEW_QUESTION_COUNT

        prompt = INTERVIEW_PROMPT.format(
            total=INTERVIEW_QUESTION_COUNT,
            index=index,
            final_instruction=_FINAL_INSTRUCTION if is_final else "",
            history=render_history(transcript),
        )

        output = await request_structured(
            self.inference,
            prompt,
            InterviewQuestionOutput,
            purpose="Intake interview",
        )

        question = output.question
        if is_final and not any(marker in question.lower() for marker in _INVITATION_MARKERS):
            question = f"{question} {FINAL_INVITATION}"

        logger.debug(f"Interview question {index}/{INTERVIEW_QUESTION_COUNT} generated")
        return InterviewTurn(question=question, question_index=index, is_final=is_final)
