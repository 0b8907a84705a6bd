"""Initial case analysis from a completed intake interview."""

import logging
from typing import Optional

from lifeline_core.core.structured_output import request_structured
from lifeline_core.interfaces import IInferenceClient
from lifeline_core.models import IntakeAnalysis, IntakeRecord

logger = logging.getLogger(__name__)

# Below this probability the leading condition is not considered confirmed
CONFIRMATION_THRESHOLD = 95

DEFAULT_LAB_PANEL = "General Health Panel (Complete Blood Count, Metabolic Panel)"

ANALYSIS_PROMPT = """You are a highly intelligent AI diagnostic doctor. Your role is to analyze a completed patient interview and prepare a case file that helps a human doctor decide the NEXT STEPS of an investigation. You do not make the final diagnosis.

**CRITICAL RULE: DO NOT PRESCRIBE A FULL TREATMENT PLAN.** Until a diagnosis is confirmed with lab results you may only suggest medications for critical symptom relief (like pain management). Focus on the lab tests needed to get a definitive answer.

**Patient Interview Transcript:**
{transcript}
{image_note}
**Output Instructions:**
1. analysis_summary: A summary that synthesizes the interview for a human doctor.
2. potential_conditions: Candidate conditions, each with an integer probability (0-100) and reasoning.
3. suggested_next_steps.suggested_lab_tests: Specific lab tests that confirm or rule out the candidates. Suggest at least one test if the diagnosis is not certain.
4. suggested_next_steps.preliminary_medications: Only for urgent symptom relief, each with a name and a dosage. Empty if none are needed.
5. justification: Why these next steps were chosen.
6. urgency: One of "Low", "Medium", "High", "Critical".
7. follow_up_plan: e.g. "Request lab results within 3 days."

Respond with a single JSON object."""


class IntakeAnalyzer:
    """Prepares the IntakeAnalysis a clinician reviews before dispatch"""

    def __init__(self, inference: IInferenceClient):
        self.inference = inference

    async def analyze(self, intake: IntakeRecord) -> IntakeAnalysis:
        """
        Analyze a completed interview.

        Raises:
            InferenceUnavailable: If no valid analysis came back
        """
        prompt = ANALYSIS_PROMPT.format(
            transcript=intake.as_text(),
            image_note="\nThe patient attached an image of the concern (see attached media).\n"
            if intake.image_reference else "",
        )
        media = [intake.image_reference] if intake.image_reference else None

        analysis = await request_structured(
            self.inference,
            prompt,
            IntakeAnalysis,
            media=media,
            purpose="Intake analysis",
        )
        return self._ensure_lab_tests(analysis)

    @staticmethod
    def _ensure_lab_tests(analysis: IntakeAnalysis) -> IntakeAnalysis:
        """An unconfirmed case always suggests at least one lab test"""
        steps = analysis.suggested_next_steps
        uncertain = any(c.probability < CONFIRMATION_THRESHOLD for c in analysis.potential_conditions)
        if not uncertain or steps.suggested_lab_tests:
            return analysis

        logger.info("Intake analysis suggested no lab tests for an unconfirmed case; adding default panel")
        return analysis.model_copy(update={
            "suggested_next_steps": steps.model_copy(update={"suggested_lab_tests": [DEFAULT_LAB_PANEL]}),
        })
