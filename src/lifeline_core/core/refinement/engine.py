"""
Diagnostic refinement engine.

Stateless: each call receives the full case context as text plus the new
evidence, and returns one validated RefinementResult. The caller owns all
persistence; a failed call leaves nothing behind.
"""

import logging

from lifeline_core.core.refinement.prompts import REFINEMENT_PROMPT, render_evidence
from lifeline_core.core.structured_output import request_structured
from lifeline_core.exceptions import RefinementUnavailable
from lifeline_core.interfaces import IInferenceClient
from lifeline_core.models import ContributedEvidence, RefinementResult

logger = logging.getLogger(__name__)


class DiagnosticRefinementEngine:
    """Turns a case context and new evidence into a refined analysis"""

    def __init__(self, inference: IInferenceClient):
        self.inference = inference

    async def refine(self, case_context: str, new_evidence: ContributedEvidence) -> RefinementResult:
        """
        Run one refinement round.

        Args:
            case_context: Rendered history of the investigation
            new_evidence: Evidence submitted in this round; lab-result images
                and field pictures are forwarded as media

        Returns:
            Strictly validated RefinementResult

        Raises:
            RefinementUnavailable: On any inference or validation failure
        """
        prompt = REFINEMENT_PROMPT.format(
            case_context=case_context,
            evidence=render_evidence(new_evidence),
        )

        result = await request_structured(
            self.inference,
            prompt,
            RefinementResult,
            media=new_evidence.media_references,
            error_cls=RefinementUnavailable,
            purpose="Diagnostic refinement",
        )

        leading = result.leading_condition
        logger.info(
            f"Refinement complete: final={result.is_final_diagnosis_possible}, "
            f"urgency={result.urgency.value}, "
            f"leading={leading.condition if leading else None}, "
            f"additional_tests={len(result.next_steps.additional_lab_tests)}"
        )
        return result
