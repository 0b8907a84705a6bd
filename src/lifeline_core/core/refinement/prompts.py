"""Prompt templates for diagnostic refinement"""

from typing import List

from lifeline_core.models import ContributedEvidence

REFINEMENT_PROMPT = """You are a world-class AI diagnostician. An investigation is in progress: the patient was interviewed, a doctor reviewed the case and a nurse has now collected new evidence. Your task is to refine the diagnosis with this evidence.

**Full Investigation Context (interview, doctor's plan, previous rounds):**
{case_context}

**Newly Submitted Evidence:**
{evidence}

**Your Task:**
1. refined_analysis: Meticulously analyze the new evidence (attached images are in the order listed above). Explain how it confirms, rules out or modifies the previous assessment. This is for the human doctor.
2. potential_conditions: The full, updated list of candidate conditions. Each has an integer probability from 0 to 100 and a reasoning that cites the evidence. This list replaces the previous one.
3. is_final_diagnosis_possible: true ONLY if no further evidence is needed to reach a diagnosis.
4. next_steps.additional_lab_tests: The lab tests still needed. MUST be empty when is_final_diagnosis_possible is true, and non-empty otherwise.
5. next_steps.medications: When the diagnosis is final, the definitive medications with dosage and frequency. Otherwise only medications for symptom relief.
6. justification: The rationale for your verdict and next steps.
7. urgency: Re-assess from scratch, one of "Low", "Medium", "High", "Critical".

Respond with a single JSON object. Do not invent results that are not in the evidence."""


def render_evidence(evidence: ContributedEvidence) -> str:
    """Describe the evidence bundle; image numbers match the attached media order"""
    lines: List[str] = []
    image_number = 0

    if evidence.lab_results:
        lines.append("Lab results:")
        for result in evidence.lab_results:
            image_number += 1
            lines.append(f"- {result.test_name} (image {image_number})")

    report = evidence.field_report
    if report is not None:
        if report.text and report.text.strip():
            lines.append(f"Nurse report: {report.text.strip()}")
        pictures = [ref for ref in report.picture_refs if ref.strip()]
        if pictures:
            first = image_number + 1
            image_number += len(pictures)
            lines.append(f"Nurse pictures: images {first}-{image_number}" if len(pictures) > 1
                         else f"Nurse picture: image {first}")
        videos = [ref for ref in report.video_refs if ref.strip()]
        if videos:
            lines.append(f"Nurse videos (not attached, references only): {', '.join(videos)}")

    return "\n".join(lines) if lines else "(no evidence)"
