"""Plain-text rendering of an investigation for inference prompts."""

from typing import List

from lifeline_core.models import (
    ClinicianPlan,
    FollowUpRequest,
    Investigation,
    RefinementResult,
    Step,
)


def _bullets(items: List[str], empty: str = "none") -> str:
    return ", ".join(items) if items else empty


def _render_plan(plan: ClinicianPlan) -> List[str]:
    lines = [
        "## Doctor's plan",
        f"Lab tests requested: {_bullets(plan.suggested_lab_tests)}",
        f"Preliminary medications: {_bullets(plan.preliminary_medications)}",
    ]
    if plan.required_feedback:
        lines.append(f"Required nurse feedback: {_bullets(sorted(m.value for m in plan.required_feedback))}")
    if plan.note_to_field_worker:
        lines.append(f"Note to nurse: {plan.note_to_field_worker}")
    return lines


def _render_follow_up(request: FollowUpRequest) -> str:
    modalities = _bullets(sorted(m.value for m in request.required_feedback))
    tests = _bullets(request.suggested_lab_tests)
    return f"Doctor's follow-up request (lab tests: {tests}; feedback: {modalities}): {request.note}"


def render_analysis(analysis: RefinementResult) -> List[str]:
    lines = [f"Analysis: {analysis.refined_analysis}", "Potential conditions:"]
    for condition in analysis.potential_conditions:
        lines.append(f"- {condition.condition} ({condition.probability}%): {condition.reasoning}")
    lines.extend([
        f"Final diagnosis possible: {'yes' if analysis.is_final_diagnosis_possible else 'no'}",
        f"Additional lab tests: {_bullets(analysis.next_steps.additional_lab_tests)}",
        f"Medications: {_bullets(analysis.next_steps.medications)}",
        f"Urgency: {analysis.urgency.value}",
        f"Justification: {analysis.justification}",
    ])
    return lines


def _render_step(number: int, step: Step) -> List[str]:
    lines = [f"## Round {number} ({step.step_type.value}, {step.timestamp.isoformat()})"]
    if step.clinician_request_snapshot is not None:
        lines.append(_render_follow_up(step.clinician_request_snapshot))

    evidence = step.contributed_evidence
    if evidence.lab_results:
        lines.append(f"Lab results submitted: {_bullets([r.test_name for r in evidence.lab_results])}")
    report = evidence.field_report
    if report is not None:
        if report.text:
            lines.append(f"Nurse report: {report.text}")
        if report.picture_refs:
            lines.append(f"Nurse pictures: {len(report.picture_refs)}")
        if report.video_refs:
            lines.append(f"Nurse videos: {len(report.video_refs)}")

    lines.extend(render_analysis(step.ai_analysis))
    return lines


def build_case_context(investigation: Investigation) -> str:
    """Full history of the case, oldest first"""
    lines = [
        f"# Investigation {investigation.investigation_id}",
        f"Patient: {investigation.patient_display_name}",
        f"Status: {investigation.status.value}",
        "",
        "## Intake interview",
        investigation.intake.as_text(),
    ]
    if investigation.intake.image_reference:
        lines.append("(The patient attached an image at intake.)")

    analysis = investigation.intake.analysis
    if analysis is not None:
        lines.extend(["", "## Initial AI analysis", analysis.analysis_summary, "Potential conditions:"])
        for condition in analysis.potential_conditions:
            lines.append(f"- {condition.condition} ({condition.probability}%): {condition.reasoning}")
        lines.append(f"Urgency: {analysis.urgency.value}")

    if investigation.clinician_plan is not None:
        lines.append("")
        lines.extend(_render_plan(investigation.clinician_plan))

    for number, step in enumerate(investigation.steps, start=1):
        lines.append("")
        lines.extend(_render_step(number, step))

    if investigation.follow_up_request is not None:
        lines.extend(["", "## Current request", _render_follow_up(investigation.follow_up_request)])

    if investigation.final_plan is not None:
        plan = investigation.final_plan
        lines.extend([
            "",
            "## Approved treatment plan",
            f"Diagnosis: {_bullets([f'{c.condition} ({c.probability}%)' for c in plan.conditions])}",
            f"Medications: {_bullets(plan.medications)}",
            f"Lifestyle changes: {_bullets(plan.lifestyle_changes)}",
        ])
        if plan.clinician_note:
            lines.append(f"Doctor's note: {plan.clinician_note}")

    return "\n".join(lines)
