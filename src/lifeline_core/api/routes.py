"""
HTTP routes for the investigation workflow.

Actor identity comes from the gateway's X-User-ID header and the acting role
must be among the gateway-granted X-User-Roles. Business rules stay in the
workflow; handlers only translate between HTTP and workflow calls.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from lifeline_core.api.dependencies import LifelineServices, get_services
from lifeline_core.api.schemas import (
    DispatchBody,
    FinalizeBody,
    FollowUpBody,
    GreetingResponse,
    OpenInvestigationBody,
    RejectBody,
    TranscriptBody,
)
from lifeline_core.auth import RequestContext, get_request_context, require_role
from lifeline_core.auth.request_context import KNOWN_ROLES
from lifeline_core.models import (
    CaseMessage,
    CaseReview,
    ContributedEvidence,
    InterviewTurn,
    Investigation,
    ProgressAssessment,
    VitalsReading,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _acting_role(context: RequestContext, role: str) -> str:
    if role not in KNOWN_ROLES:
        logger.warning(f"Actor {context.user_id} asked to act as unknown role {role!r}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role '{role}'")
    require_role(context, role)
    return role


# ============================================================
# Intake
# ============================================================

@router.post("/intake/start", response_model=GreetingResponse)
async def start_intake(
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "patient")
    greeting = await services.workflow.start_intake(context.user_id)
    return GreetingResponse(greeting=greeting)


@router.post("/intake/next-question", response_model=InterviewTurn)
async def next_question(
    body: TranscriptBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "patient")
    return await services.interviewer.next_turn(body.transcript)


@router.post("/investigations", response_model=Investigation, status_code=status.HTTP_201_CREATED)
async def open_investigation(
    body: OpenInvestigationBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "patient")
    return await services.workflow.open_investigation(
        patient_id=context.user_id,
        patient_display_name=body.patient_display_name,
        transcript=body.transcript,
        image_reference=body.image_reference,
    )


# ============================================================
# Reads
# ============================================================

@router.get("/investigations/{investigation_id}", response_model=Investigation)
async def get_investigation(
    investigation_id: str,
    role: str = Query(...),
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    acting = _acting_role(context, role)
    return await services.workflow.get_investigation(investigation_id, context.user_id, acting)


@router.get("/investigations/{investigation_id}/messages", response_model=List[CaseMessage])
async def list_messages(
    investigation_id: str,
    role: str = Query(...),
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    acting = _acting_role(context, role)
    return await services.workflow.list_messages(investigation_id, context.user_id, acting)


# ============================================================
# Clinician
# ============================================================

@router.post("/investigations/{investigation_id}/dispatch", response_model=Investigation)
async def dispatch_field_visit(
    investigation_id: str,
    body: DispatchBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "clinician")
    return await services.workflow.dispatch_field_visit(
        investigation_id,
        clinician_id=context.user_id,
        field_worker_id=body.field_worker_id,
        suggested_lab_tests=body.suggested_lab_tests,
        preliminary_medications=body.preliminary_medications,
        note_to_field_worker=body.note_to_field_worker,
        required_feedback=body.required_feedback,
    )


@router.post("/investigations/{investigation_id}/reject", response_model=Investigation)
async def reject(
    investigation_id: str,
    body: RejectBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "clinician")
    return await services.workflow.reject(investigation_id, context.user_id, note=body.note)


@router.post("/investigations/{investigation_id}/follow-up", response_model=Investigation)
async def request_follow_up(
    investigation_id: str,
    body: FollowUpBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "clinician")
    return await services.workflow.request_follow_up(
        investigation_id,
        clinician_id=context.user_id,
        note=body.note,
        required_feedback=body.required_feedback,
        field_worker_id=body.field_worker_id,
        suggested_lab_tests=body.suggested_lab_tests,
    )


@router.post("/investigations/{investigation_id}/finalize", response_model=Investigation)
async def finalize(
    investigation_id: str,
    body: FinalizeBody,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "clinician")
    return await services.workflow.finalize(
        investigation_id,
        clinician_id=context.user_id,
        medications=body.medications,
        lifestyle_changes=body.lifestyle_changes,
        clinician_note=body.clinician_note,
    )


@router.post("/investigations/{investigation_id}/review", response_model=CaseReview)
async def review_case(
    investigation_id: str,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "clinician")
    return await services.reviewer.review(investigation_id, context.user_id)


# ============================================================
# Field worker
# ============================================================

@router.post("/investigations/{investigation_id}/field-visits", response_model=Investigation)
async def submit_field_visit(
    investigation_id: str,
    evidence: ContributedEvidence,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "field_worker")
    return await services.workflow.submit_field_visit(investigation_id, context.user_id, evidence)


# ============================================================
# Patient check-ins
# ============================================================

@router.post("/investigations/{investigation_id}/check-ins", response_model=ProgressAssessment)
async def check_in(
    investigation_id: str,
    vitals: VitalsReading,
    context: RequestContext = Depends(get_request_context),
    services: LifelineServices = Depends(get_services),
):
    require_role(context, "patient")
    return await services.monitor.check_in(investigation_id, context.user_id, vitals)
