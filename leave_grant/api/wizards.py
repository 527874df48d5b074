# ruff: noqa: B008, TC003
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status

from leave_grant.api.deps import AdminDep, WizardDep, require_admin, validate_company_scope
from leave_grant.config import get_settings
from leave_grant.db import SessionDep
from leave_grant.exceptions import SubmissionFailedError, UploadRejectedError
from leave_grant.models.enums import SubmitFailureKind, TemplateFormat
from leave_grant.schemas.grant import LeaveGrantResponse
from leave_grant.schemas.wizard import DraftUpdate, UploadResultResponse, WizardStateResponse
from leave_grant.services import grant as grant_service
from leave_grant.services.employee import get_employee_directory
from leave_grant.services.grant import SqlGrantStore
from leave_grant.services.leave_type import get_leave_type_catalog
from leave_grant.services.template import MEDIA_TYPES
from leave_grant.services.wizard import GrantWizard, get_wizard_registry

logger = logging.getLogger(__name__)

wizards_router = APIRouter(
    prefix="/companies/{company_id}/grant-wizards",
    tags=["grant-wizards"],
    dependencies=[Depends(validate_company_scope), Depends(require_admin)],
)

_FAILURE_STATUS = {
    SubmitFailureKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    SubmitFailureKind.CONFLICT: status.HTTP_409_CONFLICT,
    SubmitFailureKind.REJECTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def _build_state_response(wizard: GrantWizard) -> WizardStateResponse:
    issues = wizard.issues()
    return WizardStateResponse(
        id=wizard.id,
        company_id=wizard.company_id,
        current_step=int(wizard.current_step),
        step_name=wizard.current_step.name,
        can_proceed=not issues,
        can_submit=wizard.can_submit,
        submitting=wizard.submitting,
        issues=issues,
        draft=wizard.view(),
    )


@wizards_router.post("", response_model=WizardStateResponse, status_code=status.HTTP_201_CREATED)
async def open_wizard(auth: AdminDep) -> WizardStateResponse:
    """Open a grant wizard with an empty draft at step 1."""
    wizard = await GrantWizard.open(
        company_id=auth.company_id,
        actor_id=auth.user_id,
        directory=get_employee_directory(),
        catalog=get_leave_type_catalog(),
        settings=get_settings(),
    )
    get_wizard_registry().add(wizard)
    return _build_state_response(wizard)


@wizards_router.get("/{wizard_id}", response_model=WizardStateResponse)
async def get_wizard_state(wizard: WizardDep) -> WizardStateResponse:
    """Current step, issues and draft of a wizard."""
    return _build_state_response(wizard)


@wizards_router.patch("/{wizard_id}", response_model=WizardStateResponse)
async def update_draft(payload: DraftUpdate, wizard: WizardDep) -> WizardStateResponse:
    """Edit draft fields. Invalid values are kept and reported as issues."""
    wizard.apply(payload)
    return _build_state_response(wizard)


@wizards_router.post("/{wizard_id}/select-all", response_model=WizardStateResponse)
async def select_all_employees(
    wizard: WizardDep,
    department: str | None = Query(default=None),
) -> WizardStateResponse:
    """Select every employee from the wizard's directory snapshot."""
    wizard.select_all_employees(department)
    return _build_state_response(wizard)


@wizards_router.post("/{wizard_id}/advance", response_model=WizardStateResponse)
async def advance(wizard: WizardDep) -> WizardStateResponse:
    """Move to the next step. 409 if the current step is not valid."""
    wizard.advance()
    return _build_state_response(wizard)


@wizards_router.post("/{wizard_id}/retreat", response_model=WizardStateResponse)
async def retreat(wizard: WizardDep) -> WizardStateResponse:
    """Move back one step, keeping entered data."""
    wizard.retreat()
    return _build_state_response(wizard)


@wizards_router.delete("/{wizard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_wizard(wizard_id: uuid.UUID, auth: AdminDep) -> Response:
    """Cancel the wizard and discard its draft."""
    get_wizard_registry().discard(auth.company_id, wizard_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@wizards_router.get("/{wizard_id}/template")
async def download_template(
    wizard: WizardDep,
    fmt: TemplateFormat = Query(default=TemplateFormat.XLSX, alias="format"),
) -> Response:
    """Download the individual-mode template for the selected employees."""
    return Response(
        content=wizard.build_template(fmt),
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="leave_grant_template.{fmt.value}"'},
    )


@wizards_router.post("/{wizard_id}/upload", response_model=UploadResultResponse)
async def upload_grant_file(request: Request, wizard: WizardDep) -> UploadResultResponse:
    """Upload a completed template (xlsx or csv, raw request body).

    The whole file is rejected with row-level issues if any row is invalid.
    """
    content = await request.body()
    result = wizard.upload(content)
    if not result.accepted:
        raise UploadRejectedError(result.issues)
    return UploadResultResponse(accepted=True, line_count=len(result.lines), lines=wizard.ordered_lines())


@wizards_router.post("/{wizard_id}/submit", response_model=LeaveGrantResponse, status_code=status.HTTP_201_CREATED)
async def submit_wizard(wizard: WizardDep, session: SessionDep) -> LeaveGrantResponse:
    """Persist the grant from the review step and reset the wizard."""
    outcome = await wizard.submit(SqlGrantStore(session))
    if not outcome.ok or outcome.grant_id is None:
        failure = outcome.failure or SubmitFailureKind.REJECTED
        raise SubmissionFailedError(
            outcome.message or "Grant was not saved",
            status_code=_FAILURE_STATUS[failure],
            retryable=outcome.retryable,
        )
    return await grant_service.get_grant(session, wizard.company_id, outcome.grant_id)
