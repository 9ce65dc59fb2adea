"""Public notice-page endpoints addressed by the employee's notice token."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from enrollproof.api.deps import get_notice_actions
from enrollproof.services.engagement.notice_actions import NoticeActionService

router = APIRouter(tags=["notice"])


class EventRequest(BaseModel):
    token: str = ""
    event_type: str = ""


class TokenRequest(BaseModel):
    token: str = ""


class InsuranceSelectionRequest(BaseModel):
    token: str = ""
    selection: str = ""


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip")


@router.post("/events")
def record_event(
    body: EventRequest,
    request: Request,
    actions: NoticeActionService = Depends(get_notice_actions),
) -> dict[str, bool]:
    actions.record_event(
        body.token,
        body.event_type,
        user_agent=request.headers.get("user-agent"),
        ip=client_ip(request),
    )
    return {"ok": True}


@router.post("/opt-out")
def opt_out(body: TokenRequest, actions: NoticeActionService = Depends(get_notice_actions)) -> dict[str, bool]:
    actions.opt_out(body.token)
    return {"ok": True}


@router.post("/opt-in")
def opt_in(body: TokenRequest, actions: NoticeActionService = Depends(get_notice_actions)) -> dict[str, bool]:
    actions.opt_in(body.token)
    return {"ok": True}


@router.post("/insurance-selection")
def insurance_selection(
    body: InsuranceSelectionRequest,
    actions: NoticeActionService = Depends(get_notice_actions),
) -> dict[str, object]:
    choice = actions.select_insurance(body.token, body.selection)
    return {"ok": True, "selection": choice.value}
