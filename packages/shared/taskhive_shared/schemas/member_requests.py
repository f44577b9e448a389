"""Join request schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import APIResponse, CamelModel, RequestStatus


class MemberRequestCreate(CamelModel):
    invite_code: Optional[str] = Field(default=None, max_length=32)


class MemberRequestCancel(CamelModel):
    organization_id: Optional[uuid.UUID] = None


class RequestOrg(CamelModel):
    id: str
    name: str
    handle: str


class RequestUser(CamelModel):
    id: str
    name: str
    email: str
    profile_picture: Optional[str] = None


class MemberRequestRead(CamelModel):
    id: str
    status: RequestStatus
    organization_id: str
    organization_name: Optional[str] = None


class MemberRequestCreateResponse(APIResponse):
    request: MemberRequestRead


class MemberRequestDetail(CamelModel):
    id: str
    status: RequestStatus
    organization: RequestOrg
    requested_at: datetime
    processed_at: Optional[datetime] = None


class MemberRequestStatusResponse(APIResponse):
    has_request: bool
    status: Optional[RequestStatus] = None
    request: Optional[MemberRequestDetail] = None


class PendingRequestItem(CamelModel):
    id: str
    user: RequestUser
    status: RequestStatus
    requested_at: datetime


class PendingRequestsResponse(APIResponse):
    requests: list[PendingRequestItem]
    count: int


class ProcessedRequest(CamelModel):
    id: str
    status: RequestStatus
    user_id: str
    organization_id: str
    processed_at: datetime
    processed_by: str


class MemberRequestProcessResponse(APIResponse):
    request: ProcessedRequest
