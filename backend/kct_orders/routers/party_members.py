"""Wedding party member management endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import (
    BulkInvitePartyMembersRequest,
    GetPartyMembersRequest,
    InvitePartyMemberRequest,
    PartyMemberBody,
    UpdateMemberStatusRequest,
)
from ..use_cases import party_members

router = APIRouter(tags=["party-member-management"])


@router.post("/party-member-management")
def party_member_management(
    body: PartyMemberBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    request = body.root
    if isinstance(request, InvitePartyMemberRequest):
        data = party_members.invite_party_member_use_case(db=db, member_data=request.member_data)
    elif isinstance(request, BulkInvitePartyMembersRequest):
        data = party_members.bulk_invite_party_members_use_case(
            db=db,
            wedding_id=request.wedding_id,
            members=request.members,
        )
    elif isinstance(request, GetPartyMembersRequest):
        data = party_members.get_party_members_use_case(db=db, wedding_id=request.wedding_id)
    elif isinstance(request, UpdateMemberStatusRequest):
        data = party_members.update_member_status_use_case(
            db=db,
            party_member_id=request.party_member_id,
            invite_status=request.member_data.invite_status,
        )
    return {"data": data}
