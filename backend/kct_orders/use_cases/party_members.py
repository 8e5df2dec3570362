"""Wedding party member invitations."""
from __future__ import annotations

import logging
import secrets
import string
import uuid
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import DomainError
from ..models import WeddingPartyMember
from ..schemas import BulkPartyMemberData, PartyMemberData, PartyMemberResponse, dump
from ..services.notifications import enqueue_communication, render_wedding_invitation
from ..services.order_state import now_utc
from ..unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 12


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _unused_invite_code(db: Session) -> str:
    while True:
        code = generate_invite_code()
        taken = db.query(WeddingPartyMember.id).filter(WeddingPartyMember.invite_code == code).first()
        if not taken:
            return code


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _add_member(
    db: Session,
    *,
    wedding_id: UUID,
    email: str,
    first_name: str,
    last_name: Optional[str],
    phone: Optional[str],
    role: str,
    special_requests: Optional[str],
    custom_message: Optional[str],
) -> WeddingPartyMember:
    member = WeddingPartyMember(
        id=uuid.uuid4(),
        wedding_id=wedding_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        role=role,
        invite_code=_unused_invite_code(db),
        invite_status="pending",
        special_requests=special_requests,
        invited_at=now_utc(),
    )
    db.add(member)

    rendered = render_wedding_invitation(
        first_name=first_name,
        role=role,
        invite_code=member.invite_code,
        custom_message=custom_message,
    )
    enqueue_communication(
        db,
        communication_type="wedding_invitation",
        idempotency_key=f"wedding_invitation:{wedding_id}:{email}",
        subject=rendered.subject,
        message_content=rendered.content,
        recipient_email=email,
        recipient_name=" ".join(filter(None, [first_name, last_name])) or None,
        trigger_reason="Wedding party invitation",
    )
    return member


def _existing_emails(db: Session, wedding_id: UUID) -> set[str]:
    rows = db.query(WeddingPartyMember.email).filter(WeddingPartyMember.wedding_id == wedding_id).all()
    return {_normalize_email(row[0]) for row in rows}


def _already_invited(email: str) -> DomainError:
    return DomainError(
        code="PARTY_MEMBER_ALREADY_INVITED",
        http_status=409,
        message="This email is already invited to the wedding",
        details={"email": email},
    )


def invite_party_member_use_case(*, db: Session, member_data: PartyMemberData) -> dict[str, Any]:
    email = _normalize_email(member_data.email)
    try:
        with UnitOfWork(db):
            duplicate = db.query(WeddingPartyMember).filter(
                WeddingPartyMember.wedding_id == member_data.wedding_id,
                func.lower(WeddingPartyMember.email) == email,
            ).first()
            if duplicate:
                raise _already_invited(email)
            member = _add_member(
                db,
                wedding_id=member_data.wedding_id,
                email=email,
                first_name=member_data.first_name,
                last_name=member_data.last_name,
                phone=member_data.phone,
                role=member_data.role,
                special_requests=member_data.special_requests,
                custom_message=member_data.custom_message,
            )
    except IntegrityError:
        # A concurrent invite for the same email committed first.
        db.rollback()
        raise _already_invited(email)
    logger.info("Invited %s to wedding %s", email, member_data.wedding_id)
    return {
        "success": True,
        "party_member": dump(PartyMemberResponse, member),
        "invite_code": member.invite_code,
        "message": "Party member invited successfully",
    }


def bulk_invite_party_members_use_case(
    *,
    db: Session,
    wedding_id: UUID,
    members: list[BulkPartyMemberData],
) -> dict[str, Any]:
    """Invite many members at once; each item succeeds or fails on its own."""
    results: list[dict[str, Any]] = []
    try:
        with UnitOfWork(db):
            taken = _existing_emails(db, wedding_id)
            for item in members:
                email = _normalize_email(item.email)
                if not email:
                    results.append({"email": item.email, "success": False, "error": "Missing email"})
                    continue
                if email in taken:
                    results.append({"email": email, "success": False, "error": "Already invited to this wedding"})
                    continue
                member = _add_member(
                    db,
                    wedding_id=wedding_id,
                    email=email,
                    first_name=item.first_name or "Friend",
                    last_name=item.last_name,
                    phone=item.phone,
                    role=item.role,
                    special_requests=item.special_requests,
                    custom_message=item.custom_message,
                )
                taken.add(email)
                results.append({"email": email, "success": True, "invite_code": member.invite_code})
    except IntegrityError:
        # A concurrent invite claimed one of the batch emails.
        db.rollback()
        raise DomainError(
            code="PARTY_MEMBER_ALREADY_INVITED",
            http_status=409,
            message="A member of this batch was invited concurrently",
            details={"wedding_id": str(wedding_id)},
        )

    sent = sum(1 for result in results if result["success"])
    logger.info("Bulk invite for wedding %s: %s/%s invited", wedding_id, sent, len(results))
    return {"success": True, "sent_count": sent, "total_count": len(results), "results": results}


def get_party_members_use_case(*, db: Session, wedding_id: UUID) -> dict[str, Any]:
    members = db.query(WeddingPartyMember).filter(
        WeddingPartyMember.wedding_id == wedding_id,
    ).order_by(WeddingPartyMember.invited_at.asc()).all()
    return {"success": True, "party_members": [dump(PartyMemberResponse, member) for member in members]}


def update_member_status_use_case(*, db: Session, party_member_id: UUID, invite_status: str) -> dict[str, Any]:
    with UnitOfWork(db):
        member = db.query(WeddingPartyMember).filter(
            WeddingPartyMember.id == party_member_id,
        ).with_for_update().first()
        if not member:
            raise DomainError(
                code="PARTY_MEMBER_NOT_FOUND",
                http_status=404,
                message="Party member not found",
                details={"party_member_id": str(party_member_id)},
            )
        now = now_utc()
        member.invite_status = invite_status
        member.accepted_at = now if invite_status == "accepted" else None
        member.updated_at = now
    return {"success": True, "party_member": dump(PartyMemberResponse, member)}
