from __future__ import annotations

import re
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from kct_orders.domain_errors import DomainError
from kct_orders.models import CommunicationLog, WeddingPartyMember
from kct_orders.schemas import BulkPartyMemberData, PartyMemberData
from kct_orders.use_cases.party_members import (
    bulk_invite_party_members_use_case,
    generate_invite_code,
    get_party_members_use_case,
    invite_party_member_use_case,
    update_member_status_use_case,
)


class _QueryStub:
    def __init__(self, rows=None):
        self._rows = list(rows or [])

    def filter(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args, **_kwargs):
        return self

    def with_for_update(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class _SessionStub:
    def __init__(self, *, members=(), existing_emails=(), commit_error=None):
        self._commit_error = commit_error
        self._members = list(members)
        self._existing_emails = [(email,) for email in existing_emails]
        self.added = []
        self.commit_calls = 0
        self.rollback_calls = 0

    def query(self, entity):
        if entity is WeddingPartyMember.id:
            return _QueryStub()
        if entity is WeddingPartyMember.email:
            return _QueryStub(self._existing_emails)
        if entity is WeddingPartyMember:
            return _QueryStub(self._members)
        if entity is CommunicationLog:
            return _QueryStub()
        raise AssertionError(f"Unexpected query entity: {entity}")

    def add(self, obj):
        self.added.append(obj)

    def commit(self):
        self.commit_calls += 1
        if self._commit_error is not None:
            raise self._commit_error

    def rollback(self):
        self.rollback_calls += 1


def _member(**overrides):
    base = dict(
        id=uuid4(),
        wedding_id=uuid4(),
        first_name="Sam",
        last_name="Ortiz",
        email="sam@example.com",
        phone=None,
        role="groomsman",
        invite_code="ABCDEF123456",
        invite_status="pending",
        special_requests=None,
        invited_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        accepted_at=None,
        updated_at=None,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_invite_code_is_twelve_uppercase_alphanumerics() -> None:
    codes = {generate_invite_code() for _ in range(20)}

    assert all(re.fullmatch(r"[A-Z0-9]{12}", code) for code in codes)
    assert len(codes) > 1


def test_invite_creates_member_and_queues_invitation() -> None:
    wedding_id = uuid4()
    db = _SessionStub()
    data = PartyMemberData(
        wedding_id=wedding_id,
        first_name="Chris",
        email="  Chris@Example.com ",
        role="best_man",
    )

    result = invite_party_member_use_case(db=db, member_data=data)

    members = [obj for obj in db.added if isinstance(obj, WeddingPartyMember)]
    messages = [obj for obj in db.added if isinstance(obj, CommunicationLog)]
    assert len(members) == 1
    assert members[0].email == "chris@example.com"
    assert members[0].invite_status == "pending"
    assert result["invite_code"] == members[0].invite_code
    assert result["party_member"]["role"] == "best_man"
    assert len(messages) == 1
    assert messages[0].communication_type == "wedding_invitation"
    assert messages[0].recipient_email == "chris@example.com"
    assert members[0].invite_code in messages[0].message_content
    assert db.commit_calls == 1


def test_invite_rejects_email_already_on_the_wedding() -> None:
    existing = _member()
    db = _SessionStub(members=[existing])
    data = PartyMemberData(
        wedding_id=existing.wedding_id,
        first_name="Sam",
        email="SAM@example.com",
        role="groomsman",
    )

    with pytest.raises(DomainError) as exc:
        invite_party_member_use_case(db=db, member_data=data)

    assert exc.value.http_status == 409
    assert exc.value.code == "PARTY_MEMBER_ALREADY_INVITED"
    assert db.added == []
    assert db.rollback_calls == 1


def test_concurrent_duplicate_invite_is_conflict() -> None:
    db = _SessionStub(commit_error=IntegrityError("INSERT INTO wedding_party_members", {}, Exception("duplicate key")))
    data = PartyMemberData(
        wedding_id=uuid4(),
        first_name="Chris",
        email="chris@example.com",
        role="groomsman",
    )

    with pytest.raises(DomainError) as exc:
        invite_party_member_use_case(db=db, member_data=data)

    assert exc.value.http_status == 409
    assert exc.value.code == "PARTY_MEMBER_ALREADY_INVITED"
    assert exc.value.details == {"email": "chris@example.com"}
    assert db.rollback_calls == 1


def test_bulk_invite_reports_duplicates_per_item() -> None:
    wedding_id = uuid4()
    db = _SessionStub(existing_emails=["taken@example.com"])
    members = [
        BulkPartyMemberData(email="first@example.com", first_name="Alex"),
        BulkPartyMemberData(email="Taken@example.com", first_name="Jordan"),
        BulkPartyMemberData(email="third@example.com"),
    ]

    result = bulk_invite_party_members_use_case(db=db, wedding_id=wedding_id, members=members)

    assert result["total_count"] == 3
    assert result["sent_count"] == 2
    assert [item["success"] for item in result["results"]] == [True, False, True]
    assert result["results"][1]["error"] == "Already invited to this wedding"
    created = [obj for obj in db.added if isinstance(obj, WeddingPartyMember)]
    assert [member.email for member in created] == ["first@example.com", "third@example.com"]
    assert created[1].first_name == "Friend"


def test_bulk_invite_skips_repeated_email_within_batch() -> None:
    db = _SessionStub()
    members = [
        BulkPartyMemberData(email="twin@example.com"),
        BulkPartyMemberData(email="TWIN@example.com"),
        BulkPartyMemberData(email=None),
    ]

    result = bulk_invite_party_members_use_case(db=db, wedding_id=uuid4(), members=members)

    assert result["sent_count"] == 1
    assert result["results"][1]["error"] == "Already invited to this wedding"
    assert result["results"][2]["error"] == "Missing email"


def test_accepting_invite_sets_accepted_at() -> None:
    member = _member()
    db = _SessionStub(members=[member])

    result = update_member_status_use_case(db=db, party_member_id=member.id, invite_status="accepted")

    assert member.invite_status == "accepted"
    assert member.accepted_at is not None
    assert result["party_member"]["invite_status"] == "accepted"


def test_declining_invite_clears_accepted_at() -> None:
    member = _member(invite_status="accepted", accepted_at=datetime(2026, 2, 2, tzinfo=timezone.utc))
    db = _SessionStub(members=[member])

    update_member_status_use_case(db=db, party_member_id=member.id, invite_status="declined")

    assert member.invite_status == "declined"
    assert member.accepted_at is None


def test_update_status_unknown_member_is_not_found() -> None:
    db = _SessionStub()

    with pytest.raises(DomainError) as exc:
        update_member_status_use_case(db=db, party_member_id=uuid4(), invite_status="accepted")

    assert exc.value.http_status == 404
    assert exc.value.code == "PARTY_MEMBER_NOT_FOUND"


def test_get_party_members_serializes_rows() -> None:
    wedding_id = uuid4()
    members = [_member(wedding_id=wedding_id), _member(wedding_id=wedding_id, email="max@example.com", role="usher")]
    db = _SessionStub(members=members)

    result = get_party_members_use_case(db=db, wedding_id=wedding_id)

    assert result["success"] is True
    assert [member["email"] for member in result["party_members"]] == ["sam@example.com", "max@example.com"]
    assert result["party_members"][1]["role"] == "usher"
