from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.master_document import MasterDocumentCreate, MasterDocumentStatus
from app.services.document_errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    NotInitializedError,
)
from app.services.document_numbering_service import DocumentNumberingService
from app.services.master_document_service import MasterDocumentService

PROJECT_ID = "proj-1"


def test_create_assigns_number_and_defaults(db_session, make_document):
    first = make_document("Heat and material balance", assigned_to=["eng@example.com"])
    second = make_document("Site survey", discipline_code="00", sub_code="C")

    assert first.document_number == "PRJ-01-001"
    assert first.sequence_number == "001"
    assert first.discipline_name == "Process"
    assert first.status == "DRAFT"
    assert first.current_revision == "R0"
    assert first.predecessors == [] and first.successors == []
    assert first.created_by == "engineer@example.com"

    assert second.document_number == "PRJ-00-C-001"
    assert second.sub_code == "C"
    assert second.discipline_name == "Client Inputs"


def test_create_without_numbering_config(db_session):
    with pytest.raises(NotInitializedError):
        MasterDocumentService.create_master_document(
            db_session,
            "unconfigured",
            MasterDocumentCreate(discipline_code="01", document_title="Orphan"),
            created_by="engineer@example.com",
        )


def test_status_legacy_names_are_normalized():
    assert MasterDocumentStatus.normalize("not_started") is MasterDocumentStatus.DRAFT
    assert MasterDocumentStatus.normalize("CLIENT_REVIEW") is MasterDocumentStatus.UNDER_REVIEW
    with pytest.raises(ValueError):
        MasterDocumentStatus.normalize("SHIPPED")


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("DRAFT", "IN_PROGRESS", True),
        ("DRAFT", "APPROVED", False),
        ("UNDER_REVIEW", "REJECTED", True),
        ("REJECTED", "IN_PROGRESS", True),
        ("APPROVED", "ACCEPTED", True),
        ("ACCEPTED", "IN_PROGRESS", False),
        ("ON_HOLD", "IN_PROGRESS", True),
        ("CANCELLED", "DRAFT", False),
        ("SUBMITTED", "SUBMITTED", True),
    ],
)
def test_status_transition_table(current, target, allowed):
    assert MasterDocumentStatus(current).can_transition_to(MasterDocumentStatus(target)) is allowed


def test_status_update_stamps_dates_and_revision(db_session, make_document, advance_status):
    document = make_document("Piping layout", discipline_code="04")

    started = advance_status(document.id, "IN_PROGRESS")
    assert started.actual_start_date is not None
    first_start = started.actual_start_date

    advance_status(document.id, "SUBMITTED", "UNDER_REVIEW")
    reworked = advance_status(document.id, "IN_PROGRESS", revision="R1")
    assert reworked.actual_start_date == first_start
    assert reworked.current_revision == "R1"

    done = advance_status(document.id, "SUBMITTED", "UNDER_REVIEW", "APPROVED", "ACCEPTED")
    assert done.status == "ACCEPTED"
    assert done.actual_completion_date is not None
    assert done.last_changed_by == "engineer@example.com"


def test_invalid_transition_is_rejected(db_session, make_document):
    document = make_document("Cable schedule", discipline_code="05")
    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        MasterDocumentService.update_document_status(
            db_session, PROJECT_ID, document.id, "ACCEPTED", changed_by="pm@example.com"
        )
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
    assert exc_info.value.details == {"from_status": "DRAFT", "to_status": "ACCEPTED"}


def test_soft_delete_hides_document(db_session, make_document):
    keep = make_document("Keep")
    drop = make_document("Drop")

    MasterDocumentService.soft_delete_master_document(db_session, PROJECT_ID, drop.id, "pm@example.com")
    db_session.commit()

    listed = MasterDocumentService.list_master_documents(db_session, PROJECT_ID)
    assert [d.id for d in listed] == [keep.id]
    deleted = MasterDocumentService.list_master_documents(db_session, PROJECT_ID, only_deleted=True)
    assert [d.id for d in deleted] == [drop.id]
    assert deleted[0].deleted_by == "pm@example.com"

    with pytest.raises(NotFoundError):
        MasterDocumentService.get_master_document(db_session, PROJECT_ID, drop.id)
    assert MasterDocumentService.get_master_document(
        db_session, PROJECT_ID, drop.id, include_deleted=True
    ).is_deleted is True


def test_list_filters(db_session, make_document, advance_status):
    process = make_document("Process", assigned_to=["a@example.com"])
    make_document("Mechanical", discipline_code="02", assigned_to=["b@example.com"])
    advance_status(process.id, "IN_PROGRESS")

    by_status = MasterDocumentService.list_master_documents(db_session, PROJECT_ID, status="IN_PROGRESS")
    assert [d.document_title for d in by_status] == ["Process"]
    by_discipline = MasterDocumentService.list_master_documents(
        db_session, PROJECT_ID, discipline_code="02"
    )
    assert [d.document_title for d in by_discipline] == ["Mechanical"]
    by_assignee = MasterDocumentService.list_master_documents(
        db_session, PROJECT_ID, assigned_to="b@example.com"
    )
    assert [d.document_title for d in by_assignee] == ["Mechanical"]


def test_statistics(db_session, make_document, advance_status):
    past = datetime.now(timezone.utc) - timedelta(days=3)
    done = make_document("Done")
    make_document("Late", due_date=past)
    make_document("Open", discipline_code="03")
    advance_status(done.id, "IN_PROGRESS", "SUBMITTED", "UNDER_REVIEW", "APPROVED")

    stats = MasterDocumentService.get_document_statistics(db_session, PROJECT_ID)
    assert stats["total"] == 3
    assert stats["by_status"] == {"APPROVED": 1, "DRAFT": 2}
    assert stats["by_discipline"] == {"01": 2, "03": 1}
    assert stats["overdue"] == 1
    assert stats["completion_rate"] == pytest.approx(100 / 3)


def test_failed_create_does_not_consume_a_number(db_session, make_document, monkeypatch):
    make_document("First")

    def _boom(*_args, **_kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr("app.services.master_document_service.parse_document_number", _boom)
    with pytest.raises(RuntimeError):
        MasterDocumentService.create_master_document(
            db_session,
            PROJECT_ID,
            MasterDocumentCreate(discipline_code="01", document_title="Never stored"),
            created_by="engineer@example.com",
        )
    db_session.rollback()

    assert DocumentNumberingService.get_next_sequence_number(db_session, PROJECT_ID, "01") == 2
    assert len(MasterDocumentService.list_master_documents(db_session, PROJECT_ID)) == 1
