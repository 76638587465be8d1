import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models.audit_log import AuditLog
from app.models.patient_profile import PatientProfile
from app.models.user import Role, User
from app.services.admin import (
    InvalidRoleError,
    InvalidTargetError,
    NotFoundError,
    reassign_patient,
)
from app.services.assigned_doctor_migration import migrate_assigned_doctor_ids


def assigned_ref(db, profile_id):
    return db.scalar(
        select(PatientProfile.assigned_doctor_ref).where(PatientProfile.id == profile_id)
    )


@pytest.fixture()
def doctors(make_doctor):
    make_doctor("U1", "P1")
    make_doctor("U2", "P2")
    make_doctor("U3", "P3", is_active=False)


def test_reassign_moves_patient_to_doctor_user_id(db, doctors, make_patient):
    make_patient("PAT1", "U1", profile_id="PP01")

    result = reassign_patient(db, "PAT1", "U2")

    assert result.patient_login_id == "PAT1"
    assert result.previous == "U1"
    assert result.new == "U2"
    assert assigned_ref(db, "PP01") == "U2"


def test_reassign_reports_legacy_value_as_stored(db, doctors, make_patient):
    make_patient("PAT1", "P1", profile_id="PP01")

    result = reassign_patient(db, "PAT1", "U2")

    assert result.previous == "P1"
    assert assigned_ref(db, "PP01") == "U2"


def test_reassign_accepts_doctor_login_id(db, doctors, make_patient):
    make_patient("PAT1", "U1", profile_id="PP01")

    result = reassign_patient(db, "PAT1", "doc-U2")

    assert result.new == "U2"
    assert assigned_ref(db, "PP01") == "U2"


def test_reassign_unknown_patient(db, doctors):
    with pytest.raises(NotFoundError) as exc:
        reassign_patient(db, "nobody", "U2")
    assert exc.value.status_code == 404
    assert exc.value.detail == "Patient not found"


def test_reassign_non_patient_login(db, doctors):
    with pytest.raises(InvalidRoleError) as exc:
        reassign_patient(db, "doc-U1", "U2")
    assert exc.value.status_code == 400
    assert exc.value.detail == "User is not a patient"


@pytest.mark.parametrize("target", ["U3", "ghost", "P2"])
def test_reassign_rejects_invalid_target(db, doctors, make_patient, target):
    make_patient("PAT1", "U1", profile_id="PP01", user_id="PU1")

    with pytest.raises(InvalidTargetError) as exc:
        reassign_patient(db, "PAT1", target)

    assert exc.value.detail == "Invalid or inactive doctor"
    assert assigned_ref(db, "PP01") == "U1"


def test_reassign_rejects_patient_as_target(db, doctors, make_patient):
    make_patient("PAT1", "U1", profile_id="PP01")
    other, _ = make_patient("PAT2", "U1", profile_id="PP02")

    with pytest.raises(InvalidTargetError):
        reassign_patient(db, "PAT1", other.id)
    assert assigned_ref(db, "PP01") == "U1"


def test_reassign_after_migration_leaves_canonical_value(db, doctors, make_patient):
    make_patient("PAT1", "P1", profile_id="PP01")
    migrate_assigned_doctor_ids(db)

    result = reassign_patient(db, "PAT1", "U2")

    assert result.previous == "U1"
    assert migrate_assigned_doctor_ids(db).legacy_found == 0
    assert assigned_ref(db, "PP01") == "U2"


def test_reassign_leaves_user_row_alone(db, doctors, make_patient):
    user, _ = make_patient("PAT1", "U1", profile_id="PP01")
    user_id = user.id

    reassign_patient(db, "PAT1", "U2")

    stored = db.scalar(select(User).where(User.id == user_id))
    assert stored.role == Role.patient
    assert stored.is_active is True


def test_reassign_commits_audit_row_with_the_write(db, doctors, make_patient):
    make_patient("PAT1", "P1", profile_id="PP01")
    actor = db.scalar(select(User).where(User.id == "U1"))

    reassign_patient(db, "PAT1", "U2", actor=actor, request_id="req-7")

    entry = db.scalar(select(AuditLog).where(AuditLog.action == "PATIENT_REASSIGN"))
    assert entry.entity_id == "PAT1"
    assert entry.actor_user_id == "U1"
    assert entry.request_id == "req-7"
    assert entry.before_json == {"assigned_doctor_ref": "P1"}
    assert entry.after_json == {"assigned_doctor_ref": "U2"}


def test_failed_commit_leaves_neither_write_nor_audit(db, doctors, make_patient, monkeypatch):
    make_patient("PAT1", "U1", profile_id="PP01")

    def refuse_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", refuse_commit)
    with pytest.raises(OperationalError):
        reassign_patient(db, "PAT1", "U2")
    db.rollback()
    monkeypatch.undo()

    assert assigned_ref(db, "PP01") == "U1"
    assert db.scalar(select(func.count()).select_from(AuditLog)) == 0
