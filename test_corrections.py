import pytest

from conftest import make_student
from records_cli.auth import Identity
from records_cli.context import build_services
from records_cli.db.config import create_engine_for_url, init_db
from records_cli.errors import AlreadyResolved, NotFound, ValidationError
from records_cli.utils.local_state import LocalState


@pytest.fixture
def record_id(services, year):
    return services.records.create(year, make_student(father_name="Slamet"))


def test_approved_correction_updates_the_record(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "father_name", "Slamet Riyadi", "Nama ayah salah ketik", user
    )

    pending = services.corrections.list_pending()
    assert [r.id for r in pending] == [request_id]
    request = pending[0]
    assert request.old_value == "Slamet"
    assert request.new_value == "Slamet Riyadi"
    assert request.student_name == "Budi Santoso"
    assert request.requested_by_user_name == "guru@sekolah.sch.id"
    assert request.status == "pending"

    resolved = services.corrections.approve(request_id, admin)

    assert resolved.status == "approved"
    assert resolved.approved_by_user_id == admin.uid
    assert resolved.approval_date is not None
    assert services.records.get(record_id).father_name == "Slamet Riyadi"
    assert services.corrections.list_pending() == []


def test_rejected_correction_leaves_the_record_alone(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "father_name", "Slamet Riyadi", "Nama ayah salah ketik", user
    )

    resolved = services.corrections.reject(request_id, admin)

    assert resolved.status == "rejected"
    assert services.records.get(record_id).father_name == "Slamet"


def test_a_request_is_resolved_only_once(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "class_label", "7B", "Siswa pindah kelas 7B", user
    )
    services.corrections.approve(request_id, admin)

    with pytest.raises(AlreadyResolved) as exc:
        services.corrections.reject(request_id, admin)

    assert exc.value.status == "approved"
    assert services.records.get(record_id).class_label == "7B"
    assert services.corrections.get(request_id).status == "approved"


def test_short_justification_is_rejected(services, record_id, user):
    with pytest.raises(ValidationError) as exc:
        services.corrections.submit(record_id, "father_name", "Slamet R", "typo", user)

    assert "notes" in exc.value.errors
    assert services.corrections.pending_count() == 0


def test_empty_value_and_unknown_field_are_rejected(services, record_id, user):
    with pytest.raises(ValidationError) as exc:
        services.corrections.submit(record_id, "shoe_size", "  ", "Ukuran sepatu berubah", user)

    assert set(exc.value.errors) == {"field", "new_value"}


def test_corrected_value_must_pass_field_rules(services, record_id, user):
    with pytest.raises(ValidationError) as exc:
        services.corrections.submit(record_id, "nisn", "12-34", "NISN salah input", user)

    assert exc.value.errors["new_value"] == "must contain digits only"


def test_immutable_fields_cannot_be_corrected(services, record_id, user):
    with pytest.raises(ValidationError) as exc:
        services.corrections.submit(
            record_id, "academic_year", "2025/2026", "Salah tahun ajaran", user
        )

    assert "field" in exc.value.errors


def test_submit_for_missing_record(services, year, user):
    with pytest.raises(NotFound):
        services.corrections.submit("missing", "father_name", "X Y", "Nama ayah salah ketik", user)


def test_unknown_request_id(services, admin):
    with pytest.raises(NotFound):
        services.corrections.approve("missing", admin)


def test_approval_is_atomic_when_record_is_gone(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "father_name", "Slamet Riyadi", "Nama ayah salah ketik", user
    )
    services.records.delete(record_id)

    with pytest.raises(NotFound):
        services.corrections.approve(request_id, admin)
    with pytest.raises(NotFound):
        services.corrections.reject(request_id, admin)

    assert services.corrections.get(request_id).status == "pending"


def test_old_value_is_not_rechecked_at_approval(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "father_name", "Slamet Riyadi", "Nama ayah salah ketik", user
    )
    services.records.update(record_id, {"father_name": "Slamet Santoso"})

    services.corrections.approve(request_id, admin)

    assert services.records.get(record_id).father_name == "Slamet Riyadi"


def test_pending_list_is_newest_first(services, record_id, user):
    first = services.corrections.submit(record_id, "class_label", "7B", "Pindah ke kelas 7B", user)
    second = services.corrections.submit(record_id, "class_label", "7C", "Pindah ke kelas 7C", user)

    assert [r.id for r in services.corrections.list_pending()] == [second, first]
    assert services.corrections.pending_count() == 2


def test_history_keeps_resolved_requests(services, record_id, user, admin):
    first = services.corrections.submit(record_id, "class_label", "7B", "Pindah ke kelas 7B", user)
    services.corrections.reject(first, admin)
    second = services.corrections.submit(record_id, "class_label", "7C", "Pindah ke kelas 7C", user)

    history = services.corrections.history(record_id)

    assert [(r.id, r.status) for r in history] == [(second, "pending"), (first, "rejected")]


def test_resolution_bumps_the_version(services, record_id, user, admin):
    request_id = services.corrections.submit(
        record_id, "class_label", "7B", "Pindah ke kelas 7B", user
    )
    before = services.corrections.get(request_id).version

    services.corrections.approve(request_id, admin)

    assert services.corrections.get(request_id).version == before + 1


def test_concurrent_resolution_lets_only_one_reviewer_win(tmp_path):
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'records.db'}")
    init_db(engine)
    winner = build_services(engine, LocalState(str(tmp_path / "winner")))
    record_id = winner.records.create("2024/2025", make_student(father_name="Slamet"))
    request_id = winner.corrections.submit(
        record_id,
        "father_name",
        "Slamet Riyadi",
        "Nama ayah salah ketik",
        Identity(uid="user-1"),
    )

    raced = []

    def racing_clock():
        # The other reviewer commits between our read and our write
        if not raced:
            raced.append(True)
            winner.corrections.reject(request_id, Identity(uid="admin-2"))
        return 1_700_000_000_000

    loser = build_services(engine, LocalState(str(tmp_path / "loser")), racing_clock)

    with pytest.raises(AlreadyResolved):
        loser.corrections.approve(request_id, Identity(uid="admin-1"))

    assert raced == [True]
    assert winner.records.get(record_id).father_name == "Slamet"
    request = winner.corrections.get(request_id)
    assert request.status == "rejected"
    assert request.approved_by_user_id == "admin-2"
    engine.dispose()


def test_submit_scoped_to_a_year_hides_other_years(services, year, user):
    other_id = services.records.create("2023/2024", make_student())

    with pytest.raises(NotFound):
        services.corrections.submit(
            other_id, "class_label", "9Z", "Pindah ke kelas 9Z", user, year=year
        )

    assert services.corrections.pending_count() == 0
