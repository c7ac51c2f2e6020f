import pytest

from conftest import make_student
from records_cli.db.live import ChangeHub, LiveQuery
from records_cli.errors import NotFound
from records_cli.models import StudentRecord


def test_watch_count_starts_with_current_value(services, year):
    services.records.create(year, make_student())

    with services.records.watch_count(StudentRecord.academic_year == year) as live:
        assert next(live) == 1


def test_watch_count_follows_commits(services, year):
    with services.records.watch_count(StudentRecord.academic_year == year) as live:
        assert next(live) == 0

        record_id = services.records.create(year, make_student())
        assert live.poll() == 1

        services.records.delete(record_id)
        assert live.poll() == 0


def test_bursts_are_coalesced(services, year):
    with services.records.watch_count(StudentRecord.academic_year == year) as live:
        next(live)
        for _ in range(3):
            services.records.create(year, make_student())

        assert live.poll() == 3
        assert live.poll() is None


def test_unrelated_tables_do_not_wake_the_query(services, year, user):
    with services.records.watch_count(StudentRecord.academic_year == year) as live:
        next(live)
        services.roles.ensure_role(user)

        assert live.poll() is None


def test_failed_transactions_are_not_published(services, year):
    with services.records.watch_count(StudentRecord.academic_year == year) as live:
        next(live)
        with pytest.raises(NotFound):
            services.records.update("missing", {"class_label": "7A"})

        assert live.poll() is None


def test_cancel_unsubscribes(services, year):
    live = services.records.watch_count(StudentRecord.academic_year == year)
    assert services.hub.listener_count == 1
    next(live)

    live.cancel()
    services.records.create(year, make_student())

    assert services.hub.listener_count == 0
    assert live.active is False
    assert live.poll() is None
    assert list(live) == []


def test_watch_pending_emits_full_list(services, year, user, admin):
    record_id = services.records.create(year, make_student())

    with services.corrections.watch_pending() as live:
        assert next(live) == []

        request_id = services.corrections.submit(
            record_id, "class_label", "7B", "Pindah ke kelas 7B", user
        )
        assert [r.id for r in live.poll()] == [request_id]

        services.corrections.approve(request_id, admin)
        assert live.poll() == []


def test_watch_pending_count(services, year, user):
    record_id = services.records.create(year, make_student())

    with services.corrections.watch_pending_count() as live:
        assert next(live) == 0
        services.corrections.submit(record_id, "class_label", "7B", "Pindah ke kelas 7B", user)
        assert live.poll() == 1


def test_polling_picks_up_changes_made_elsewhere():
    hub = ChangeHub()
    values = [1]

    with LiveQuery(hub, ["students"], lambda: values[0], poll_interval=0.01) as live:
        assert next(live) == 1
        values[0] = 2
        assert next(live) == 2


def test_published_tables_are_filtered():
    hub = ChangeHub()
    calls = []

    def fetch():
        calls.append(1)
        return len(calls)

    with LiveQuery(hub, ["students"], fetch) as live:
        assert next(live) == 1
        hub.publish({"user_roles"})
        assert live.poll() is None
        hub.publish({"students", "user_roles"})
        assert live.poll() == 2
