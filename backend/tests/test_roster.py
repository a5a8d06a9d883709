"""Test the roster read model, engagement recording and viewer enrichment."""

import pytest

from enrolldesk.errors import NotFound
from enrolldesk.services import enrichment, importer, roster
from enrolldesk.services.engagement import record_view


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Run the test against both store backends."""
    name = "store" if request.param == "memory" else "sql_store"
    return request.getfixturevalue(name)


@pytest.fixture
def roster_store(any_store):
    """Store holding two prospects and one enrolled student."""
    importer.import_students(any_store, [
        {"Email": "old@example.com", "First Name": "Olivia", "Enrolled": "false"},
        {"Email": "enrolled@example.com", "First Name": "Erin", "Enrolled": "true"},
    ])
    importer.import_students(any_store, [
        {"Email": "new@example.com", "First Name": "Nina", "Last Name": "New"},
    ])
    return any_store


def test_list_defaults_to_not_enrolled_newest_first(roster_store) -> None:
    students = roster.list_students(roster_store)

    assert [s.email for s in students] == ["new@example.com", "old@example.com"]
    assert all(s.viewers == [] for s in students)


def test_list_enrolled(roster_store) -> None:
    students = roster.list_students(roster_store, enrolled=True)

    assert [s.first_name for s in students] == ["Erin"]


def test_list_without_filter(roster_store) -> None:
    students = roster.list_students(roster_store, enrolled=None)

    assert len(students) == 3


@pytest.mark.parametrize("value, expected", [
    (None, False), ("true", True), ("1", True), ("false", False), ("0", False), ("maybe", None),
])
def test_parse_enrolled_filter(value, expected) -> None:
    assert roster.parse_enrolled_filter(value) is expected


def test_view_on_read_from_two_identities(roster_store) -> None:
    # Act
    first = roster.view_student(roster_store, "new%40example.com", "user-alice")
    second = roster.view_student(roster_store, "new%40example.com", "user-bob")

    # Assert
    assert [v.user.id for v in first.viewers] == ["user-alice"]
    assert [v.user.id for v in second.viewers] == ["user-bob", "user-alice"]
    assert second.viewers[0].viewed_at > second.viewers[1].viewed_at
    assert second.viewers[0].user == enrichment.StaffIdentity(
        id="user-bob", email="bob@example.com", name="Bob Caller")


def test_listing_carries_view_history(roster_store) -> None:
    roster.view_student(roster_store, "old%40example.com", "user-alice")

    students = {s.email: s for s in roster.list_students(roster_store)}

    assert [v.user.id for v in students["old@example.com"].viewers] == ["user-alice"]
    assert students["new@example.com"].viewers == []


def test_view_unknown_student(roster_store) -> None:
    with pytest.raises(NotFound):
        roster.view_student(roster_store, "missing%40example.com", "user-alice")
    assert roster_store.query("views") == []


def test_degraded_enrichment_keeps_the_event(roster_store) -> None:
    # Arrange
    record_view(roster_store, "old%40example.com", "user-deleted")
    roster.view_student(roster_store, "old%40example.com", "user-alice")

    # Act
    viewers = enrichment.resolve_viewers(roster_store, "old%40example.com")

    # Assert
    assert len(viewers) == 2
    assert viewers[0].user.id == "user-alice"
    assert isinstance(viewers[1].user, enrichment.UnresolvedIdentity)
    assert viewers[1].model_dump()["user"] == {"id": "user-deleted"}


def test_staff_identity_never_exposes_credentials(roster_store) -> None:
    record_view(roster_store, "old%40example.com", "user-alice")

    viewer = enrichment.resolve_viewers(roster_store, "old%40example.com")[0]

    assert viewer.model_dump()["user"] == {
        "id": "user-alice", "email": "alice@example.com", "name": "Alice Admin"}


def test_call_status_toggle_overwrites(roster_store) -> None:
    # Act
    called = roster.update_call_status(roster_store, "new%40example.com", True, "user-bob")
    cleared = roster.update_call_status(roster_store, "new%40example.com", False, "user-alice")

    # Assert
    assert called.called_today is True
    assert called.called_by_user_id == "user-bob"
    assert called.last_called_at is not None
    assert cleared.called_today is False
    assert cleared.last_called_at is None
    assert cleared.called_by_user_id is None
    student = roster_store.get("students", "new%40example.com")
    assert student["last_called_at"] is None
    assert student["called_by_user_id"] is None


def test_call_status_unknown_student(roster_store) -> None:
    with pytest.raises(NotFound):
        roster.update_call_status(roster_store, "missing%40example.com", True, "user-bob")
