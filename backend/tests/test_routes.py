"""Test the HTTP surface end to end against the in-memory store."""

from urllib.parse import quote

import jwt

from enrolldesk.errors import StoreError
from enrolldesk.routes import dashboard, imports
from enrolldesk.services.normalizer import student_key

from conftest import make_workbook, token_for, with_damaged_sheet

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
IMPORT_URL = "/api/File/students/import"
STUDENTS_URL = "/api/dashboard/students"


def student_url(email: str) -> str:
    # The test client decodes the path twice (httpx, then Starlette); a server
    # decodes it once. The key itself holds "%", so it is encoded twice more.
    key = student_key(email)
    return "{}/{}".format(STUDENTS_URL, quote(quote(key, safe=""), safe=""))


def upload(client, headers, content: bytes, filename: str = "roster.xlsx"):
    return client.post(IMPORT_URL, headers=headers, files={"file": (filename, content, XLSX)})


def test_import_returns_summary(client, alice_headers, store) -> None:
    # Arrange
    content = make_workbook(
        ["E-mail", "First Name", "Last Name", "Enrolled"],
        [
            ["ann@example.com", "Ann", "Lee", "no"],
            [None, "No", "Email", "yes"],
            ["ben@example.com", "Ben", "Ng", "yes"],
        ],
    )

    # Act
    response = upload(client, alice_headers, content)

    # Assert
    assert response.status_code == 200
    assert response.json() == {
        "message": "Import completed",
        "summary": {
            "totalRows": 3,
            "processed": 2,
            "skipped": 1,
            "errors": [{"row": 3, "reason": "Missing required email column"}],
        },
    }
    assert response.headers["X-Request-ID"]
    assert store.get("students", "ann%40example.com")["created_by"] == "user-alice"


def test_import_without_file(client, alice_headers) -> None:
    response = client.post(IMPORT_URL, headers=alice_headers)

    assert response.status_code == 400
    assert "file" in response.json()["error"]


def test_import_unparseable_file(client, alice_headers) -> None:
    response = upload(client, alice_headers, b"\x00\x01garbage\x00", "roster.xlsx")

    assert response.status_code == 400


def test_import_damaged_workbook(client, alice_headers) -> None:
    content = with_damaged_sheet(make_workbook(["Email"], [["a@example.com"]]))

    response = upload(client, alice_headers, content)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Unable to read Excel file")


def test_import_header_only_sheet(client, alice_headers) -> None:
    response = upload(client, alice_headers, make_workbook(["Email"], []))

    assert response.status_code == 400
    assert response.json() == {"error": "No rows found in sheet"}


def test_import_file_too_large(client, alice_headers, monkeypatch) -> None:
    monkeypatch.setattr(imports, "IMPORT_MAX_FILE_BYTES", 16)

    response = upload(client, alice_headers, make_workbook(["Email"], [["a@example.com"]]))

    assert response.status_code == 400


def test_import_store_failure(client, alice_headers, store, monkeypatch) -> None:
    def broken_commit(ops):
        raise StoreError("Storage batch commit failed")

    monkeypatch.setattr(store, "commit_batch", broken_commit)

    response = upload(client, alice_headers, make_workbook(["Email"], [["a@example.com"]]))

    assert response.status_code == 500
    body = response.json()
    assert "summary" not in body
    assert "0 of 1 rows were committed" in body["error"]


def test_requests_need_a_valid_token(client) -> None:
    assert client.get(STUDENTS_URL).status_code == 401

    forged = jwt.encode({"id": "user-alice"}, "not-the-secret", algorithm="HS256")
    response = client.get(STUDENTS_URL, headers={"Authorization": "Bearer " + forged})
    assert response.status_code == 401

    response = client.get(STUDENTS_URL, headers={"Authorization": "Bearer " + token_for("user-gone")})
    assert response.status_code == 401
    assert response.json() == {"error": "User not found"}


def test_list_students_filters(client, alice_headers) -> None:
    # Arrange
    upload(client, alice_headers, make_workbook(
        ["Email", "Name", "Enrolled"],
        [["p@example.com", "Pat", ""], ["e@example.com", "Eve", "1"]],
    ))

    # Act
    default = client.get(STUDENTS_URL, headers=alice_headers).json()
    enrolled = client.get(STUDENTS_URL, params={"enrolled": "true"}, headers=alice_headers).json()
    not_enrolled = client.get(STUDENTS_URL, params={"enrolled": "0"}, headers=alice_headers).json()

    # Assert
    assert [s["firstName"] for s in default] == ["Pat"]
    assert [s["firstName"] for s in enrolled] == ["Eve"]
    assert not_enrolled == default
    assert default[0] == {
        "id": "p%40example.com",
        "firstName": "Pat",
        "lastName": "",
        "email": "p@example.com",
        "enrolled": False,
        "called_today": False,
        "last_called_at": None,
        "called_by_user_id": None,
        "viewers": [],
    }


def test_view_student_records_viewers(client, alice_headers, bob_headers) -> None:
    # Arrange
    upload(client, alice_headers, make_workbook(["Email"], [["v@example.com"]]))

    # Act
    client.get(student_url("v@example.com"), headers=alice_headers)
    response = client.get(student_url("v@example.com"), headers=bob_headers)

    # Assert
    assert response.status_code == 200
    assert response.json()["id"] == "v%40example.com"
    viewers = response.json()["viewers"]
    assert [v["user"] for v in viewers] == [
        {"id": "user-bob", "email": "bob@example.com", "name": "Bob Caller"},
        {"id": "user-alice", "email": "alice@example.com", "name": "Alice Admin"},
    ]
    assert all(v["viewed_at"] for v in viewers)

    listed = client.get(STUDENTS_URL, headers=alice_headers).json()
    assert len(listed[0]["viewers"]) == 2


def test_route_receives_the_encoded_student_key(client, alice_headers, monkeypatch) -> None:
    # Arrange
    upload(client, alice_headers, make_workbook(["Email"], [["k@example.com"]]))
    received = []

    def recording_view_student(store, student_id, requester_id):
        received.append(student_id)
        return view_student(store, student_id, requester_id)

    view_student = dashboard.view_student
    monkeypatch.setattr(dashboard, "view_student", recording_view_student)

    # Act
    response = client.get(student_url("K@Example.com"), headers=alice_headers)

    # Assert
    assert response.status_code == 200
    assert received == ["k%40example.com"]


def test_viewer_without_account_shows_only_its_id(client, alice_headers, store) -> None:
    upload(client, alice_headers, make_workbook(["Email"], [["d@example.com"]]))
    store.add("views", {"student_id": "d%40example.com", "user_id": "user-removed",
                        "viewed_at": None})

    listed = client.get(STUDENTS_URL, headers=alice_headers).json()

    assert listed[0]["viewers"] == [{"viewed_at": None, "user": {"id": "user-removed"}}]


def test_view_unknown_student(client, alice_headers) -> None:
    response = client.get(student_url("nobody@example.com"), headers=alice_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Student not found"}


def test_call_status_toggle(client, alice_headers, bob_headers) -> None:
    # Arrange
    upload(client, alice_headers, make_workbook(["Email"], [["c@example.com"]]))
    url = student_url("c@example.com") + "/status"

    # Act
    called = client.patch(url, json={"called_today": True}, headers=bob_headers)
    cleared = client.patch(url, json={"called_today": False}, headers=alice_headers)

    # Assert
    assert called.status_code == 200
    assert called.json()["called_today"] is True
    assert called.json()["called_by_user_id"] == "user-bob"
    assert called.json()["last_called_at"] is not None
    assert cleared.json() == {
        "id": "c%40example.com",
        "called_today": False,
        "last_called_at": None,
        "called_by_user_id": None,
    }


def test_call_status_requires_flag(client, alice_headers) -> None:
    upload(client, alice_headers, make_workbook(["Email"], [["c@example.com"]]))
    url = student_url("c@example.com") + "/status"

    assert client.patch(url, json={}, headers=alice_headers).status_code == 400
    assert client.patch(url, json={"called_today": "sometimes"}, headers=alice_headers).status_code == 400


def test_call_status_unknown_student(client, alice_headers) -> None:
    response = client.patch(student_url("nobody@example.com") + "/status",
                            json={"called_today": True}, headers=alice_headers)

    assert response.status_code == 404


def test_login_user_details(client, alice_headers) -> None:
    response = client.get("/api/users/GetLoginUserDetails", headers=alice_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "user-alice"
    assert body["roleId"] == "1"
    assert "password_hash" not in body
    assert "passwordHash" not in body


def test_health(client) -> None:
    assert client.get("/health").json()["status"] == "healthy"
