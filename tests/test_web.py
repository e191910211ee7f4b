import io
import sys
import types
import asyncio

import pytest

from app import create_app
from conftest import make_session
from student360.modules import messages

PASSWORD = "123456"


@pytest.fixture
def app(tmp_path):
    application = create_app("testing", overrides={"DATABASE_PATH": str(tmp_path / "web.db")})
    svc = application.extensions["student360"]
    for email, role in (("admin@demo.sa", "admin"), ("teacher@demo.sa", "teacher"), ("parent@demo.sa", "parent")):
        identity = svc["identity_provider"].create_user(email, PASSWORD, privileged=True)
        svc["role_store"].assign_role(identity.uid, role, email)
    svc["identity_provider"].create_user("norole@demo.sa", PASSWORD, privileged=True)
    svc["student_directory"].create_student(make_session("admin"), "10025", "Ahmed")
    return application


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email, password=PASSWORD):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=True)


def text(response):
    return response.get_data(as_text=True)


def test_index_requires_login(client):
    response = client.get("/")

    assert response.status_code == 302
    assert "/login" in response.headers["Location"]
    assert client.post("/scanner/start", json={}).status_code == 401


def test_login_errors_are_shown_inline(client):
    assert messages.LOGIN_EMAIL_REQUIRED in text(client.post("/login", data={"email": "", "password": "x"}))
    assert messages.LOGIN_PASSWORD_REQUIRED in text(client.post("/login", data={"email": "a@demo.sa"}))
    assert messages.AUTH_ERROR_MESSAGES["auth/wrong-password"] in text(login(client, "teacher@demo.sa", "nope12"))
    assert messages.AUTH_ERROR_MESSAGES["auth/user-not-found"] in text(login(client, "ghost@demo.sa"))


def test_unknown_role_sees_message(client):
    body = text(login(client, "norole@demo.sa"))

    assert "لم يتم العثور على Role" in body
    assert "مسح QR" not in body


def test_teacher_dashboard_and_navigation(client):
    body = text(login(client, "teacher@demo.sa"))
    assert messages.ROLE_LABELS["teacher"] in body
    assert "ابدأ المسح" in body

    body = text(client.post("/go/scanner", follow_redirects=True))
    assert "scanner-status" in body

    assert client.post("/go/reports").status_code == 404


def test_admin_page_is_admin_only(client):
    login(client, "teacher@demo.sa")
    body = text(client.post("/go/admin_students", follow_redirects=True))

    assert "إدارة الطلاب" not in body
    assert client.get("/students/S-10025/qr.png").status_code == 302


def test_admin_creates_and_lists_students(client):
    login(client, "admin@demo.sa")
    client.post("/go/admin_students")

    body = text(client.post("/students", data={"student_id": "s-2", "name": "Sara"}, follow_redirects=True))
    assert messages.STUDENT_CREATED.format(student_id="S-2") in body
    assert "Sara" in body
    assert "S-10025" in body

    body = text(client.post("/students", data={"student_id": "2", "name": "Other"}, follow_redirects=True))
    assert messages.STUDENT_EXISTS.format(student_id="S-2") in body


def test_admin_imports_csv(client, app):
    login(client, "admin@demo.sa")
    client.post("/go/admin_students")
    upload = io.BytesIO("studentId,name,grade,section\n3,Omar,G2,B\n4,Laila,,\n".encode("utf-8"))

    body = text(client.post("/students/import", data={"file": (upload, "students.csv")},
                            content_type="multipart/form-data", follow_redirects=True))

    assert messages.CSV_IMPORTED.format(count=2, limit=200) in body
    student = app.extensions["student360"]["student_directory"].get_student("S-4")["student"]
    assert student.created_by.via == "csv"


def test_admin_downloads_and_prints_qr(client):
    login(client, "admin@demo.sa")

    response = client.get("/students/S-10025/qr.png?download=1")
    assert response.status_code == 200
    assert response.mimetype == "image/png"
    assert "Student360_S-10025.png" in response.headers["Content-Disposition"]

    body = text(client.get("/students/S-10025/print"))
    assert "Ahmed" in body
    assert "window.print()" in body


def test_scan_flow_opens_student_once(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")

    started = client.post("/scanner/start", json={}).get_json()
    assert started["state"] == "starting"
    assert client.post("/scanner/start", json={}).status_code == 409

    armed = client.post("/scanner/armed", json={"camera_session": started["camera_session"]}).get_json()
    assert armed["state"] == "scanning"

    payload = {"text": "S-10025", "token": started["token"], "camera_session": started["camera_session"]}
    first = client.post("/scanner/decode", json=payload).get_json()
    second = client.post("/scanner/decode", json=payload).get_json()

    assert first["accepted"]
    assert second == {"success": True, "accepted": False, "reason": "duplicate"}
    assert "Ahmed" in text(client.get("/"))


def test_stale_decode_is_ignored(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")
    started = client.post("/scanner/start", json={}).get_json()

    client.post("/go/dashboard")
    reply = client.post("/scanner/decode", json={
        "text": "S-10025", "token": started["token"], "camera_session": started["camera_session"]
    }).get_json()

    assert reply["reason"] == "stale"
    assert "Ahmed" not in text(client.get("/"))


def test_camera_error_and_reset(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")
    started = client.post("/scanner/start", json={}).get_json()

    reply = client.post("/scanner/error", json={
        "camera_session": started["camera_session"], "name": "NotAllowedError", "message": ""
    }).get_json()
    assert reply["category"] == "permission-denied"
    assert reply["state"] == "error"
    assert reply["error"] == messages.CAMERA_PERMISSION_DENIED

    assert client.post("/scanner/reset", json={}).get_json()["state"] == "idle"


def test_manual_lookup_and_notes(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")
    body = text(client.post("/lookup", data={"student_id": "10025"}, follow_redirects=True))
    assert "Ahmed" in body

    body = text(client.post("/notes", data={
        "type": "negative", "location": "الممر", "category": "تأخير", "comment": "Late to class"
    }, follow_redirects=True))

    assert messages.NOTE_SAVED in body
    assert "Late to class" in body

    body = text(client.post("/notes", data={"type": "positive", "comment": " "}, follow_redirects=True))
    assert messages.NOTE_COMMENT_REQUIRED in body


def test_lookup_of_missing_student(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")

    body = text(client.post("/lookup", data={"student_id": "S-404"}, follow_redirects=True))
    assert messages.STUDENT_NOT_FOUND.format(student_id="S-404") in body


def test_parent_cannot_write_notes(client):
    login(client, "parent@demo.sa")
    client.post("/go/scanner")
    body = text(client.post("/lookup", data={"student_id": "S-10025"}, follow_redirects=True))
    assert 'name="comment"' not in body

    body = text(client.post("/notes", data={"type": "positive", "comment": "x"}, follow_redirects=True))
    assert messages.NOTE_ROLE_FORBIDDEN in body


def test_logout_discards_state(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")

    response = client.post("/logout")
    assert "/login" in response.headers["Location"]
    assert client.get("/").status_code == 302

    body = text(login(client, "teacher@demo.sa"))
    assert "ابدأ المسح" in body


def test_cli_seed_demo_and_create_user(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "counselor@demo.sa -> counselor" in result.output

    result = runner.invoke(args=["create-user", "new@demo.sa", "123456", "--role", "counselor"])
    assert result.exit_code == 0
    identity = app.extensions["student360"]["identity_provider"].find_by_email("new@demo.sa")
    assert app.extensions["student360"]["role_store"].get_role_doc(identity.uid).role == "counselor"


def test_cli_scan_with_local_decoder(app, monkeypatch):
    class ScriptedDecoder:
        def __init__(self, camera_index):
            self.camera_index = camera_index

        async def start(self, on_decode, on_error=None):
            asyncio.get_running_loop().call_soon(on_decode, "s10025")

        def stop(self):
            pass

    fake_module = types.ModuleType("student360.modules.camera_decoder")
    fake_module.CameraDecoder = ScriptedDecoder
    monkeypatch.setitem(sys.modules, "student360.modules.camera_decoder", fake_module)

    result = app.test_cli_runner().invoke(args=["scan"])

    assert result.exit_code == 0, result.output
    assert "S-10025  Ahmed" in result.output


def test_reloading_scanner_page_releases_camera_session(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")
    started = client.post("/scanner/start", json={}).get_json()
    client.post("/scanner/armed", json={"camera_session": started["camera_session"]})

    body = text(client.get("/"))
    restarted = client.post("/scanner/start", json={})

    assert "clearTimeout(pendingDecode)" in body
    assert restarted.status_code == 200
    assert restarted.get_json()["camera_session"] == started["camera_session"] + 1


def test_decode_from_cancelled_camera_session_is_ignored(client):
    login(client, "teacher@demo.sa")
    client.post("/go/scanner")
    first = client.post("/scanner/start", json={}).get_json()
    client.post("/scanner/reset", json={})
    second = client.post("/scanner/start", json={}).get_json()

    reply = client.post("/scanner/decode", json={
        "text": "S-10025", "token": first["token"], "camera_session": first["camera_session"]
    }).get_json()

    assert second["camera_session"] != first["camera_session"]
    assert not reply["accepted"]
    assert "Ahmed" not in text(client.get("/"))


def test_cli_init_db(app):
    result = app.test_cli_runner().invoke(args=["init-db"])

    assert result.exit_code == 0
    with app.extensions["student360"]["store"].get_connection() as conn:
        tables = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"documents", "identities"} <= tables


def test_cli_scan_reports_camera_failure(app, monkeypatch):
    class FailingDecoder:
        def __init__(self, camera_index):
            self.camera_index = camera_index

        async def start(self, on_decode, on_error=None):
            asyncio.get_running_loop().call_later(0.01, on_error, Exception("NotReadableError"))

        def stop(self):
            pass

    fake_module = types.ModuleType("student360.modules.camera_decoder")
    fake_module.CameraDecoder = FailingDecoder
    monkeypatch.setitem(sys.modules, "student360.modules.camera_decoder", fake_module)

    result = app.test_cli_runner().invoke(args=["scan"])

    assert result.exit_code == 1
    assert "NotReadableError" in result.output
