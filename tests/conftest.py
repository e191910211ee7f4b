import pytest

from student360.modules.document_store import DocumentStore
from student360.modules.records import Session


def make_session(role, uid="uid-1", identity="user@demo.sa"):
    return Session(
        uid=uid,
        identity=identity,
        role=role,
        display_name="Tester",
        school_id="demo-school",
        school_name="Demo School",
    )


@pytest.fixture
def store(tmp_path):
    document_store = DocumentStore(tmp_path / "student360.db")
    yield document_store
    document_store.close_all_connections()


@pytest.fixture
def admin_session():
    return make_session("admin")


@pytest.fixture
def teacher_session():
    return make_session("teacher", uid="uid-2", identity="teacher@demo.sa")
