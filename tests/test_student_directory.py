from conftest import make_session

from student360.modules import messages
from student360.modules.records import DEFAULT_GRADE
from student360.modules.student_directory import StudentDirectory


def make_directory(store, **kwargs):
    return StudentDirectory(store, "demo-school", **kwargs)


def test_create_and_get_student(store, admin_session):
    directory = make_directory(store)

    result = directory.create_student(admin_session, "10025", " Ahmed ", "", "")

    assert result["success"]
    assert result["student_id"] == "S-10025"

    lookup = directory.get_student("s10025")
    student = lookup["student"]
    assert student.name == "Ahmed"
    assert student.grade == DEFAULT_GRADE
    assert student.school_id == "demo-school"
    assert student.created_by.role == "admin"
    assert student.created_by.via is None
    assert student.created_at


def test_create_conflict_leaves_record_untouched(store, admin_session):
    directory = make_directory(store)
    directory.create_student(admin_session, "S-1", "Original")

    result = directory.create_student(admin_session, "1", "Replacement")

    assert not result["success"]
    assert result["conflict"]
    assert result["error"] == messages.STUDENT_EXISTS.format(student_id="S-1")
    assert directory.get_student("S-1")["student"].name == "Original"


def test_create_validation(store, admin_session, teacher_session):
    directory = make_directory(store)

    assert directory.create_student(teacher_session, "1", "A")["error"] == messages.ADMIN_ONLY_CREATE
    assert directory.create_student(admin_session, "abc", "A")["error"] == messages.INVALID_STUDENT_ID
    assert directory.create_student(admin_session, "1", "  ")["error"] == messages.STUDENT_NAME_REQUIRED
    assert not store.exists("schools/demo-school/students/S-1")


def test_get_student_errors(store):
    directory = make_directory(store)

    invalid = directory.get_student('{"id": "S-1"}')
    assert invalid["error"] == messages.INVALID_QR_PAYLOAD

    missing = directory.get_student("S-404")
    assert missing["not_found"]
    assert missing["error"] == messages.STUDENT_NOT_FOUND.format(student_id="S-404")


def test_csv_import_overwrites_and_tags_source(store, admin_session):
    directory = make_directory(store)
    directory.create_student(admin_session, "S-1", "Original")

    result = directory.import_students_csv(admin_session, "studentId,name\n1,Imported\n2,Second\nx,Bad\n")

    assert result["success"]
    assert result["imported"] == 2
    assert result["student_ids"] == ["S-1", "S-2"]
    imported = directory.get_student("S-1")["student"]
    assert imported.name == "Imported"
    assert imported.created_by.via == "csv"


def test_csv_import_requires_admin_and_rows(store, admin_session):
    directory = make_directory(store)
    parent = make_session("parent")

    assert directory.import_students_csv(parent, "studentId,name\n1,A\n")["error"] == messages.ADMIN_ONLY_IMPORT
    assert directory.import_students_csv(admin_session, "studentId,name\n")["error"] == messages.CSV_NO_VALID_ROWS


def test_csv_import_respects_limit(store, admin_session):
    directory = make_directory(store, import_limit=3)
    content = "studentId,name\n" + "\n".join(f"{i},N{i}" for i in range(1, 6))

    result = directory.import_students_csv(admin_session, content)

    assert result["imported"] == 3
    assert not store.exists("schools/demo-school/students/S-4")


def test_list_latest_newest_first(store, admin_session):
    directory = make_directory(store, list_limit=2)
    for raw_id in ("1", "2", "3"):
        directory.create_student(admin_session, raw_id, f"Student {raw_id}")

    listing = directory.list_latest()

    assert listing["success"]
    assert [s.student_id for s in listing["students"]] == ["S-3", "S-2"]
    assert len(directory.list_latest(limit=10)["students"]) == 3


def test_list_latest_skips_malformed_documents(store, admin_session):
    directory = make_directory(store)
    directory.create_student(admin_session, "1", "Valid")
    store.set("schools/demo-school/students/bogus", {"name": "No id"})

    assert [s.student_id for s in directory.list_latest()["students"]] == ["S-1"]
