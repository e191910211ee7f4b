from conftest import make_session

from student360.modules import messages
from student360.modules.notes_ledger import NotesLedger
from student360.modules.records import DEFAULT_LOCATION, Student


def make_student():
    return Student(student_id="S-10025", name="Ahmed", school_id="demo-school")


def test_add_note_and_list(store, teacher_session):
    ledger = NotesLedger(store, "demo-school")

    result = ledger.add_note(teacher_session, make_student(), "positive", "", "تعاون", " helped a classmate ")

    assert result["success"]
    notes = ledger.list_recent("S-10025")
    assert len(notes) == 1
    note = notes[0]
    assert note.note_id == result["note_id"]
    assert note.comment == "helped a classmate"
    assert note.location == DEFAULT_LOCATION
    assert note.student_name == "Ahmed"
    assert note.created_by.role == "teacher"
    assert note.created_by.identifier == "teacher@demo.sa"
    assert note.is_positive


def test_roles_allowed_to_write(store):
    ledger = NotesLedger(store, "demo-school")
    student = make_student()

    for role in ("teacher", "counselor", "admin"):
        assert ledger.add_note(make_session(role), student, "negative", "الممر", "تأخير", "late")["success"]

    for role in ("parent", "unknown"):
        result = ledger.add_note(make_session(role), student, "negative", "الممر", "تأخير", "late")
        assert result["error"] == messages.NOTE_ROLE_FORBIDDEN


def test_note_validation(store, teacher_session):
    ledger = NotesLedger(store, "demo-school")

    assert ledger.add_note(teacher_session, None, "positive", "", "", "x")["error"] == messages.NOTE_STUDENT_REQUIRED
    assert ledger.add_note(teacher_session, make_student(), "positive", "", "", " ")["error"] == \
        messages.NOTE_COMMENT_REQUIRED
    assert ledger.add_note(teacher_session, make_student(), "neutral", "", "", "x")["error"] == \
        messages.NOTE_INVALID_TYPE
    assert ledger.list_recent("S-10025") == []


def test_list_recent_newest_first_and_limited(store, teacher_session):
    ledger = NotesLedger(store, "demo-school")
    student = make_student()
    for i in range(35):
        ledger.add_note(teacher_session, student, "positive", "", "", f"note {i}")

    notes = ledger.list_recent("S-10025")

    assert len(notes) == 30
    assert notes[0].comment == "note 34"
    assert notes[-1].comment == "note 5"


def test_notes_are_scoped_per_student(store, teacher_session):
    ledger = NotesLedger(store, "demo-school")
    ledger.add_note(teacher_session, make_student(), "positive", "", "", "x")

    assert ledger.list_recent("S-99") == []
