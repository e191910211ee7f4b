from student360.modules.csv_importer import MAX_IMPORT_ROWS, parse_csv, rows_to_students
from student360.modules.records import DEFAULT_GRADE, DEFAULT_SECTION


def test_single_row_maps_to_student():
    rows = parse_csv("studentId,name,grade,section\n10025,Ahmed,Grade1,A\n")
    students = rows_to_students(rows, school_id="demo-school")

    assert len(students) == 1
    student = students[0]
    assert student.student_id == "S-10025"
    assert student.name == "Ahmed"
    assert student.grade == "Grade1"
    assert student.section == "A"
    assert student.school_id == "demo-school"


def test_row_missing_name_is_dropped():
    rows = parse_csv("studentId,name\n10025,Ahmed\n10026,\nabc,Omar\n")
    students = rows_to_students(rows)

    assert [s.student_id for s in students] == ["S-10025"]


def test_import_capped_at_limit():
    lines = ["studentId,name"] + [f"{10000 + i},Student {i}" for i in range(250)]
    students = rows_to_students(parse_csv("\n".join(lines)))

    assert len(students) == MAX_IMPORT_ROWS == 200
    assert students[-1].student_id == "S-10199"


def test_column_synonyms_and_defaults():
    students = rows_to_students(parse_csv("ID,Name\nS-5,Sara\n"))

    assert students[0].student_id == "S-5"
    assert students[0].grade == DEFAULT_GRADE
    assert students[0].section == DEFAULT_SECTION


def test_quoted_fields_and_crlf():
    text = 'studentId,name,grade,section\r\n1,"Ali, Jr.","Grade ""2""",B\r\r\n2,Mona,,\r'
    students = rows_to_students(parse_csv(text))

    assert [s.name for s in students] == ["Ali, Jr.", "Mona"]
    assert students[0].grade == 'Grade "2"'
    assert students[1].section == DEFAULT_SECTION


def test_empty_input():
    assert parse_csv("") == []
    assert parse_csv("\n\n") == []
    assert rows_to_students(parse_csv("studentId,name\n")) == []
