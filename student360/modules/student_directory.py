"""
Student Directory Module - Student360 School Notes System

This module handles student records for one school. Students are keyed by
their canonical student ID at schools/{schoolId}/students/{studentId} and are
never updated or deleted here once written.

Features:
- Single student creation with an existence check (admin only)
- Bulk CSV import written as one atomic batch (admin only)
- Student lookup by raw or canonical ID
- Listing of the most recently created students
"""

from typing import Dict, List, Any
import logging

from student360.modules import messages
from student360.modules.csv_importer import MAX_IMPORT_ROWS, parse_csv, rows_to_students
from student360.modules.document_store import SERVER_TIMESTAMP, collection_path, document_path
from student360.modules.records import DEFAULT_GRADE, DEFAULT_SECTION, RecordError, Student
from student360.modules.student_ids import normalize_student_id


class StudentDirectory:
    """
    Create, import, look up and list the students of a school.
    """

    def __init__(self, document_store, school_id: str, list_limit: int = 20,
                 import_limit: int = MAX_IMPORT_ROWS):
        """
        Initialize the student directory.

        Args:
            document_store: DocumentStore instance
            school_id (str): School whose students this directory manages
            list_limit (int): Number of students returned by list_latest()
            import_limit (int): Maximum rows written per CSV import
        """
        self.store = document_store
        self.school_id = school_id
        self.list_limit = list_limit
        self.import_limit = import_limit
        self.logger = logging.getLogger(__name__)

    def student_path(self, student_id: str) -> str:
        return document_path('schools', self.school_id, 'students', student_id)

    def students_collection(self) -> str:
        return collection_path('schools', self.school_id, 'students')

    def create_student(self, session, raw_student_id: str, name: str,
                       grade: str = DEFAULT_GRADE, section: str = DEFAULT_SECTION) -> Dict[str, Any]:
        """
        Create a single student record.

        An existing record with the same ID is never overwritten; the call
        reports the conflict instead.

        Args:
            session (Session): Acting session (must be admin)
            raw_student_id (str): Student ID as typed
            name (str): Student full name
            grade (str): Grade label
            section (str): Section label

        Returns:
            Dict[str, Any]: Creation result
        """
        if session is None or not session.is_admin:
            return {'success': False, 'error': messages.ADMIN_ONLY_CREATE}

        student_id = normalize_student_id(raw_student_id)
        if not student_id:
            return {'success': False, 'error': messages.INVALID_STUDENT_ID}

        name = (name or '').strip()
        if not name:
            return {'success': False, 'error': messages.STUDENT_NAME_REQUIRED}

        try:
            path = self.student_path(student_id)
            if self.store.exists(path):
                self.logger.warning(f"Refused to overwrite existing student {student_id}")
                return {
                    'success': False,
                    'conflict': True,
                    'student_id': student_id,
                    'error': messages.STUDENT_EXISTS.format(student_id=student_id)
                }

            student = Student(
                student_id=student_id,
                name=name,
                grade=(grade or '').strip() or DEFAULT_GRADE,
                section=(section or '').strip() or DEFAULT_SECTION,
                school_id=self.school_id,
                created_by=session.created_by(),
            )
            document = student.to_document()
            document['createdAt'] = SERVER_TIMESTAMP
            self.store.set(path, document)

            self.logger.info(f"Student created successfully: {student_id} by {session.identity}")
            return {
                'success': True,
                'student_id': student_id,
                'message': messages.STUDENT_CREATED.format(student_id=student_id)
            }

        except Exception as e:
            self.logger.error(f"Student creation failed for {student_id}: {str(e)}")
            return {'success': False, 'error': messages.STUDENT_CREATE_FAILED}

    def import_students_csv(self, session, csv_content: str) -> Dict[str, Any]:
        """
        Import students from CSV content in one grouped write.

        Rows are written unconditionally; an imported ID that already exists
        replaces the stored record.

        Args:
            session (Session): Acting session (must be admin)
            csv_content (str): Uploaded CSV text

        Returns:
            Dict[str, Any]: Import result
        """
        if session is None or not session.is_admin:
            return {'success': False, 'error': messages.ADMIN_ONLY_IMPORT}

        try:
            students = rows_to_students(parse_csv(csv_content), self.school_id, limit=self.import_limit)
            if not students:
                return {'success': False, 'error': messages.CSV_NO_VALID_ROWS}

            created_by = session.created_by(via='csv')
            with self.store.batch() as batch:
                for student in students:
                    student.created_by = created_by
                    document = student.to_document()
                    document['createdAt'] = SERVER_TIMESTAMP
                    batch.set(self.student_path(student.student_id), document, merge=False)

            self.logger.info(f"CSV import wrote {len(students)} students by {session.identity}")
            return {
                'success': True,
                'imported': len(students),
                'student_ids': [student.student_id for student in students],
                'import_method': 'csv',
                'message': messages.CSV_IMPORTED.format(count=len(students), limit=self.import_limit)
            }

        except Exception as e:
            self.logger.error(f"CSV import failed: {str(e)}")
            return {'success': False, 'error': messages.CSV_IMPORT_FAILED}

    def get_student(self, raw_student_id: str) -> Dict[str, Any]:
        """
        Look up a student by raw or canonical ID.

        Returns:
            Dict[str, Any]: {'success': True, 'student': Student} or an error result
        """
        student_id = normalize_student_id(raw_student_id)
        if not student_id:
            return {'success': False, 'error': messages.INVALID_QR_PAYLOAD}

        try:
            data = self.store.get(self.student_path(student_id))
            if data is None:
                return {
                    'success': False,
                    'not_found': True,
                    'error': messages.STUDENT_NOT_FOUND.format(student_id=student_id)
                }
            return {'success': True, 'student': Student.from_document(data, student_id)}

        except Exception as e:
            self.logger.error(f"Failed to load student {student_id}: {str(e)}")
            return {'success': False, 'error': messages.STUDENT_LOAD_FAILED}

    def list_latest(self, limit: int = None) -> Dict[str, Any]:
        """
        List the most recently created students, newest first.

        Returns:
            Dict[str, Any]: {'success': True, 'students': List[Student]} or an error result
        """
        try:
            documents = self.store.query(
                self.students_collection(),
                order_by='createdAt',
                descending=True,
                limit=limit or self.list_limit
            )
            students: List[Student] = []
            for doc_id, data in documents:
                try:
                    students.append(Student.from_document(data, doc_id))
                except RecordError as e:
                    self.logger.warning(f"Skipping malformed student document: {str(e)}")
            return {'success': True, 'students': students}

        except Exception as e:
            self.logger.error(f"Failed to list students: {str(e)}")
            return {'success': False, 'error': messages.STUDENT_LIST_FAILED, 'students': []}
