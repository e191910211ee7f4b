"""
Notes Ledger Module - Student360 School Notes System

Append-only behavioral notes stored under
schools/{schoolId}/students/{studentId}/notes/{noteId}. There is no update
or delete path.
"""

from typing import Dict, Any
import logging

from student360.modules import messages
from student360.modules.document_store import SERVER_TIMESTAMP, collection_path
from student360.modules.records import DEFAULT_CATEGORY, DEFAULT_LOCATION, NOTE_TYPES, Note, RecordError


class NotesLedger:
    """Append and list behavioral notes for students of one school."""

    def __init__(self, document_store, school_id: str, list_limit: int = 30):
        self.store = document_store
        self.school_id = school_id
        self.list_limit = list_limit
        self.logger = logging.getLogger(__name__)

    def notes_collection(self, student_id: str) -> str:
        return collection_path('schools', self.school_id, 'students', student_id, 'notes')

    def add_note(self, session, student, note_type: str, location: str,
                 category: str, comment: str) -> Dict[str, Any]:
        """
        Append a note to a student's ledger.

        Args:
            session (Session): Acting session (teacher, counselor or admin)
            student (Student): Resolved student the note is about
            note_type (str): 'positive' or 'negative'
            location (str): Where the behavior was observed
            category (str): Behavior category
            comment (str): Free-text details

        Returns:
            Dict[str, Any]: Result with the new note ID on success
        """
        if session is None or not session.can_write_notes:
            return {'success': False, 'error': messages.NOTE_ROLE_FORBIDDEN}

        if student is None or not getattr(student, 'student_id', ''):
            return {'success': False, 'error': messages.NOTE_STUDENT_REQUIRED}

        comment = (comment or '').strip()
        if not comment:
            return {'success': False, 'error': messages.NOTE_COMMENT_REQUIRED}

        if note_type not in NOTE_TYPES:
            return {'success': False, 'error': messages.NOTE_INVALID_TYPE}

        note = Note(
            student_id=student.student_id,
            student_name=student.name,
            school_id=self.school_id,
            note_type=note_type,
            location=(location or '').strip() or DEFAULT_LOCATION,
            category=(category or '').strip() or DEFAULT_CATEGORY,
            comment=comment,
            created_by=session.created_by(),
        )

        try:
            document = note.to_document()
            document['createdAt'] = SERVER_TIMESTAMP
            note_id = self.store.add(self.notes_collection(student.student_id), document)

            self.logger.info(f"Note {note_id} ({note_type}) added for {student.student_id} by {session.identity}")
            return {'success': True, 'note_id': note_id, 'message': messages.NOTE_SAVED}

        except Exception as e:
            self.logger.error(f"Failed to save note for {student.student_id}: {str(e)}")
            return {'success': False, 'error': messages.NOTE_SAVE_FAILED}

    def list_recent(self, student_id: str, limit: int = None) -> list:
        """Most recent notes for a student, newest first. Empty on failure."""
        try:
            documents = self.store.query(
                self.notes_collection(student_id),
                order_by='createdAt',
                descending=True,
                limit=limit or self.list_limit
            )
        except Exception as e:
            self.logger.error(f"Failed to load notes for {student_id}: {str(e)}")
            return []

        notes = []
        for doc_id, data in documents:
            try:
                notes.append(Note.from_document(data, doc_id))
            except RecordError as e:
                self.logger.warning(f"Skipping malformed note: {str(e)}")
        return notes
