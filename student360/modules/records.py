"""
Record Schemas Module - Student360 School Notes System

Explicit schemas for the documents the application reads and writes. Documents
arrive from the store as plain dicts; every read goes through from_document()
so that missing or malformed fields either fall back to a known default or
raise RecordError instead of leaking None into the pages.

Features:
- Session, RoleDoc, CreatedBy, Student and Note dataclasses
- Validation at the store boundary
- Default grade/section/location/category values
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from student360.modules.student_ids import normalize_student_id

ROLES = ('admin', 'teacher', 'counselor', 'parent', 'unknown')
ROLE_UNKNOWN = 'unknown'
NOTE_WRITER_ROLES = ('teacher', 'counselor', 'admin')

NOTE_TYPES = ('positive', 'negative')
NOTE_LOCATIONS = ('الفصل', 'الملعب', 'الممر', 'المسجد', 'المكتبة', 'المقصف', 'البوابة')
NOTE_CATEGORIES = ('سلوك', 'تأخير', 'انضباط', 'تعاون', 'مخالفة', 'اجتهاد')

DEFAULT_GRADE = 'الصف الأول ابتدائي'
DEFAULT_SECTION = 'أ'
DEFAULT_LOCATION = NOTE_LOCATIONS[0]
DEFAULT_CATEGORY = NOTE_CATEGORIES[0]


class RecordError(ValueError):
    """Raised when a stored document cannot be turned into a record."""


def _text(value, default: str = '') -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


@dataclass
class Session:
    """Role-tagged session for an authenticated identity."""
    uid: str
    identity: str
    role: str
    display_name: str
    school_id: str
    school_name: str

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def is_unknown(self) -> bool:
        return self.role == ROLE_UNKNOWN

    @property
    def can_write_notes(self) -> bool:
        return self.role in NOTE_WRITER_ROLES

    def created_by(self, via: Optional[str] = None) -> 'CreatedBy':
        return CreatedBy(role=self.role, name=self.display_name, identifier=self.identity, via=via)


@dataclass
class RoleDoc:
    """Role document stored at users/{uid}."""
    role: str
    email: Optional[str] = None

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]]) -> 'RoleDoc':
        data = data or {}
        role = _text(data.get('role'), ROLE_UNKNOWN)
        if role not in ROLES:
            role = ROLE_UNKNOWN
        return cls(role=role, email=_text(data.get('email')) or None)

    def to_document(self) -> Dict[str, Any]:
        return {'role': self.role, 'email': self.email}


@dataclass
class CreatedBy:
    role: str
    name: str
    identifier: str
    via: Optional[str] = None

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]]) -> 'CreatedBy':
        data = data or {}
        return cls(
            role=_text(data.get('role'), ROLE_UNKNOWN),
            name=_text(data.get('name'), '—'),
            identifier=_text(data.get('identifier')),
            via=_text(data.get('via')) or None,
        )

    def to_document(self) -> Dict[str, Any]:
        document = {'role': self.role, 'name': self.name, 'identifier': self.identifier}
        if self.via:
            document['via'] = self.via
        return document


@dataclass
class Student:
    """Student record stored at schools/{schoolId}/students/{studentId}."""
    student_id: str
    name: str
    grade: str = DEFAULT_GRADE
    section: str = DEFAULT_SECTION
    school_id: str = ''
    created_at: Optional[str] = None
    created_by: Optional[CreatedBy] = None

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]], doc_id: str = None) -> 'Student':
        data = data or {}
        student_id = normalize_student_id(data.get('studentId') or doc_id)
        if not student_id:
            raise RecordError(f"Student document has no valid studentId: {doc_id}")

        return cls(
            student_id=student_id,
            name=_text(data.get('name')),
            grade=_text(data.get('grade'), DEFAULT_GRADE),
            section=_text(data.get('section'), DEFAULT_SECTION),
            school_id=_text(data.get('schoolId')),
            created_at=data.get('createdAt'),
            created_by=CreatedBy.from_document(data.get('createdBy')) if data.get('createdBy') else None,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            'schoolId': self.school_id,
            'studentId': self.student_id,
            'name': self.name,
            'grade': self.grade,
            'section': self.section,
            'createdAt': self.created_at,
            'createdBy': self.created_by.to_document() if self.created_by else None,
        }


@dataclass
class Note:
    """Behavioral note stored under a student's notes collection."""
    student_id: str
    note_type: str
    comment: str
    location: str = DEFAULT_LOCATION
    category: str = DEFAULT_CATEGORY
    student_name: str = ''
    school_id: str = ''
    created_at: Optional[str] = None
    created_by: Optional[CreatedBy] = None
    note_id: Optional[str] = field(default=None, compare=False)

    @property
    def is_positive(self) -> bool:
        return self.note_type == 'positive'

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]], doc_id: str = None) -> 'Note':
        data = data or {}
        note_type = _text(data.get('type'))
        if note_type not in NOTE_TYPES:
            raise RecordError(f"Note {doc_id} has unknown type: {note_type!r}")

        return cls(
            student_id=normalize_student_id(data.get('studentId')),
            note_type=note_type,
            comment=_text(data.get('comment')),
            location=_text(data.get('location'), DEFAULT_LOCATION),
            category=_text(data.get('category'), DEFAULT_CATEGORY),
            student_name=_text(data.get('studentName')),
            school_id=_text(data.get('schoolId')),
            created_at=data.get('createdAt'),
            created_by=CreatedBy.from_document(data.get('createdBy')),
            note_id=doc_id,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            'schoolId': self.school_id,
            'studentId': self.student_id,
            'studentName': self.student_name,
            'type': self.note_type,
            'location': self.location,
            'category': self.category,
            'comment': self.comment,
            'createdAt': self.created_at,
            'createdBy': self.created_by.to_document() if self.created_by else None,
        }
