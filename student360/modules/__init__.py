# Student360 - Modules Package
"""
Core business logic modules for Student360.
camera_decoder needs the optional camera dependencies and is imported on demand.
"""

__version__ = "1.0.0"
__description__ = "Core modules for Student360 functionality"

# Module descriptions
MODULES = {
    'document_store': 'Hierarchical JSON document storage on SQLite',
    'identity_provider': 'Email/password identities and auth-state events',
    'session_resolver': 'Role documents and per-user session resolution',
    'student_ids': 'Student ID normalization',
    'records': 'Session, student and note records',
    'csv_importer': 'CSV parsing for bulk student import',
    'student_directory': 'Student registration, import and lookup',
    'notes_ledger': 'Behavioral notes per student',
    'qr_generator': 'QR code images and print views',
    'scan_pipeline': 'Scanner state machine and async scan pipeline',
    'camera_decoder': 'Local camera QR decoding (OpenCV + zxing-cpp)',
    'navigation': 'Per-user application state and page navigation',
    'messages': 'User-facing messages and role labels'
}
