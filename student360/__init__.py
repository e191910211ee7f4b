# Student360 - App Package
"""
Main application package for Student360.
This package contains the school notes services used by the Flask application:
student registration, QR codes, QR scanning and behavioral notes.
"""

__version__ = "1.0.0"
__author__ = "Student360 Team"
__description__ = "School student records with QR codes and behavioral notes"

# Import core components for easy access
from .modules.document_store import DocumentStore
from .modules.identity_provider import IdentityProvider
from .modules.session_resolver import RoleStore, SessionResolver
from .modules.student_directory import StudentDirectory
from .modules.notes_ledger import NotesLedger
from .modules.qr_generator import QRGenerator
from .modules.scan_pipeline import ScanPipeline, ScannerState
from .modules.navigation import Navigator, StateContainer

__all__ = [
    'DocumentStore',
    'IdentityProvider',
    'RoleStore',
    'SessionResolver',
    'StudentDirectory',
    'NotesLedger',
    'QRGenerator',
    'ScanPipeline',
    'ScannerState',
    'Navigator',
    'StateContainer'
]
