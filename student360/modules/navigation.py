"""
Navigation Module - Student360 School Notes System

Per-user application state and in-memory page navigation. The web surface has
one page endpoint that renders whatever page the user's AppState points at;
every navigation goes through Navigator so that the scan token advances and
late scan results from a previous scanner visit are discarded.

Features:
- AppState (current page, loaded student, lookup error, navigation token, scanner state)
- Navigator (page changes, student lookup guarded by the navigation token)
- StateContainer (AppState per signed-in uid)
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from student360.modules.records import Student
from student360.modules.scan_pipeline import NavigationToken, ScannerState

DASHBOARD = 'dashboard'
SCANNER = 'scanner'
STUDENT = 'student'
ADMIN_STUDENTS = 'admin_students'

PAGES = (DASHBOARD, SCANNER, STUDENT, ADMIN_STUDENTS)
# the student page is only reached through a lookup
NAVIGABLE_PAGES = (DASHBOARD, SCANNER, ADMIN_STUDENTS)


@dataclass
class AppState:
    page: str = DASHBOARD
    student: Optional[Student] = None
    student_error: str = ''
    token: NavigationToken = field(default_factory=NavigationToken)
    scanner: ScannerState = field(default_factory=ScannerState)


class Navigator:
    """
    Page transitions and scan-result handling for an AppState.
    """

    def __init__(self, student_directory):
        self.directory = student_directory
        self.logger = logging.getLogger(__name__)

    def go(self, state: AppState, page: str) -> AppState:
        """
        Navigate to a page, invalidating results of the previous visit.

        Args:
            state (AppState): User's application state
            page (str): One of NAVIGABLE_PAGES

        Returns:
            AppState: The same state, updated
        """
        if page not in NAVIGABLE_PAGES:
            raise ValueError(f"Unknown page: {page}")

        state.token.advance()
        state.scanner.reset()
        state.student = None
        state.student_error = ''
        state.page = page
        return state

    def open_student_by_id(self, state: AppState, raw_text: str, token) -> bool:
        """
        Resolve decoded text to a student and show the student page.

        Args:
            state (AppState): User's application state
            raw_text (str): Decoded QR text or typed ID
            token: Navigation token captured when the scanner was opened

        Returns:
            bool: False if the result was stale and discarded
        """
        if not state.token.is_current(token):
            self.logger.info(f"Discarded stale scan result (token {token}, current {state.token.current})")
            return False

        result = self.directory.get_student(raw_text)

        # the lookup may have outlived the page visit
        if not state.token.is_current(token):
            self.logger.info(f"Discarded scan result that resolved after navigation (token {token})")
            return False

        if result['success']:
            state.student = result['student']
            state.student_error = ''
        else:
            state.student = None
            state.student_error = result['error']

        state.page = STUDENT
        return True


class StateContainer:
    """AppState instances keyed by uid."""

    def __init__(self):
        self._states: Dict[str, AppState] = {}
        self._lock = threading.Lock()

    def get(self, uid: str) -> AppState:
        with self._lock:
            state = self._states.get(uid)
            if state is None:
                state = AppState()
                self._states[uid] = state
            return state

    def discard(self, uid: str) -> None:
        with self._lock:
            state = self._states.pop(uid, None)
        if state is not None:
            state.token.advance()
            state.scanner.reset()
