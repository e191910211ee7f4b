"""
Session Resolver Module - Student360 School Notes System

This module turns an authenticated identity into a role-tagged Session by
reading the identity's role document at users/{uid}. Resolution never fails
hard: a missing role document, an unrecognized role or a store failure all
produce a session with role 'unknown', which the pages display but which
cannot perform any action.

Features:
- Role store access (read and provisioning)
- Session resolution with graceful degradation
- School metadata upsert for admin sessions
- Session cache driven by identity-provider auth-state notifications
"""

import logging
import threading
from typing import Dict, Optional

from student360.modules.document_store import SERVER_TIMESTAMP, document_path
from student360.modules.messages import ROLE_DEFAULT_NAMES, DEFAULT_DISPLAY_NAME
from student360.modules.records import ROLES, ROLE_UNKNOWN, RoleDoc, Session


class RoleStore:
    """Role documents keyed by identity uid."""

    def __init__(self, document_store):
        self.store = document_store
        self.logger = logging.getLogger(__name__)

    def get_role_doc(self, uid: str) -> Optional[RoleDoc]:
        """
        Read the role document of an identity.

        Returns:
            RoleDoc: Parsed role document, or None if it does not exist
        """
        data = self.store.get(document_path('users', uid))
        return RoleDoc.from_document(data) if data is not None else None

    def assign_role(self, uid: str, role: str, email: str = None) -> RoleDoc:
        """Create or replace the role document of an identity."""
        if role not in ROLES or role == ROLE_UNKNOWN:
            raise ValueError(f"Unknown role: {role}")

        role_doc = RoleDoc(role=role, email=email)
        self.store.set(document_path('users', uid), role_doc.to_document())
        self.logger.info(f"Role '{role}' assigned to {uid}")
        return role_doc


class SessionResolver:
    """
    Resolves and caches sessions for signed-in identities.
    """

    def __init__(self, document_store, role_store: RoleStore, school_id: str, school_name: str):
        """
        Initialize the resolver.

        Args:
            document_store: DocumentStore holding school documents
            role_store (RoleStore): Role document access
            school_id (str): School every session is scoped to
            school_name (str): Display name of that school
        """
        self.store = document_store
        self.roles = role_store
        self.school_id = school_id
        self.school_name = school_name
        self.logger = logging.getLogger(__name__)

        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def attach(self, identity_provider):
        """
        Subscribe to an identity provider's auth-state stream.

        Returns:
            Callable[[], None]: Unsubscribe function
        """
        return identity_provider.on_auth_state_changed(self.handle_auth_state_change)

    def handle_auth_state_change(self, change) -> None:
        if change.identity is None:
            with self._lock:
                self._sessions.pop(change.uid, None)
            self.logger.info(f"Session destroyed for {change.uid}")
            return

        session = self.resolve(change.identity)
        with self._lock:
            self._sessions[change.uid] = session

    def get_session(self, identity) -> Optional[Session]:
        """
        Return the cached session for an identity, resolving it if the cache
        has no entry (for example after a process restart).
        """
        if identity is None:
            return None

        with self._lock:
            session = self._sessions.get(identity.uid)
        if session is not None:
            return session

        session = self.resolve(identity)
        with self._lock:
            self._sessions[identity.uid] = session
        return session

    def resolve(self, identity) -> Session:
        """
        Map an authenticated identity to a session.

        Args:
            identity: Identity with uid and email

        Returns:
            Session: Resolved session; role 'unknown' when no usable role document exists
        """
        fallback_identifier = identity.email or identity.uid

        try:
            role_doc = self.roles.get_role_doc(identity.uid)
        except Exception as e:
            self.logger.error(f"Role lookup failed for {identity.uid}: {str(e)}")
            return self._unknown_session(identity)

        if role_doc is None:
            self.logger.warning(f"No role document for {identity.uid}")
            return self._unknown_session(identity)

        session = Session(
            uid=identity.uid,
            identity=role_doc.email or fallback_identifier,
            role=role_doc.role,
            display_name=ROLE_DEFAULT_NAMES.get(role_doc.role, DEFAULT_DISPLAY_NAME),
            school_id=self.school_id,
            school_name=self.school_name,
        )

        if session.is_admin:
            self._ensure_school_document(session)

        self.logger.info(f"Session resolved for {session.identity} with role {session.role}")
        return session

    def _unknown_session(self, identity) -> Session:
        return Session(
            uid=identity.uid,
            identity=identity.email or identity.uid,
            role=ROLE_UNKNOWN,
            display_name=DEFAULT_DISPLAY_NAME,
            school_id=self.school_id,
            school_name=self.school_name,
        )

    def _ensure_school_document(self, session: Session) -> None:
        try:
            self.store.set(
                document_path('schools', session.school_id),
                {
                    'schoolId': session.school_id,
                    'name': session.school_name,
                    'updatedAt': SERVER_TIMESTAMP,
                },
                merge=True
            )
        except Exception as e:
            self.logger.error(f"Failed to upsert school document {session.school_id}: {str(e)}")
