"""
Identity Provider Module - Student360 School Notes System

This module handles email/password identities for the application. It is
deliberately narrow: it knows who a user is, not what they may do. Roles live
in the role store (users/{uid}) and are resolved by the session resolver,
which subscribes to this provider's auth-state notifications.

Features:
- Email and password sign-in with Werkzeug password hashes
- Sign-out
- Auth-state change notifications to subscribed listeners
- Failed-attempt tracking and temporary lockout
- Account creation, restricted unless self sign-up is enabled
"""

from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta
from typing import Callable, List, Optional
import logging
import re
import secrets
from dataclasses import dataclass

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class AuthError(Exception):
    """Identity-provider failure carrying an 'auth/<reason>' code."""

    def __init__(self, code: str, message: str = None):
        self.code = code
        super().__init__(message or code)


@dataclass
class Identity:
    """Authenticated identity as reported by the provider."""
    uid: str
    email: str


@dataclass
class AuthStateChange:
    """Notification delivered to auth-state listeners; identity is None on sign-out."""
    uid: str
    identity: Optional[Identity]


class IdentityProvider:
    """
    Email/password identity provider backed by the application database.
    """

    def __init__(self, document_store, max_login_attempts: int = 5,
                 lockout_duration: timedelta = timedelta(minutes=15),
                 password_min_length: int = 6, allow_self_signup: bool = False):
        """
        Initialize the identity provider.

        Args:
            document_store: DocumentStore whose database also holds identities
            max_login_attempts (int): Failed attempts before lockout
            lockout_duration (timedelta): How long a lockout lasts
            password_min_length (int): Minimum password length for new accounts
            allow_self_signup (bool): Whether create_user() is open to everyone
        """
        self.store = document_store
        self.logger = logging.getLogger(__name__)

        self.max_login_attempts = max_login_attempts
        self.lockout_duration = lockout_duration
        self.password_min_length = password_min_length
        self.allow_self_signup = allow_self_signup

        self.failed_attempts = {}
        self._listeners: List[Callable[[AuthStateChange], None]] = []

        self.initialize_table()
        self.logger.info("Identity provider initialized")

    def initialize_table(self):
        """Create the identities table. Idempotent."""
        with self.store.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS identities (
                    uid TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    last_sign_in TIMESTAMP
                )
            """)
            conn.commit()

    def on_auth_state_changed(self, listener: Callable[[AuthStateChange], None]) -> Callable[[], None]:
        """
        Subscribe to sign-in / sign-out notifications.

        Args:
            listener: Called with an AuthStateChange after every sign-in and sign-out

        Returns:
            Callable[[], None]: Unsubscribe function
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: AuthStateChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                self.logger.error(f"Auth state listener failed for {change.uid}: {str(e)}")

    def sign_in(self, email: str, password: str, ip_address: str = None) -> Identity:
        """
        Authenticate with email and password.

        Args:
            email (str): Account email
            password (str): Account password
            ip_address (str): Client IP address, for logging

        Returns:
            Identity: The signed-in identity

        Raises:
            AuthError: With one of the auth/* codes
        """
        email = (email or '').strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise AuthError('auth/invalid-email')

        if not password:
            raise AuthError('auth/invalid-credential')

        if self._is_account_locked(email):
            self.logger.warning(f"Sign-in attempt for locked account: {email}")
            raise AuthError('auth/too-many-requests')

        with self.store.get_connection() as conn:
            row = conn.execute(
                "SELECT uid, email, password_hash FROM identities WHERE email = ?", (email,)
            ).fetchone()

        if not row:
            self._record_failed_attempt(email, ip_address)
            raise AuthError('auth/user-not-found')

        if not check_password_hash(row['password_hash'], password):
            self._record_failed_attempt(email, ip_address)
            raise AuthError('auth/wrong-password')

        self._clear_failed_attempts(email)

        with self.store.get_connection() as conn:
            conn.execute("UPDATE identities SET last_sign_in = CURRENT_TIMESTAMP WHERE uid = ?", (row['uid'],))
            conn.commit()

        identity = Identity(uid=row['uid'], email=row['email'])
        self.logger.info(f"Identity signed in: {email}" + (f" from {ip_address}" if ip_address else ""))
        self._notify(AuthStateChange(uid=identity.uid, identity=identity))
        return identity

    def sign_out(self, uid: str) -> None:
        """Sign an identity out and notify listeners."""
        self.logger.info(f"Identity signed out: {uid}")
        self._notify(AuthStateChange(uid=uid, identity=None))

    def get_identity(self, uid: str) -> Optional[Identity]:
        """Look up an identity by uid."""
        if not uid:
            return None
        with self.store.get_connection() as conn:
            row = conn.execute("SELECT uid, email FROM identities WHERE uid = ?", (uid,)).fetchone()
        return Identity(uid=row['uid'], email=row['email']) if row else None

    def create_user(self, email: str, password: str, privileged: bool = False) -> Identity:
        """
        Create an identity.

        Args:
            email (str): Account email
            password (str): Account password
            privileged (bool): Bypass the self sign-up restriction (CLI provisioning)

        Returns:
            Identity: The created identity

        Raises:
            AuthError: auth/admin-restricted-operation, auth/invalid-email,
                auth/weak-password or auth/email-already-in-use
        """
        if not (self.allow_self_signup or privileged):
            raise AuthError('auth/admin-restricted-operation')

        email = (email or '').strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise AuthError('auth/invalid-email')

        if not password or len(password) < self.password_min_length:
            raise AuthError('auth/weak-password',
                            f"Password must be at least {self.password_min_length} characters long")

        uid = secrets.token_urlsafe(21)
        with self.store.get_connection() as conn:
            existing = conn.execute("SELECT uid FROM identities WHERE email = ?", (email,)).fetchone()
            if existing:
                raise AuthError('auth/email-already-in-use')

            conn.execute(
                "INSERT INTO identities (uid, email, password_hash) VALUES (?, ?, ?)",
                (uid, email, generate_password_hash(password))
            )
            conn.commit()

        self.logger.info(f"Identity created: {email} ({uid})")
        return Identity(uid=uid, email=email)

    def find_by_email(self, email: str) -> Optional[Identity]:
        email = (email or '').strip().lower()
        with self.store.get_connection() as conn:
            row = conn.execute("SELECT uid, email FROM identities WHERE email = ?", (email,)).fetchone()
        return Identity(uid=row['uid'], email=row['email']) if row else None

    def _is_account_locked(self, email: str) -> bool:
        """
        Check if an account is locked due to failed sign-in attempts.

        Args:
            email (str): Account email

        Returns:
            bool: True if account is locked
        """
        attempt_data = self.failed_attempts.get(email)
        if not attempt_data:
            return False

        if datetime.now() - attempt_data['last_attempt'] > self.lockout_duration:
            del self.failed_attempts[email]
            return False

        return attempt_data['count'] >= self.max_login_attempts

    def _record_failed_attempt(self, email: str, ip_address: str = None) -> None:
        now = datetime.now()
        expired = [key for key, data in self.failed_attempts.items()
                   if now - data['last_attempt'] > self.lockout_duration]
        for key in expired:
            del self.failed_attempts[key]

        attempt_data = self.failed_attempts.setdefault(email, {'count': 0, 'last_attempt': now})
        attempt_data['count'] += 1
        attempt_data['last_attempt'] = now

        self.logger.warning(f"Failed sign-in attempt {attempt_data['count']} for {email} from {ip_address}")

    def _clear_failed_attempts(self, email: str) -> None:
        self.failed_attempts.pop(email, None)

