"""Mock identity provider for a single device.

Any non-empty e-mail/password pair signs in. Deleted account e-mails are
remembered so they cannot be reused.
"""
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from agroloop.errors import AuthError, NotSignedIn, StorageError

logger = structlog.get_logger()

USER_KEY = 'user'
DELETED_ACCOUNTS_KEY = 'deletedAccounts'
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class User:
    uid: str
    email: Optional[str] = None

    def to_dict(self):
        return {'uid': self.uid, 'email': self.email}

    @classmethod
    def from_dict(cls, data):
        return cls(uid=data['uid'], email=data.get('email'))


class AuthService:
    def __init__(self, store):
        self.store = store
        self.current_user = None

    def sign_in(self, email, password):
        if self._is_deleted(email):
            raise AuthError("Account has been deleted")
        return self._start_session(email, password)

    def sign_up(self, email, password):
        if self._is_deleted(email):
            raise AuthError("This email was previously used for a deleted account. Please use a different email.")
        return self._start_session(email, password)

    def sign_out(self):
        self.current_user = None
        # Ledger keys are suffixed with the uid and survive sign-out
        keys = [k for k in self.store.keys() if k == USER_KEY or k.startswith('auth')]
        self.store.remove_many(keys)
        logger.info("Signed out")

    def delete_account(self, password):
        if not self.current_user:
            raise NotSignedIn()
        if not password:
            raise AuthError("Password is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("Invalid password")

        if self.current_user.email:
            deleted = self.deleted_accounts()
            email = self.current_user.email.lower()
            if email not in deleted:
                self.store.set_json(DELETED_ACCOUNTS_KEY, deleted + [email])

        self.store.remove_many([k for k in self.store.keys() if k != DELETED_ACCOUNTS_KEY])
        logger.info("Account deleted", uid=self.current_user.uid)
        self.current_user = None
        return True

    def restore(self):
        """Reload a persisted session, returning the user or ``None``."""
        try:
            data = self.store.get_json(USER_KEY)
            self.current_user = User.from_dict(data) if data else None
        except (StorageError, KeyError, TypeError) as e:
            logger.error("Get stored user error", error=str(e))
            self.current_user = None
        return self.current_user

    def require_user(self):
        if not self.current_user:
            raise NotSignedIn()
        return self.current_user

    def deleted_accounts(self):
        try:
            return list(self.store.get_json(DELETED_ACCOUNTS_KEY, []))
        except StorageError as e:
            logger.error("Error getting deleted accounts", error=str(e))
            return []

    def _is_deleted(self, email):
        return bool(email) and email.lower() in self.deleted_accounts()

    def _start_session(self, email, password):
        if not email or not password:
            raise AuthError("Invalid credentials")
        user = User(uid=f"mock-user-id-{int(time.time() * 1000)}", email=email)
        self.store.set_json(USER_KEY, user.to_dict())
        self.current_user = user
        logger.info("Signed in", uid=user.uid)
        return user
