"""Firebase Auth user management (Admin SDK)"""

import logging
from typing import Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from . import config

logger = logging.getLogger(__name__)


class IdentityProviderUnavailable(Exception):
    """Raised when the Admin SDK could not be initialized"""


class IdentityProvider:
    """Thin wrapper over firebase_admin.auth used by account management"""

    def __init__(self):
        self._app = None

    def _get_app(self):
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app()
            return self._app
        except ValueError:
            pass

        if not config.FIREBASE_PROJECT_ID:
            raise IdentityProviderUnavailable("FIREBASE_PROJECT_ID not configured")

        try:
            if config.FIREBASE_CREDENTIALS_PATH:
                cred = credentials.Certificate(config.FIREBASE_CREDENTIALS_PATH)
            else:
                cred = credentials.ApplicationDefault()
            self._app = firebase_admin.initialize_app(cred, {"projectId": config.FIREBASE_PROJECT_ID})
            logger.info("✅ Firebase Admin initialized")
        except Exception as e:
            logger.error(f"❌ Firebase Admin initialization failed: {e}")
            raise IdentityProviderUnavailable(str(e)) from e
        return self._app

    def is_available(self) -> bool:
        try:
            self._get_app()
            return True
        except IdentityProviderUnavailable:
            return False

    def delete_user_by_uid(self, uid: str) -> None:
        firebase_auth.delete_user(uid, app=self._get_app())
        logger.info(f"🗑️ Firebase Auth user deleted: {uid}")

    def get_user_by_email(self, email: str) -> Optional[dict]:
        """Return {uid, email, display_name, disabled} or None when no user has that email"""
        try:
            user = firebase_auth.get_user_by_email(email, app=self._get_app())
        except firebase_auth.UserNotFoundError:
            return None
        return {
            "uid": user.uid,
            "email": user.email,
            "display_name": user.display_name,
            "disabled": user.disabled,
        }


# Global instance
identity_provider = IdentityProvider()


def get_identity_provider() -> IdentityProvider:
    """Dependency injection for the identity provider"""
    return identity_provider
