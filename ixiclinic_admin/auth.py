"""
Admin authentication.

Requests carry a Firebase ID token as a Bearer token. The token signature is
checked against Google's published x509 certificates, then the caller must be
an admin: either the `admin_role` custom claim is set or the email is listed
in ADMIN_EMAILS.
"""

import base64
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer()

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

ALL_PERMISSIONS = ["read", "write", "delete", "billing", "manage_admins"]

ROLE_PERMISSIONS = {
    "super_admin": ALL_PERMISSIONS,
    "admin": ["read", "write", "delete", "billing"],
    "support": ["read"],
}

# Cache for Google's public keys
_cached_keys: Optional[dict] = None


@dataclass
class AdminUser:
    uid: str
    email: str
    role: str
    display_name: Optional[str] = None
    permissions: list[str] = field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


async def get_google_public_keys(force_refresh: bool = False) -> Optional[dict]:
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not force_refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(GOOGLE_CERTS_URL)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {e}")
    return None


async def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token's RS256 signature and its standard claims"""
    project_id = config.FIREBASE_PROJECT_ID
    if not project_id:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=503, detail="Firebase not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode(header_b64))
        payload = json.loads(_b64decode(payload_b64))
        signature = _b64decode(signature_b64)
    except ValueError as e:
        logger.error(f"❌ Failed to decode token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token encoding") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise HTTPException(status_code=401, detail="Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing")
        public_keys = await get_google_public_keys(force_refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    public_key = load_pem_x509_certificate(public_keys[kid].encode()).public_key()
    try:
        public_key.verify(
            signature,
            f"{header_b64}.{payload_b64}".encode(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature as e:
        logger.error(f"❌ Token signature verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    if payload.get("aud") != project_id:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if payload.get("iss") != f"https://securetoken.google.com/{project_id}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    now = time.time()
    if payload.get("exp", 0) < now:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    # Allow 60 seconds clock skew
    if payload.get("iat", 0) > now + 60:
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


def build_admin_user(claims: dict) -> Optional[AdminUser]:
    """Map verified token claims to an AdminUser, or None for non-admins"""
    uid = claims.get("sub") or claims.get("user_id") or claims.get("uid")
    email = (claims.get("email") or "").lower()
    if not uid:
        return None

    role = claims.get("admin_role")
    if role not in ROLE_PERMISSIONS:
        role = "admin" if email and email in config.ADMIN_EMAILS else None
    if not role:
        return None

    return AdminUser(
        uid=uid,
        email=email,
        role=role,
        display_name=claims.get("name"),
        permissions=list(ROLE_PERMISSIONS[role]),
    )


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AdminUser:
    """Resolve the calling admin from the Authorization header"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    claims = await verify_firebase_token(credentials.credentials)
    admin = build_admin_user(claims)
    if not admin:
        logger.warning(f"⚠️ Non-admin {claims.get('email')} attempted to access the admin API")
        raise HTTPException(status_code=403, detail="Admin access required")

    logger.debug(f"✅ Admin authenticated: {admin.email} ({admin.role})")
    return admin


def require_permission(permission: str):
    """Dependency factory: the current admin must hold `permission`"""

    async def checker(admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        if not admin.has_permission(permission):
            logger.warning(f"⚠️ {admin.email} lacks permission '{permission}'")
            raise HTTPException(status_code=403, detail=f"Permission '{permission}' required")
        return admin

    return checker
