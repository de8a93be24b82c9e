import logging
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import AUTHORIZED_PARTIES, CLERK_ISSUER, CLERK_JWKS_URL
from .database import get_db
from .models import ROLES, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for Clerk's signing keys
_cached_jwks: Optional[dict] = None


async def get_clerk_jwks(force_refresh: bool = False) -> Optional[dict]:
    """Fetch the Clerk JSON Web Key Set used to sign session tokens"""
    global _cached_jwks
    if _cached_jwks and not force_refresh:
        logger.debug("✅ Using cached Clerk JWKS")
        return _cached_jwks

    if not CLERK_JWKS_URL:
        logger.error("❌ CLERK_JWKS_URL not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(CLERK_JWKS_URL)
            if response.status_code == 200:
                _cached_jwks = response.json()
                logger.info(f"✅ Fetched {len(_cached_jwks.get('keys', []))} Clerk signing keys")
                return _cached_jwks
            logger.error(f"❌ Failed to fetch Clerk JWKS: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Clerk JWKS: {str(e)}")
    return None


def _find_key(jwks: Optional[dict], kid: Optional[str]) -> Optional[dict]:
    if not jwks:
        return None
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


async def verify_clerk_token(token: str) -> dict:
    """
    Verify a Clerk session token (RS256 JWT) and return its claims.

    Checks signature, expiry and not-before; issuer when CLERK_ISSUER is set;
    and the azp claim against AUTHORIZED_PARTIES when that list is configured.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        logger.warning(f"⚠️ Unreadable token header: {e}")
        raise HTTPException(status_code=401, detail="Invalid token format") from e

    kid = header.get("kid")
    key = _find_key(await get_clerk_jwks(), kid)
    if key is None:
        # Signing keys rotate; refetch once before giving up
        key = _find_key(await get_clerk_jwks(force_refresh=True), kid)
    if key is None:
        logger.error(f"❌ No Clerk signing key matches kid={kid}")
        raise HTTPException(status_code=401, detail="Invalid token signature")

    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=CLERK_ISSUER or None,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    if AUTHORIZED_PARTIES and claims.get("azp") not in AUTHORIZED_PARTIES:
        logger.warning(f"⚠️ Token azp {claims.get('azp')!r} is not an authorized party")
        raise HTTPException(status_code=401, detail="Token not issued for this application")

    return claims


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Verified identity-provider claims for the request's bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    claims = await verify_clerk_token(token)
    if not claims.get("sub"):
        logger.error(f"❌ Token missing sub claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")
    return claims


def role_from_claims(claims: dict) -> Optional[str]:
    """Role from public metadata, falling back to plain metadata"""
    for field in ("public_metadata", "publicMetadata", "metadata"):
        metadata = claims.get(field)
        if isinstance(metadata, dict) and metadata.get("role"):
            role = str(metadata["role"]).upper()
            if role in ROLES:
                return role
    return None


def find_or_create_user(db: Session, claims: dict) -> tuple[User, bool]:
    """
    Return the local user for the token subject, creating it from the claims
    on first sight. The second element is True when the row was created.
    """
    clerk_id = claims["sub"]
    user = db.query(User).filter(User.clerk_id == clerk_id).first()
    if user:
        return user, False

    logger.info(f"🆕 Creating user for Clerk id {clerk_id}")
    user = User(
        clerk_id=clerk_id,
        email=(claims.get("email") or "").strip().lower(),
        first_name=claims.get("first_name") or claims.get("given_name") or None,
        last_name=claims.get("last_name") or claims.get("family_name") or None,
        role=role_from_claims(claims),
        image_url=claims.get("image_url") or None,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # A concurrent request may have created the same user
        user = db.query(User).filter(User.clerk_id == clerk_id).first()
        if user:
            return user, False
        logger.error(f"❌ Failed to create user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create user") from e
    db.refresh(user)
    return user, True


async def get_current_user(
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    """Get the current user from the Clerk session token"""
    user, _ = find_or_create_user(db, claims)
    if user.is_deleted:
        logger.warning(f"⚠️ Deleted account attempted access: {user.id}")
        raise HTTPException(status_code=403, detail="Account has been deleted")
    return user


async def get_current_user_with_role(current_user: User = Depends(get_current_user)) -> User:
    """Like get_current_user, but the user must have finished role selection"""
    if not current_user.role:
        raise HTTPException(
            status_code=403,
            detail="User role not set",
            headers={"X-Onboarding-Required": "true"},
        )
    return current_user


def require_role(*roles: str):
    """Dependency factory restricting an endpoint to the given roles"""

    async def dependency(current_user: User = Depends(get_current_user_with_role)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied")
        return current_user

    return dependency
