import hashlib
import time
import logging
import jwt
from supabase import Client
from narra.config.settings import settings
from narra.config.plans_config import USER_ROLES
from narra.core.cache import AuthorizationCache
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache of verified session claims to avoid re-verifying the same token on parallel requests
_SESSION_CLAIMS_CACHE: Dict[str, tuple] = {}
_SESSION_CACHE_TTL_SEC = 60
_SESSION_CACHE_MAX_SIZE = 500

_jwks_client: Optional[jwt.PyJWKClient] = None


def get_jwks_client() -> jwt.PyJWKClient:
    global _jwks_client
    if _jwks_client is None:
        if not settings.clerk_jwks_url:
            raise HTTPException(status_code=500, detail="CLERK_JWKS_URL is not configured")
        _jwks_client = jwt.PyJWKClient(settings.clerk_jwks_url)
    return _jwks_client


class AuthService:
    def __init__(self, supabase: Client, cache: Optional[AuthorizationCache] = None):
        self.supabase = supabase
        self.cache = cache

    def verify_session_token(self, token: str) -> Dict[str, Any]:
        """Verify an identity-provider session JWT and return the current user. Uses a short TTL cache."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.time()
        if cache_key in _SESSION_CLAIMS_CACHE:
            user_data, expiry = _SESSION_CLAIMS_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _SESSION_CLAIMS_CACHE[cache_key]
        try:
            signing_key = get_jwks_client().get_signing_key_from_jwt(token)
            decode_kwargs = {"algorithms": ["RS256"], "options": {"verify_aud": False}}
            if settings.clerk_issuer:
                decode_kwargs["issuer"] = settings.clerk_issuer
            claims = jwt.decode(token, signing_key.key, **decode_kwargs)
        except HTTPException:
            raise
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Session expired")
        except jwt.PyJWTError as e:
            logger.warning(f"Rejected session token: {e}")
            raise HTTPException(status_code=401, detail="Invalid session token")

        user_id = claims.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid session token")
        user_data = {
            "id": user_id,
            "email": claims.get("email"),
            "session_id": claims.get("sid"),
        }
        expiry = min(now + _SESSION_CACHE_TTL_SEC, float(claims.get("exp", now + _SESSION_CACHE_TTL_SEC)))
        if len(_SESSION_CLAIMS_CACHE) < _SESSION_CACHE_MAX_SIZE:
            _SESSION_CLAIMS_CACHE[cache_key] = (user_data, expiry)
        return user_data

    def get_user_role(self, user_id: str) -> Optional[str]:
        """Return the stored role of a user, None when the user row is missing"""
        try:
            result = self.supabase.table("users")\
                .select("role")\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()
            if not result or not result.data:
                return None
            return result.data.get("role")
        except Exception as e:
            logger.error(f"Error getting role for {user_id}: {e}")
            return None

    def set_user_role(self, user_id: str, role: str) -> Dict[str, Any]:
        """Set a user's role and invalidate their authorization cache entry"""
        if role not in USER_ROLES:
            raise HTTPException(status_code=400, detail=f"Role must be one of: {', '.join(USER_ROLES)}")
        try:
            result = self.supabase.table("users")\
                .update({"role": role})\
                .eq("id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error setting role for {user_id}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to update role: {str(e)}")

        if self.cache is not None:
            self.cache.delete(user_id, reason=f"role change to {role}")
        logger.info(f"Set role for user {user_id} to {role}")
        return result.data[0]

    def make_admin(self, user_id: str) -> Dict[str, Any]:
        return self.set_user_role(user_id, "admin")

    def remove_admin(self, user_id: str) -> Dict[str, Any]:
        return self.set_user_role(user_id, "user")
