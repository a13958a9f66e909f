"""
OIDC bearer-token authentication.

Validates RS256 access tokens against the issuer's JWKS. The JWKS URI is
read from the issuer's discovery document
({issuer}/.well-known/openid-configuration), so any OIDC provider works.
Disabled in development via AUTH_ENABLED=false.
"""
from __future__ import annotations

from typing import Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from confidence_engine.core.config import Settings, get_settings

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

_jwks_cache: dict[str, dict] = {}


class DiscoveryError(ValueError):
    """The issuer's discovery document has no usable jwks_uri."""


async def _fetch_jwks(issuer_url: str, client: Optional[httpx.AsyncClient] = None) -> dict:
    if issuer_url in _jwks_cache:
        return _jwks_cache[issuer_url]

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=5.0)
    try:
        resp = await client.get(f"{issuer_url.rstrip('/')}/.well-known/openid-configuration")
        resp.raise_for_status()
        jwks_uri = resp.json().get("jwks_uri")
        if not jwks_uri:
            raise DiscoveryError(f"no jwks_uri in discovery document of {issuer_url}")

        resp = await client.get(jwks_uri)
        resp.raise_for_status()
        _jwks_cache[issuer_url] = resp.json()
    finally:
        if owns_client:
            await client.aclose()
    return _jwks_cache[issuer_url]


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    FastAPI dependency: returns the decoded claims of a valid token.
    """
    if not settings.auth_enabled:
        return {"sub": "dev-user", "roles": ["confidence-admin"]}

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = credentials.credentials
    try:
        jwks = await _fetch_jwks(settings.oidc_issuer_url)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("jwks_fetch_failed", issuer=settings.oidc_issuer_url, error=str(e))
        raise HTTPException(status_code=503, detail="Token verification unavailable")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
        key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
        if key is None:
            raise HTTPException(status_code=401, detail="Invalid token signing key")

        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=settings.oidc_audience,
            issuer=settings.oidc_issuer_url,
        )
    except JWTError as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Token validation failed")
