"""
Clerk Backend API client

Keeps the identity provider's copy of a user (names, public metadata,
existence) in step with local changes.
"""

import logging
from typing import Optional

import httpx

from ..config import CLERK_API_URL, CLERK_SECRET_KEY

logger = logging.getLogger(__name__)


class ClerkAPIError(Exception):
    """Raised when the Clerk Backend API rejects or fails a request"""


async def _request(method: str, path: str, json: Optional[dict] = None) -> dict:
    if not CLERK_SECRET_KEY:
        raise ClerkAPIError("CLERK_SECRET_KEY not configured")

    url = f"{CLERK_API_URL.rstrip('/')}{path}"
    headers = {"Authorization": f"Bearer {CLERK_SECRET_KEY}"}
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.request(method, url, json=json, headers=headers)
    except httpx.HTTPError as e:
        raise ClerkAPIError(f"Clerk request failed: {e}") from e

    if response.status_code >= 400:
        raise ClerkAPIError(f"Clerk {method} {path} returned HTTP {response.status_code}")
    return response.json() if response.content else {}


async def update_user_name(clerk_id: str, first_name: Optional[str], last_name: Optional[str]) -> dict:
    body = {}
    if first_name:
        body["first_name"] = first_name
    if last_name:
        body["last_name"] = last_name
    logger.info(f"🔄 Syncing name to Clerk for {clerk_id}")
    return await _request("PATCH", f"/users/{clerk_id}", json=body)


async def update_public_metadata(clerk_id: str, public_metadata: dict) -> dict:
    """Merge keys into the user's public metadata"""
    logger.info(f"🔄 Updating Clerk public metadata for {clerk_id}: {sorted(public_metadata)}")
    return await _request(
        "PATCH", f"/users/{clerk_id}/metadata", json={"public_metadata": public_metadata}
    )


async def delete_user(clerk_id: str) -> None:
    logger.info(f"🗑️ Deleting Clerk user {clerk_id}")
    await _request("DELETE", f"/users/{clerk_id}")
