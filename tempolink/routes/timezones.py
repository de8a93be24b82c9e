"""Timezone display helpers exposed to the frontend"""

from fastapi import APIRouter, HTTPException

from ..shared.timezones import (
    format_timezone,
    get_timezone_display_name,
    get_timezone_offset,
    is_valid_timezone,
)

router = APIRouter(prefix="/timezones", tags=["Timezones"])


@router.get("/{timezone:path}")
async def describe_timezone(timezone: str):
    """e.g. /timezones/America/New_York"""
    if not is_valid_timezone(timezone):
        raise HTTPException(status_code=404, detail="Unknown timezone")
    return {
        "timezone": timezone,
        "displayName": get_timezone_display_name(timezone),
        "offset": get_timezone_offset(timezone),
        "formatted": format_timezone(timezone),
    }
