"""User preferences kept in the key-value settings table.

Values are stored as strings; this module owns the keys, their defaults and
the conversion to Python types.
"""

from datetime import datetime
from typing import Dict, Optional

from feed_filter.exceptions import ValidationError
from feed_filter.storage import database


RETENTION_DAYS = "retention_days"
DELETE_STARRED_IN_AUTO = "delete_starred_in_auto"
LAST_SYNC_TIME = "last_sync_time"
AUTO_SYNC_ON_STARTUP = "auto_sync_on_startup"
READ_DISPLAY = "read_display"

DEFAULTS: Dict[str, str] = {
    RETENTION_DAYS: "30",
    DELETE_STARRED_IN_AUTO: "false",
    AUTO_SYNC_ON_STARTUP: "true",
    READ_DISPLAY: "dim",
}

# 0 means unlimited: the automatic retention pass is skipped
RETENTION_DAY_OPTIONS = (0, 7, 30, 90)
READ_DISPLAY_OPTIONS = ("dim", "hide")


def _to_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


async def get_retention_days() -> int:
    value = await database.get_setting(RETENTION_DAYS, DEFAULTS[RETENTION_DAYS])
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(DEFAULTS[RETENTION_DAYS])


async def get_delete_starred_in_auto() -> bool:
    return _to_bool(await database.get_setting(DELETE_STARRED_IN_AUTO, DEFAULTS[DELETE_STARRED_IN_AUTO]))


async def get_last_sync_time() -> Optional[datetime]:
    value = await database.get_setting(LAST_SYNC_TIME)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


async def set_last_sync_time(when: datetime) -> None:
    await database.set_setting(LAST_SYNC_TIME, database.to_db_time(when))


async def get_preferences() -> Dict[str, object]:
    """All user preferences with defaults applied."""
    stored = await database.get_all_settings()
    merged = {**DEFAULTS, **stored}

    return {
        RETENTION_DAYS: await get_retention_days(),
        DELETE_STARRED_IN_AUTO: _to_bool(merged[DELETE_STARRED_IN_AUTO]),
        AUTO_SYNC_ON_STARTUP: _to_bool(merged[AUTO_SYNC_ON_STARTUP]),
        READ_DISPLAY: merged[READ_DISPLAY],
        LAST_SYNC_TIME: merged.get(LAST_SYNC_TIME),
    }


async def update_preferences(
    retention_days: Optional[int] = None,
    delete_starred_in_auto: Optional[bool] = None,
    auto_sync_on_startup: Optional[bool] = None,
    read_display: Optional[str] = None,
) -> Dict[str, object]:
    """Validate and store the given preferences; None leaves a value unchanged.

    Raises:
        ValidationError: If a value is outside its allowed options
    """
    if retention_days is not None and retention_days not in RETENTION_DAY_OPTIONS:
        raise ValidationError(
            f"retention_days must be one of {', '.join(map(str, RETENTION_DAY_OPTIONS))}"
        )
    if read_display is not None and read_display not in READ_DISPLAY_OPTIONS:
        raise ValidationError(f"read_display must be one of {', '.join(READ_DISPLAY_OPTIONS)}")

    if retention_days is not None:
        await database.set_setting(RETENTION_DAYS, str(retention_days))
    if delete_starred_in_auto is not None:
        await database.set_setting(DELETE_STARRED_IN_AUTO, "true" if delete_starred_in_auto else "false")
    if auto_sync_on_startup is not None:
        await database.set_setting(AUTO_SYNC_ON_STARTUP, "true" if auto_sync_on_startup else "false")
    if read_display is not None:
        await database.set_setting(READ_DISPLAY, read_display)

    return await get_preferences()
