import logging
from dataclasses import dataclass
from flask import current_app
from sqlalchemy import select
from .extensions import db
from .models import StoreSetting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSettings:
    timezone: str
    slots_per_day: int
    cancellation_cutoff_hours: int
    bank_account_info: str


def _as_int(key: str, raw: str, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer store setting %s=%r", key, raw)
        return default


def load_store_settings() -> StoreSettings:
    """
    Resolves the store-wide settings for the current request.
    Rows in ``store_settings`` override the app config defaults.
    """
    cfg = current_app.config
    rows = dict(db.session.execute(select(StoreSetting.key, StoreSetting.value)).all())

    slots = cfg["SLOTS_PER_DAY"]
    if "slots_per_day" in rows:
        slots = _as_int("slots_per_day", rows["slots_per_day"], slots)

    cutoff = cfg["CANCELLATION_CUTOFF_HOURS"]
    if "cancellation_cutoff_hours" in rows:
        cutoff = _as_int("cancellation_cutoff_hours", rows["cancellation_cutoff_hours"], cutoff)

    return StoreSettings(
        timezone=cfg["STORE_TIMEZONE"],
        slots_per_day=slots,
        cancellation_cutoff_hours=cutoff,
        bank_account_info=rows.get("bank_account_info") or cfg["BANK_ACCOUNT_INFO"],
    )
