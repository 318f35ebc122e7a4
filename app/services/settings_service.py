import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.models.setting import Setting

logger = logging.getLogger(__name__)

STRIPE_CATEGORY = "stripe"
LAST_SYNCED_KEY = "last_synced_at"


def list_settings(db: Session, category: Optional[str] = None, public_only: bool = False) -> List[Setting]:
    query = db.query(Setting)
    if category:
        query = query.filter(Setting.category == category)
    if public_only:
        query = query.filter(Setting.is_public.is_(True))
    return query.order_by(Setting.category.asc(), Setting.key.asc()).all()


def get_setting(db: Session, category: str, key: str, default: Any = None) -> Any:
    row = db.query(Setting).filter(Setting.category == category, Setting.key == key).first()
    return row.value if row else default


def set_setting(db: Session, category: str, key: str, value: Any, commit: bool = True, **fields) -> Setting:
    """Insert or update one setting. Extra fields: description, is_public."""
    row = db.query(Setting).filter(Setting.category == category, Setting.key == key).first()
    if row is None:
        row = Setting(category=category, key=key)
        db.add(row)
    row.value = value
    for name in ("description", "is_public"):
        if fields.get(name) is not None:
            setattr(row, name, fields[name])
    if commit:
        db.commit()
        db.refresh(row)
    return row


def update_settings(db: Session, items: List[Dict[str, Any]]) -> List[Setting]:
    """
    Upsert a batch of {category, key, value} items in one transaction.

    Raises:
        ValueError: An item is missing category or key
    """
    rows = []
    try:
        for item in items:
            if not item.get("category") or not item.get("key"):
                raise ValueError("Each setting requires category and key")
            rows.append(set_setting(
                db,
                item["category"],
                item["key"],
                item.get("value"),
                commit=False,
                description=item.get("description"),
                is_public=item.get("is_public"),
            ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Updated {len(rows)} settings")
    return rows


def record_stripe_sync(db: Session, when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.now(timezone.utc)).isoformat()
    set_setting(db, STRIPE_CATEGORY, LAST_SYNCED_KEY, stamp, description="Last Stripe catalog sync")
    return stamp
