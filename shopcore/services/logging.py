import json
import logging
from datetime import datetime, timezone
from decimal import Decimal


EVENT_LOGGER = "shopcore.events"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _default(value):
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def log_event(level: str, event: str, **fields) -> None:
    """Emit one JSON object per event through the ``shopcore.events`` logger."""
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    logger = logging.getLogger(EVENT_LOGGER)
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        json.dumps(payload, ensure_ascii=False, default=_default),
    )
