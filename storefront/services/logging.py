import json
import logging
from datetime import datetime, timezone

_logger = logging.getLogger("storefront.events")


def log_event(level: str, event: str, **fields) -> None:
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    _logger.log(numeric, json.dumps(payload, ensure_ascii=False, default=str))
