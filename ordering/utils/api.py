# --- ordering/utils/api.py ---
from datetime import datetime, timezone


def _envelope(status: bool, message: str, data=None):
    now = datetime.now(timezone.utc)
    body = dict(data or {}) if isinstance(data, dict) or data is None else {"items": data}
    body["API_TIME_HUMAN"] = now.strftime("%Y-%m-%d %H:%M:%S")
    return {"status": status, "message": message, "data": body}


def api_ok(message, data=None):
    return _envelope(True, message, data)


def api_error(message, data=None):
    return _envelope(False, message, data)
