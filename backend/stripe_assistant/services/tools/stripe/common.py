"""
Helpers shared by the Stripe tool handlers: argument coercion and the
rendering of Stripe objects into the flat dicts returned to the model.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from stripe_assistant.core.config import settings
from stripe_assistant.services.tools.executor import ToolValidationError

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Stripe object, a plain dict or any attribute holder."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def compact(params: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset request parameters."""
    return {key: value for key, value in params.items() if value is not None}


def require_str(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ToolValidationError(f"Missing required parameter: {key}")
    if not isinstance(value, str):
        raise ToolValidationError(f"Parameter {key} should be string, got {type(value).__name__}")
    return value.strip()


def optional_str(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolValidationError(f"Parameter {key} should be string, got {type(value).__name__}")
    return value.strip() or None


def optional_int(args: Dict[str, Any], key: str) -> Optional[int]:
    """Integer argument; integral floats and digit strings are accepted."""
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ToolValidationError(f"Parameter {key} should be integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ToolValidationError(f"Parameter {key} should be integer, got {value!r}")


def require_int(args: Dict[str, Any], key: str) -> int:
    value = optional_int(args, key)
    if value is None:
        raise ToolValidationError(f"Missing required parameter: {key}")
    return value


def optional_number(args: Dict[str, Any], key: str) -> Optional[float]:
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolValidationError(f"Parameter {key} should be number, got {type(value).__name__}")
    return value


def optional_bool(args: Dict[str, Any], key: str) -> Optional[bool]:
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ToolValidationError(f"Parameter {key} should be boolean, got {value!r}")


def list_limit(args: Dict[str, Any]) -> int:
    """`limit` argument of list operations: 10 when unset, clamped to 1..100."""
    limit = optional_int(args, "limit")
    if not limit:
        return DEFAULT_LIST_LIMIT
    return max(1, min(limit, MAX_LIST_LIMIT))


def parse_timestamp(value: Any, key: str = "frozenTime") -> int:
    """
    Unix seconds from either a Unix timestamp or an ISO-8601 string.
    ISO strings without an offset are read as UTC.
    """
    if isinstance(value, bool) or value is None:
        raise ToolValidationError(f"Parameter {key} must be a Unix timestamp or ISO-8601 string")
    if isinstance(value, (int, float)):
        return int(value)

    text = str(value).strip()
    if text.isdigit():
        return int(text)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ToolValidationError(f"Parameter {key} is not a valid timestamp: {text}") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def iso_from_unix(timestamp: Optional[int]) -> Optional[str]:
    """ISO-8601 UTC rendering of a Stripe Unix timestamp."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def dashboard_url(kind: str, object_id: Optional[str]) -> str:
    """Link to an object in the test-mode Stripe Dashboard, e.g. kind='customers'."""
    return f"{settings.STRIPE_DASHBOARD_BASE.rstrip('/')}/{kind}/{object_id}"


def card_summary(payment_method: Any) -> Optional[Dict[str, Any]]:
    card = field(payment_method, "card")
    if card is None:
        return None
    return {
        "brand": field(card, "brand"),
        "last4": field(card, "last4"),
        "expMonth": field(card, "exp_month"),
        "expYear": field(card, "exp_year"),
    }


def recurring_summary(price: Any) -> Optional[Dict[str, Any]]:
    recurring = field(price, "recurring")
    if recurring is None:
        return None
    return {
        "interval": field(recurring, "interval"),
        "intervalCount": field(recurring, "interval_count"),
    }
