"""Utility functions for fiscal app."""

import json

SENSITIVE_KEYS = frozenset({
    "authorization", "token", "apikey", "password", "secret",
    "accesstoken", "bearer",
})


def mask_sensitive_fields(payload):
    """
    Mask sensitive fields before persisting gateway payloads.
    Masks: Authorization, token, api_key, password, secret, access_token.
    """
    return mask_sensitive_data(payload)


def mask_sensitive_data(obj):
    """Recursively mask sensitive fields in a JSON-serializable object."""
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [mask_sensitive_data(i) for i in obj]
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            k_lower = str(k).lower().replace("_", "").replace("-", "")
            if k_lower in SENSITIVE_KEYS:
                out[k] = "[REDACTED]"
            else:
                out[k] = mask_sensitive_data(v)
        return out
    return obj


def safe_json_dumps(obj, indent: int = 2) -> str:
    """JSON dump with sensitive data masked."""
    return json.dumps(mask_sensitive_data(obj), indent=indent, default=str)
