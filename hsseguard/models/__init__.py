"""
Shared model helpers for HSSEGuard.
"""

from hsseguard.models.base import (
    ensure_utc,
    generate_uuid,
    model_to_dict,
    model_to_json,
    serialize_value,
    utc_now,
)

__all__ = [
    "ensure_utc",
    "generate_uuid",
    "model_to_dict",
    "model_to_json",
    "serialize_value",
    "utc_now",
]
