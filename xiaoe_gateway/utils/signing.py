"""Canonical text of key/value payloads for signing"""

from typing import Any, Dict


def signing_content(params: Dict[str, Any]) -> str:
    """Sorted key=value pairs joined by '&', empty values skipped"""
    return "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
