#!/usr/bin/env python3
"""
JSON Utilities Module

Consistent pretty-printing for the JSON payloads the CLI prints.
"""

import json
from typing import Any


def format_json(data: Any, default: Any = str) -> str:
    """
    Format data as a pretty-printed JSON string.

    Args:
        data: Data to format
        default: Function to serialize non-JSON types (default: str)

    Returns:
        Pretty-printed JSON string with non-ASCII (such as ₹) kept as-is
    """
    return json.dumps(data, indent=2, ensure_ascii=False, default=default)
