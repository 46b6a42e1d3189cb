"""Prompt construction for the column-mapping oracle.

This module builds:
- The system instructions for the header → canonical field task.
- The user content embedding the file's header row.
- The strict ``response_format`` (JSON Schema) object for the OpenAI
  Responses API, constraining every value to an existing header or ``null``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import STANDARD_FIELDS

BEGIN = "BEGIN_HEADERS_JSON\n"
END = "\nEND_HEADERS_JSON"

_FIELD_HINTS: dict[str, str] = {
    "date": "transaction date (e.g. Date, Transaction Date, Posted, Ngày, Tanggal)",
    "amount": "transaction amount (e.g. Amount, Value, Debit, Credit, Số tiền)",
    "description": "transaction description (e.g. Description, Memo, Details, Mô tả)",
    "merchant": "merchant or payee name (e.g. Merchant, Payee, Vendor, Cửa hàng)",
    "category": "transaction category (e.g. Category, Type, Danh mục)",
    "account": "account name or number (e.g. Account, Card, Tài khoản)",
}


def build_system_instructions() -> str:
    return (
        "You map the column headers of a bank or credit card CSV export to a fixed set of "
        "transaction fields. Headers may be in English, Vietnamese, or Indonesian. Use each "
        "header at most once, copy header text exactly as given, and use null when no header "
        "fits a field. Output JSON only that conforms to the specified schema."
    )


def build_user_content(headers: Sequence[str]) -> str:
    """Embed the header row as a JSON array between BEGIN_/END_ markers."""

    lines = ["Map these CSV headers to the following fields:"]
    for name in (f.value for f in STANDARD_FIELDS):
        lines.append(f"- {name}: {_FIELD_HINTS[name]}")
    lines.append("date, amount and description are required when any header plausibly fits.")
    lines.append("")
    return "\n".join(lines) + "\n" + BEGIN + json.dumps(list(headers), ensure_ascii=False) + END


def build_response_format(headers: Sequence[str]) -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema response_format for the given headers.

    Schema shape: an object with one required property per canonical field,
    each ``{"type": ["string", "null"], "enum": [<headers>..., null]}``.
    """

    allowed: list[str | None] = [h for h in dict.fromkeys(headers) if h]
    if not allowed:
        raise ValueError("headers must contain at least one non-blank name")
    allowed.append(None)

    names = [f.value for f in STANDARD_FIELDS]
    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "column_mapping",
        "schema": {
            "type": "object",
            "properties": {n: {"type": ["string", "null"], "enum": allowed} for n in names},
            "required": names,
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "BEGIN",
    "END",
    "build_system_instructions",
    "build_user_content",
    "build_response_format",
]
