"""OpenAI-backed column-mapping suggester.

No side effects occur at import time (no client creation, no environment
reads). The client is created per call with an explicit timeout and SDK
retries disabled; callers treat any failure as "no suggestion".
"""

from __future__ import annotations

import json
import os
import re
import time
from collections.abc import Mapping, Sequence
from typing import Any

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam
from pydantic import ValidationError

from . import prompting
from .logging_setup import get_logger
from .models import MappingSuggestion

_DEFAULT_MODEL: str = "gpt-4o-mini"
_DEFAULT_TIMEOUT_SEC: float = 15.0
_MODEL_ENV = "TXN_IMPORT_ORACLE_MODEL"
_TIMEOUT_ENV = "TXN_IMPORT_ORACLE_TIMEOUT"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_logger = get_logger("transaction_import.oracle")


def _response_text(resp: Any) -> str:
    """Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``."""

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return text


def _extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON object from a Responses result.

    Plain JSON is expected under the strict schema, but output wrapped in a
    fenced code block or surrounded by prose is also accepted.
    """

    text = _response_text(resp).strip()
    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _BARE_OBJECT.search(text)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(decoded, Mapping):
            return decoded
    raise ValueError("Model output did not contain a JSON object")


def _resolve_timeout(timeout: float | None) -> float:
    if timeout is not None:
        return timeout
    raw = os.getenv(_TIMEOUT_ENV)
    if raw:
        try:
            value = float(raw)
        except ValueError:
            _logger.warning("oracle:bad_timeout_env value=%r", raw)
        else:
            if value > 0:
                return value
    return _DEFAULT_TIMEOUT_SEC


class OracleSuggester:
    """Ask an OpenAI model which header holds which canonical field.

    ``suggest`` returns the raw ``{field: header}`` suggestion with nulls
    dropped; it does not check headers against the file (see
    :func:`transaction_import.mapping.sanitize_suggestion`). Network, API,
    and decoding failures propagate to the caller.
    """

    def __init__(self, *, model: str | None = None, timeout: float | None = None) -> None:
        self.model = model or os.getenv(_MODEL_ENV) or _DEFAULT_MODEL
        self.timeout = _resolve_timeout(timeout)

    def _create_client(self) -> OpenAI:
        return OpenAI(timeout=self.timeout, max_retries=0)

    def suggest(self, headers: Sequence[str]) -> dict[str, str]:
        if not headers:
            return {}
        text_cfg = ResponseTextConfigParam(format=prompting.build_response_format(headers))
        client = self._create_client()

        t0 = time.perf_counter()
        resp = client.responses.create(
            model=self.model,
            instructions=prompting.build_system_instructions(),
            input=prompting.build_user_content(headers),
            text=text_cfg,
        )
        decoded = _extract_response_json_mapping(resp)
        try:
            suggestion = MappingSuggestion.model_validate(decoded)
        except ValidationError as e:
            raise ValueError(f"Model output did not match the mapping shape: {e}") from e

        dt_ms = (time.perf_counter() - t0) * 1000.0
        out = suggestion.as_dict()
        _logger.info(
            "oracle:done headers=%d mapped=%d latency_ms=%.2f", len(headers), len(out), dt_ms
        )
        return out


__all__ = ["OracleSuggester"]
