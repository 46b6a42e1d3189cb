"""Test helpers to stub the OpenAI Responses client used by ``oracle.py``.

The stub parses the user-content payload to extract the embedded header list
and returns whatever the test's ``decide`` callable produces for it, encoded
as the response's ``output_text``. Tests monkeypatch
``transaction_import.oracle.OpenAI`` with :func:`make_openai_stub`.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from transaction_import.prompting import BEGIN, END


def extract_headers(user_content: str) -> list[str]:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("oracle: user content missing embedded headers JSON block")
    return json.loads(user_content[b + len(BEGIN) : e])


class _Resp:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text


def make_openai_stub(
    decide: Callable[[list[str]], dict[str, Any] | str],
    calls_out: list[dict[str, Any]] | None = None,
    *,
    client_kwargs_out: list[dict[str, Any]] | None = None,
):
    """Return a class shaped like ``openai.OpenAI``.

    ``decide`` receives the headers and returns either a mapping (JSON-encoded
    for the response) or raw text (returned verbatim). It may also raise to
    simulate API failures.
    """

    calls = calls_out if calls_out is not None else []
    client_kwargs = client_kwargs_out if client_kwargs_out is not None else []

    class _Responses:
        def create(self, **kwargs: Any) -> _Resp:
            calls.append(kwargs)
            out = decide(extract_headers(kwargs["input"]))
            return _Resp(out if isinstance(out, str) else json.dumps(out, ensure_ascii=False))

    class _Client:
        def __init__(self, *a: Any, **kw: Any) -> None:
            client_kwargs.append(kw)
            self.responses = _Responses()

    return _Client
