# ruff: noqa: INP001
"""Request-id propagation, access logging, and JSON error envelopes."""

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from starlette.requests import Request

from bypass_guard.core import error_handling
from bypass_guard.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _http_exception_exception_handler,
    _request_validation_exception_handler,
    _response_validation_exception_handler,
    install_error_handling,
)


def _app() -> FastAPI:
    app = FastAPI()
    install_error_handling(app)

    @app.get("/window")
    def window(hours: int) -> dict[str, int]:
        return {"hours": hours}

    @app.get("/missing")
    def missing() -> None:
        raise HTTPException(status_code=404, detail="Request not found")

    @app.get("/crash")
    def crash() -> None:
        raise RuntimeError("sensor table locked")

    class Summary(BaseModel):
        code: str = Field(min_length=1)

    @app.get("/summary", response_model=Summary)
    def summary() -> dict[str, str]:
        return {"code": ""}

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    return app


def _assert_request_id_echoed(resp: object) -> None:
    body = resp.json()  # type: ignore[attr-defined]
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]  # type: ignore[attr-defined]


def test_validation_error_is_422_with_request_id() -> None:
    resp = TestClient(_app()).get("/window?hours=soon")
    assert resp.status_code == 422
    assert isinstance(resp.json()["detail"], list)
    _assert_request_id_echoed(resp)


def test_http_exception_keeps_detail() -> None:
    resp = TestClient(_app()).get("/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Request not found"
    _assert_request_id_echoed(resp)


@pytest.mark.parametrize("path", ["/crash", "/summary"])
def test_server_errors_are_masked(path: str) -> None:
    resp = TestClient(_app(), raise_server_exceptions=False).get(path)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"
    _assert_request_id_echoed(resp)


def test_incoming_request_id_is_reused_when_sane() -> None:
    client = TestClient(_app())
    kept = client.get("/missing", headers={REQUEST_ID_HEADER: "  trace-42  "})
    replaced = client.get("/missing", headers={REQUEST_ID_HEADER: "x" * 200})
    assert kept.json()["request_id"] == "trace-42"
    assert replaced.json()["request_id"] != "x" * 200


def test_slow_request_is_logged(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    ticks = iter((50.0, 52.5))
    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 1000)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    resp = TestClient(_app()).get("/window?hours=4")

    assert resp.status_code == 200
    assert warnings == [
        (
            "http.request.slow",
            {
                "request_id": resp.headers[REQUEST_ID_HEADER],
                "method": "GET",
                "path": "/window",
                "status_code": 200,
                "duration_ms": 2500.0,
                "slow_threshold_ms": 1000,
            },
        ),
    ]


def test_health_probe_is_not_access_logged(monkeypatch: pytest.MonkeyPatch) -> None:
    infos: list[str] = []
    monkeypatch.setattr(error_handling.settings, "request_log_include_health", False)
    monkeypatch.setattr(
        error_handling.logger,
        "info",
        lambda message, *args, **kwargs: infos.append(message),
    )

    resp = TestClient(_app()).get("/healthz")

    assert resp.status_code == 200
    assert REQUEST_ID_HEADER in resp.headers
    assert infos == []


def test_get_request_id_ignores_missing_or_invalid_state() -> None:
    for state in ({}, {"request_id": 7}, {"request_id": ""}):
        assert _get_request_id(Request({"type": "http", "headers": [], "state": state})) is None


def test_error_payload_omits_missing_request_id() -> None:
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handler", "expected"),
    [
        (_request_validation_exception_handler, "Expected RequestValidationError"),
        (_response_validation_exception_handler, "Expected ResponseValidationError"),
        (_http_exception_exception_handler, "Expected StarletteHTTPException"),
    ],
)
async def test_handlers_reject_unexpected_exception_types(handler: object, expected: str) -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match=expected):
        await handler(req, Exception("x"))  # type: ignore[operator]


def test_json_safe_decodes_bytes_and_stringifies_objects() -> None:
    assert error_handling._json_safe(b"\xff") == "\ufffd"
    assert error_handling._json_safe({"ids": (1, b"a")}) == {"ids": [1, "a"]}
    assert error_handling._json_safe(object).startswith("<class")
