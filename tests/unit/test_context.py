import pytest
from conftest import RecordingResponder

from p2j_service.conversion import ContextClosedError, RequestContext, ResponseEnvelope


def _context(calls: list[str]) -> tuple[RequestContext, RecordingResponder]:
    responder = RecordingResponder()
    ctx = RequestContext(object(), responder, lambda: calls.append("next"), "/tmp/upload_1.pdf")
    return ctx, responder


def test_complete_sends_status_200_then_runs_next_step() -> None:
    calls: list[str] = []
    ctx, responder = _context(calls)

    ctx.complete(ResponseEnvelope.failed('"boom"'))

    assert responder.sent == [(200, {"statusCode": 500, "message": '"boom"'})]
    assert calls == ["next"]
    assert ctx.closed
    assert ctx.request is None and ctx.response is None and ctx.next_step is None


def test_complete_twice_raises() -> None:
    calls: list[str] = []
    ctx, responder = _context(calls)
    ctx.complete(ResponseEnvelope(200, "OK"))

    with pytest.raises(ContextClosedError):
        ctx.complete(ResponseEnvelope(200, "OK"))
    assert len(responder.sent) == 1
    assert calls == ["next"]


def test_destroy_is_safe_after_complete_and_blocks_later_completion() -> None:
    calls: list[str] = []
    ctx, responder = _context(calls)

    ctx.destroy()
    ctx.destroy()

    with pytest.raises(ContextClosedError):
        ctx.complete(ResponseEnvelope(200, "OK"))
    assert responder.sent == []
    assert ctx.temp_file_path == "/tmp/upload_1.pdf"


def test_complete_without_next_step() -> None:
    responder = RecordingResponder()
    ctx = RequestContext(None, responder, None, "x.pdf")

    ctx.complete(ResponseEnvelope(200, "OK", "svc", "1.0"))

    assert responder.sent == [(200, {"statusCode": 200, "message": "OK", "data": "svc", "description": "1.0"})]
