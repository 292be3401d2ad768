import json

import httpx
import pytest

from chat_core.domain.models import PollingElsewhere, RequestDetails, RequestSettings
from chat_core.services.dispatcher import RequestDispatcher
from chat_core.services.service_io import CompletionHandlers, ServiceIO, StreamHandlers
from chat_core.services.stream import StreamAdapter
from chat_core.transport.http_client import HttpxTransport


class SettingsStub:
    http_timeout = 1.0


def make_io(extract, finished, **kw):
    return ServiceIO(
        request_settings=RequestSettings(url="https://api.example.com/chat", headers={"X-Key": "k"}),
        extract_result_data=extract,
        completion_handlers=CompletionHandlers(on_finish=lambda: finished.append(True)),
        **kw,
    )


def make_dispatcher(scheduler):
    return RequestDispatcher(HttpxTransport(SettingsStub()), StreamAdapter(scheduler=scheduler, interval_ms=10))


@pytest.mark.asyncio
async def test_dispatch_delivers_result_and_finishes_once(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"reply": "ok"}))
    finished = []

    async def extract(result):
        return {"text": result["reply"]}

    io = make_io(extract, finished)
    await make_dispatcher(scheduler).dispatch(io, {"messages": ["hi"]}, sink)

    assert finished == [True]
    assert sink.events[0][0] == "message"
    assert sink.messages[0].text == "ok"
    call = fake_http.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.example.com/chat"
    assert json.loads(call["content"]) == {"messages": ["hi"]}
    assert call["headers"] == {"X-Key": "k"}


@pytest.mark.asyncio
async def test_dispatch_applies_request_and_response_interceptors(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"reply": "raw"}))
    finished = []

    def request_interceptor(details):
        return RequestDetails(body={**details.body, "extra": 1}, headers={**details.headers, "X-Trace": "t"})

    def response_interceptor(result):
        return {"reply": result["reply"].upper()}

    io = make_io(lambda r: {"text": r["reply"]}, finished,
                 request_interceptor=request_interceptor, response_interceptor=response_interceptor)
    await make_dispatcher(scheduler).dispatch(io, {"q": "x"}, sink)

    call = fake_http.calls[0]
    assert json.loads(call["content"]) == {"q": "x", "extra": 1}
    assert call["headers"]["X-Trace"] == "t"
    assert sink.messages[0].text == "RAW"
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_extracts_before_failing_on_invalid_status(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(status_code=500, json_data={"error": "quota exceeded"}))
    finished = []
    order = []

    def extract(result):
        order.append(("extract", result))
        return {"text": "unused"}

    io = make_io(extract, finished)
    await make_dispatcher(scheduler).dispatch(io, {}, sink)

    assert order == [("extract", {"error": "quota exceeded"})]
    assert sink.messages == []
    assert sink.errors == [json.dumps({"error": "quota exceeded"})]
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_extractor_can_raise_server_error_message(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(status_code=401, json_data={"error": {"message": "bad key"}}))
    finished = []

    def extract(result):
        if "error" in result:
            raise ValueError(result["error"]["message"])
        return {"text": "ok"}

    await make_dispatcher(scheduler).dispatch(make_io(extract, finished), {}, sink)

    assert sink.errors == ["bad key"]
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_rejects_non_object_result(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"choices": []}))
    finished = []

    await make_dispatcher(scheduler).dispatch(make_io(lambda r: None, finished), {}, sink)

    assert len(sink.errors) == 1
    assert sink.errors[0].startswith("Response is in an incorrect format")
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_error_mentions_interceptor_output(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"a": 1}))
    finished = []

    io = make_io(lambda r: "not an object", finished, response_interceptor=lambda r: {"b": 2})
    await make_dispatcher(scheduler).dispatch(io, {}, sink)

    assert '{"b": 2}' in sink.errors[0]
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_network_error_finishes_once(fake_http, sink, scheduler):
    fake_http.add(httpx.ConnectError("connection refused"))
    finished = []

    await make_dispatcher(scheduler).dispatch(make_io(lambda r: {"text": "x"}, finished), {}, sink)

    assert sink.errors == ["connection refused"]
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_polling_elsewhere_neither_delivers_nor_finishes(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"job": "123"}))
    finished = []

    await make_dispatcher(scheduler).dispatch(make_io(lambda r: PollingElsewhere(), finished), {}, sink)
    fake_http.add(response_factory(json_data={"job": "124"}))
    await make_dispatcher(scheduler).dispatch(
        make_io(lambda r: {"pollingInAnotherRequest": True}, finished), {}, sink
    )

    assert sink.events == []
    assert finished == []


@pytest.mark.asyncio
async def test_dispatch_streams_text_when_enabled(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"text": "one two three"}))
    finished = []
    opened, closed = [], []
    handlers = StreamHandlers(on_open=lambda: opened.append(1), on_close=lambda: closed.append(1))

    io = make_io(lambda r: r, finished, stream=True, stream_handlers=handlers)
    await make_dispatcher(scheduler).dispatch(io, {}, sink)

    texts = [m.text for m in sink.messages]
    assert texts == ["one ", "one two ", "one two three", "one two three"]
    assert sink.events[-1][3] is True
    assert opened == [1] and closed == [1]
    assert finished == [True]
    assert scheduler.sleeps == [0.01, 0.01]


@pytest.mark.asyncio
async def test_dispatch_classifies_plain_text_response(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(text="plain answer", headers={"content-type": "text/plain; charset=utf-8"}))
    finished = []

    await make_dispatcher(scheduler).dispatch(make_io(lambda r: r, finished), {}, sink)

    assert sink.messages[0].text == "plain answer"
    assert finished == [True]


@pytest.mark.asyncio
async def test_dispatch_without_serialization_sends_raw_body(fake_http, response_factory, sink, scheduler):
    fake_http.add(response_factory(json_data={"text": "uploaded"}))
    finished = []
    files = {"file": ("a.txt", b"hello", "text/plain")}

    await make_dispatcher(scheduler).dispatch(make_io(lambda r: r, finished), files, sink, stringify_body=False)

    assert fake_http.calls[0]["files"] == files
    assert "content" not in fake_http.calls[0]
    assert finished == [True]
