import pytest

from chat_core.services.service_io import AbortHandle, FinishSignal, StreamHandlers
from chat_core.services.stream import MessageStream, StreamAdapter, split_words


def test_split_words_keeps_whitespace():
    words = split_words("Hello  big\nworld")
    assert words == ["Hello  ", "big\n", "world"]
    assert "".join(words) == "Hello  big\nworld"


def test_message_stream_overwrites_and_finalises_once(sink):
    stream = MessageStream(sink)
    stream.upsert("Hel")
    stream.upsert("lo")
    stream.upsert("Hello!", overwrite=True)
    stream.finalise()
    stream.finalise()
    stream.upsert("ignored")

    assert [(m.text, m.overwrite) for m in sink.messages] == [
        ("Hel", False),
        ("Hello", True),
        ("Hello!", True),
        ("Hello!", True),
    ]
    assert [e[3] for e in sink.events] == [False, False, False, True]


def test_empty_stream_finalise_is_silent(sink):
    stream = MessageStream(sink)
    stream.finalise()
    assert sink.events == []


@pytest.mark.asyncio
async def test_simulate_stops_after_abort(sink, scheduler):
    handlers = StreamHandlers()
    original_sleep = scheduler.sleep

    async def sleep_then_abort(seconds):
        await original_sleep(seconds)
        if len(scheduler.sleeps) == 2:
            handlers.abort_stream.abort()

    scheduler.sleep = sleep_then_abort
    stream = await StreamAdapter(scheduler=scheduler, interval_ms=5).simulate(sink, "a b c d e", handlers)

    assert stream.text == "a b "
    assert stream.finalised
    assert sink.events[-1][3] is True


def test_abort_handle_calls_bound_callback():
    calls = []
    handle = AbortHandle()
    handle.abort()
    assert handle.aborted
    handle.bind(lambda: calls.append("interrupt"))
    assert not handle.aborted
    handle.abort()
    assert calls == ["interrupt"]


def test_finish_signal_fires_once():
    calls = []
    finish = FinishSignal(lambda: calls.append(1))
    finish()
    finish()
    assert calls == [1]
    assert finish.fired
