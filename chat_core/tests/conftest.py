import json
from typing import Any, Callable, List, Optional

import pytest

from chat_core.web_model.capability import InitProgressReport
from chat_core.web_model.registry import ModelSessionRegistry


class RecordingSink:
    def __init__(self):
        self.events: List[tuple] = []

    def add_new_message(self, content, is_bot=True, send_update=True):
        self.events.append(("message", content, is_bot, send_update))

    def add_loading_message(self):
        self.events.append(("loading",))

    def remove_last_message(self):
        self.events.append(("remove_last",))

    def add_new_error_message(self, category, text):
        self.events.append(("error", category, text))

    def remove_introductory_message(self):
        self.events.append(("remove_intro",))

    def scroll_to_bottom(self):
        self.events.append(("scroll",))

    @property
    def messages(self):
        return [e[1] for e in self.events if e[0] == "message"]

    @property
    def errors(self):
        return [e[2] for e in self.events if e[0] == "error"]

    def kinds(self):
        return [e[0] for e in self.events]


class VirtualTask:
    def __init__(self, due: float, callback: Callable[[], Any]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class VirtualScheduler:
    """虚拟时钟：sleep 只推进时间，不真正等待。"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []
        self.scheduled: List[VirtualTask] = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def call_later(self, delay, callback):
        task = VirtualTask(self.now + delay, callback)
        self.scheduled.append(task)
        return task

    def run_pending(self):
        pending, self.scheduled = self.scheduled, []
        for task in pending:
            if not task.cancelled:
                task.callback()


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=None, headers=None, content=b""):
        self.status_code = status_code
        self._json = json_data
        if headers is None:
            headers = {"content-type": "application/json"} if json_data is not None else {"content-type": "text/plain"}
        self.headers = headers
        self.text = text if text is not None else (json.dumps(json_data) if json_data is not None else "")
        self.content = content

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeHttp:
    def __init__(self):
        self.responses: List[Any] = []
        self.calls: List[dict] = []
        self.on_request: Optional[Callable[[dict], None]] = None

    def add(self, item):
        self.responses.append(item)
        return self

    def client_class(self):
        fake = self

        class Client:
            def __init__(self, *a, **kw):
                pass

            async def __aenter__(self):
                return self

            async def __aexit__(self, *a):
                return False

            async def request(self, method, url, **kw):
                call = {"method": method, "url": url, **kw}
                fake.calls.append(call)
                if fake.on_request:
                    fake.on_request(call)
                item = fake.responses.pop(0)
                if isinstance(item, Exception):
                    raise item
                return item

        return Client


class FakeEngine:
    def __init__(self, tokens=None, fail_reload=None, fail_generate=None):
        self.tokens = tokens if tokens is not None else ["Hello", " there", " friend"]
        self.fail_reload = fail_reload
        self.fail_generate = fail_generate
        self.progress_reports = ["Fetching param cache[1/2]", "Finish loading on WebGPU"]
        self.progress_callback = None
        self.reload_calls: List[tuple] = []
        self.generate_calls: List[tuple] = []
        self.on_token: Optional[Callable[[int, str], None]] = None
        self.interrupted = False
        self.unloaded = False

    def set_progress_callback(self, callback):
        self.progress_callback = callback

    async def reload(self, model_id, chat_opts, app_config, files=None):
        self.reload_calls.append((model_id, chat_opts, app_config, files))
        for i, text in enumerate(self.progress_reports):
            self.progress_callback(InitProgressReport(progress=i / 2, time_elapsed=float(i), text=text))
        if self.fail_reload:
            raise self.fail_reload
        return list(files or [])

    async def generate(self, text, progress_callback=None, stream_interval=1):
        self.generate_calls.append((text, stream_interval))
        if self.fail_generate:
            raise self.fail_generate
        message = ""
        for step, token in enumerate(self.tokens):
            if self.interrupted:
                break
            message += token
            if progress_callback and stream_interval:
                progress_callback(step, message)
            if self.on_token:
                self.on_token(step, message)
        return message

    def interrupt_generate(self):
        self.interrupted = True

    async def unload(self):
        self.unloaded = True


class FakeCapability:
    def __init__(self, engine_factory=FakeEngine):
        self._engine_factory = engine_factory
        self.sessions: List[FakeEngine] = []
        self.worker_sessions: List[tuple] = []

    def create_session(self):
        engine = self._engine_factory()
        self.sessions.append(engine)
        return engine

    def create_worker_session(self, worker):
        engine = self._engine_factory()
        self.worker_sessions.append((worker, engine))
        return engine


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def fake_http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr("httpx.AsyncClient", fake.client_class())
    return fake


@pytest.fixture
def registry():
    return ModelSessionRegistry()


@pytest.fixture
def capability():
    return FakeCapability()


@pytest.fixture
def response_factory():
    return FakeResponse
