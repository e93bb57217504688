import asyncio

import pytest

from forgeflow.event_bus import EventBus
from forgeflow.provider import TextProvider
from forgeflow.telemetry import configure_telemetry


class FakeProvider(TextProvider):
    """
    Scripted provider. ``responder`` is either a fixed string or a callable
    ``(prompt, options, call_number) -> str`` that may raise or be async.
    ``stream_chunks`` is the list of raw chunks ``stream`` yields; an
    Exception instance in the list is raised at that point.
    """

    def __init__(self, responder="{}", stream_chunks=None, delay=0.0):
        self.responder = responder
        self.stream_chunks = list(stream_chunks or [])
        self.delay = delay
        self.calls = []
        self.stream_requests = []

    async def generate(self, prompt, options=None):
        self.calls.append({"prompt": prompt, "options": options})
        if self.delay:
            await asyncio.sleep(self.delay)
        if callable(self.responder):
            result = self.responder(prompt, options, len(self.calls))
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return self.responder

    async def stream(self, request):
        self.stream_requests.append(request)
        for chunk in self.stream_chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield {"content": chunk}

    def prompts_containing(self, text):
        return [call for call in self.calls if text in call["prompt"]]


class RecordingBus(EventBus):
    def __init__(self):
        super().__init__()
        self.events = []
        self.on("*", lambda event, payload: self.events.append((event, payload)))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture(autouse=True)
def _quiet_telemetry():
    configure_telemetry(enabled=False)
    yield
    configure_telemetry(enabled=True)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def bus():
    return RecordingBus()
