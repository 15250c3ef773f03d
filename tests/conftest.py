"""
Shared test doubles for the streaming engine.

``FakeProvider`` stands in for a vendor provider and records every call;
``FakeWebSocket``/``FakeConnector`` replace the websockets client so vendor
providers can be driven without a network.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from voicestream.core.streaming.events import CommittedTranscript, SessionStarted
from voicestream.core.streaming.models import ModelProvider, StreamingModel
from voicestream.core.streaming.provider import StreamingProvider

FAKE_MODEL = StreamingModel(
    name="fake-model",
    display_name="Fake Model",
    provider=ModelProvider.DEEPGRAM,
)


class FakeProvider(StreamingProvider):
    display_name = "Fake"

    def __init__(
        self,
        hold_connect: bool = False,
        connect_error: Optional[BaseException] = None,
        commit_error: Optional[BaseException] = None,
        ack_commit: bool = True,
        commit_events: Optional[List[Any]] = None,
        fail_on_chunks: Optional[List[int]] = None,
        finalize_chunk_lengths: bool = False,
        hold_commit: bool = False,
        hold_sends: bool = False,
    ):
        super().__init__()
        self.hold_connect = hold_connect
        self.connect_error = connect_error
        self.commit_error = commit_error
        self.ack_commit = ack_commit
        self.commit_events = commit_events
        self.fail_on_chunks = set(fail_on_chunks or [])
        self.finalize_chunk_lengths = finalize_chunk_lengths
        self.hold_commit = hold_commit
        self.hold_sends = hold_sends

        self.connect_started = asyncio.Event()
        self.connect_gate = asyncio.Event()
        self.commit_gate = asyncio.Event()
        self.send_gate = asyncio.Event()
        self.connect_calls = 0
        self.connected_language: Optional[str] = None
        self.send_attempts = 0
        self.chunks: List[bytes] = []
        self.commit_calls = 0
        self.chunks_at_commit: Optional[int] = None
        self.disconnect_calls = 0

    async def connect(self, model, language):
        self.connect_calls += 1
        self.connected_language = language
        self.connect_started.set()
        if self.hold_connect:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self._emit(SessionStarted())

    async def send_audio_chunk(self, data):
        self.send_attempts += 1
        if self.send_attempts in self.fail_on_chunks:
            raise ConnectionError(f"chunk {self.send_attempts} lost")
        if self.hold_sends:
            await self.send_gate.wait()
        self.chunks.append(bytes(data))
        if self.finalize_chunk_lengths:
            self._emit(CommittedTranscript(str(len(data))))

    async def commit(self):
        self.commit_calls += 1
        self.chunks_at_commit = len(self.chunks)
        if self.hold_commit:
            # Released by disconnect, like a socket closed under a pending send
            await self.commit_gate.wait()
            raise ConnectionError("connection closed during commit")
        if self.commit_error is not None:
            raise self.commit_error
        if self.commit_events is not None:
            for event in self.commit_events:
                self._emit(event)
        elif self.ack_commit:
            self._emit(CommittedTranscript(""))

    async def disconnect(self):
        self.disconnect_calls += 1
        self.commit_gate.set()
        self._finish_events()

    def push(self, event):
        self._emit(event)


class FakeWebSocket:
    """Scripted stand-in for a websockets client connection."""

    _CLOSED = object()

    def __init__(self, incoming: Optional[List[Any]] = None):
        self.sent: List[Any] = []
        self.closed = False
        self.send_error: Optional[BaseException] = None
        self._incoming: asyncio.Queue = asyncio.Queue()
        for message in incoming or []:
            self.feed(message)

    def feed(self, message: Any) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self._incoming.put_nowait(message)

    def close_from_server(self, error: Optional[BaseException] = None) -> None:
        self._incoming.put_nowait(error if error is not None else self._CLOSED)

    @property
    def sent_json(self) -> List[Dict[str, Any]]:
        return [json.loads(m) for m in self.sent if isinstance(m, str)]

    @property
    def sent_binary(self) -> List[bytes]:
        return [m for m in self.sent if isinstance(m, bytes)]

    async def send(self, message: Any) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)

    async def recv(self) -> Any:
        message = await self._incoming.get()
        if isinstance(message, BaseException):
            raise message
        return message

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        message = await self._incoming.get()
        if message is self._CLOSED:
            raise StopAsyncIteration
        if isinstance(message, BaseException):
            raise message
        return message


class FakeConnector:
    """Replaces ``websockets.asyncio.client.connect`` and records each call."""

    def __init__(self, ws: Optional[FakeWebSocket] = None, error: Optional[BaseException] = None):
        self.ws = ws
        self.error = error
        self.calls: List[Any] = []

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        if self.ws is None:
            self.ws = FakeWebSocket()
        return self.ws

    @property
    def url(self) -> str:
        return self.calls[-1][0]

    @property
    def headers(self) -> Dict[str, str]:
        return self.calls[-1][1].get("additional_headers") or {}


class StaticVocabulary:
    def __init__(self, terms: List[str]):
        self.terms = terms

    def list(self) -> List[str]:
        return list(self.terms)


def queued_events(provider: StreamingProvider) -> List[Any]:
    """Pop every event a provider has emitted so far without blocking."""
    events = []
    while not provider._events.empty():
        event = provider._events.get_nowait()
        if event is not None:
            events.append(event)
    return events


async def settle(rounds: int = 10) -> None:
    """Let background tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_model() -> StreamingModel:
    return FAKE_MODEL
