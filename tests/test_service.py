"""
Tests for StreamingTranscriptionService.

Drives the session state machine against FakeProvider to check chunk
ordering, commit acknowledgement, timeouts and cancellation.
"""

import asyncio
import threading
import time

import pytest

from conftest import FAKE_MODEL, FakeConnector, FakeProvider, FakeWebSocket, settle, wait_until
from voicestream.core.settings.config import COMMIT_TIMEOUT_SECONDS
from voicestream.core.streaming.events import (
    CommittedTranscript,
    ConnectionFailedError,
    NotConnectedError,
    PartialTranscript,
    ServerError,
    StreamingErrorEvent,
    UnsupportedProviderError,
)
from voicestream.core.streaming.models import ModelProvider, StreamingModel
from voicestream.core.streaming.providers import ElevenLabsStreamingProvider
from voicestream.core.streaming.service import (
    StreamingState,
    StreamingTranscriptionService,
)


def make_service(provider, **kwargs):
    kwargs.setdefault("language_source", lambda: "auto")
    return StreamingTranscriptionService(provider_factory=lambda model: provider, **kwargs)


def chunk(index: int, size: int = 320) -> bytes:
    return bytes([index % 256]) * size


class TestChunkOrdering:
    """Audio reaches the provider in order and before the commit."""

    def test_all_chunks_delivered_in_order_before_commit(self):
        provider = FakeProvider()
        service = make_service(provider)
        expected = [chunk(i) for i in range(25)]

        async def run():
            await service.start_streaming(FAKE_MODEL)
            for data in expected:
                service.send_audio_chunk(data)
            return await service.stop_and_get_final_text()

        asyncio.run(run())

        assert provider.chunks == expected
        assert provider.commit_calls == 1
        assert provider.chunks_at_commit == len(expected)

    def test_chunks_from_audio_thread_keep_order(self):
        provider = FakeProvider()
        service = make_service(provider)
        expected = [chunk(i, size=64) for i in range(200)]

        async def run():
            await service.start_streaming(FAKE_MODEL)
            producer = threading.Thread(
                target=lambda: [service.send_audio_chunk(d) for d in expected]
            )
            producer.start()
            await asyncio.to_thread(producer.join)
            return await service.stop_and_get_final_text()

        asyncio.run(run())

        assert provider.chunks == expected
        assert provider.chunks_at_commit == len(expected)

    def test_audio_fed_during_handshake_is_buffered(self):
        provider = FakeProvider(hold_connect=True)
        service = make_service(provider)

        async def run():
            start = asyncio.create_task(service.start_streaming(FAKE_MODEL))
            await provider.connect_started.wait()
            service.send_audio_chunk(b"early-1")
            service.send_audio_chunk(b"early-2")
            provider.connect_gate.set()
            await start
            service.send_audio_chunk(b"late")
            return await service.stop_and_get_final_text()

        asyncio.run(run())

        assert provider.chunks == [b"early-1", b"early-2", b"late"]

    def test_send_failures_do_not_stop_the_loop(self):
        provider = FakeProvider(fail_on_chunks=[2])
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            for i in range(1, 4):
                service.send_audio_chunk(chunk(i))
            return await service.stop_and_get_final_text()

        asyncio.run(run())

        assert provider.send_attempts == 3
        assert provider.chunks == [chunk(1), chunk(3)]
        assert provider.commit_calls == 1


class TestFinalText:
    """Committed segments are collected and joined."""

    def test_round_trip_of_chunk_lengths(self):
        provider = FakeProvider(finalize_chunk_lengths=True)
        service = make_service(provider)
        sizes = [320, 640, 160, 1024]

        async def run():
            await service.start_streaming(FAKE_MODEL)
            for size in sizes:
                service.send_audio_chunk(b"\x00" * size)
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "320 640 160 1024"

    def test_delta_accumulation_result(self):
        provider = FakeProvider(
            commit_events=[
                PartialTranscript("he"),
                PartialTranscript("hello"),
                CommittedTranscript("hello world"),
            ]
        )
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "hello world"

    def test_independent_utterances_are_space_joined(self):
        provider = FakeProvider(commit_events=[CommittedTranscript("there")])
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(CommittedTranscript("hello"))
            await settle()
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "hello there"

    def test_blank_segments_are_dropped(self):
        provider = FakeProvider(commit_events=[CommittedTranscript("  two  ")])
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(CommittedTranscript("one"))
            provider.push(CommittedTranscript("   "))
            await settle()
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "one two"

    def test_empty_result_when_nothing_said(self):
        provider = FakeProvider()
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == ""


class TestCommitTimeout:
    def test_default_timeout_is_ten_seconds(self):
        service = StreamingTranscriptionService(provider_factory=lambda model: FakeProvider())
        assert service.commit_timeout == COMMIT_TIMEOUT_SECONDS == 10.0

    def test_unacknowledged_commit_returns_pre_timeout_text(self):
        provider = FakeProvider(ack_commit=False)
        service = make_service(provider, commit_timeout=0.2)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(CommittedTranscript("before stop"))
            await settle()
            started = time.monotonic()
            text = await service.stop_and_get_final_text()
            return text, time.monotonic() - started

        text, elapsed = asyncio.run(run())

        assert text == "before stop"
        assert 0.15 <= elapsed < 2.0
        assert provider.disconnect_calls == 1

    def test_unacknowledged_commit_with_no_text_returns_empty(self):
        provider = FakeProvider(ack_commit=False)
        service = make_service(provider, commit_timeout=0.05)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == ""
        assert service.state == StreamingState.IDLE


class TestLifecycle:
    def test_states_through_a_normal_session(self):
        provider = FakeProvider()
        service = make_service(provider)
        seen = []

        async def run():
            seen.append(service.state)
            await service.start_streaming(FAKE_MODEL)
            seen.append(service.state)
            assert service.is_active
            await service.stop_and_get_final_text()
            seen.append(service.state)

        asyncio.run(run())

        assert seen == [StreamingState.IDLE, StreamingState.STREAMING, StreamingState.IDLE]
        assert service.is_active is False
        assert provider.disconnect_calls == 1

    def test_language_source_is_passed_to_provider(self):
        provider = FakeProvider()
        service = make_service(provider, language_source=lambda: "de")

        async def run():
            await service.start_streaming(FAKE_MODEL)
            service.cancel()

        asyncio.run(run())
        assert provider.connected_language == "de"

    def test_empty_language_means_auto(self):
        provider = FakeProvider()
        service = make_service(provider, language_source=lambda: "")

        async def run():
            await service.start_streaming(FAKE_MODEL)
            service.cancel()

        asyncio.run(run())
        assert provider.connected_language == "auto"

    def test_stop_without_session_raises(self):
        service = make_service(FakeProvider())

        with pytest.raises(NotConnectedError):
            asyncio.run(service.stop_and_get_final_text())

    def test_second_stop_raises(self):
        provider = FakeProvider()
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            await service.stop_and_get_final_text()
            await service.stop_and_get_final_text()

        with pytest.raises(NotConnectedError):
            asyncio.run(run())
        assert provider.disconnect_calls == 1

    def test_connect_failure_propagates_and_disconnects(self):
        provider = FakeProvider(connect_error=ConnectionFailedError("refused"))
        service = make_service(provider)

        with pytest.raises(ConnectionFailedError):
            asyncio.run(service.start_streaming(FAKE_MODEL))

        assert service.state == StreamingState.FAILED
        assert provider.disconnect_calls == 1
        assert service.is_active is False

    def test_commit_failure_fails_session_and_cleans_up(self):
        provider = FakeProvider(commit_error=ConnectionError("socket gone"))
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            await service.stop_and_get_final_text()

        with pytest.raises(ConnectionError):
            asyncio.run(run())

        assert provider.disconnect_calls == 1
        assert service.state == StreamingState.IDLE

    def test_service_can_run_consecutive_sessions(self):
        providers = [FakeProvider(), FakeProvider()]
        service = StreamingTranscriptionService(
            provider_factory=lambda model: providers.pop(0),
            language_source=lambda: "auto",
        )
        first, second = providers

        async def run():
            await service.start_streaming(FAKE_MODEL)
            service.send_audio_chunk(b"one")
            await service.stop_and_get_final_text()
            await service.start_streaming(FAKE_MODEL)
            service.send_audio_chunk(b"two")
            await service.stop_and_get_final_text()

        asyncio.run(run())

        assert first.chunks == [b"one"]
        assert second.chunks == [b"two"]

    def test_unsupported_provider_fails_loudly(self):
        service = StreamingTranscriptionService(language_source=lambda: "auto")
        groq = StreamingModel(name="whisper-large-v3", display_name="Whisper", provider=ModelProvider.GROQ)

        with pytest.raises(UnsupportedProviderError):
            asyncio.run(service.start_streaming(groq))
        assert service.state == StreamingState.IDLE


class TestPartialsAndErrors:
    def test_partials_forwarded_while_streaming(self):
        partials = []
        provider = FakeProvider()
        service = make_service(provider, on_partial_transcript=partials.append)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(PartialTranscript("hel"))
            provider.push(PartialTranscript("hello"))
            await settle()
            await service.stop_and_get_final_text()

        asyncio.run(run())
        assert partials == ["hel", "hello"]

    def test_partials_suppressed_while_committing(self):
        partials = []
        provider = FakeProvider(
            commit_events=[PartialTranscript("late"), CommittedTranscript("done")]
        )
        service = make_service(provider, on_partial_transcript=partials.append)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "done"
        assert partials == []

    def test_failing_partial_callback_does_not_break_session(self):
        def explode(text):
            raise RuntimeError("ui gone")

        provider = FakeProvider(commit_events=[CommittedTranscript("still works")])
        service = make_service(provider, on_partial_transcript=explode)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(PartialTranscript("boom"))
            await settle()
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "still works"

    def test_error_events_are_reported_and_not_fatal(self):
        errors = []
        provider = FakeProvider(commit_events=[CommittedTranscript("recovered")])
        service = make_service(provider, on_error=errors.append)
        failure = ServerError("quota exceeded")

        async def run():
            await service.start_streaming(FAKE_MODEL)
            provider.push(StreamingErrorEvent(failure))
            await settle()
            assert service.state == StreamingState.STREAMING
            return await service.stop_and_get_final_text()

        assert asyncio.run(run()) == "recovered"
        assert errors == [failure]


class TestCancellation:
    def test_cancel_during_connect_disconnects_once(self):
        provider = FakeProvider(hold_connect=True)
        service = make_service(provider)

        async def run():
            start = asyncio.create_task(service.start_streaming(FAKE_MODEL))
            await provider.connect_started.wait()
            service.cancel()
            provider.connect_gate.set()
            await start
            await settle()

        asyncio.run(run())

        assert provider.disconnect_calls == 1
        assert service.state == StreamingState.CANCELLED
        assert service.is_active is False
        assert provider.commit_calls == 0

    def test_cancel_during_failing_connect_is_quiet(self):
        provider = FakeProvider(hold_connect=True, connect_error=ConnectionFailedError("late"))
        service = make_service(provider)

        async def run():
            start = asyncio.create_task(service.start_streaming(FAKE_MODEL))
            await provider.connect_started.wait()
            service.cancel()
            provider.connect_gate.set()
            await start

        asyncio.run(run())

        assert provider.disconnect_calls == 1
        assert service.state == StreamingState.CANCELLED

    def test_cancel_after_three_chunks(self):
        provider = FakeProvider()
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            for i in range(3):
                service.send_audio_chunk(chunk(i))
            await wait_until(lambda: len(provider.chunks) == 3)
            service.cancel()
            service.send_audio_chunk(chunk(99))
            await settle()
            await asyncio.sleep(0.05)

        asyncio.run(run())

        assert provider.send_attempts == 3
        assert provider.disconnect_calls == 1
        assert provider.commit_calls == 0

    def test_cancel_is_idempotent(self):
        provider = FakeProvider()
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            service.cancel()
            service.cancel()
            await settle()
            service.cancel()
            await settle()

        asyncio.run(run())

        assert provider.disconnect_calls == 1
        assert service.state == StreamingState.CANCELLED

    def test_cancel_drops_partial_callback(self):
        partials = []
        provider = FakeProvider()
        service = make_service(provider, on_partial_transcript=partials.append)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            service.cancel()
            provider.push(PartialTranscript("after cancel"))
            await settle()

        asyncio.run(run())
        assert partials == []

    def test_cancel_releases_pending_commit_wait(self):
        provider = FakeProvider(ack_commit=False)
        service = make_service(provider, commit_timeout=5.0)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            stop = asyncio.create_task(service.stop_and_get_final_text())
            await wait_until(lambda: provider.commit_calls == 1)
            await settle()
            started = time.monotonic()
            service.cancel()
            text = await stop
            return text, time.monotonic() - started

        text, elapsed = asyncio.run(run())

        assert text == ""
        assert elapsed < 1.0
        assert service.state == StreamingState.CANCELLED

    def test_cancel_without_session_is_harmless(self):
        service = make_service(FakeProvider())
        service.cancel()
        service.cancel()
        assert service.state == StreamingState.CANCELLED

    def test_cancel_during_silent_handshake_releases_socket(self):
        ws = FakeWebSocket()
        provider = ElevenLabsStreamingProvider(
            {"ElevenLabs": "el-key"},
            connect_factory=FakeConnector(ws),
            handshake_timeout=0.2,
        )
        service = make_service(provider)

        async def run():
            start = asyncio.create_task(service.start_streaming(FAKE_MODEL))
            await wait_until(lambda: provider.is_connected)
            service.cancel()
            done, _ = await asyncio.wait({start}, timeout=2.0)
            return start in done

        assert asyncio.run(run()) is True
        assert ws.closed is True
        assert service.state == StreamingState.CANCELLED

    def test_cancel_while_commit_in_flight_returns_empty(self):
        provider = FakeProvider(hold_commit=True)
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            stop = asyncio.create_task(service.stop_and_get_final_text())
            await wait_until(lambda: provider.commit_calls == 1)
            service.cancel()
            return await stop

        assert asyncio.run(run()) == ""
        assert service.state == StreamingState.CANCELLED
        assert provider.disconnect_calls == 1

    def test_cancel_stops_send_loop_blocked_on_a_send(self):
        provider = FakeProvider(hold_sends=True)
        service = make_service(provider)

        async def run():
            await service.start_streaming(FAKE_MODEL)
            send_task = service._send_task
            service.send_audio_chunk(chunk(0))
            await wait_until(lambda: provider.send_attempts == 1)
            service.cancel()
            await settle()
            return send_task

        send_task = asyncio.run(run())

        assert send_task.done() is True
        assert provider.chunks == []
        assert provider.disconnect_calls == 1
