"""Property-based tests for the Event Dispatcher.

Feature: askollama, Property 7: Only create events with paths are processed
Feature: askollama, Property 8: Debounce before extraction
Feature: askollama, Property 9: Explanation gated on extraction and auto-explain
Feature: askollama, Property 10: Concurrent events are processed in parallel
"""

import asyncio
import time
from pathlib import Path

from hypothesis import given, strategies as st, settings

from askollama.core.config import Config, SettingsStore
from askollama.core.dispatcher import EventDispatcher
from askollama.core.events import EXPLANATION_TOPIC, OCR_TOPIC, EventBus
from askollama.core.watcher import EventKind, FileEvent

from fakes import FakeExplainer, FakeExtractor, Recorder


def build(auto_explain=True, extractor=None, explainer=None, debounce=0.0):
    extractor = extractor or FakeExtractor()
    explainer = explainer or FakeExplainer()
    bus = EventBus()
    recorder = Recorder()
    bus.subscribe(OCR_TOPIC, recorder.listener(OCR_TOPIC))
    bus.subscribe(EXPLANATION_TOPIC, recorder.listener(EXPLANATION_TOPIC))
    store = SettingsStore(Config(auto_explain=auto_explain))
    dispatcher = EventDispatcher(store, extractor, explainer, bus, debounce=debounce)
    return dispatcher, extractor, explainer, recorder, store


async def dispatch_all(dispatcher: EventDispatcher, events: list[FileEvent]) -> list:
    tasks = [dispatcher.dispatch(event) for event in events]
    await dispatcher.drain()
    return tasks


path_lists = st.lists(
    st.text(alphabet='abcdefghijklmnopqrstuvwxyz0123456789', min_size=1, max_size=10).map(
        lambda name: Path('/shots') / f"{name}.png"
    ),
    min_size=1,
    max_size=4,
)


class TestActionableEvents:
    """Property 7: Only create events with paths are processed.
    
    *For any* create event with a non-empty path list, the extractor SHALL be
    invoked exactly once, on the first path. *For any* other event, or a
    create event without paths, no extraction SHALL happen.
    """
    
    @given(path_lists)
    @settings(max_examples=50, deadline=None)
    def test_create_extracts_first_path_once(self, paths: list[Path]):
        """Feature: askollama, Property 7: Only create events with paths are processed"""
        dispatcher, extractor, _, recorder, _ = build(auto_explain=False)
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, tuple(paths))]))
        
        assert [path for path, _ in extractor.calls] == [paths[0]]
        assert recorder.payloads(OCR_TOPIC) == [f"text for {paths[0].name}"]
    
    @given(st.sampled_from([EventKind.MODIFY, EventKind.REMOVE, EventKind.OTHER]), path_lists)
    @settings(max_examples=50, deadline=None)
    def test_other_kinds_are_discarded(self, kind: EventKind, paths: list[Path]):
        dispatcher, extractor, _, recorder, _ = build()
        
        tasks = asyncio.run(dispatch_all(dispatcher, [FileEvent(kind, tuple(paths))]))
        
        assert tasks == [None]
        assert extractor.calls == []
        assert recorder.received == []
    
    def test_create_without_paths_is_discarded(self):
        dispatcher, extractor, _, _, _ = build()
        
        tasks = asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, ())]))
        
        assert tasks == [None]
        assert extractor.calls == []


class TestDebounce:
    """Property 8: Debounce before extraction.
    
    The extractor SHALL NOT be invoked earlier than 200 ms after the event
    was received.
    """
    
    def test_extraction_waits_for_debounce(self):
        """Feature: askollama, Property 8: Debounce before extraction"""
        extractor = FakeExtractor()
        store = SettingsStore(Config(auto_explain=False))
        dispatcher = EventDispatcher(store, extractor, FakeExplainer(), EventBus())
        
        async def scenario():
            received = time.monotonic()
            dispatcher.dispatch(FileEvent(EventKind.CREATE, (Path('/shots/a.png'),)))
            await dispatcher.drain()
            return received
        
        received = asyncio.run(scenario())
        
        assert EventDispatcher.DEBOUNCE_WINDOW == 0.2
        assert len(extractor.calls) == 1
        assert extractor.calls[0][1] - received >= 0.2


class TestExplanationGating:
    """Property 9: Explanation gated on extraction and auto-explain."""
    
    @given(st.booleans())
    @settings(max_examples=10, deadline=None)
    def test_failed_extraction_never_explains(self, auto_explain: bool):
        """Feature: askollama, Property 9: Explanation gated on extraction and auto-explain"""
        dispatcher, extractor, explainer, recorder, _ = build(
            auto_explain=auto_explain, extractor=FakeExtractor(fail=True)
        )
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, (Path('/shots/a.png'),))]))
        
        assert len(extractor.calls) == 1
        assert explainer.calls == []
        assert recorder.received == []
    
    def test_auto_explain_off_publishes_ocr_only(self):
        dispatcher, _, explainer, recorder, _ = build(auto_explain=False)
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, (Path('/shots/a.png'),))]))
        
        assert explainer.calls == []
        assert recorder.topics() == [OCR_TOPIC]
    
    def test_auto_explain_on_publishes_ocr_then_explanation(self):
        dispatcher, _, explainer, recorder, _ = build(auto_explain=True)
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, (Path('/shots/a.png'),))]))
        
        assert explainer.calls == [("text for a.png", None)]
        assert recorder.received == [
            (OCR_TOPIC, "text for a.png"),
            (EXPLANATION_TOPIC, "explained: text for a.png"),
        ]
    
    def test_service_error_publishes_no_explanation(self):
        dispatcher, _, explainer, recorder, _ = build(
            auto_explain=True, explainer=FakeExplainer(status_code=500)
        )
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, (Path('/shots/a.png'),))]))
        
        assert len(explainer.calls) == 1
        assert recorder.topics() == [OCR_TOPIC]
    
    def test_setting_is_read_per_event(self):
        dispatcher, _, explainer, recorder, store = build(auto_explain=False)
        
        async def scenario():
            dispatcher.dispatch(FileEvent(EventKind.CREATE, (Path('/shots/a.png'),)))
            await dispatcher.drain()
            store.set(Config(auto_explain=True))
            dispatcher.dispatch(FileEvent(EventKind.CREATE, (Path('/shots/b.png'),)))
            await dispatcher.drain()
        
        asyncio.run(scenario())
        
        assert explainer.calls == [("text for b.png", None)]
        assert recorder.topics() == [OCR_TOPIC, OCR_TOPIC, EXPLANATION_TOPIC]
    
    def test_failing_subscriber_does_not_stop_pipeline(self):
        dispatcher, _, explainer, recorder, _ = build(auto_explain=True)
        
        def broken(payload):
            raise ValueError("subscriber bug")
        
        dispatcher._bus.subscribe(OCR_TOPIC, broken)
        
        asyncio.run(dispatch_all(dispatcher, [FileEvent(EventKind.CREATE, (Path('/shots/a.png'),))]))
        
        assert recorder.topics() == [OCR_TOPIC, EXPLANATION_TOPIC]


class TestConcurrentEvents:
    """Property 10: Concurrent events are processed in parallel.
    
    Two create events arriving within 10 ms of each other SHALL both be
    processed concurrently and both SHALL produce an OCR publication.
    """
    
    def test_two_events_overlap(self):
        """Feature: askollama, Property 10: Concurrent events are processed in parallel"""
        extractor = FakeExtractor(delay=0.1)
        dispatcher, _, _, recorder, _ = build(auto_explain=False, extractor=extractor)
        
        events = [
            FileEvent(EventKind.CREATE, (Path('/shots/A.png'),)),
            FileEvent(EventKind.CREATE, (Path('/shots/B.png'),)),
        ]
        asyncio.run(dispatch_all(dispatcher, events))
        
        assert extractor.max_in_flight == 2
        assert sorted(recorder.payloads(OCR_TOPIC)) == ["text for A.png", "text for B.png"]
        assert dispatcher.pending == 0
    
    def test_run_consumes_queue(self):
        dispatcher, extractor, _, recorder, _ = build(auto_explain=False)
        
        async def scenario():
            queue: asyncio.Queue = asyncio.Queue()
            consumer = asyncio.create_task(dispatcher.run(queue))
            queue.put_nowait(FileEvent(EventKind.MODIFY, (Path('/shots/a.png'),)))
            queue.put_nowait(FileEvent(EventKind.CREATE, (Path('/shots/b.png'),)))
            await queue.join()
            await dispatcher.drain()
            consumer.cancel()
        
        asyncio.run(scenario())
        
        assert [path for path, _ in extractor.calls] == [Path('/shots/b.png')]
        assert recorder.payloads(OCR_TOPIC) == ["text for b.png"]
