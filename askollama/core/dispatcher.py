"""Event Dispatcher component that turns file events into pipeline tasks."""

import asyncio
import logging
from pathlib import Path

from .config import SettingsStore
from .events import EXPLANATION_TOPIC, OCR_TOPIC, EventBus
from .explainer import ExplanationClient, ExplanationError
from .ocr import OCRError, TextExtractor
from .watcher import FileEvent

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Run OCR and explanation for each new screenshot, concurrently."""
    
    DEBOUNCE_WINDOW: float = 0.2  # seconds
    
    def __init__(
        self,
        settings: SettingsStore,
        extractor: TextExtractor,
        explainer: ExplanationClient,
        bus: EventBus,
        debounce: float | None = None,
    ) -> None:
        """Initialize event dispatcher.
        
        Args:
            settings: Store consulted for ``auto_explain`` on every event.
            extractor: Text extractor used for each screenshot.
            explainer: Client used when auto-explain is enabled.
            bus: Bus receiving the published results.
            debounce: Delay before reading a new file, in seconds.
        """
        self._settings = settings
        self._extractor = extractor
        self._explainer = explainer
        self._bus = bus
        self._debounce = self.DEBOUNCE_WINDOW if debounce is None else debounce
        self._tasks: set[asyncio.Task] = set()
    
    @property
    def pending(self) -> int:
        """Number of in-flight tasks."""
        return len(self._tasks)
    
    def dispatch(self, event: FileEvent) -> asyncio.Task | None:
        """Schedule processing for an event.
        
        Must be called from the running event loop. Only create events with
        at least one path are processed, and only their first path.
        
        Returns:
            The scheduled task, or None if the event was discarded.
        """
        if not event.is_actionable:
            logger.debug(f"Ignoring {event.kind.value} event: {list(event.paths)}")
            return None
        
        task = asyncio.get_running_loop().create_task(self.process(event.paths[0]))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
    
    async def process(self, path: Path) -> None:
        """Debounce, extract, then optionally explain one screenshot."""
        await asyncio.sleep(self._debounce)
        
        try:
            extraction = await self._extractor.extract(path)
        except OCRError as e:
            logger.warning(f"OCR failed for {path}: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected OCR failure for {path}: {e}")
            return
        
        self._bus.publish(OCR_TOPIC, extraction.text)
        
        if not self._settings.get().auto_explain:
            return
        
        try:
            result = await self._explainer.explain(extraction.text)
        except ExplanationError as e:
            logger.warning(f"Explanation failed for {path}: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected explanation failure for {path}: {e}")
            return
        
        self._bus.publish(EXPLANATION_TOPIC, result.explanation)
    
    async def run(self, queue: "asyncio.Queue[FileEvent]") -> None:
        """Consume events from a queue until cancelled."""
        while True:
            event = await queue.get()
            try:
                self.dispatch(event)
            finally:
                queue.task_done()
    
    async def drain(self) -> None:
        """Wait for all in-flight tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
