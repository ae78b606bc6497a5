"""Processing Pipeline component that supervises watcher and dispatcher."""

import asyncio
import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Coroutine

from .config import Config, ServiceSettings, SettingsStore, load_service_settings, resolve_watch_directory
from .dispatcher import EventDispatcher
from .events import EventBus
from .explainer import ExplanationClient, ExplanationResult
from .ocr import TextExtractor
from .watcher import DirectoryWatcher, FileEvent, WatchSetupFailed

logger = logging.getLogger(__name__)


class PipelineSupervisor:
    """Own the settings, the watcher thread and the asyncio loop thread.
    
    The watcher thread only hands raw events to the loop; all OCR and
    explanation work runs as tasks on the loop.
    """
    
    def __init__(
        self,
        config: Config | None = None,
        service: ServiceSettings | None = None,
        extractor: TextExtractor | None = None,
        explainer: ExplanationClient | None = None,
        bus: EventBus | None = None,
        debounce: float | None = None,
    ) -> None:
        """Initialize pipeline supervisor.
        
        Args:
            config: Initial configuration. Defaults are used if None.
            service: Service endpoints. Read from the environment if None.
            extractor: Text extractor override.
            explainer: Explanation client override.
            bus: Event bus override.
            debounce: Debounce override passed to the dispatcher.
        """
        service = service or load_service_settings()
        
        self._settings = SettingsStore(config)
        self._bus = bus or EventBus()
        self._extractor = extractor or TextExtractor(service.tesseract_cmd)
        self._explainer = explainer or ExplanationClient(service.ollama_url, service.ollama_model)
        self._dispatcher = EventDispatcher(
            self._settings, self._extractor, self._explainer, self._bus, debounce=debounce
        )
        self._watcher = DirectoryWatcher()
        
        # Loop components (initialized on start)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._queue: asyncio.Queue[FileEvent] | None = None
        self._consumer: Future | None = None
    
    @property
    def bus(self) -> EventBus:
        return self._bus
    
    @property
    def watcher(self) -> DirectoryWatcher:
        return self._watcher
    
    def get_settings(self) -> Config:
        return self._settings.get()
    
    def set_settings(self, config: Config) -> None:
        self._settings.set(config)
    
    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        return self._bus.subscribe(topic, callback)
    
    def start(self) -> bool:
        """Start the loop thread and the directory watcher.
        
        Returns:
            True if the watcher is running. A watcher that could not be set
            up is logged and the supervisor keeps serving configuration.
        """
        logger.info("Starting askollama pipeline...")
        self._start_loop()
        
        directory = resolve_watch_directory(self._settings.get())
        try:
            self._watcher.start(directory, self._enqueue)
        except WatchSetupFailed as e:
            logger.error(f"Failed to watch {directory}: {e}")
            return False
        return True
    
    def stop(self) -> None:
        """Stop the watcher and the loop; in-flight tasks are abandoned."""
        logger.info("Stopping askollama pipeline...")
        
        self._watcher.stop()
        
        loop, self._loop = self._loop, None
        if loop is None:
            return
        
        if self._consumer is not None:
            self._consumer.cancel()
            self._consumer = None
        
        loop.call_soon_threadsafe(loop.stop)
        if self._loop_thread is not None:
            self._loop_thread.join(timeout=5.0)
            self._loop_thread = None
        self._queue = None
        
        logger.info("Pipeline stopped")
    
    def submit(self, coro: Coroutine) -> Future:
        """Run a coroutine on the pipeline loop from another thread."""
        if self._loop is None:
            coro.close()
            raise RuntimeError("Pipeline is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)
    
    def explain(
        self, text: str, user_prompt: str | None = None, timeout: float | None = None
    ) -> ExplanationResult:
        """Explain text on the pipeline loop and wait for the result.
        
        Raises:
            ExplanationError: Any failure of the explanation client.
        """
        return self.submit(self._explainer.explain(text, user_prompt)).result(timeout)
    
    def emit(self, event: FileEvent) -> None:
        """Inject an event as if it came from the watcher."""
        self._enqueue(event)
    
    def _start_loop(self) -> None:
        if self._loop is not None:
            return
        
        loop = asyncio.new_event_loop()
        ready = threading.Event()
        
        def run() -> None:
            asyncio.set_event_loop(loop)
            self._queue = asyncio.Queue()
            loop.call_soon(ready.set)
            loop.run_forever()
            # Abandon whatever is still in flight.
            tasks = asyncio.all_tasks(loop)
            for task in tasks:
                task.cancel()
            loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))
            loop.close()
        
        self._loop = loop
        self._loop_thread = threading.Thread(target=run, name="askollama-loop", daemon=True)
        self._loop_thread.start()
        ready.wait()
        
        self._consumer = asyncio.run_coroutine_threadsafe(self._dispatcher.run(self._queue), loop)
    
    def _enqueue(self, event: FileEvent) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            logger.debug(f"Pipeline not running, dropping {event}")
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, event)
        except RuntimeError:
            # Loop already closed during shutdown.
            logger.debug(f"Loop closed, dropping {event}")
    
    def watch_directory(self) -> Path:
        """Directory the watcher uses under the current settings."""
        return resolve_watch_directory(self._settings.get())
