"""Core components for askollama."""

from .config import (
    Config,
    ConfigError,
    ConfigurationUnavailable,
    ServiceSettings,
    SettingsStore,
    default_watch_directory,
    load_config,
    load_service_settings,
    save_config,
)
from .events import EXPLANATION_TOPIC, OCR_TOPIC, EventBus
from .ocr import EngineExecutionFailed, EngineNotFound, ExtractionResult, OCRError, TextExtractor
from .explainer import (
    ConnectionFailed,
    ExplanationClient,
    ExplanationError,
    ExplanationResult,
    ResponseDecodeFailed,
    ServiceError,
)
from .watcher import DirectoryWatcher, EventKind, FileEvent, WatchSetupFailed
from .dispatcher import EventDispatcher
from .pipeline import PipelineSupervisor

__all__ = [
    "Config",
    "ConfigError",
    "ConfigurationUnavailable",
    "ServiceSettings",
    "SettingsStore",
    "default_watch_directory",
    "load_config",
    "load_service_settings",
    "save_config",
    "EXPLANATION_TOPIC",
    "OCR_TOPIC",
    "EventBus",
    "EngineExecutionFailed",
    "EngineNotFound",
    "ExtractionResult",
    "OCRError",
    "TextExtractor",
    "ConnectionFailed",
    "ExplanationClient",
    "ExplanationError",
    "ExplanationResult",
    "ResponseDecodeFailed",
    "ServiceError",
    "DirectoryWatcher",
    "EventKind",
    "FileEvent",
    "WatchSetupFailed",
    "EventDispatcher",
    "PipelineSupervisor",
]
