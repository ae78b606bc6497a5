"""Configuration Manager component."""

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from current directory or parent directories
load_dotenv()


SCREENSHOTS_SUBFOLDER = "Screenshots"


@dataclass(frozen=True)
class Config:
    """Live pipeline configuration. Immutable; the store swaps whole values."""
    watch_directory: Optional[Path] = None
    auto_explain: bool = True


@dataclass(frozen=True)
class ServiceSettings:
    """Endpoints of the external services, taken from the environment."""
    ollama_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama2"
    tesseract_cmd: str = "tesseract"


class ConfigError(Exception):
    """Exception raised for configuration errors."""
    pass


class ConfigurationUnavailable(ConfigError):
    """Raised when the persisted configuration cannot be located or read."""
    pass


class SettingsStore:
    """Thread-safe holder of the current Config."""
    
    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()
        self._lock = threading.Lock()
    
    def get(self) -> Config:
        """Return a snapshot of the current configuration."""
        with self._lock:
            return self._config
    
    def set(self, config: Config) -> None:
        """Replace the current configuration atomically."""
        with self._lock:
            self._config = config


def default_config_path() -> Path:
    """Location of the persisted settings file.
    
    Raises:
        ConfigurationUnavailable: If the home directory cannot be resolved.
    """
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigurationUnavailable(f"Cannot resolve home directory: {e}") from e
    return home / ".askollama" / "settings.json"


def default_watch_directory() -> Path:
    """Platform default screenshot directory, used when none is configured."""
    try:
        pictures = Path.home() / "Pictures"
    except RuntimeError:
        pictures = Path("/tmp")
    return pictures / SCREENSHOTS_SUBFOLDER


def resolve_watch_directory(config: Config) -> Path:
    """Directory the watcher should monitor for the given configuration."""
    if config.watch_directory is not None:
        return Path(config.watch_directory).expanduser()
    return default_watch_directory()


def load_config(config_path: Path | None = None) -> Config:
    """Load persisted settings.
    
    Args:
        config_path: Path to settings file. Uses default if None.
    
    Returns:
        Config built from the file, or defaults if the file does not exist.
    
    Raises:
        ConfigurationUnavailable: If the file cannot be located, read or parsed.
    """
    path = config_path or default_config_path()
    
    if not path.exists():
        return Config()
    
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationUnavailable(f"Cannot read settings from {path}: {e}") from e
    
    if not isinstance(data, dict):
        raise ConfigurationUnavailable(f"Settings in {path} must be a JSON object")
    
    screenshots_dir = data.get('screenshots_dir')
    if screenshots_dir is not None and not isinstance(screenshots_dir, str):
        raise ConfigurationUnavailable(f"screenshots_dir in {path} must be a string or null")
    
    auto_prompt = data.get('auto_prompt', True)
    if not isinstance(auto_prompt, bool):
        raise ConfigurationUnavailable(f"auto_prompt in {path} must be a boolean")
    
    return Config(
        watch_directory=Path(screenshots_dir) if screenshots_dir else None,
        auto_explain=auto_prompt,
    )


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save settings to file.
    
    Args:
        config: Config object to save.
        config_path: Path to save settings. Uses default if None.
    """
    path = config_path or default_config_path()
    
    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)
    
    data = {
        'screenshots_dir': str(config.watch_directory) if config.watch_directory is not None else None,
        'auto_prompt': config.auto_explain,
    }
    
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def load_service_settings() -> ServiceSettings:
    """Read service endpoints from the environment."""
    defaults = ServiceSettings()
    return ServiceSettings(
        ollama_url=os.environ.get('ASKOLLAMA_OLLAMA_URL', defaults.ollama_url),
        ollama_model=os.environ.get('ASKOLLAMA_MODEL', defaults.ollama_model),
        tesseract_cmd=os.environ.get('TESSERACT_CMD', defaults.tesseract_cmd),
    )
