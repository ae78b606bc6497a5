"""OCR Engine component for text extraction from screenshots."""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of OCR text extraction."""
    source_path: Path
    text: str


class OCRError(Exception):
    """Exception raised when OCR extraction fails."""
    pass


class EngineNotFound(OCRError):
    """The OCR executable is not on the search path."""
    pass


class EngineExecutionFailed(OCRError):
    """The OCR process could not run or exited with a non-zero status."""
    
    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class TextExtractor:
    """Extract text from screenshot images with the tesseract command line."""
    
    DEFAULT_COMMAND: str = 'tesseract'
    DEFAULT_LANGUAGE: str = 'eng'
    
    def __init__(self, command: str | None = None, language: str | None = None) -> None:
        """Initialize text extractor.
        
        Args:
            command: Name or path of the tesseract executable.
            language: Tesseract language code.
        """
        self._command = command or self.DEFAULT_COMMAND
        self._language = language or self.DEFAULT_LANGUAGE
    
    def build_args(self, image_path: str | Path) -> list[str]:
        """Arguments passed to the engine after the executable."""
        return [str(image_path), 'stdout', '-l', self._language]
    
    async def extract(self, image_path: str | Path) -> ExtractionResult:
        """Extract text from an image.
        
        Args:
            image_path: Path to the image file.
        
        Returns:
            ExtractionResult with the engine's standard output as text.
        
        Raises:
            EngineNotFound: If the executable cannot be resolved.
            EngineExecutionFailed: If the process fails to start or exits non-zero.
        """
        executable = shutil.which(self._command)
        if executable is None:
            raise EngineNotFound(f"{self._command} not found in PATH")
        
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *self.build_args(image_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await process.communicate()
        except OSError as e:
            raise EngineExecutionFailed(f"Failed to run {self._command}: {e}") from e
        
        if process.returncode != 0:
            raise EngineExecutionFailed(
                f"{self._command} exited with status {process.returncode}",
                returncode=process.returncode,
            )
        
        text = stdout.decode('utf-8', errors='replace')
        logger.debug(f"Extracted {len(text)} characters from {image_path}")
        return ExtractionResult(source_path=Path(image_path), text=text)
