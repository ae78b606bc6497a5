"""CLI entry point for askollama."""

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from askollama.core.config import (
    ConfigError,
    load_config,
    load_service_settings,
    resolve_watch_directory,
    save_config,
)
from askollama.core.events import EXPLANATION_TOPIC, OCR_TOPIC
from askollama.core.explainer import ExplanationClient, ExplanationError
from askollama.core.ocr import OCRError, TextExtractor
from askollama.core.pipeline import PipelineSupervisor


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def print_ocr(text: str) -> None:
    print("\n--- Extracted text ---")
    print(text.strip())


def print_explanation(explanation: str) -> None:
    print("\n--- Explanation ---")
    print(explanation.strip())


def cmd_start(args: argparse.Namespace) -> int:
    """Start background monitoring service."""
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1
    
    if args.dir:
        config = dataclasses.replace(config, watch_directory=Path(args.dir))
    if args.no_explain:
        config = dataclasses.replace(config, auto_explain=False)
    
    pipeline = PipelineSupervisor(config)
    pipeline.subscribe(OCR_TOPIC, print_ocr)
    pipeline.subscribe(EXPLANATION_TOPIC, print_explanation)
    
    # Handle graceful shutdown
    def signal_handler(sig, frame):
        print("\nShutting down...")
        pipeline.stop()
        sys.exit(0)
    
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    
    watching = pipeline.start()
    
    directory = resolve_watch_directory(config)
    if watching:
        print(f"Watching {directory} for new screenshots.")
    else:
        print(f"Could not watch {directory}; no screenshots will be processed.")
    print(f"Auto-explain: {'on' if config.auto_explain else 'off'}")
    
    if args.web:
        from askollama.web.app import create_app
        
        print(f"Control surface on http://{args.host}:{args.port}")
        create_app(pipeline).run(host=args.host, port=args.port)
        pipeline.stop()
        return 0
    
    print("\nPress Ctrl+C to stop.")
    
    # Keep running
    try:
        signal.pause()
    except AttributeError:
        # Windows doesn't have signal.pause
        import time
        while True:
            time.sleep(1)
    
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Manage persisted settings."""
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1
    
    changed = False
    
    if args.dir:
        config = dataclasses.replace(config, watch_directory=Path(args.dir))
        changed = True
    
    if args.clear_dir:
        config = dataclasses.replace(config, watch_directory=None)
        changed = True
    
    if args.auto_explain:
        config = dataclasses.replace(config, auto_explain=args.auto_explain == 'on')
        changed = True
    
    if changed:
        try:
            save_config(config)
        except (ConfigError, OSError) as e:
            print(f"Failed to save settings: {e}")
            return 1
        print("Settings saved.")
    
    if args.show or not changed:
        service = load_service_settings()
        print("askollama Configuration")
        print("=" * 40)
        if config.watch_directory is None:
            print(f"Screenshots directory: {resolve_watch_directory(config)} (default)")
        else:
            print(f"Screenshots directory: {config.watch_directory}")
        print(f"Auto-explain: {'on' if config.auto_explain else 'off'}")
        print(f"Ollama URL: {service.ollama_url}")
        print(f"Model: {service.ollama_model}")
        print(f"Tesseract: {service.tesseract_cmd}")
    
    return 0


def cmd_ocr(args: argparse.Namespace) -> int:
    """Extract text from a single image."""
    service = load_service_settings()
    extractor = TextExtractor(service.tesseract_cmd)
    
    try:
        result = asyncio.run(extractor.extract(args.image))
    except OCRError as e:
        print(f"OCR failed: {e}")
        return 1
    
    print(result.text.strip())
    return 0


def cmd_explain(args: argparse.Namespace) -> int:
    """Extract text from a single image and explain it."""
    service = load_service_settings()
    extractor = TextExtractor(service.tesseract_cmd)
    explainer = ExplanationClient(service.ollama_url, service.ollama_model)
    
    async def run():
        extraction = await extractor.extract(args.image)
        return await explainer.explain(extraction.text, args.prompt)
    
    try:
        result = asyncio.run(run())
    except OCRError as e:
        print(f"OCR failed: {e}")
        return 1
    except ExplanationError as e:
        print(f"Explanation failed: {e}")
        return 1
    
    print_ocr(result.source_text)
    print_explanation(result.explanation)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='askollama',
        description='askollama: explain your screenshots with a local model'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    
    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    
    # start command
    start_parser = subparsers.add_parser('start', help='Start background monitoring service')
    start_parser.add_argument('--dir', help='Watch this directory instead of the configured one')
    start_parser.add_argument('--no-explain', action='store_true', help='Only run OCR')
    start_parser.add_argument('--web', action='store_true', help='Serve the web control surface')
    start_parser.add_argument('--host', default='127.0.0.1', help='Web host')
    start_parser.add_argument('--port', type=int, default=5000, help='Web port')
    start_parser.set_defaults(func=cmd_start)
    
    # config command
    config_parser = subparsers.add_parser('config', help='Manage configuration')
    dir_group = config_parser.add_mutually_exclusive_group()
    dir_group.add_argument('--dir', help='Set screenshots directory')
    dir_group.add_argument('--clear-dir', action='store_true', help='Use the default directory')
    config_parser.add_argument('--auto-explain', choices=['on', 'off'], help='Toggle auto-explain')
    config_parser.add_argument('--show', action='store_true', help='Show current config')
    config_parser.set_defaults(func=cmd_config)
    
    # ocr command
    ocr_parser = subparsers.add_parser('ocr', help='Extract text from an image')
    ocr_parser.add_argument('image', help='Image file')
    ocr_parser.set_defaults(func=cmd_ocr)
    
    # explain command
    explain_parser = subparsers.add_parser('explain', help='Extract and explain an image')
    explain_parser.add_argument('image', help='Image file')
    explain_parser.add_argument('-p', '--prompt', help='Additional prompt for the model')
    explain_parser.set_defaults(func=cmd_explain)
    
    args = parser.parse_args(argv)
    
    setup_logging(args.verbose)
    
    if args.command is None:
        parser.print_help()
        return 0
    
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
