"""Flask control surface for askollama."""

import dataclasses
import threading
from pathlib import Path

from flask import Flask, jsonify, render_template_string, request

from askollama.core.config import resolve_watch_directory
from askollama.core.events import EXPLANATION_TOPIC, OCR_TOPIC
from askollama.core.explainer import ConnectionFailed, ExplanationError
from askollama.core.pipeline import PipelineSupervisor

# HTML template for the overlay page
OVERLAY_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Screenshot assistant</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f5f5f5; color: #333; }
        .overlay { max-width: 800px; margin: 40px auto; background: white; padding: 20px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
        pre { white-space: pre-wrap; background: #fafafa; padding: 10px; border-radius: 4px; }
        input { width: 80%; padding: 8px; }
    </style>
</head>
<body>
    <div class="overlay">
        <h3>Screenshot assistant</h3>
        <strong>Extracted text</strong>
        <pre id="ocr">Take a screenshot to see results.</pre>
        <strong>Assistant</strong>
        <pre id="reply">Waiting for explanation...</pre>
        <input id="prompt" placeholder="Add a custom prompt (e.g. convert time to GST)">
        <button onclick="sendPrompt()">Send</button>
    </div>
    <script>
        async function refresh() {
            const data = await (await fetch('/api/latest')).json();
            if (data.ocr_text !== null) document.getElementById('ocr').textContent = data.ocr_text;
            if (data.explanation !== null) document.getElementById('reply').textContent = data.explanation;
        }
        async function sendPrompt() {
            const prompt = document.getElementById('prompt').value;
            const res = await fetch('/api/explain', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify({prompt: prompt})
            });
            const data = await res.json();
            document.getElementById('reply').textContent = data.explanation || data.error;
        }
        setInterval(refresh, 1000);
    </script>
</body>
</html>
"""


class LatestResults:
    """Keep the last published OCR text and explanation."""
    
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.ocr_text: str | None = None
        self.explanation: str | None = None
    
    def on_ocr(self, text: str) -> None:
        with self._lock:
            self.ocr_text = text
            self.explanation = None
    
    def on_explanation(self, explanation: str) -> None:
        with self._lock:
            self.explanation = explanation
    
    def snapshot(self) -> dict:
        with self._lock:
            return {'ocr_text': self.ocr_text, 'explanation': self.explanation}


def settings_to_json(pipeline: PipelineSupervisor) -> dict:
    config = pipeline.get_settings()
    return {
        'screenshots_dir': str(config.watch_directory) if config.watch_directory is not None else None,
        'auto_prompt': config.auto_explain,
        'watching': str(pipeline.watcher.directory) if pipeline.watcher.is_alive else None,
        'next_start_directory': str(resolve_watch_directory(config)),
    }


def create_app(pipeline: PipelineSupervisor) -> Flask:
    """Build the Flask app bound to a running pipeline."""
    app = Flask(__name__)
    
    latest = LatestResults()
    pipeline.subscribe(OCR_TOPIC, latest.on_ocr)
    pipeline.subscribe(EXPLANATION_TOPIC, latest.on_explanation)
    
    @app.route('/')
    def overlay():
        """Overlay HTML page."""
        return render_template_string(OVERLAY_HTML)
    
    @app.route('/api/settings', methods=['GET'])
    def api_get_settings():
        """Current settings JSON endpoint."""
        return jsonify(settings_to_json(pipeline))
    
    @app.route('/api/settings', methods=['PUT', 'POST'])
    def api_set_settings():
        """Update settings; omitted keys keep their current value."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'expected a JSON object'}), 400
        
        config = pipeline.get_settings()
        
        if 'screenshots_dir' in data:
            screenshots_dir = data['screenshots_dir']
            if screenshots_dir is not None and not isinstance(screenshots_dir, str):
                return jsonify({'error': 'screenshots_dir must be a string or null'}), 400
            config = dataclasses.replace(
                config, watch_directory=Path(screenshots_dir) if screenshots_dir else None
            )
        
        if 'auto_prompt' in data:
            if not isinstance(data['auto_prompt'], bool):
                return jsonify({'error': 'auto_prompt must be a boolean'}), 400
            config = dataclasses.replace(config, auto_explain=data['auto_prompt'])
        
        pipeline.set_settings(config)
        return jsonify(settings_to_json(pipeline))
    
    @app.route('/api/latest')
    def api_latest():
        """Last OCR text and explanation JSON endpoint."""
        return jsonify(latest.snapshot())
    
    @app.route('/api/explain', methods=['POST'])
    def api_explain():
        """Explain the given text, or the latest OCR text, with a custom prompt."""
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({'error': 'expected a JSON object'}), 400
        
        for key in ('text', 'prompt'):
            if data.get(key) is not None and not isinstance(data[key], str):
                return jsonify({'error': f'{key} must be a string'}), 400
        
        text = data.get('text') or latest.snapshot()['ocr_text']
        if not text:
            return jsonify({'error': 'no text to explain'}), 400
        
        try:
            result = pipeline.explain(text, data.get('prompt') or None)
        except ConnectionFailed as e:
            return jsonify({'error': str(e)}), 503
        except ExplanationError as e:
            return jsonify({'error': str(e)}), 502
        
        return jsonify({'explanation': result.explanation})
    
    return app
