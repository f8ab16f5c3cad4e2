"""Status page for the charger supervisor."""
from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path

from flask import Flask, jsonify, render_template_string

app = Flask(__name__)
app.config.setdefault(
    "UI_STATE_PATH", Path(os.getenv("EV_SUPERVISOR_UI_STATE", "/data/ui_state.json"))
)

FALLBACK_PAYLOAD = {
    "appliance_id": None,
    "state": "UNKNOWN",
    "on": False,
    "settled": True,
    "charging_attempt_started_at": None,
    "vehicle_connected": None,
    "visited": [],
    "history": [],
}

HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang=\"en\">
<head>
    <meta charset=\"UTF-8\">
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\">
    <title>EV Charger Supervisor</title>
    <style>
        body { margin: 0; padding: 2rem; font-family: system-ui, sans-serif; background: #0b1020; color: #e6f7ff; }
        .card { max-width: 32rem; padding: 1.5rem; border: 1px solid rgba(102,252,241,0.25); border-radius: 12px; }
        .state { font-size: 1.8rem; letter-spacing: 0.05em; }
        .on { color: #66fcf1; }
        .off { color: #7f9fa8; }
        ul { padding-left: 1.2rem; color: #7f9fa8; }
    </style>
</head>
<body>
    <div class=\"card\">
        <div id=\"appliance\">{{ payload.appliance_id or "" }}</div>
        <div class=\"state\" id=\"state\">{{ payload.state }}</div>
        <div id=\"control\" class=\"{{ 'on' if payload.on else 'off' }}\">Control: {{ 'ON' if payload.on else 'OFF' }}</div>
        <div id=\"vehicle\">Vehicle connected: {{ payload.vehicle_connected }}</div>
        <ul id=\"history\">
        {% for item in (payload.history or [])[-10:]|reverse %}
            <li>{{ item.ts }}: {{ item["from"] }} &rarr; {{ item.to }}</li>
        {% endfor %}
        </ul>
    </div>
    <script>
        async function fetchStatus() {
            const response = await fetch('api/status');
            const data = await response.json();
            document.getElementById('state').textContent = data.state;
            const control = document.getElementById('control');
            control.textContent = 'Control: ' + (data.on ? 'ON' : 'OFF');
            control.className = data.on ? 'on' : 'off';
            document.getElementById('vehicle').textContent = 'Vehicle connected: ' + data.vehicle_connected;
        }
        setInterval(fetchStatus, 2000);
    </script>
</body>
</html>
"""


@app.route("/")
def index():
    """Render the status card."""

    return render_template_string(HTML_TEMPLATE, payload=_load_ui_state_payload())


def _fallback_payload():
    return deepcopy(FALLBACK_PAYLOAD)


def _load_ui_state_payload():
    """Load the persisted UI state, tolerating empty or partially-written files."""

    data_file = Path(app.config["UI_STATE_PATH"])
    if not data_file.exists():
        return _fallback_payload()
    try:
        raw = data_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        app.logger.warning("Unable to read %s (%s); serving fallback", data_file, exc)
        return _fallback_payload()
    if not raw:
        app.logger.warning("%s empty; serving fallback", data_file)
        return _fallback_payload()
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        app.logger.warning("%s invalid JSON (%s); serving fallback", data_file, exc)
        return _fallback_payload()


@app.route("/api/status")
def api_status():
    """Return the latest supervisor snapshot or the fallback."""

    return jsonify(_load_ui_state_payload())


def run_server(host: str = "0.0.0.0", port: int = 5000) -> None:
    """Run the Flask development server (used outside Gunicorn)."""

    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    run_server()
