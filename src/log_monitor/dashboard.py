# dashboard.py - LOG MONITOR DASHBOARD (hosts the sync client, renders its state)

import logging

from flask import Flask, jsonify, render_template_string, request

from log_monitor.core.config import get_settings
from log_monitor.core.errors import NotConnectedError, ValidationError
from log_monitor.core.logging_setup import setup_logging
from log_monitor.integration.rpc_client import LogMonitorClient
from log_monitor.integration.sync_client import SyncClient

logger = logging.getLogger(__name__)

# Browser redraw cadence; the server-side poll runs on the sync client's own schedule
RENDER_INTERVAL_MS = 2000


def create_dashboard(sync_client: SyncClient) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)
    app.config["sync_client"] = sync_client

    def state_response(ok=True, status_code=200, **extra):
        payload = {"ok": ok, "state": sync_client.state.to_dict()}
        payload.update(extra)
        return jsonify(payload), status_code

    @app.errorhandler(NotConnectedError)
    def handle_not_connected(e):
        return state_response(ok=False, status_code=409, error=e.message)

    @app.errorhandler(ValidationError)
    def handle_invalid(e):
        return state_response(ok=False, status_code=400, error=e.message, details=e.details)

    @app.route("/api/state")
    def api_state():
        return jsonify(sync_client.state.to_dict())

    @app.route("/api/refresh", methods=["POST"])
    def api_refresh():
        return state_response(ok=sync_client.refresh())

    @app.route("/api/control/<action>", methods=["POST"])
    def api_control(action):
        if action == "toggle":
            status = sync_client.toggle()
        else:
            status = sync_client.control(action)
        return state_response(ok=status is not None)

    @app.route("/api/clear", methods=["POST"])
    def api_clear():
        return state_response(ok=sync_client.clear_all())

    @app.route("/api/search", methods=["POST"])
    def api_search():
        body = request.get_json(silent=True) or {}
        return state_response(ok=sync_client.search(str(body.get("keyword", ""))))

    @app.route("/api/search/clear", methods=["POST"])
    def api_clear_search():
        sync_client.clear_search()
        return state_response()

    @app.route("/api/filters", methods=["POST"])
    def api_filters():
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            raise ValidationError("Filters must be a JSON object")
        sync_client.set_filters(**body)
        return state_response()

    @app.route("/api/filters/clear", methods=["POST"])
    def api_clear_filters():
        sync_client.clear_filters()
        return state_response()

    @app.route("/api/auto-refresh", methods=["POST"])
    def api_auto_refresh():
        body = request.get_json(silent=True) or {}
        sync_client.set_auto_refresh(bool(body.get("enabled", True)))
        return state_response()

    @app.route("/")
    def page():
        return render_template_string(TEMPLATE, RENDER_INTERVAL_MS=RENDER_INTERVAL_MS)

    return app


# --------- Frontend template ---------
TEMPLATE = """<!doctype html>
<html><head><meta charset="utf-8"/><title>Log Monitor</title>
<link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.2/dist/css/bootstrap.min.css" rel="stylesheet">
<style>
body { background:#0b1220; color:#e6eef8; }
.card { background:#0f1724; border:1px solid rgba(255,255,255,0.12); color:#e6eef8; }
.badge-fatal{background:#8B0000;} .badge-error{background:#e02424;}
.badge-warn{background:#ff8c00;color:#000;} .badge-info{background:#2d9cdb;} .badge-debug{background:#6b7280;}
.mono{font-family:ui-monospace, SFMono-Regular, Menlo, Monaco, monospace;}
.tiny{font-size:.82rem;color:#b8c9dc;}
.no-logs{padding:30px;text-align:center;color:#9fb0c9;}
.dot{display:inline-block;width:12px;height:12px;border-radius:50%;margin-right:6px;}
pre.raw{background:rgba(255,255,255,0.05);padding:8px;border-radius:6px;white-space:pre-wrap;color:#c5d3e8;}
</style>
</head><body>
<div class="container-fluid p-3">
  <div class="d-flex align-items-center mb-3 flex-wrap gap-3">
    <h2 class="mb-0">Log Monitor</h2>
    <div class="card px-3 py-2 ms-auto tiny">
      <span><span id="dot" class="dot"></span><span id="stream-label">...</span></span>
      <span class="ms-3">Total: <span id="total">0</span></span>
      <span class="ms-3">Updated: <span id="updated">--:--:--</span></span>
    </div>
  </div>

  <div id="error" class="alert alert-danger d-none"></div>
  <div id="disconnected" class="alert alert-warning d-none">Backend server is not running. Start the server to begin monitoring logs.</div>

  <div class="card p-3 mb-3">
    <div class="d-flex gap-2 mb-3">
      <input id="keyword" class="form-control form-control-sm" placeholder="Search logs by keyword...">
      <button id="search" class="btn btn-sm btn-primary">Search</button>
      <button id="clear-search" class="btn btn-sm btn-outline-light d-none">Clear Search</button>
    </div>
    <div class="d-flex gap-2 mb-3 flex-wrap">
      <select id="level" class="form-select form-select-sm w-auto">
        <option value="">All levels</option><option>debug</option><option>info</option><option>warn</option><option>error</option><option>fatal</option>
      </select>
      <select id="type" class="form-select form-select-sm w-auto">
        <option value="">All types</option><option>system</option><option>application</option><option>network</option><option>security</option><option>other</option>
      </select>
      <select id="source" class="form-select form-select-sm w-auto"><option value="">All sources</option></select>
      <button id="clear-filters" class="btn btn-sm btn-outline-light">Clear Filters</button>
    </div>
    <div class="d-flex gap-2 align-items-center flex-wrap">
      <div class="form-check form-switch mb-0">
        <input class="form-check-input" type="checkbox" id="auto-refresh" checked>
        <label class="form-check-label tiny" for="auto-refresh">Auto-refresh</label>
      </div>
      <button id="toggle" class="btn btn-sm btn-secondary">Pause Stream</button>
      <button id="refresh" class="btn btn-sm btn-outline-light">Refresh</button>
      <button id="clear-all" class="btn btn-sm btn-danger ms-auto">Clear All Logs</button>
    </div>
  </div>

  <div class="card p-3">
    <div class="d-flex mb-2"><h6 class="mb-0" id="stream-title">Log Stream</h6><span class="ms-auto tiny" id="count"></span></div>
    <div id="logs" style="max-height:65vh; overflow:auto;"></div>
  </div>
</div>

<script>
const RENDER_MS = {{ RENDER_INTERVAL_MS }};
let sourcesKey = '';

function esc(s){ return String(s).replace(/[&<>"']/g, m=>({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'})[m]); }

async function post(path, body){
  const resp = await fetch(path, {method:'POST', headers:{'Content-Type':'application/json'}, body: JSON.stringify(body || {})});
  const data = await resp.json();
  render(data.state);
}

function render(s){
  const st = s.status || {is_paused:false, total_logs:0, last_update:null};
  document.getElementById('dot').style.background = !s.connected ? '#e02424' : (st.is_paused ? '#ffc107' : '#00c853');
  document.getElementById('stream-label').innerText = !s.connected ? 'Disconnected' : (st.is_paused ? 'Paused' : 'Live');
  document.getElementById('total').innerText = st.total_logs;
  document.getElementById('updated').innerText = st.last_update ? new Date(st.last_update).toLocaleTimeString() : '--:--:--';
  const err = document.getElementById('error');
  err.innerText = s.error || ''; err.classList.toggle('d-none', !s.error);
  document.getElementById('disconnected').classList.toggle('d-none', s.connected);
  document.getElementById('toggle').innerText = st.is_paused ? 'Resume Stream' : 'Pause Stream';
  document.getElementById('auto-refresh').checked = s.auto_refresh;
  document.getElementById('clear-search').classList.toggle('d-none', !s.search_mode);
  document.getElementById('stream-title').innerText = 'Log Stream' + (s.search_mode ? ' (Search: "' + s.search_keyword + '")' : '');
  document.getElementById('count').innerText = 'Showing ' + s.logs.length + ' entries';

  const key = s.sources.join('\\n');
  if(key !== sourcesKey){
    sourcesKey = key;
    const sel = document.getElementById('source');
    sel.innerHTML = '<option value="">All sources</option>' + s.sources.map(x => '<option>' + esc(x) + '</option>').join('');
    sel.value = s.filters.source || '';
  }

  const box = document.getElementById('logs');
  if(!s.connected){ box.innerHTML = '<div class="no-logs">Backend Not Connected</div>'; return; }
  if(s.logs.length === 0){ box.innerHTML = '<div class="no-logs">No logs found</div>'; return; }
  box.innerHTML = s.logs.map(log =>
    '<div class="p-2" style="border-bottom:1px solid rgba(255,255,255,0.05);">' +
      '<div class="d-flex gap-2 align-items-center">' +
        '<span class="badge badge-' + log.level + '">' + log.level.toUpperCase() + '</span>' +
        '<span class="badge bg-secondary">' + log.type + '</span>' +
        '<span class="tiny">' + esc(log.source) + '</span>' +
        '<span class="ms-auto mono tiny">' + new Date(log.timestamp).toLocaleString() + '</span>' +
      '</div>' +
      '<div>' + esc(log.message) + '</div>' +
      (log.raw_content !== log.message ? '<details class="tiny"><summary>Raw content</summary><pre class="raw">' + esc(log.raw_content) + '</pre></details>' : '') +
    '</div>').join('');
}

async function pollState(){
  try{
    const resp = await fetch('/api/state');
    render(await resp.json());
  }catch(e){ console.error('state poll error', e); }
}

document.getElementById('search').addEventListener('click', () => post('/api/search', {keyword: document.getElementById('keyword').value}));
document.getElementById('keyword').addEventListener('keydown', ev => { if(ev.key === 'Enter') post('/api/search', {keyword: ev.target.value}); });
document.getElementById('clear-search').addEventListener('click', () => { document.getElementById('keyword').value=''; post('/api/search/clear'); });
['level','type','source'].forEach(id => document.getElementById(id).addEventListener('change', ev => post('/api/filters', {[id]: ev.target.value})));
document.getElementById('clear-filters').addEventListener('click', () => { ['level','type','source'].forEach(id => document.getElementById(id).value=''); post('/api/filters/clear'); });
document.getElementById('auto-refresh').addEventListener('change', ev => post('/api/auto-refresh', {enabled: ev.target.checked}));
document.getElementById('toggle').addEventListener('click', () => post('/api/control/toggle'));
document.getElementById('refresh').addEventListener('click', () => post('/api/refresh'));
document.getElementById('clear-all').addEventListener('click', () => {
  if(confirm('This will permanently delete all log entries. This action cannot be undone.')) post('/api/clear');
});

pollState();
setInterval(pollState, RENDER_MS);
</script>
</body></html>
"""


def main():
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_format == "json")
    client = LogMonitorClient(settings.backend_url, timeout=settings.request_timeout)
    sync_client = SyncClient(client, poll_interval=settings.poll_interval)
    sync_client.start()
    app = create_dashboard(sync_client)
    logger.info("Dashboard on http://%s:%s (backend %s)", settings.dashboard_host, settings.dashboard_port, settings.backend_url)
    try:
        app.run(host=settings.dashboard_host, port=settings.dashboard_port, debug=False)
    finally:
        sync_client.stop()


if __name__ == "__main__":
    main()
