"""
Flask Dashboard — NetMonitor
Exposes the connection audit trail and live monitor status as JSON:

  /api/connections → every logged new outbound connection
  /api/status      → reachability and tick counters of the running monitor
  /api/stats       → per-process connection counts and unique remote hosts
"""

from collections import Counter

from flask import Flask, jsonify, request

import config
from agent import event_log

app = Flask(__name__)


@app.route("/api/connections")
def api_connections():
    """Return logged connections, optionally filtered by ?name= or ?pid=."""
    connections = event_log.load_connections()

    name = request.args.get("name")
    if name:
        connections = [c for c in connections if str(c.get("name", "")).lower() == name.lower()]

    pid = request.args.get("pid", type=int)
    if pid is not None:
        connections = [c for c in connections if c.get("pid") == pid]

    return jsonify(connections)


@app.route("/api/status")
def api_status():
    """Return the live status snapshot of the monitor."""
    return jsonify(event_log.current_status())


@app.route("/api/stats")
def api_stats():
    """Return summary statistics over the logged connections."""
    connections = event_log.load_connections()
    per_process = Counter(c.get("name") or config.UNKNOWN_PROCESS_NAME for c in connections)
    remotes = {c.get("remote_ip") for c in connections if c.get("remote_ip")}
    last_ts = connections[-1].get("timestamp") if connections else None
    return jsonify(
        {
            "total": len(connections),
            "processes": dict(per_process.most_common()),
            "unique_remote_ips": len(remotes),
            "last_timestamp": last_ts,
        }
    )


if __name__ == "__main__":
    app.run(debug=False, host=config.DASHBOARD_HOST, port=config.DASHBOARD_PORT, use_reloader=False)
