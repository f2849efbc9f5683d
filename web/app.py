"""
Flask API gateway for a monitoring node.

Peer protocol (called by other nodes):
  GET  /health          — Liveness probe
  GET  /node            — This node's identity
  GET  /hardware        — Latest sensor snapshot grouped by family
  GET  /nodes           — Peers this node knows about
  POST /alerts/notify   — Receive an alert fired on a peer

UI endpoints (consumed by the desktop shell):
  GET/POST            /api/rules
  PATCH/DELETE        /api/rules/<id>
  GET/DELETE          /api/alerts
  POST                /api/alerts/<id>/ack
  GET                 /api/alerts/export
  GET                 /api/metrics
  GET                 /api/metrics/<name>?points=N

Started via: python main.py run [--port 3030] [--host 0.0.0.0]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from alerts.history import RecordNotFound
from alerts.rules_manager import DuplicateRule, InvalidRule, RuleNotFound, rule_from_dict
from models.alerts import AlertEvent, MalformedNotification

logger = logging.getLogger("hwmonitor.web.app")

DEFAULT_METRIC_POINTS = 300


def _parse_bool(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized components from the node context.

    Args:
        config: Application config dict
        engines: dict of components (get_node, sampler, store, rules, engine,
                 history, directory, channels, version)
    """
    app = Flask(__name__)

    get_node = engines["get_node"]
    sampler = engines["sampler"]
    store = engines["store"]
    rules = engines["rules"]
    history = engines["history"]
    directory = engines["directory"]
    channels = engines.get("channels", [])
    version = engines.get("version", "")

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    # ─── Peer protocol ───────────────────────────────────

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "version": version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/node")
    def node_info():
        return jsonify(get_node().to_dict())

    @app.route("/hardware")
    def hardware():
        return jsonify(sampler.snapshot())

    @app.route("/nodes")
    def nodes():
        peers = [n.to_dict() for n in directory.list_nodes()]
        return jsonify({"nodes": peers, "count": len(peers)})

    @app.route("/alerts/notify", methods=["POST"])
    def receive_notification():
        payload = request.get_json(silent=True)
        try:
            event = AlertEvent.from_payload(payload)
        except MalformedNotification as e:
            logger.warning(f"Rejected alert notification from {request.remote_addr}: {e}")
            return jsonify({"error": str(e)}), 400

        history.record(event, remote=True)
        for channel in channels:
            try:
                channel.send(event, remote=True)
            except Exception as e:
                logger.warning(f"Channel dispatch error: {e}")
        logger.info(f"Received alert {event.rule_id} from {event.source_node_name or event.source_node_id}")
        return jsonify({"status": "ok"})

    # ─── Rules ───────────────────────────────────────────

    @app.route("/api/rules")
    def api_rules():
        all_rules = [r.to_dict() for r in rules.get_all()]
        return jsonify({"rules": all_rules, "count": len(all_rules)})

    @app.route("/api/rules", methods=["POST"])
    def api_add_rule():
        try:
            rule = rules.add(rule_from_dict(request.get_json(silent=True)))
        except InvalidRule as e:
            return jsonify({"error": str(e)}), 400
        except DuplicateRule as e:
            return jsonify({"error": str(e)}), 409
        return jsonify(rule.to_dict()), 201

    @app.route("/api/rules/<rule_id>", methods=["PATCH"])
    def api_toggle_rule(rule_id):
        body = request.get_json(silent=True) or {}
        enabled = body.get("enabled")
        if not isinstance(enabled, bool):
            return jsonify({"error": "'enabled' must be a boolean"}), 400
        try:
            rule = rules.toggle(rule_id, enabled)
        except RuleNotFound:
            return jsonify({"error": f"Unknown rule: {rule_id}"}), 404
        return jsonify(rule.to_dict())

    @app.route("/api/rules/<rule_id>", methods=["DELETE"])
    def api_remove_rule(rule_id):
        try:
            rules.remove(rule_id)
        except RuleNotFound:
            return jsonify({"error": f"Unknown rule: {rule_id}"}), 404
        return jsonify({"status": "ok", "id": rule_id})

    # ─── Alerts ──────────────────────────────────────────

    @app.route("/api/alerts")
    def api_alerts():
        if _parse_bool(request.args.get("unacknowledged", "false")):
            records = list(reversed(history.get_unacknowledged()))
        else:
            records = history.get_recent(history.max_records)
        limit = request.args.get("limit", type=int)
        if limit is not None:
            records = records[:max(limit, 0)]
        alerts = [r.to_dict() for r in records]
        return jsonify({"alerts": alerts, "count": len(alerts)})

    @app.route("/api/alerts/<record_id>/ack", methods=["POST"])
    def api_ack_alert(record_id):
        try:
            record = history.acknowledge(record_id)
        except RecordNotFound:
            return jsonify({"error": f"Unknown alert: {record_id}"}), 404
        return jsonify(record.to_dict())

    @app.route("/api/alerts", methods=["DELETE"])
    def api_clear_alerts():
        history.clear()
        return jsonify({"status": "ok"})

    @app.route("/api/alerts/export")
    def api_export_alerts():
        return jsonify(history.export())

    # ─── Metrics ─────────────────────────────────────────

    @app.route("/api/metrics")
    def api_metrics():
        return jsonify({"metrics": store.metrics()})

    @app.route("/api/metrics/<metric_name>")
    def api_metric_history(metric_name):
        points = request.args.get("points", DEFAULT_METRIC_POINTS, type=int)
        samples = [s.to_dict() for s in store.query(metric_name, points)]
        return jsonify({"metric_name": metric_name, "points": samples, "count": len(samples)})

    return app
