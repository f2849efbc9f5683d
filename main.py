#!/usr/bin/env python3
"""Hardware Monitor - CLI Entry Point."""
import sys
import json
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()
logger = logging.getLogger("hwmonitor.cli")

SEVERITY_COLORS = {"CRITICAL": "bold white on red", "ERROR": "red", "WARNING": "yellow", "INFO": "blue"}


def _init_components(config_path=None, verbose=False, api_port=None):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from context import NodeContext

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    if api_port is not None:
        config["api"]["port"] = api_port

    # Console alerts only when attached to a terminal (not under a service manager)
    if not sys.stdout.isatty():
        config["alerts"]["console"] = False

    return NodeContext(config)


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="hwmonitor")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Hardware Monitor - Sensors, alert rules and peer alert sharing on the LAN."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        node_ctx = _init_components(
            ctx.obj.get("config_path"), ctx.obj.get("verbose"), ctx.obj.get("api_port"),
        )
        ctx.obj["_components"] = node_ctx
        ctx.call_on_close(node_ctx.db.close)
    return ctx.obj["_components"]


def _local_api(ctx, path):
    """GET a path from the node running on this machine."""
    from config import load_config
    from utils.http_client import HTTPClient, APIError

    port = load_config(ctx.obj.get("config_path"))["api"]["port"]
    client = HTTPClient(timeout=3.0)
    try:
        return client.get(f"http://127.0.0.1:{port}{path}")
    except APIError as e:
        console.print(f"[red]✗[/red] Could not reach local node on port {port}: {e}")
        console.print("[dim]Is [bold]python main.py run[/bold] running?[/dim]")
        sys.exit(1)
    finally:
        client.close()


# ──────────────────────────────────────────────────────
# RUN
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to (default: api.port)")
@click.option("--host", default=None, type=str, help="Host to bind to (default: api.host)")
@click.option("--no-discovery", is_flag=True, help="Do not announce or browse for peers")
@click.pass_context
def run(ctx, port, host, no_discovery):
    """Run the node: sensor polling, alerting, discovery and the HTTP API."""
    from web.app import create_app

    ctx.obj["api_port"] = port
    c = _get_components(ctx)
    host = host or c.config["api"].get("host", "0.0.0.0")
    port = c.config["api"]["port"]

    app = create_app(c.config, c.engines())
    c.start(discovery=not no_discovery)

    node = c.get_node()
    console.print(f"\n[bold cyan]Hardware Monitor {__version__}[/bold cyan] -- {node.name}\n")
    console.print(f"  Node ID:  {node.id}")
    console.print(f"  Local:    http://localhost:{port}")
    console.print(f"  Network:  {node.api_url}")
    console.print(f"  Sources:  {', '.join(c.sampler.sources) or 'none'}")
    console.print(f"\n  Press Ctrl+C to stop.\n")

    try:
        app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True)
    finally:
        c.stop()


# ──────────────────────────────────────────────────────
# STATUS
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, as_json):
    """Read every sensor once and show current values."""
    from monitor.sensors.base import SensorReadError, SensorUnavailable
    from utils.formatters import format_metric

    c = _get_components(ctx)
    readings = {}
    for name, source in c.sampler.sources.items():
        try:
            readings[name] = {s.metric_name: s.value for s in c.sampler.sample(source)}
        except (SensorUnavailable, SensorReadError) as e:
            readings[name] = {"error": str(e)}

    if as_json:
        click.echo(json.dumps({"node": c.get_node().to_dict(), "sensors": readings}, indent=2))
        return

    node = c.get_node()
    console.print(f"\n[bold cyan]{node.name}[/bold cyan] [dim]{node.os_info} | {node.id}[/dim]")
    table = Table(show_header=True, box=None)
    table.add_column("Source", style="dim")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for family, values in readings.items():
        if "error" in values:
            table.add_row(family, "[dim]unavailable[/dim]", f"[dim]{values['error']}[/dim]")
            continue
        for metric, value in values.items():
            table.add_row(family, metric, format_metric(metric, value, with_color=True))
    console.print(table)

    unacked = c.history.get_unacknowledged()
    if unacked:
        console.print(f"\n[bold yellow]{len(unacked)} unacknowledged alert(s)[/bold yellow]")


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Alert rule management."""
    pass


@rules.command("list")
@click.pass_context
def rules_list(ctx):
    """List all configured alert rules."""
    from utils.formatters import time_ago

    c = _get_components(ctx)
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Cooldown")
    table.add_column("Last Fired")
    table.add_column("Enabled")
    for r in c.rules.get_all():
        sev = r.severity.value
        table.add_row(
            r.id, r.name, f"{r.metric_name} {r.comparison.value} {r.threshold:g}",
            f"[{SEVERITY_COLORS.get(sev, '')}]{sev}[/]", f"{r.cooldown_seconds}s",
            time_ago(r.last_triggered) if r.last_triggered else "-",
            "[green]✓[/green]" if r.enabled else "[red]✗[/red]",
        )
    console.print(table)


@rules.command("add")
@click.option("--id", "rule_id", required=True, help="Unique rule id")
@click.option("--name", default=None, help="Display name (default: id)")
@click.option("--metric", required=True, help="Metric name, e.g. cpu_usage")
@click.option("--comparison", required=True, type=click.Choice([">", ">=", "<", "<="]))
@click.option("--threshold", required=True, type=float)
@click.option("--severity", default="WARNING", help="INFO, WARNING, ERROR or CRITICAL")
@click.option("--cooldown", default=300, type=int, help="Cooldown in seconds")
@click.option("--description", default="", help="Free-text description")
@click.option("--notify", "notify_nodes", multiple=True, help="Restrict broadcast to these node ids")
@click.pass_context
def rules_add(ctx, rule_id, name, metric, comparison, threshold, severity, cooldown, description,
              notify_nodes):
    """Add a new alert rule."""
    from alerts.rules_manager import DuplicateRule, InvalidRule, rule_from_dict

    c = _get_components(ctx)
    try:
        rule = c.rules.add(rule_from_dict({
            "id": rule_id,
            "name": name or rule_id,
            "metric_name": metric,
            "comparison": comparison,
            "threshold": threshold,
            "severity": severity,
            "cooldown_seconds": cooldown,
            "description": description,
            "notify_nodes": list(notify_nodes),
        }))
    except (InvalidRule, DuplicateRule) as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Added rule {rule.id}: {rule.metric_name} {rule.comparison.value} {rule.threshold:g}")


@rules.command("toggle")
@click.argument("rule_id")
@click.option("--enable/--disable", default=None, help="Set explicitly instead of flipping")
@click.pass_context
def rules_toggle(ctx, rule_id, enable):
    """Enable or disable a rule."""
    from alerts.rules_manager import RuleNotFound

    c = _get_components(ctx)
    try:
        current = c.rules.get(rule_id)
        rule = c.rules.toggle(rule_id, (not current.enabled) if enable is None else enable)
    except RuleNotFound:
        console.print(f"[red]✗[/red] Unknown rule: {rule_id}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Rule {rule_id} {'enabled' if rule.enabled else 'disabled'}")


@rules.command("remove")
@click.argument("rule_id")
@click.pass_context
def rules_remove(ctx, rule_id):
    """Delete a rule."""
    from alerts.rules_manager import RuleNotFound

    c = _get_components(ctx)
    try:
        c.rules.remove(rule_id)
    except RuleNotFound:
        console.print(f"[red]✗[/red] Unknown rule: {rule_id}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Removed rule {rule_id}")


@rules.command("test")
@click.option("--value", "values", multiple=True, help="metric=value (default: read sensors now)")
@click.pass_context
def rules_test(ctx, values):
    """Test all rules (ignore cooldowns) against given or current values."""
    from monitor.sensors.base import SensorReadError, SensorUnavailable

    c = _get_components(ctx)
    current = {}
    if values:
        for item in values:
            metric, sep, raw = item.partition("=")
            try:
                current[metric.strip()] = float(raw)
            except ValueError:
                raise click.BadParameter(f"expected metric=value, got {item!r}", param_hint="--value")
    else:
        for source in c.sampler.sources.values():
            try:
                current.update({s.metric_name: s.value for s in c.sampler.sample(source)})
            except (SensorUnavailable, SensorReadError) as e:
                logger.debug(f"Skipping {source.family}: {e}")

    table = Table(title="Alert Rules Test", show_header=True)
    table.add_column("Rule")
    table.add_column("Metric")
    table.add_column("Condition")
    table.add_column("Current")
    table.add_column("Would Fire")
    table.add_column("Enabled")
    for r in c.engine.test_rules(current):
        fire_str = "[green]YES[/green]" if r["would_fire"] else "[dim]no[/dim]"
        val = f"{r['current_value']:.2f}" if r["current_value"] is not None else "N/A"
        table.add_row(r["name"], r["metric_name"], f"{r['comparison']} {r['threshold']:g}",
                      val, fire_str, "✓" if r["enabled"] else "✗")
    console.print(table)


# ──────────────────────────────────────────────────────
# HISTORY
# ──────────────────────────────────────────────────────
@cli.group()
def history():
    """Alert history."""
    pass


@history.command("list")
@click.option("--limit", default=50, help="Number of records to show")
@click.option("--unacked", is_flag=True, help="Only unacknowledged alerts")
@click.pass_context
def history_list(ctx, limit, unacked):
    """Show past alerts, newest first."""
    from rich.markup import escape
    from utils.formatters import format_timestamp

    c = _get_components(ctx)
    if unacked:
        records = list(reversed(c.history.get_unacknowledged()))[:limit]
    else:
        records = c.history.get_recent(limit)
    if not records:
        console.print("[dim]No alerts in history[/dim]")
        return

    table = Table(title="Alert History", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Time", style="dim")
    table.add_column("Severity")
    table.add_column("Node")
    table.add_column("Rule")
    table.add_column("Message")
    table.add_column("Ack")
    for a in records:
        sev = a.severity.value
        origin = a.source_node_name or a.source_node_id[:8]
        table.add_row(
            a.id[:8], format_timestamp(a.timestamp), f"[{SEVERITY_COLORS.get(sev, '')}]{sev}[/]",
            f"{escape(origin)}{' (remote)' if a.remote else ''}", escape(a.rule_name), escape(a.message[:60]),
            "✓" if a.acknowledged else "",
        )
    console.print(table)

    stats = c.db.get_alert_stats()
    summary = "  ".join(f"{sev} {stats[sev]}" for sev in SEVERITY_COLORS if sev in stats)
    console.print(f"[dim]{c.history.count()} total: {summary}[/dim]")


@history.command("ack")
@click.argument("record_id")
@click.pass_context
def history_ack(ctx, record_id):
    """Acknowledge an alert (full id or unique prefix)."""
    from alerts.history import RecordNotFound

    c = _get_components(ctx)
    matches = [r.id for r in c.history.get_all() if r.id.startswith(record_id)]
    if len(matches) > 1:
        console.print(f"[red]✗[/red] Ambiguous id prefix: {record_id}")
        sys.exit(1)
    try:
        c.history.acknowledge(matches[0] if matches else record_id)
    except RecordNotFound:
        console.print(f"[red]✗[/red] Unknown alert: {record_id}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Acknowledged {record_id}")


@history.command("clear")
@click.confirmation_option(prompt="Delete all alert history?")
@click.pass_context
def history_clear(ctx):
    """Delete all alert records."""
    c = _get_components(ctx)
    c.history.clear()
    console.print("[green]✓[/green] Alert history cleared")


@history.command("export")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file")
@click.pass_context
def history_export(ctx, output):
    """Export the full alert log as JSON."""
    c = _get_components(ctx)
    text = c.history.export_json()
    if output:
        Path(output).write_text(text)
        console.print(f"[green]✓[/green] Exported {c.history.count()} records to {output}")
    else:
        click.echo(text)


# ──────────────────────────────────────────────────────
# NODES
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def nodes(ctx):
    """List peers known to the running node."""
    from utils.formatters import time_ago

    data = _local_api(ctx, "/nodes")
    peers = data.get("nodes", [])
    if not peers:
        console.print("[dim]No peers discovered[/dim]")
        return
    table = Table(title="Peers", show_header=True)
    table.add_column("Name")
    table.add_column("Address")
    table.add_column("OS", style="dim")
    table.add_column("Status")
    table.add_column("Last Seen", style="dim")
    colors = {"ONLINE": "green", "ALERTING": "red", "OFFLINE": "dim"}
    for p in peers:
        st = p["status"]
        table.add_row(p["name"], f"{p['ip_address']}:{p['api_port']}", p.get("os_info", ""),
                      f"[{colors.get(st, 'white')}]{st}[/]", time_ago(p["last_seen"]))
    console.print(table)


# ──────────────────────────────────────────────────────
# METRICS
# ──────────────────────────────────────────────────────
@cli.group()
def metrics():
    """Recorded metric history."""
    pass


@metrics.command("show")
@click.argument("name")
@click.option("--points", default=20, type=int, help="Number of most recent points")
@click.pass_context
def metrics_show(ctx, name, points):
    """Show the recent history of one metric from the running node."""
    from utils.formatters import format_metric, format_timestamp

    data = _local_api(ctx, f"/api/metrics/{name}?points={points}")
    samples = data.get("points", [])
    if not samples:
        console.print(f"[dim]No samples recorded for {name}[/dim]")
        return
    table = Table(title=name, show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("Value", justify="right")
    for s in samples:
        table.add_row(format_timestamp(s["timestamp"]), format_metric(name, s["value"]))
    console.print(table)
    values = [s["value"] for s in samples]
    console.print(f"[dim]min {min(values):.2f}  avg {sum(values) / len(values):.2f}  max {max(values):.2f}[/dim]")


if __name__ == "__main__":
    cli()
