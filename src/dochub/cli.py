#!/usr/bin/env python3
"""
dochub: run and poke the documentation automation hub.

Usage:
    dochub serve --port 6000
    dochub status --url http://127.0.0.1:6000
    dochub send generate-docs payload.json --secret s3cret
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import httpx
from rich.console import Console
from rich.table import Table

from dochub.errors import RegistryError
from dochub.logging import configure_logging, get_logger
from dochub.settings import HubSettings
from dochub.signature import SIGNATURE_HEADER, sign

logger = get_logger(__name__)

DEFAULT_URL = "http://127.0.0.1:6000"
ENDPOINTS = ("generate-docs", "restart-service")

console = Console()


def cmd_serve(args: argparse.Namespace) -> int:
    """Load the registry and serve until interrupted."""
    import uvicorn

    from dochub.server import create_app

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings = HubSettings(**overrides)

    configure_logging(settings.log_level, settings.log_dir)

    try:
        app = create_app(settings)
    except RegistryError as e:
        logger.error("Failed to start server", error=str(e))
        return 1

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Print the hub's health endpoint as a table."""
    try:
        resp = httpx.get(f"{args.url.rstrip('/')}/health", timeout=args.timeout)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Health check failed:[/red] {e}")
        return 1

    data = resp.json()

    table = Table(title="Documentation Hub", show_header=False, border_style="green")
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Status", f"[green]{data.get('status')}[/green]")
    table.add_row("Uptime", f"{float(data.get('uptime', 0)):.0f}s")
    table.add_row("Active jobs", str(data.get("activeJobs")))
    table.add_row("Queued jobs", str(data.get("queueLength")))
    table.add_row("Timestamp", str(data.get("timestamp")))

    console.print(table)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    """Sign a payload file and post it to a webhook endpoint."""
    secret = args.secret or HubSettings().webhook_secret
    if not secret:
        console.print("[red]No secret given and WEBHOOK_SECRET is not set[/red]")
        return 2

    body = Path(args.payload).read_bytes()
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: sign(body, secret),
    }
    url = f"{args.url.rstrip('/')}/webhook/{args.endpoint}"

    try:
        resp = httpx.post(url, content=body, headers=headers, timeout=args.timeout)
    except httpx.HTTPError as e:
        console.print(f"[red]Request failed:[/red] {e}")
        return 1

    style = "green" if resp.status_code < 400 else "red"
    console.print(f"[{style}]{resp.status_code}[/{style}] {resp.text}")
    return 0 if resp.status_code < 400 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dochub",
        description="Webhook-triggered documentation job orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dochub serve
  dochub serve --port 6000 --log-level debug
  dochub status
  dochub send generate-docs payload.json
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the webhook server")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Bind port (default: PORT or 6000)")
    serve.add_argument("--log-level", type=str, default=None, help="Log level (default: LOG_LEVEL or INFO)")
    serve.set_defaults(func=cmd_serve)

    status = sub.add_parser("status", help="Show queue state of a running hub")
    status.add_argument("--url", type=str, default=DEFAULT_URL, help=f"Hub base URL (default: {DEFAULT_URL})")
    status.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")
    status.set_defaults(func=cmd_status)

    send = sub.add_parser("send", help="Post a signed payload to a webhook")
    send.add_argument("endpoint", choices=ENDPOINTS, help="Webhook to call")
    send.add_argument("payload", type=str, help="Path to a JSON payload file (sent byte-for-byte)")
    send.add_argument("--url", type=str, default=DEFAULT_URL, help=f"Hub base URL (default: {DEFAULT_URL})")
    send.add_argument("--secret", type=str, default=None, help="HMAC secret (default: WEBHOOK_SECRET)")
    send.add_argument("--timeout", type=float, default=30.0, help="Request timeout in seconds")
    send.set_defaults(func=cmd_send)

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        code = args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
