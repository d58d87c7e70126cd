#!/usr/bin/env python3
"""
personachat CLI.

    COMMAND         ALIAS           WHAT IT DOES
    -------         -----           ----------------------------------
    serve           start           Start the chat API server
    ping            status          Ping a running instance
"""

import argparse
import sys

__version__ = "0.1.0"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the chat API server."""
    import uvicorn
    from personachat.config import get_config

    cfg = get_config()
    server_cfg = cfg.get("server", {})
    host = args.host or server_cfg.get("host", "127.0.0.1")
    port = args.port or int(server_cfg.get("port", 8000))
    provider = cfg.get("provider", {})

    print(f"  personachat v{__version__}")
    print(f"  Listening on {host}:{port}")
    print(f"  Provider: {provider.get('type', 'openai')} ({provider.get('model', 'gpt-4o-mini')})")
    print()

    uvicorn.run(
        "personachat.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ping(args):
    """Ping a running instance."""
    import httpx
    from personachat.config import get_config

    cfg = get_config()
    server_cfg = cfg.get("server", {})
    url = args.url or f"http://{server_cfg.get('host', '127.0.0.1')}:{server_cfg.get('port', 8000)}"

    try:
        resp = httpx.get(f"{url.rstrip('/')}/api/health", timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except Exception as e:
        print(f"  ✗  No answer from {url}: {e}")
        return 1

    print(f"  ✓  {url} is up")
    print(f"     version:  {data.get('version', '?')}")
    print(f"     provider: {data.get('provider', '?')} ({'ok' if data.get('provider_ok') else 'unreachable'})")
    print(f"     store:    {data.get('store', '?')}")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="personachat",
        description="personachat: persona chat API server.",
        epilog="Run 'personachat <command> --help' for command-specific options.",
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"personachat {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start"], "Start the chat API server", cmd_serve, setup_serve)

    def setup_ping(p):
        p.add_argument("--url", "-u", default=None, help="Instance URL (default: from config)")

    _add_command(sub, ["ping", "status"], "Ping a running instance", cmd_ping, setup_ping)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
