#!/usr/bin/env python3
"""
chatrelay CLI.

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           start, run      Start the chatrelay server
    history         ls, show        List conversations, or show one
    export          dump            Export conversations to JSON
    tap             log, tail       Show the last entries of the wire log
    ping            status, health  Ping a running instance
"""

import argparse
import json
import sys

from chatrelay import __version__


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the chatrelay server."""
    import uvicorn
    from chatrelay.config import get_config

    cfg = get_config()
    host = args.host or cfg.server.host
    port = args.port or cfg.server.port

    print(f"  chatrelay {__version__} on {host}:{port}")
    print(f"  Provider: {cfg.backend.url}")
    print(f"  Model: {cfg.backend.model}")
    print()

    uvicorn.run(
        "chatrelay.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def _open_store():
    from chatrelay.config import get_config
    from chatrelay.storage.sqlite_store import SQLiteStore

    cfg = get_config()
    return SQLiteStore(cfg.storage.sqlite_path)


def cmd_history(args):
    """List conversations, or print one conversation in full."""
    store = _open_store()

    if args.conversation_id:
        conv = store.get_conversation(args.conversation_id)
        if conv is None:
            print(f"  Conversation not found: {args.conversation_id}", file=sys.stderr)
            return 1
        print(f"\n  {conv.id}  ({conv.created_at})\n")
        for msg in conv.messages:
            print(f"  [{msg.timestamp}] {msg.role.upper():<4} {msg.text}")
        print()
        return 0

    conversations = store.list_conversations()
    if not conversations:
        print("  No conversations yet.")
        return 0
    for entry in conversations:
        title = entry["title"]
        if len(title) > 60:
            title = title[:57] + "..."
        print(f"  {entry['conversationId']}  {title}")
    return 0


def cmd_export(args):
    """Export conversations to JSON."""
    store = _open_store()
    stats = store.get_stats()
    print(f"  Conversations: {stats['conversations']}")
    print(f"  Messages: {stats['messages']} (user: {stats['user_messages']}, bot: {stats['bot_messages']})")

    data = store.export_all_json()
    indent = 2 if args.pretty else None

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)

    print(f"\n  Exported {len(data)} conversations to {args.output}")
    return 0


def cmd_tap(args):
    """Show the last entries of the wire log."""
    from chatrelay.config import get_config
    from chatrelay.wiretap import read_entries

    log_path = args.log or get_config().wiretap.path
    entries = read_entries(log_path, last_n=args.last)
    if not entries:
        print(f"  Wire log is empty: {log_path}")
        return 0
    for entry in entries:
        if args.raw:
            print(json.dumps(entry, ensure_ascii=False))
            continue
        ts = entry.get("ts", "")[11:19]
        conv = entry.get("conv", "")[:8]
        content = entry.get("content", "").replace("\n", " ")
        if len(content) > 100:
            content = content[:97] + "..."
        print(f"  {ts} {entry.get('dir', '?'):<8} {entry.get('role', '?'):<8} {conv:<8} {content}")
    return 0


def cmd_ping(args):
    """Ping a running chatrelay instance."""
    import httpx

    url = (args.url or "http://localhost:3000").rstrip("/")
    try:
        resp = httpx.get(f"{url}/health", timeout=5)
    except httpx.ConnectError:
        print(f"  ✗  No answer at {url}")
        return 1
    except httpx.HTTPError as e:
        print(f"  ✗  Error: {e}")
        return 1

    if resp.status_code != 200:
        print(f"  ✗  {url} answered HTTP {resp.status_code}")
        return 1

    data = resp.json()
    print(f"  ✓  chatrelay {data.get('version', '?')} is up at {url}")
    storage = data.get("storage")
    if isinstance(storage, dict):
        print(f"     Conversations: {storage.get('conversations', 0)}, messages: {storage.get('messages', 0)}")
    else:
        print(f"     Storage: {storage}")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under its name and aliases."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatrelay",
        description="chatrelay: relay chat messages to an LLM provider.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"chatrelay {__version__}",
    )
    sub = parser.add_subparsers(dest="command")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Bind address (default: from config)")
        p.add_argument("--port", "-p", type=int, default=None, help="Port (default: from config)")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    _add_command(sub, ["serve", "start", "run"], "Start the chatrelay server", cmd_serve, setup_serve)

    def setup_history(p):
        p.add_argument("conversation_id", nargs="?", default=None, help="Show this conversation in full")

    _add_command(sub, ["history", "ls", "show"], "List conversations, or show one", cmd_history, setup_history)

    def setup_export(p):
        p.add_argument("--output", "-o", default="conversations_export.json", help="Output file")
        p.add_argument("--pretty", action="store_true", help="Pretty-print JSON")

    _add_command(sub, ["export", "dump"], "Export conversations to JSON", cmd_export, setup_export)

    def setup_tap(p):
        p.add_argument("--log", default=None, help="Path to wire.jsonl (default: from config)")
        p.add_argument("--last", "-n", type=int, default=20, help="Show last N entries")
        p.add_argument("--raw", action="store_true", help="Raw JSONL output, no formatting")

    _add_command(sub, ["tap", "log", "tail"], "Show the last entries of the wire log", cmd_tap, setup_tap)

    def setup_ping(p):
        p.add_argument("--url", "-u", default=None, help="chatrelay URL (default: http://localhost:3000)")

    _add_command(sub, ["ping", "status", "health"], "Ping a running chatrelay instance", cmd_ping, setup_ping)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
