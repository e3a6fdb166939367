"""
agenda/cli.py
Command-line interface for the agenda pipeline.

USAGE:
  agenda init-db [--user-email me@example.com --timezone Europe/London]
  agenda init-db --user-id 1 --channel telegram:chat-42 --channel-name Family
  agenda process --user-id 1 --channel-id 3 --source-type telegram --text "Dinner Friday 7pm?"
  agenda backfill --channel-id 3 --limit 25
  agenda serve [--host 127.0.0.1 --port 8765]

Settings come from agenda_config.json in the working directory,
overridden by AGENDA_* environment variables (or a .env file).
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from agenda.config import ensure_config

logger = logging.getLogger(__name__)

GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'agenda',
        description = 'Agenda: turns chat and email into pending calendar events and reminders',
    )
    parser.add_argument(
        '--verbose', '-v',
        action = 'store_true',
        help   = 'Enable debug logging',
    )
    parser.add_argument(
        '--config-dir',
        type    = Path,
        default = None,
        help    = 'Directory holding agenda_config.json and .env (default: cwd)',
    )
    parser.add_argument(
        '--db',
        type    = Path,
        default = None,
        help    = 'SQLite database path (overrides config)',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    # ── init-db ──────────────────────────────────────────────
    p_init = sub.add_parser('init-db', help='Create the schema; optionally seed a user / channel')
    p_init.add_argument('--user-email', default='', help='Create a user with this email')
    p_init.add_argument('--timezone',   default='', help='IANA zone for the new user')
    p_init.add_argument('--user-id',    type=int, default=None, help='Existing user for --channel')
    p_init.add_argument('--channel',    default='', help='Create channel SOURCE_TYPE:IDENTIFIER')
    p_init.add_argument('--channel-name', default='', help='Display name for --channel')

    # ── process ──────────────────────────────────────────────
    p_proc = sub.add_parser('process', help='Run one message through the pipeline synchronously')
    p_proc.add_argument('--user-id',     type=int, required=True)
    p_proc.add_argument('--channel-id',  type=int, required=True)
    p_proc.add_argument('--source-type', default='cli')
    p_proc.add_argument('--sender',      default='cli')
    p_proc.add_argument('--text',        required=True)
    p_proc.add_argument(
        '--timestamp',
        default = None,
        help    = 'ISO-8601 timestamp (default: now, UTC)',
    )

    # ── backfill ─────────────────────────────────────────────
    p_back = sub.add_parser('backfill', help="Reprocess a channel's stored history")
    p_back.add_argument('--channel-id', type=int, required=True)
    p_back.add_argument('--limit',      type=int, default=None)

    # ── serve ────────────────────────────────────────────────
    p_serve = sub.add_parser('serve', help='Run the HTTP API')
    p_serve.add_argument('--host', default=None, help='Bind host (default from config)')
    p_serve.add_argument('--port', type=int, default=None, help='Bind port (default from config)')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    logging.basicConfig(
        level   = logging.DEBUG if args.verbose else logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    config = ensure_config(args.config_dir)
    if args.db is not None:
        config['db_path'] = str(args.db)

    handlers = {
        'init-db':  _cmd_init_db,
        'process':  _cmd_process,
        'backfill': _cmd_backfill,
        'serve':    _cmd_serve,
    }
    return handlers[args.command](args, config)


# ── COMMANDS ─────────────────────────────────────────────────

def _cmd_init_db(args, config) -> int:
    from agenda.store.sqlite_store import SQLiteStore

    store = SQLiteStore(Path(config['db_path']))
    _ok(f"Schema ready: {store.db_path}")

    user_id = args.user_id
    if args.user_email:
        user_id = store.create_user(args.user_email, timezone=args.timezone)
        _ok(f"User {args.user_email} created (ID: {user_id})")

    if args.channel:
        source_type, sep, identifier = args.channel.partition(':')
        if not sep or not source_type or not identifier:
            _print(f"{RED}--channel must look like SOURCE_TYPE:IDENTIFIER{RESET}")
            return 2
        if user_id is None:
            _print(f"{RED}--channel needs --user-id or --user-email{RESET}")
            return 2
        channel = store.create_channel(
            user_id, source_type, identifier, args.channel_name or identifier
        )
        _ok(f"Channel {args.channel} created (ID: {channel.id})")
    return 0


def _cmd_process(args, config) -> int:
    from agenda.bootstrap import build_agenda
    from agenda.models.record import InboundMessage

    agenda = build_agenda(config, notify_background=False)
    if not agenda.pipeline.registry.list():
        _print(f"{YELLOW}No intent modules configured. Check llm_backend / API key.{RESET}")

    ts = datetime.now(timezone.utc)
    if args.timestamp:
        try:
            ts = datetime.fromisoformat(args.timestamp)
        except ValueError:
            _print(f"{RED}Invalid --timestamp: {args.timestamp}{RESET}")
            return 2

    _step(f"Processing message on channel {args.channel_id}...")
    futures = agenda.processor.process_message(InboundMessage(
        user_id     = args.user_id,
        source_type = args.source_type,
        channel_id  = args.channel_id,
        sender_id   = args.sender,
        sender_name = args.sender,
        text        = args.text,
        timestamp   = ts,
    ))
    statuses = []
    for f in futures:
        try:
            statuses.append(f.result())
        except Exception as e:
            _print(f"  {YELLOW}Module run failed: {e}{RESET}")
    agenda.processor.stop()

    for status in statuses:
        _ok(f"{status or 'no result'}")
    if not futures:
        _print(f"  {YELLOW}No module ran (see traces){RESET}")
    return 0


def _cmd_backfill(args, config) -> int:
    from agenda.bootstrap import build_agenda
    from agenda.errors import StoreError

    agenda = build_agenda(config, notify_background=False)
    _step(f"Backfilling channel {args.channel_id}...")
    try:
        summary = agenda.backfill.backfill_channel(args.channel_id, args.limit)
    except StoreError as e:
        _print(f"{RED}Backfill failed: {e}{RESET}")
        return 1
    finally:
        agenda.processor.stop()

    _print(f"\n{BOLD}{GREEN}✓ Complete{RESET}")
    for status, count in sorted(summary.items()):
        _print(f"  {status:<24}: {count}")
    return 0


def _cmd_serve(args, config) -> int:
    from agenda.api import AgendaAPI, serve

    host = args.host or config['api_host']
    port = args.port or int(config['api_port'])
    _print(f"{BOLD}{CYAN}Agenda API{RESET} on http://{host}:{port}  (docs: /docs)")
    serve(AgendaAPI.from_config(config), host, port)
    return 0


# ── PRINT HELPERS ────────────────────────────────────────────

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)


if __name__ == '__main__':
    sys.exit(main())
