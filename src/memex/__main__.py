"""Entry point: memex <command> (or python -m memex <command>)

- capture:       queue a session record for consolidation
- consolidate:   turn queued sessions into notes
- defrag:        reorganize notes, rewrite the index note and AGENTS.md
- list / read / links / orphans / broken-links: inspect the store
- doctor:        health check of the memory root
- migrate:       bring an older memory tree up to date
- serve:         daemon mode (scheduler)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from memex import __version__
from memex.config import MemexConfig, expand_path, load_config
from memex.errors import MemexError
from memex.memory.journal import HARNESSES, JournalEntry, Retrieval, SessionContext
from memex.memory.store import ListFilter
from memex.workflow import WorkflowRun
from memex.workflow.consolidate import DEFAULT_LIMIT


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load(args: argparse.Namespace) -> MemexConfig:
    config = load_config(args.config)
    if args.root:
        config.storage.root = expand_path(args.root)
    _setup_logging(config.log_level)
    return config


def _memex(config: MemexConfig):
    from memex.core import Memex

    return Memex(config)


def _report_run(run: WorkflowRun) -> int:
    if run.error:
        print(f"error: [{run.error['tag']}] {run.error['message']}", file=sys.stderr)
        return 1
    return 0


# ── Commands ──────────────────────────────────────────────────


def _capture_command(args: argparse.Namespace, config: MemexConfig) -> int:
    if args.thread_id:
        retrieval = Retrieval(method="amp-thread", thread_id=args.thread_id)
    elif args.session_path:
        retrieval = Retrieval(method="cursor-session", session_path=args.session_path)
    elif args.file:
        retrieval = Retrieval(method="file", file_path=str(expand_path(args.file).resolve()))
    elif args.content is not None:
        retrieval = Retrieval(method="inline", content=args.content)
    elif not sys.stdin.isatty():
        retrieval = Retrieval(method="inline", content=sys.stdin.read())
    else:
        print(
            "error: one of --thread-id, --session-path, --file or --content is required",
            file=sys.stderr,
        )
        return 1

    entry = JournalEntry(
        harness=args.harness,
        retrieval=retrieval,
        context=SessionContext(cwd=args.cwd, repo=args.repo),
    )
    path = _memex(config).queue.write(entry)
    print(f"captured: {path}")
    return 0


def _consolidate_command(args: argparse.Namespace, config: MemexConfig) -> int:
    memex = _memex(config)
    if memex.queue.count_pending() == 0:
        print("no pending journal entries")
        return 0
    run = asyncio.run(memex.consolidate(limit=args.limit))
    if run.error:
        return _report_run(run)
    ctx = run.context
    print(
        f"processed {ctx['processed_count']} journal entries, "
        f"wrote {len(ctx['written_entries'])} notes"
    )
    for item in ctx["written_entries"]:
        print(f"  {item['id']}  {item['title']}")
    for queue_id in ctx["failed_queue_ids"]:
        print(f"  warning: could not mark {queue_id} processed", file=sys.stderr)
    return 0


def _defrag_command(args: argparse.Namespace, config: MemexConfig) -> int:
    run = asyncio.run(_memex(config).defrag())
    if run.error:
        return _report_run(run)
    ctx = run.context
    if ctx["decision"] is None:
        print("no entries to defrag")
        return 0
    print("defrag complete:")
    print(f"  actions: {ctx['applied_actions']}/{len(ctx['decision']['actions'])}")
    print(f"  top-of-mind: {len(ctx['decision']['topOfMind'])}")
    for target in config.agents_md.targets:
        print(f"  updated: {target}")
    return 0


def _list_command(args: argparse.Namespace, config: MemexConfig) -> int:
    metas = _memex(config).service.list(
        ListFilter(org=args.org, tags=args.tag or [], query=args.query, limit=args.limit)
    )
    if not metas:
        print("no entries")
        return 0
    for meta in metas:
        tags = " ".join(f"#{t}" for t in meta.tags)
        print(f"{meta.id}  {meta.title}" + (f"  {tags}" if tags else ""))
    return 0


def _read_command(args: argparse.Namespace, config: MemexConfig) -> int:
    entry = _memex(config).service.read(args.id)
    sys.stdout.write(entry.render())
    return 0


def _links_command(args: argparse.Namespace, config: MemexConfig) -> int:
    report = _memex(config).service.links(args.id)
    print(f"inbound ({len(report.inbound)}):")
    for source_id, title in report.inbound:
        print(f"  {source_id}  {title}")
    print(f"outbound ({len(report.outbound)}):")
    for link in report.outbound:
        print(f"  {link.id}  {link.display_text}")
    return 0


def _orphans_command(args: argparse.Namespace, config: MemexConfig) -> int:
    for entry_id in _memex(config).service.orphans():
        print(entry_id)
    return 0


def _broken_links_command(args: argparse.Namespace, config: MemexConfig) -> int:
    broken = _memex(config).service.broken_links()
    for link in broken:
        print(f"{link.source_id} -> {link.target_id}")
    return 1 if broken else 0


def _doctor_command(args: argparse.Namespace, config: MemexConfig) -> int:
    report = _memex(config).doctor()
    print(f"checking: {report.root}\n")
    if not report.exists:
        print("memory root does not exist")
        print("   run `memex capture` and `memex consolidate` to create the first entries")
        return 1

    print(f"entries: {report.entries}")
    print(f"pending queue: {report.pending}")
    print(f"errors: {len(report.errors)}")
    print(f"warnings: {len(report.warnings)}")
    if report.issues:
        print("\nissues:")
        for issue in report.issues:
            print(f"  [{issue.severity}] {issue.message}")
            if issue.location:
                print(f"     {issue.location}")
    else:
        print("\nall checks passed")
    return 0 if report.ok else 1


def _migrate_command(args: argparse.Namespace, config: MemexConfig) -> int:
    from memex.memory.migrate import Migrator

    if args.dry_run:
        print("DRY RUN: no files will be modified\n")
    report = Migrator(config.storage.root, default_org=args.org, dry_run=args.dry_run).run()
    for rel in report.migrated:
        print(f"  migrated {rel}")
    for rel in report.relocated:
        print(f"  relocated {rel}")
    for rel in report.deduplicated:
        print(f"  deduplicated {rel} (already in archive)")
    for rel, message in report.errors:
        print(f"  error {rel}: {message}", file=sys.stderr)
    print(f"\nsummary: {report.summary()}")
    return 1 if report.errors else 0


def _serve_command(args: argparse.Namespace, config: MemexConfig) -> int:
    from memex.daemon import MemexDaemon

    asyncio.run(MemexDaemon(config).run())
    return 0


# ── Parser ────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memex", description="Long-term memory for coding agents.")
    parser.add_argument("--version", action="version", version=f"memex {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to memex.toml.")
    parser.add_argument("--root", default=None, help="Memory root (overrides config).")

    subparsers = parser.add_subparsers(dest="command")

    capture = subparsers.add_parser("capture", help="Queue a session record.")
    capture.add_argument("--harness", choices=HARNESSES, default="manual")
    capture.add_argument("--thread-id", help="amp thread id (read with `amp thread read`).")
    capture.add_argument("--session-path", help="Path to a cursor session transcript.")
    capture.add_argument("--file", help="Path to a file holding the session content.")
    capture.add_argument("-b", "--content", help="Session content inline (default: stdin).")
    capture.add_argument("--cwd", default=os.getcwd())
    capture.add_argument("--repo", default=None)
    capture.set_defaults(func=_capture_command)

    consolidate = subparsers.add_parser("consolidate", help="Turn queued sessions into notes.")
    consolidate.add_argument("-l", "--limit", type=int, default=DEFAULT_LIMIT)
    consolidate.set_defaults(func=_consolidate_command)

    defrag = subparsers.add_parser("defrag", help="Reorganize notes and rewrite AGENTS.md.")
    defrag.set_defaults(func=_defrag_command)

    list_parser = subparsers.add_parser("list", help="List notes.")
    list_parser.add_argument("-q", "--query", default=None)
    list_parser.add_argument("-t", "--tag", action="append", help="Require a tag (repeatable).")
    list_parser.add_argument("--org", default=None)
    list_parser.add_argument("-l", "--limit", type=int, default=None)
    list_parser.set_defaults(func=_list_command)

    read = subparsers.add_parser("read", help="Print a note.")
    read.add_argument("id")
    read.set_defaults(func=_read_command)

    links = subparsers.add_parser("links", help="Show inbound and outbound links of a note.")
    links.add_argument("id")
    links.set_defaults(func=_links_command)

    orphans = subparsers.add_parser("orphans", help="Notes nothing links to.")
    orphans.set_defaults(func=_orphans_command)

    broken = subparsers.add_parser("broken-links", help="Links whose target does not exist.")
    broken.set_defaults(func=_broken_links_command)

    doctor = subparsers.add_parser("doctor", help="Health check of the memory root.")
    doctor.set_defaults(func=_doctor_command)

    migrate = subparsers.add_parser("migrate", help="Migrate an older memory tree.")
    migrate.add_argument("--dry-run", action="store_true")
    migrate.add_argument("--org", default="default", help="Org for top-level topics/ notes.")
    migrate.set_defaults(func=_migrate_command)

    serve = subparsers.add_parser("serve", help="Daemon mode with the scheduler.")
    serve.set_defaults(func=_serve_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = _load(args)
        return args.func(args, config)
    except MemexError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
