from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from wflens import __version__
from wflens.config import Config, load_config, set_config
from wflens.diagrams.gantt_text import render_gantt_text
from wflens.diagrams.timeline_layout import TimelineViewport
from wflens.diagrams.timeline_view import render_timeline_viewer
from wflens.diagrams.tree_text import render_tree_text
from wflens.errors import ErrorCode, handle_exception, make_error, set_verbose
from wflens.history.loader import (
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    FileHistoryProvider,
    HistoryNotFoundError,
    HistoryUnreadableError,
    WorkflowRef,
)
from wflens.session import HistorySession
from wflens.tree.navigation import expand_all
from wflens.validation import validate_history

# Width of the HTML chart area in pixels (one layout cell per pixel)
HTML_CHART_WIDTH = 800


def _configure_logging(config: Config, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_cli_config(args: argparse.Namespace) -> Config:
    overrides = {
        "timeline_width": getattr(args, "width", None),
        "collapse_depth": getattr(args, "collapse_depth", None),
        "fetch_timeout_seconds": getattr(args, "timeout", None),
        "history_dir": Path(args.history_dir) if getattr(args, "history_dir", None) else None,
    }
    config = load_config(env_file=getattr(args, "env_file", None), cli_overrides=overrides)
    set_config(config)
    return config


def _open_session(args: argparse.Namespace, config: Config) -> Optional[HistorySession]:
    """Build a session for --history or --workflow-id, printing an error if neither resolves."""
    if args.history:
        path = Path(args.history)
        provider = FileHistoryProvider(path=path)
        ref = WorkflowRef(workflow_id=args.workflow_id or path.stem, run_id=args.run_id or "")
    elif args.workflow_id:
        if config.history_dir is None:
            make_error(ErrorCode.E002, "no history directory: pass --history-dir or set WFLENS_HISTORY_DIR").print()
            return None
        provider = FileHistoryProvider(base_dir=config.history_dir)
        ref = WorkflowRef(workflow_id=args.workflow_id, run_id=args.run_id or "")
    else:
        print("Specify --history FILE or --workflow-id ID.", file=sys.stderr)
        return None
    return HistorySession.from_config(provider, ref, config)


def _fetch_error_code(error: FetchError) -> ErrorCode:
    if isinstance(error, FetchTimeoutError):
        return ErrorCode.E105
    if isinstance(error, FetchCancelledError):
        return ErrorCode.E106
    if isinstance(error, HistoryNotFoundError):
        return ErrorCode.E301
    if isinstance(error, HistoryUnreadableError):
        return ErrorCode.E302
    return ErrorCode.E100


def _refresh(session: HistorySession) -> bool:
    if session.refresh():
        return True
    error = session.last_error
    assert error is not None
    make_error(_fetch_error_code(error), str(error)).print()
    return False


def _write_output(path: Path, content: str) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        handle_exception(e, ErrorCode.E303, str(path))
        return False
    return True


def _cmd_tree(args: argparse.Namespace) -> int:
    """Print the logical-unit tree of a workflow run."""
    config = _load_cli_config(args)
    session = _open_session(args, config)
    if session is None:
        return 1
    if not _refresh(session):
        return 1

    forest = session.forest
    if args.expand_all:
        expand_all(forest)
    if args.jump_to_failed:
        session.jump_to_failed()

    if args.json:
        print(json.dumps(forest.to_dict(), indent=2))
    else:
        print(render_tree_text(forest, selected_id=session.selected_node_id, show_ids=args.show_ids))
    return 0


def _cmd_timeline(args: argparse.Namespace) -> int:
    """Render the timeline as text, or as an HTML page with --out."""
    config = _load_cli_config(args)
    session = _open_session(args, config)
    if session is None:
        return 1

    if args.out:
        session.viewport = TimelineViewport(bar_width=HTML_CHART_WIDTH)
    if args.zoom is not None:
        session.viewport.zoom_by(args.zoom)
    if args.scroll:
        session.viewport.scroll_by(args.scroll)

    if not _refresh(session):
        return 1

    lanes = session.lanes
    if args.select is not None and lanes:
        index = min(max(args.select, 0), len(lanes) - 1)
        session.select_lane(lanes[index].unit_id)

    layout = session.timeline()

    if args.out:
        out_path = Path(args.out)
        title = f"Timeline: {session.ref}"
        if not _write_output(out_path, render_timeline_viewer(layout, title=title)):
            return 1
        print(f"Wrote {out_path}")
        return 0

    print(render_gantt_text(layout))
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate history files against the history schema."""
    results = []
    for history in args.history:
        result = validate_history(history)
        results.append(result)
        print(result.summary())
        if not result.valid:
            make_error(ErrorCode.E201, f"{history} has {len(result.errors)} error(s)").print()

    # Return 0 if all valid, 1 if any invalid
    return 0 if all(r.valid for r in results) else 1


def _cmd_show_config(args: argparse.Namespace) -> int:
    """Show effective configuration from all sources."""
    config = _load_cli_config(args)

    if args.json:
        print(json.dumps(config.to_dict(), indent=2))
        return 0

    print("wflens Effective Configuration")
    print("=" * 50)
    print()
    if config.env_file_path:
        print(f"Env File: {config.env_file_path}")
    else:
        print("Env File: none loaded")
    print()
    print(f"Fetch timeout:   {config.fetch_timeout_seconds:g}s")
    print(f"Timeline width:  {config.timeline_width}")
    print(f"Collapse depth:  {config.collapse_depth}")
    print(f"History dir:     {config.history_dir or '(none)'}")
    print(f"Log level:       {config.log_level}")
    return 0


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--history", help="Path to a history file (JSON, JSONL or YAML)")
    parser.add_argument("--workflow-id", dest="workflow_id", help="Workflow id to look up in the history dir")
    parser.add_argument("--run-id", dest="run_id", help="Run id (optional)")
    parser.add_argument("--history-dir", dest="history_dir", help="Directory of exported histories")
    parser.add_argument("--timeout", type=float, help="Fetch timeout in seconds")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wflens",
        description="Workflow history viewer: event tree and timeline",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging and full tracebacks on errors",
    )
    p.add_argument(
        "--env-file",
        dest="env_file",
        help="Path to .env file (default: discovered from the working directory)",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # tree
    p_tree = sub.add_parser("tree", help="Show the grouped event tree")
    _add_source_args(p_tree)
    p_tree.add_argument("--collapse-depth", dest="collapse_depth", type=int, help="Collapse units at this depth")
    p_tree.add_argument("--expand-all", dest="expand_all", action="store_true", help="Expand every unit")
    p_tree.add_argument(
        "--jump-to-failed",
        dest="jump_to_failed",
        action="store_true",
        help="Select and reveal the first failed unit",
    )
    p_tree.add_argument("--show-ids", dest="show_ids", action="store_true", help="Show unit ids")
    p_tree.add_argument("--json", action="store_true", help="Print the forest as JSON")
    p_tree.set_defaults(func=_cmd_tree)

    # timeline
    p_tl = sub.add_parser("timeline", help="Show the timeline (Gantt) view")
    _add_source_args(p_tl)
    p_tl.add_argument("--width", type=int, help="Bar area width in cells")
    p_tl.add_argument("--zoom", type=float, help="Zoom factor (clamped to 0.5-5.0)")
    p_tl.add_argument("--scroll", type=int, default=0, help="Horizontal scroll in cells")
    p_tl.add_argument("--select", type=int, help="Index of the selected lane")
    p_tl.add_argument("--out", help="Write an HTML timeline page to this path")
    p_tl.set_defaults(func=_cmd_timeline)

    # validate
    p_val = sub.add_parser("validate", help="Validate history files against the schema")
    p_val.add_argument(
        "--history",
        action="append",
        required=True,
        help="Path to a history file to validate (can be repeated)",
    )
    p_val.set_defaults(func=_cmd_validate)

    # show-config
    p_cfg = sub.add_parser("show-config", help="Show effective configuration from all sources")
    p_cfg.add_argument("--json", action="store_true", help="Print as JSON")
    p_cfg.set_defaults(func=_cmd_show_config)

    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    set_verbose(args.verbose)

    try:
        config = load_config(env_file=args.env_file)
    except ValueError as e:
        make_error(ErrorCode.E002, str(e)).print()
        raise SystemExit(1)
    _configure_logging(config, args.verbose)

    try:
        rc = args.func(args)
        raise SystemExit(rc)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        raise SystemExit(130)
    except FileNotFoundError as e:
        handle_exception(e, ErrorCode.E301, str(e))
        raise SystemExit(1)
    except ValueError as e:
        handle_exception(e, ErrorCode.E002, str(e))
        raise SystemExit(1)
    except Exception as e:
        from wflens.errors import is_verbose
        if is_verbose():
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
            print("Run with --verbose for full traceback", file=sys.stderr)
        raise SystemExit(1)
