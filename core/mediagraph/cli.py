"""
Command-line interface for mediagraph.

Usage:
    mediagraph run workflow.json
    mediagraph run workflow.json --start videoGenerate-4 --set prompt-1.prompt="a red fox"
    mediagraph run workflow.json --base-url http://localhost:3000 --output result.json
    mediagraph validate workflow.json
    mediagraph info workflow.json
"""

import argparse
import asyncio
import json
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from mediagraph.config import EngineConfig
from mediagraph.errors import CycleDetectedError, InvalidWorkflowError
from mediagraph.graph import scheduler
from mediagraph.graph.validation import validate_workflow
from mediagraph.observability import configure_logging
from mediagraph.runtime.controller import RunStatus
from mediagraph.runtime.engine import Engine, parse_workflow
from mediagraph.schemas.workflow import WorkflowFile


def _read_workflow(path: str) -> WorkflowFile:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidWorkflowError(f"Cannot read {path}: {e}") from e
    return parse_workflow(text)


def _parse_assignment(raw: str) -> tuple[str, str, Any]:
    """Parse NODE.FIELD=VALUE; VALUE is JSON when it parses, else a plain string."""
    target, sep, value = raw.partition("=")
    node_id, dot, field = target.rpartition(".")
    if not sep or not dot or not node_id or not field:
        raise argparse.ArgumentTypeError(f"expected NODE.FIELD=VALUE, got '{raw}'")
    try:
        parsed: Any = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    return node_id, field, parsed


# === COMMANDS ===


def cmd_run(args: argparse.Namespace) -> int:
    try:
        workflow = _read_workflow(args.file)
    except InvalidWorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return asyncio.run(_run(args, workflow))


async def _run(args: argparse.Namespace, workflow: WorkflowFile) -> int:
    config = EngineConfig()
    if args.base_url:
        config.service_base_url = args.base_url.rstrip("/")

    async with Engine(config=config) as engine:
        engine.load_workflow(workflow)
        for node_id, field, value in args.assignments:
            if not engine.update_node_data(node_id, {field: value}):
                print(f"Error: no node '{node_id}'", file=sys.stderr)
                return 2

        validation = engine.validate_workflow()
        for error in validation.errors:
            print(f"Warning: {error}", file=sys.stderr)

        try:
            result = await engine.run(args.start)
        except CycleDetectedError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

        if args.output:
            Path(args.output).write_text(engine.to_json(workflow.name), encoding="utf-8")

    summary = {
        "status": result.status.value,
        "path": result.path,
        "error": result.error,
        "failed_node_id": result.failed_node_id,
        "paused_at": result.paused_at,
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.status in (RunStatus.COMPLETED, RunStatus.PAUSED) else 1


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        workflow = _read_workflow(args.file)
    except InvalidWorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    result = validate_workflow(workflow.nodes, workflow.edges)
    if result.valid:
        print(f"✓ {workflow.name} is valid")
        return 0
    print(f"✗ {workflow.name} has {len(result.errors)} problem(s):")
    for error in result.errors:
        print(f"  • {error}")
    return 1


def cmd_info(args: argparse.Namespace) -> int:
    try:
        workflow = _read_workflow(args.file)
    except InvalidWorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    counts = Counter(node.type for node in workflow.nodes)
    pauses = [e.target for e in workflow.edges if e.has_pause]
    try:
        order: list[str] | str = [n.id for n in scheduler.order(workflow.nodes, workflow.edges)]
    except CycleDetectedError as e:
        order = str(e)

    print(f"Workflow: {workflow.name}")
    print(f"Edge style: {workflow.edge_style.value}")
    print(f"Nodes ({len(workflow.nodes)}):")
    for node_type, count in sorted(counts.items()):
        print(f"  {node_type}: {count}")
    print(f"Edges: {len(workflow.edges)}")
    if pauses:
        print(f"Pauses before: {', '.join(pauses)}")
    if isinstance(order, str):
        print(f"Execution order: {order}")
    else:
        print(f"Execution order: {' → '.join(order) if order else '(empty)'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediagraph",
        description="mediagraph - run node-graph media workflows",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument(
        "--log-format",
        default="auto",
        choices=["auto", "human", "json"],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a workflow file")
    run_parser.add_argument("file", help="Workflow JSON file")
    run_parser.add_argument("--start", default=None, help="Node id to start from")
    run_parser.add_argument("--base-url", default=None, help="Media service base URL")
    run_parser.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        type=_parse_assignment,
        metavar="NODE.FIELD=VALUE",
        help="Override a node data field before running (repeatable)",
    )
    run_parser.add_argument("--output", default=None, help="Write the resulting workflow here")
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Check a workflow file for missing connections")
    validate_parser.add_argument("file", help="Workflow JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    info_parser = subparsers.add_parser("info", help="Summarize a workflow file")
    info_parser.add_argument("file", help="Workflow JSON file")
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, format=args.log_format)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
