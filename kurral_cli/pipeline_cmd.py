# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.
"""
Pipeline CLI Commands

Commands:
- run: Load items from JSON into an in-memory store and process them
- stages: List pipeline stages
- config: Print resolved runtime configuration
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn


def load_items_payload(path: Path) -> list[dict[str, Any]]:
    """Items file is a list of items or {"items": [...]}."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict) and "items" in payload:
        payload = payload.get("items")
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise ValueError("Items JSON must be an item, a list of items or {items:[...]}")
    return payload


def outcome_to_dict(outcome: Any) -> dict[str, Any]:
    return {
        "item_id": outcome.item_id,
        "status": outcome.status,
        "stages": {name: status.value for name, status in outcome.stages.items()},
        "policy": outcome.policy_decision.to_dict() if outcome.policy_decision else None,
        "value_score": outcome.value_score.to_dict() if outcome.value_score else None,
        "kurral_score": outcome.kurral_score,
    }


async def _run_items(items: list[Any], *, force: bool) -> list[dict[str, Any]]:
    from kurral_core.config import KurralConfig
    from kurral_core.pipeline.orchestrator import PipelineOrchestrator
    from kurral_core.pipeline.work_queue import PipelineWorkQueue
    from kurral_core.schema.content import ContentKind
    from kurral_core.store import InMemoryPipelineStore

    store = InMemoryPipelineStore()
    for item in items:
        store.put_item(item)

    config = KurralConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        tavily_api_key=os.getenv("TAVILY_API_KEY"),
    )
    orchestrator = PipelineOrchestrator.from_config(config, store)

    # Originals and parents go first; reposts and comments depend on them.
    ordered = sorted(items, key=lambda i: (i.kind == ContentKind.COMMENT, bool(i.repost_of_id)))
    results: list[dict[str, Any]] = []
    try:
        for item in ordered:
            queue = PipelineWorkQueue(orchestrator, workers=1)
            queue.submit(item.id, force=force)
            outcomes = await queue.drain()
            results.append(outcome_to_dict(outcomes[item.id]))
        for outcome in await orchestrator.process_pending_reposts():
            results.append(outcome_to_dict(outcome))
    finally:
        await orchestrator.close()
    return results


def cmd_run(args: argparse.Namespace) -> int:
    """Run items through the pipeline."""
    from pydantic import ValidationError

    from kurral_core.schema.content import ContentItem

    items_path = Path(args.items_file)
    if not items_path.exists():
        print(f"✗ Items file not found: {items_path}", file=sys.stderr)
        return 1

    try:
        raw_items = load_items_payload(items_path)
        items = [ContentItem.from_dict(raw) for raw in raw_items]
    except (json.JSONDecodeError, ValueError, ValidationError) as e:
        print(f"✗ Failed to load items: {e}", file=sys.stderr)
        return 1

    results = asyncio.run(_run_items(items, force=args.force))
    output = json.dumps(results, ensure_ascii=False, indent=2)

    if args.output_json:
        Path(args.output_json).write_text(output, encoding="utf-8")
        print(f"Results written to {args.output_json}")
    else:
        print(output)

    return 0 if all(r["status"] == "completed" for r in results) else 2


def cmd_stages(args: argparse.Namespace) -> int:
    """List pipeline stages in execution order."""
    from kurral_core.schema.stage import StageName

    for stage in StageName:
        print(f"  - {stage.value}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print resolved runtime configuration."""
    from kurral_core.runtime_config import EngineRuntimeConfig

    runtime = EngineRuntimeConfig.load_from_env()
    print(json.dumps(runtime.to_safe_log_dict(), indent=2))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kurral-cli",
        description="Kurral value & trust pipeline commands",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log pipeline progress to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Run items from a JSON file through the pipeline",
    )
    run_parser.add_argument(
        "items_file",
        help="Path to JSON file with items (item, list or {items:[...]})",
    )
    run_parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore checkpointed stages and recompute everything",
    )
    run_parser.add_argument(
        "--output-json",
        help="Write results JSON to this path",
    )
    run_parser.set_defaults(func=cmd_run)

    stages_parser = subparsers.add_parser(
        "stages",
        help="List pipeline stages",
    )
    stages_parser.set_defaults(func=cmd_stages)

    config_parser = subparsers.add_parser(
        "config",
        help="Print resolved runtime configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for pipeline CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
