"""
revforge CLI: run an orchestration against a URL from the terminal.

Usage examples:
    python -m revforge.cli.rev run https://example.com "Find all API endpoints"
    python -m revforge.cli.rev run https://example.com "Map the login flow" --specialization authentication-bypass --json
    python -m revforge.cli.rev tools
    python -m revforge.cli.rev status
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from revcore.agent.orchestrator import StrategyOrchestrator
from revcore.ai.oracle import OracleAdapter
from revcore.base.config import PROVIDER_OFFLINE, RevConfig, get_config, setup_logging
from revcore.base.models import Goal, Run, Specialization
from revcore.errors import RevError
from revcore.toolkit.capabilities import default_capabilities


def _print_progress(run: Run, event: str, payload: Dict[str, Any]) -> None:
    if event == "strategy":
        print(f"🧭 Attempt {payload['attempt']}: strategy {payload['strategy']}")
    elif event == "step":
        mark = "✅" if payload["success"] else "❌"
        line = f"   {mark} #{payload['step']} {payload['action']} -> {payload['tool']}"
        if payload.get("error"):
            line += f" ({payload['error']})"
        print(line)
    elif event == "status":
        print(f"   … {payload['status']}")


def _config_for(args: argparse.Namespace) -> RevConfig:
    config = get_config()
    oracle = config.oracle
    if args.offline:
        oracle = replace(oracle, provider=PROVIDER_OFFLINE)
    if args.model:
        oracle = replace(oracle, model=args.model)
    return replace(config, oracle=oracle)


async def _run(args: argparse.Namespace) -> int:
    config = _config_for(args)
    specialization = Specialization(args.specialization) if args.specialization else None
    goal = Goal(target=args.url, objective=args.objective, specialization=specialization)

    orchestrator = StrategyOrchestrator(
        default_capabilities(config.toolkit),
        oracle=OracleAdapter.from_config(config.oracle),
        config=config,
    )
    if not args.json:
        orchestrator.progress.connect(_print_progress)
        print(f"🚀 {goal.objective} on {goal.target} (oracle: {orchestrator.oracle.backend.name})")

    try:
        run = await orchestrator.run(goal, args.attempts)
    except RevError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(run.to_dict(), indent=2, default=str))
    elif run.status.value == "completed":
        print(f"🎯 Completed after {run.attempts + 1} attempt(s), confidence {run.confidence:.2f}")
        print(json.dumps(run.result, indent=2, default=str)[:2000])
    else:
        print(f"💀 Failed after {run.attempts} attempt(s) and {len(run.steps)} step(s)")
    return 0 if run.status.value == "completed" else 1


def _tools() -> int:
    for item in default_capabilities().describe():
        print(f"{item['name']:<22} {item['description']}")
    return 0


async def _status() -> int:
    adapter = OracleAdapter.from_config()
    status = adapter.status()
    status["models"] = (await adapter.available_models())[:20]
    print(json.dumps(status, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="revforge goal-directed reverse engineering agent")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run an orchestration against a target URL")
    run.add_argument("url", help="Target URL")
    run.add_argument("objective", help="What the agent should accomplish")
    run.add_argument("--specialization", choices=[s.value for s in Specialization], default=None)
    run.add_argument("--attempts", type=int, default=None, help="Attempt budget (default from config)")
    run.add_argument("--offline", action="store_true", help="Use the offline heuristic oracle")
    run.add_argument("--model", default=None, help="Oracle model identifier")
    run.add_argument("--json", action="store_true", help="Print the final run as JSON only")

    commands.add_parser("tools", help="List built-in capabilities")
    commands.add_parser("status", help="Show oracle configuration")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "run":
        return asyncio.run(_run(args))
    if args.command == "tools":
        return _tools()
    if args.command == "status":
        return asyncio.run(_status())
    return 1


if __name__ == "__main__":
    sys.exit(main())
