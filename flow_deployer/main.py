"""CLI entry point for the Flow Deployer.

Compiles a flow JSON file (as exported by the flow editor) and either
prints the result or deploys it straight to a Retell agent.  For the
HTTP API, use the FastAPI server (flow_deployer/server.py).

The file may hold a bare node list or an object with ``nodes`` (and
optionally ``name``, ``agent_id`` and ``edges``).

Usage:
    python -m flow_deployer.main compile flow.json
    python -m flow_deployer.main deploy flow.json --agent-id agent_123 --debug
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from flow_deployer.deployer import FlowDeployer
from flow_deployer.errors import FlowDeployError
from flow_deployer.models import Flow, parse_nodes
from flow_deployer.services.flow_store import InMemoryFlowStore
from flow_deployer.tools.templates import ClientContext

logger = logging.getLogger(__name__)

_CLI_CLIENT_ID = "cli"


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        # Silence chatty HTTP loggers even if root is WARNING
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("flow_deployer").setLevel(logging.DEBUG if debug else logging.INFO)


def load_flow_file(path: Path) -> dict[str, Any]:
    """Read a flow file into ``{"name", "agent_id", "nodes", "edges"}``."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, list):
        raw = {"nodes": raw}
    elif not isinstance(raw, dict):
        raise ValueError("expected a list of nodes or a flow object")
    return {
        "name": raw.get("name") or path.stem,
        "agent_id": raw.get("agent_id"),
        "nodes": parse_nodes(raw.get("nodes", [])),
        "edges": raw.get("edges", []),
    }


def _print_compiled(script: str, tools: list[str]) -> None:
    print("=" * 60)
    print(script or "(empty flow: no instructions)")
    print("=" * 60)
    print(f"Tools ({len(tools)}): {', '.join(tools) if tools else 'none'}")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.  Returns the process exit code."""
    parser = argparse.ArgumentParser(description="Flow Deployer CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    compile_cmd = sub.add_parser("compile", help="Compile a flow file and print the script")
    compile_cmd.add_argument("flow_file", type=Path)
    compile_cmd.add_argument("--client-id", default=_CLI_CLIENT_ID)

    deploy_cmd = sub.add_parser("deploy", help="Compile a flow file and push it to an agent")
    deploy_cmd.add_argument("flow_file", type=Path)
    deploy_cmd.add_argument("--agent-id", help="Overrides agent_id from the flow file")
    deploy_cmd.add_argument("--client-id", default=_CLI_CLIENT_ID)

    args = parser.parse_args(argv)

    load_dotenv()
    _configure_logging(debug=args.debug)

    try:
        spec = load_flow_file(args.flow_file)
    except (OSError, ValueError, ValidationError) as e:
        print(f"Could not read flow file {args.flow_file}: {e}", file=sys.stderr)
        return 2

    context = ClientContext.for_client(args.client_id)
    store = InMemoryFlowStore()

    if args.command == "compile":
        flow = Flow(id="preview", client_id=args.client_id, **spec)
        preview = FlowDeployer(store).preview(flow, context)
        _print_compiled(preview.script, preview.tool_names)
        return 0

    if args.agent_id:
        spec["agent_id"] = args.agent_id
    flow = store.create_flow(args.client_id, spec.pop("name"), **spec)
    try:
        result = FlowDeployer(store).deploy(flow.id, context)
    except FlowDeployError as e:
        logger.debug("Deploy failed", exc_info=True)
        print(f"Deployment failed: {e}", file=sys.stderr)
        return 1

    _print_compiled(result.prompt_preview, result.tools_registered)
    print(f"Deployed to agent {spec['agent_id']}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
