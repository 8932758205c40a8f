"""CLI for comms-orchestrator: serve, doctor, report and analyze commands."""

import argparse
import asyncio
import json
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Any

from .config import load_config

CORE_DEPS = ["mcp", "pydantic", "platformdirs", "rich"]


def _load_json_file(path: str) -> Any:
	"""Read a JSON file or exit with a message."""
	file_path = Path(path)
	if not file_path.exists():
		print(f"File not found: {path}")
		sys.exit(1)
	try:
		with open(file_path) as f:
			return json.load(f)
	except (json.JSONDecodeError, IOError) as e:
		print(f"Could not read {path}: {e}")
		sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def _check_config_toml(config_dir: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	toml_path = config_dir / "config.toml"
	if not toml_path.exists():
		return "not found (optional)", None
	try:
		with open(toml_path, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		return f"INVALID ({e})", f"config.toml parse error: {e}"


def _check_server_startup() -> tuple[str, str | None]:
	"""Try importing the server and counting registered tools."""
	try:
		from .server import mcp as server_instance
		tools = server_instance._tool_manager._tools
		return f"OK ({len(tools)} tools registered)", None
	except Exception as e:
		return f"FAILED ({e})", f"Server startup failed: {e}"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("comms-orchestrator doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	print(f"    config dir:          {config.config_dir}")
	print(f"    log dir:             {config.log_dir}")
	toml_status, toml_issue = _check_config_toml(config.config_dir)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	print()

	print("  Server:")
	server_status, server_issue = _check_server_startup()
	print(f"    {server_status}")
	if server_issue:
		issues.append(server_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def cmd_report(args: argparse.Namespace) -> None:
	"""Replay a milestone file and print its progress report."""
	from rich.console import Console
	from rich.markdown import Markdown

	from .communication.progress_tracker import ProgressTracker
	from .errors import CommsError
	from .visualizer.progress_view import render_progress_summary, render_progress_tree

	data = _load_json_file(args.file)
	if not isinstance(data, dict) or not isinstance(data.get("milestones"), list):
		print("Milestone file must be a JSON object with a 'milestones' list")
		sys.exit(1)

	task_id = data.get("task_id") or Path(args.file).stem
	tracker = ProgressTracker()
	try:
		tracker.initialize_progress(task_id, data["milestones"], data.get("current_focus", ""))
		report = asyncio.run(tracker.generate_progress_report(
			task_id,
			include_detailed_analysis=args.analysis,
			include_predictions=args.predictions,
		))
	except CommsError as e:
		print(f"Error: {e}")
		sys.exit(1)

	console = Console()
	if args.format == "tree":
		render_progress_tree(report, console)
		render_progress_summary(report, console)
	elif args.format == "json":
		print(report.model_dump_json(indent=2))
	else:
		console.print(Markdown(report.render().render()))


def cmd_analyze(args: argparse.Namespace) -> None:
	"""Resolve a communication context from a descriptor file and print it."""
	from .communication.context_analyzer import ContextAnalyzer

	data = _load_json_file(args.file)
	if not isinstance(data, dict):
		print("Context file must be a JSON object with 'task', 'user' and 'environment' keys")
		sys.exit(1)

	analyzer = ContextAnalyzer()
	context = asyncio.run(analyzer.analyze_context(data.get("task"), data.get("user"), data.get("environment")))
	result = {"context": context.model_dump(mode="json")}
	if args.message_type:
		result["recommendations"] = analyzer.get_recommendations(context, args.message_type)
	print(json.dumps(result, indent=2))


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="comms-orchestrator",
		description="MCP server for adaptive task communication and progress tracking",
	)
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# report
	report_parser = subparsers.add_parser("report", help="Print a progress report for a milestone file")
	report_parser.add_argument("file", help="JSON file with task_id and milestones")
	report_parser.add_argument(
		"--format",
		choices=["markdown", "tree", "json"],
		default="markdown",
		help="Output format (default: markdown)",
	)
	report_parser.add_argument("--analysis", action="store_true", help="Include detailed analysis")
	report_parser.add_argument("--predictions", action="store_true", help="Include completion forecast")
	report_parser.set_defaults(func=cmd_report)

	# analyze
	analyze_parser = subparsers.add_parser("analyze", help="Print the resolved communication context")
	analyze_parser.add_argument("file", help="JSON file with task, user and environment descriptors")
	analyze_parser.add_argument(
		"--message-type",
		type=str,
		default=None,
		help="Also print recommendations for this message type",
	)
	analyze_parser.set_defaults(func=cmd_analyze)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
