"""CLI for maestro: run, doctor, and config commands."""

import argparse
import asyncio
import json
import os
import platform
import signal
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from .config import Config, load_config
from .credentials import CredentialStore
from .errors import ConfigError, NoCredentialError, TranscriptError
from .logging_config import setup_logging
from .orchestrator import run
from .progress import ConsoleProgress, ProgressSink
from .transcript import RunTranscript, save_transcript

CORE_DEPS = ["anthropic", "platformdirs", "python-dotenv", "rich"]

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INCOMPLETE = 2


def _load_config_or_exit() -> Config:
	try:
		return load_config()
	except ConfigError as e:
		print(f"Configuration error: {e}", file=sys.stderr)
		sys.exit(EXIT_ERROR)


async def _run_with_signals(
	objective: str,
	api_key: Optional[str],
	config: Config,
	sink: Optional[ProgressSink],
	console: Console,
) -> RunTranscript:
	"""Run the loop; the first SIGINT/SIGTERM cancels at the next model call."""
	cancel_event = asyncio.Event()
	loop = asyncio.get_running_loop()
	installed: list[signal.Signals] = []

	def _on_signal() -> None:
		console.print("[yellow]Cancelling after the current model call... (press again to abort)[/yellow]")
		cancel_event.set()
		# A second signal falls through to the default handler
		for sig in installed:
			loop.remove_signal_handler(sig)
		installed.clear()

	for sig in (signal.SIGINT, signal.SIGTERM):
		try:
			loop.add_signal_handler(sig, _on_signal)
			installed.append(sig)
		except (NotImplementedError, RuntimeError):
			# Not supported on this platform
			pass

	try:
		return await run(
			objective,
			api_key,
			config=config,
			sink=sink,
			cancel_event=cancel_event,
		)
	finally:
		for sig in installed:
			loop.remove_signal_handler(sig)


def _exit_code(transcript: RunTranscript) -> int:
	if transcript.completed and not transcript.refinement_failed:
		return EXIT_OK
	return EXIT_INCOMPLETE


def cmd_run(args: argparse.Namespace) -> int:
	"""Run an objective through the orchestrator/sub-agent loop."""
	config = _load_config_or_exit()
	if args.max_rounds is not None:
		config.max_rounds = args.max_rounds
	try:
		config.validate()
	except ConfigError as e:
		print(f"Configuration error: {e}", file=sys.stderr)
		return EXIT_ERROR

	setup_logging(
		level=args.log_level or os.getenv("MAESTRO_LOG_LEVEL") or "WARNING",
		log_dir=config.log_dir,
		# Keep stdout for the transcript
		stream=sys.stderr,
	)

	console = Console()
	sink = None if args.quiet else ConsoleProgress(console)

	try:
		transcript = asyncio.run(
			_run_with_signals(args.objective, args.api_key, config, sink, console)
		)
	except NoCredentialError as e:
		print(f"Error: {e}", file=sys.stderr)
		return EXIT_ERROR
	except ValueError as e:
		print(f"Error: {e}", file=sys.stderr)
		return EXIT_ERROR

	if args.quiet:
		print(transcript.text)
	else:
		console.print()
		if transcript.final_artifact is not None:
			console.print(Panel(Markdown(transcript.final_artifact), title="Refined Final Output", border_style="green"))
		else:
			console.print(Panel(transcript.text, title="Transcript", border_style="red"))

	if args.save or args.output_dir:
		output_dir = Path(args.output_dir) if args.output_dir else config.transcripts_dir
		try:
			path = save_transcript(transcript, output_dir)
		except TranscriptError as e:
			print(f"Error: {e}", file=sys.stderr)
			return EXIT_ERROR
		if not args.quiet:
			console.print(f"[dim]Transcript saved to {path}[/dim]")

	return _exit_code(transcript)


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
		msg = f"config.toml parse error: {e}"
		return f"INVALID ({e})", msg


def _check_credential(secrets_file: Path) -> tuple[str, str | None]:
	"""Report whether an API key is stored. Returns (status, issue_or_none)."""
	if not secrets_file.exists():
		return "not stored (pass --api-key on the first run)", None
	try:
		with open(secrets_file) as f:
			data = json.load(f)
	except (json.JSONDecodeError, IOError) as e:
		return f"INVALID ({e})", f"secrets.json unreadable: {e}"
	if not isinstance(data, dict):
		return "INVALID (not a JSON object)", "secrets.json: top level is not an object"
	if not isinstance(data.get("keys", {}), dict):
		return "INVALID (keys is not a dict)", "secrets.json: 'keys' field is not a dict"
	if CredentialStore(secrets_file).get():
		return "stored", None
	return "not stored (pass --api-key on the first run)", None


def cmd_doctor(args: argparse.Namespace) -> int:
	"""Health check - verify installation and configuration."""
	print("maestro doctor")
	print(f"{'=' * 40}")

	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	try:
		config = load_config()
	except ConfigError as e:
		print(f"  Config:       INVALID ({e})")
		issues.append(str(e))
		config = None

	if config is not None:
		print("  Config:")
		print(f"    config dir:          {config.config_dir}")
		print(f"    data dir:            {config.data_dir}")
		toml_status, toml_issue = _check_config_toml(config.config_dir)
		print(f"    config.toml:         {toml_status}")
		if toml_issue:
			issues.append(toml_issue)

		cred_status, cred_issue = _check_credential(config.secrets_file)
		print(f"    API key:             {cred_status}")
		if cred_issue:
			issues.append(cred_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		return EXIT_ERROR
	print("  All checks passed.")
	return EXIT_OK


def cmd_config(args: argparse.Namespace) -> int:
	"""Print the effective configuration."""
	config = _load_config_or_exit()
	print(json.dumps(config.to_dict(), indent=2))
	return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="maestro",
		description="Break an objective into sub-tasks, execute them with a sub-agent, and refine the results",
	)
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Run an objective")
	run_parser.add_argument("objective", help="What you want accomplished")
	run_parser.add_argument("--api-key", default=None, help="Anthropic API key (remembered for later runs)")
	run_parser.add_argument("--max-rounds", type=int, default=None, help="Stop after this many sub-tasks")
	run_parser.add_argument("--save", action="store_true", help="Save the transcript as markdown")
	run_parser.add_argument("--output-dir", default=None, help="Directory for the saved transcript (implies --save)")
	run_parser.add_argument("--quiet", action="store_true", help="No progress output; print the transcript at the end")
	run_parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
	run_parser.set_defaults(func=cmd_run)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# config
	config_parser = subparsers.add_parser("config", help="Show effective configuration")
	config_parser.set_defaults(func=cmd_config)

	return parser


def main() -> None:
	"""CLI entry point."""
	load_dotenv()
	parser = build_parser()
	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(EXIT_ERROR)

	sys.exit(args.func(args))
