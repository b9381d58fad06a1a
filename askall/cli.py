#!/usr/bin/env python3
"""CLI entry point: ask several providers the same question at once."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from rich.console import Console
from rich.markdown import Markdown

from askall.config import (
    API_KEY_ENV,
    AppSettings,
    ProviderSettings,
    RunSettings,
    default_log_path,
    key_status,
)
from askall.dispatcher import Dispatcher
from askall.errors import ConfigurationError, PersistenceError, TransportError
from askall.formatting import format_log_summary, format_response
from askall.interaction_log import InteractionLog
from askall.interfaces import Provider
from askall.provider_gemini import GeminiAdapter
from askall.provider_openai import ChatGPTAdapter
from askall.transport import check_connectivity

REPLAY_ALL = -1

PROVIDER_FLAGS = {
    "chatgpt": Provider.CHATGPT,
    "gemini": Provider.GEMINI,
    "perplexity": Provider.PERPLEXITY,
    "cerebras": Provider.CEREBRAS,
}

console = Console()


def build_epilog() -> str:
    lines = ["API keys are read from these environment variables (or a .env file):", ""]
    for provider, name in API_KEY_ENV.items():
        marker = "  (already set)" if os.getenv(name) else ""
        lines.append(f"  {name:<20} {provider.value}{marker}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="askall",
        description="Send one prompt (read from stdin) to several LLM providers in parallel",
        epilog=build_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    models = parser.add_argument_group("providers (none selected means all)")
    models.add_argument("-c", "--chatgpt", action="store_true", help="Use ChatGPT")
    models.add_argument("-g", "--gemini", action="store_true", help="Use Gemini")
    models.add_argument("-p", "--perplexity", action="store_true", help="Use Perplexity")
    models.add_argument("-f", "--cerebras", action="store_true", help="Use Cerebras")

    parser.add_argument(
        "-l",
        "--log",
        action="store_true",
        help="Append each model interaction to the JSONL interaction log",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Quiet mode: raw output only, no logging, no headers or progress",
    )
    parser.add_argument(
        "-rl",
        "--replay-log",
        nargs="?",
        type=int,
        const=REPLAY_ALL,
        metavar="INDEX",
        help="List logged interactions newest first, or show the response at INDEX",
    )
    parser.add_argument("--log-path", help="Interaction log file (default: ~/askall_logs.jsonl)")
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use canned provider responses without network access",
    )
    parser.add_argument(
        "--list-models",
        choices=["openai", "gemini"],
        help="List the models available to your OpenAI or Gemini key",
    )
    parser.add_argument(
        "--check-keys",
        action="store_true",
        help="Show which API keys are configured (values are masked)",
    )
    parser.add_argument(
        "--skip-connectivity-check",
        action="store_true",
        help="Do not probe internet connectivity before calling providers",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bar output")
    return parser


def selected_providers(args: argparse.Namespace) -> List[Provider]:
    selected = [provider for flag, provider in PROVIDER_FLAGS.items() if getattr(args, flag)]
    return selected or list(PROVIDER_FLAGS.values())


def read_prompt(stream: TextIO) -> str:
    if stream.isatty():
        print("Prompt (press Ctrl+D when done) > ", end="", flush=True)
    return stream.read().strip()


def render(text: str, quiet: bool) -> None:
    if quiet:
        print(text)
    else:
        console.print(Markdown(text))


def log_path_from(args: argparse.Namespace) -> Path:
    return Path(args.log_path).expanduser() if args.log_path else default_log_path()


def replay_log(args: argparse.Namespace) -> int:
    log = InteractionLog(log_path_from(args))
    index: Optional[int] = None if args.replay_log == REPLAY_ALL else args.replay_log
    try:
        entries = log.replay(index)
    except IndexError as exc:
        print(f"[error] {exc}")
        return 2
    except PersistenceError as exc:
        print(f"[error] {exc}")
        return 2

    if index is not None:
        render(entries[0].model_response, args.quiet)
        return 0
    if not entries:
        print(f"[info] No log entries in {log.path}")
        return 0
    for position, entry in enumerate(entries):
        print(format_log_summary(position, entry))
    return 0


def list_models(target: str) -> int:
    try:
        if target == "openai":
            adapter = ChatGPTAdapter(ProviderSettings.from_env(Provider.CHATGPT))
        else:
            adapter = GeminiAdapter(ProviderSettings.from_env(Provider.GEMINI))
        print(adapter.list_models())
    except (ConfigurationError, TransportError) as exc:
        print(f"[error] {target}: {exc}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    if args.check_keys:
        for line in key_status():
            print(line)
        return 0
    if args.list_models:
        return list_models(args.list_models)
    if args.replay_log is not None:
        return replay_log(args)

    if args.log and args.quiet:
        print("Not logging as quiet mode activated", file=sys.stderr)

    run = RunSettings(
        quiet=args.quiet,
        log_requested=args.log,
        mock=args.mock,
        log_path=log_path_from(args) if args.log and not args.quiet else None,
        show_progress=not args.no_progress,
    )
    selected = selected_providers(args)
    try:
        settings = AppSettings.load(selected, run)
    except ConfigurationError as exc:
        print(f"[error] {exc}")
        return 1

    if not args.mock and not args.skip_connectivity_check:
        problem = check_connectivity()
        if problem:
            print(f"[error] Not connected to the internet: {problem}")
            return 1

    if not args.quiet:
        names = ", ".join(provider.value for provider in selected)
        print(f"Using {names}" + (" (logging)" if run.logging_enabled else ""))

    prompt = read_prompt(sys.stdin)
    if not prompt:
        print("[error] Prompt is empty")
        return 1

    outcomes = Dispatcher.from_settings(settings).run(prompt)

    failed = 0
    for outcome in outcomes:
        if outcome.response is not None:
            render(format_response(outcome.response, quiet=args.quiet), args.quiet)
        else:
            print(f"[error] {outcome.provider.value}: {outcome.error}", file=sys.stderr)
            failed += 1

    if not args.quiet:
        render("# Done", quiet=False)
    return 2 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
