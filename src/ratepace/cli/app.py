"""Command dispatcher for the ratepace CLI."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..core.clock import utcnow
from ..core.config import LimiterConfig
from ..core.errors import RatePaceError, RetryError
from ..core.models import State
from ..services.container import build_limiter
from ..services.http_client import RateLimitedClient
from ..services.linear import LinearLimiter

console = Console()

USAGE = "Usage: ratepace [--verbose] COMMAND [--option VALUE ...]"


class CommandError(Exception):
    """Raised when command parsing or validation fails."""


def _timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def _state_row(state: State) -> Tuple[str, str, str]:
    return str(state.limit), str(state.remaining), _timestamp(state.reset)


class CommandDispatcher:
    """Parse and execute limiter commands."""

    def __init__(self, config: Optional[LimiterConfig] = None) -> None:
        self._config = config

    @property
    def config(self) -> LimiterConfig:
        if self._config is None:
            self._config = LimiterConfig.load()
        return self._config

    def execute(self, tokens: Sequence[str]) -> int:
        if not tokens:
            return self.do_help([])
        command = tokens[0].lower()
        handler = getattr(self, f"do_{command}", None)
        if handler is None:
            raise CommandError(f"Unknown command: {command}")
        return handler(tokens[1:]) or 0

    def do_help(self, _: Sequence[str]) -> int:
        console.print(USAGE)
        console.print("  schedule [--window SECONDS] [--events N] [--count K]  list the next K evenly spaced slots")
        console.print("  state                                                  show the configured limiter's quota")
        console.print("  probe URL [--count K]                                  send K paced GET requests")
        return 0

    def do_schedule(self, args: Sequence[str]) -> int:
        options, positional = self._parse_options(args, {"--window", "--events", "--count"})
        if positional:
            raise CommandError("Usage: schedule [--window SECONDS] [--events N] [--count K]")
        base = self.config
        window = base.window
        events = base.events
        if "--window" in options:
            window = timedelta(seconds=self._parse_float(options["--window"], "window"))
        if "--events" in options:
            events = self._parse_int(options["--events"], "events", minimum=1)
        count = self._parse_int(options.get("--count", "5"), "count", minimum=1)

        now = utcnow()
        limiter = LinearLimiter(
            LimiterConfig(
                window=window,
                events=events,
                start=base.start or now,
            )
        )

        table = Table(title=f"Linear schedule (slot {limiter.slot.total_seconds():g}s)")
        table.add_column("#", justify="right")
        table.add_column("Slot")
        table.add_column("Limit", justify="right")
        table.add_column("Remaining", justify="right")
        table.add_column("Reset")
        rel = now
        for index in range(1, count + 1):
            rel = limiter.next(rel)
            table.add_row(str(index), _timestamp(rel), *_state_row(limiter.state(rel)))
        console.print(table)
        return 0

    def do_state(self, args: Sequence[str]) -> int:
        if args:
            raise CommandError("Usage: state")
        limiter = build_limiter(self.config)
        limit, remaining, reset = _state_row(limiter.state(utcnow()))
        console.print(f"{self.config.kind.value} limiter: limit={limit} remaining={remaining} reset={reset}")
        return 0

    def do_probe(self, args: Sequence[str]) -> int:
        options, positional = self._parse_options(args, {"--count"})
        if len(positional) != 1:
            raise CommandError("Usage: probe URL [--count K]")
        count = self._parse_int(options.get("--count", "1"), "count", minimum=1)
        limiter = build_limiter(self.config)
        return asyncio.run(self._probe(RateLimitedClient(limiter), positional[0], count))

    async def _probe(self, client: RateLimitedClient, url: str, count: int) -> int:
        async with client:
            for index in range(1, count + 1):
                try:
                    response = await client.get(url)
                except RetryError as exc:
                    console.print(f"#{index} retry after {_timestamp(exc.retry_after)}")
                    return 1
                limit, remaining, reset = _state_row(client.limiter.state(utcnow()))
                console.print(
                    f"#{index} {response.status_code} limit={limit} remaining={remaining} reset={reset}"
                )
        return 0

    # Parsing helpers -------------------------------------------------

    def _parse_options(self, args: Sequence[str], known: set) -> Tuple[Dict[str, str], List[str]]:
        options: Dict[str, str] = {}
        positional: List[str] = []
        iterator = iter(args)
        for arg in iterator:
            if arg.startswith("--"):
                if arg not in known:
                    raise CommandError(f"Unknown option: {arg}")
                try:
                    options[arg] = next(iterator)
                except StopIteration as exc:
                    raise CommandError(f"Option {arg} requires a value") from exc
                continue
            positional.append(arg)
        return options, positional

    def _parse_int(self, token: str, label: str, *, minimum: int = 0) -> int:
        try:
            value = int(token)
        except ValueError as exc:
            raise CommandError(f"Invalid {label}; expected integer") from exc
        if value < minimum:
            raise CommandError(f"{label} must be >= {minimum}")
        return value

    def _parse_float(self, token: str, label: str) -> float:
        try:
            value = float(token)
        except ValueError as exc:
            raise CommandError(f"Invalid {label}; expected number") from exc
        if value <= 0:
            raise CommandError(f"{label} must be > 0")
        return value


def _extract_verbosity(argv: Sequence[str]) -> Tuple[bool, List[str]]:
    verbose = False
    remaining: List[str] = []
    for arg in argv:
        if arg in {"-v", "--verbose"}:
            verbose = True
            continue
        if arg in {"-h", "--help"}:
            return verbose, ["help"]
        remaining.append(arg)
    return verbose, remaining


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(argv if argv is not None else sys.argv[1:])
    verbose, remaining = _extract_verbosity(argv)
    _configure_logging(verbose)

    dispatcher = CommandDispatcher()
    try:
        return dispatcher.execute(remaining)
    except CommandError as exc:
        console.print(f"Error: {escape(str(exc))}")
        return 1
    except RatePaceError as exc:
        console.print(f"Limiter error: {escape(str(exc))}")
        return 1
    except httpx.HTTPError as exc:
        console.print(f"HTTP error: {escape(str(exc))}")
        return 1


__all__ = ["CommandDispatcher", "CommandError", "run_cli"]
