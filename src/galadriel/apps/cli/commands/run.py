"""``galadriel-harvester run``: start the harvester and block until signalled."""

from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

import typer

from galadriel.services.errors import HarvesterError
from galadriel.services.harvester import Harvester
from galadriel.services.harvester_config import load_config
from galadriel.services.log import setup_logging

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_RUNTIME_FAILURE = 2

_log = logging.getLogger("galadriel.cli")


def _install_signal_handlers(stop: threading.Event) -> dict[int, object]:
    def _handler(signum, _frame) -> None:
        _log.info("received signal, shutting down", extra={"signal": signal.Signals(signum).name})
        stop.set()

    previous: dict[int, object] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def run(
    config: Path = typer.Option(..., "--config", "-c", help="Path to the harvester YAML configuration"),
    join_token: Optional[str] = typer.Option(
        None, "--join-token", envvar="GALADRIEL_JOIN_TOKEN", help="One-time token to onboard to the hub"
    ),
):
    """Run the harvester bundle federation engine."""
    try:
        conf = load_config(config)
    except HarvesterError as exc:
        typer.secho(f"invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_STARTUP_FAILURE) from exc

    setup_logging(conf.harvester.log_level, conf.harvester.log_format)

    harvester = Harvester(conf, join_token=join_token)
    stop = threading.Event()
    previous = _install_signal_handlers(stop)
    try:
        try:
            harvester.start()
        except (HarvesterError, OSError) as exc:
            _log.error("harvester failed to start", extra={"error": str(exc)})
            raise typer.Exit(EXIT_STARTUP_FAILURE) from exc

        try:
            harvester.run(stop)
        except Exception as exc:
            _log.error("harvester stopped on error", exc_info=True, extra={"error": str(exc)})
            raise typer.Exit(EXIT_RUNTIME_FAILURE) from exc
    finally:
        harvester.close()
        _restore_signal_handlers(previous)
    raise typer.Exit(EXIT_OK)
