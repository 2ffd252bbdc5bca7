"""
SwissHarness — Tournament demo entry point.

Usage:
    uv run python tournament_main.py [player ...]

Wires together:
    config → in-memory store → tournament service → participants →
    match simulator + event pump → CLI display
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path

from swissharness.cli.tournament_display import console, display_tournament_event
from swissharness.config import Config, load_config
from swissharness.errors import SwissHarnessError
from swissharness.log import setup_logging
from swissharness.service import TournamentService
from swissharness.simulator import MatchSimulator
from swissharness.store.memory import InMemoryStore

_DEFAULT_PLAYERS = ["Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot", "Golf"]


async def _main(config: Config, players: list[str]) -> None:
    store = InMemoryStore()
    service = TournamentService(store, config)

    # ── Create the tournament and its participants ───────────────────── #
    record = await service.create_tournament(organizer_id="organizer")
    names: dict[str, str] = {}
    for player in players:
        participant = await service.join(record.id, player)
        names[participant.id] = player

    service.add_listener(lambda event: display_tournament_event(event, names))

    # ── Subscribe simulator and event pump before round 1 exists ────── #
    simulator = MatchSimulator(store, config.simulation)
    sim_task = asyncio.create_task(simulator.run(record.id))
    watch_task = asyncio.create_task(service.watch(record.id))
    await asyncio.sleep(0)

    console.print(
        f"\n[dim]Starting [bold]Swiss[/] tournament with "
        f"[bold]{len(players)}[/] participants…[/]\n"
    )
    try:
        await service.start(record.id)
        await watch_task
    finally:
        sim_task.cancel()
        watch_task.cancel()
        await asyncio.gather(sim_task, watch_task, return_exceptions=True)


def main() -> None:
    config_path = Path("config.yaml")
    try:
        config = load_config(config_path) if config_path.exists() else Config()
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    setup_logging(config, console=False)
    players = sys.argv[1:] or _DEFAULT_PLAYERS

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        # Ctrl+C cancels the run and lets the finally blocks clean up
        loop.add_signal_handler(signal.SIGINT, task.cancel)
        try:
            await _main(config, players)
        except SwissHarnessError as exc:
            console.print(f"[red]Error:[/] {exc}")
            sys.exit(1)
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    try:
        asyncio.run(_run())
    except asyncio.CancelledError:
        console.print("\n[yellow]Tournament stopped.[/]")


if __name__ == "__main__":
    main()
