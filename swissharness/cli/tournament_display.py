"""
Rich-based CLI consumer for TournamentEvent objects.

Events carry participant ids; pass a `names` mapping (participant id →
player name) to display_tournament_event() to print readable names.
Unknown ids are shown shortened.
"""

from __future__ import annotations

from collections.abc import Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from swissharness.tournaments.base import StandingEntry
from swissharness.tournaments.events import (
    ByeEvent,
    MatchScoredEvent,
    RoundCompleteEvent,
    RoundStartEvent,
    TournamentCompleteEvent,
    TournamentEvent,
    TournamentStartEvent,
)

console = Console(legacy_windows=False)


def display_tournament_event(
    event: TournamentEvent, names: Mapping[str, str] | None = None
) -> None:
    """Dispatch a TournamentEvent to the appropriate display function."""
    names = names or {}
    match event:
        case TournamentStartEvent():
            _tournament_start(event, names)
        case RoundStartEvent():
            _round_start(event, names)
        case ByeEvent():
            _bye(event, names)
        case MatchScoredEvent():
            _match_scored(event, names)
        case RoundCompleteEvent():
            _round_complete(event)
        case TournamentCompleteEvent():
            _tournament_complete(event, names)


# --------------------------------------------------------------------------- #
# Display functions                                                            #
# --------------------------------------------------------------------------- #

def _name(names: Mapping[str, str], participant_id: str | None) -> str:
    if participant_id is None:
        return "—"
    return names.get(participant_id, participant_id[:8])


def _tournament_start(event: TournamentStartEvent, names: Mapping[str, str]) -> None:
    entrants = "  •  ".join(_name(names, pid) for pid in event.participant_ids)
    console.print()
    console.print(
        Panel(
            f"[bold]Swiss Tournament[/]  [dim]{event.tournament_id}[/]\n\n"
            f"[dim]Participants ({len(event.participant_ids)}):[/]\n{entrants}\n\n"
            f"[dim]Rounds: {event.total_rounds}  •  "
            f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Swiss Harness [/]",
            border_style="green",
            expand=False,
        )
    )


def _round_start(event: RoundStartEvent, names: Mapping[str, str]) -> None:
    console.print()
    console.rule(
        f"[bold]Round {event.round_num} of {event.total_rounds}[/]",
        style="bright_blue",
    )
    console.print()

    table = Table(show_header=True, header_style="bold", border_style="dim", show_lines=False)
    table.add_column("Match", style="dim", width=10)
    table.add_column("White", min_width=20)
    table.add_column("", width=3, justify="center")
    table.add_column("Black", min_width=20)

    for match_id, white_id, black_id in event.pairings:
        table.add_row(
            match_id[:8],
            f"[bold]{_name(names, white_id)}[/]",
            "vs",
            f"[bold]{_name(names, black_id)}[/]",
        )
    if event.bye is not None:
        table.add_row("", f"[bold]{_name(names, event.bye)}[/]", "→", "[dim]BYE[/]")

    console.print(table)
    if event.repeats:
        console.print(f"[yellow]{event.repeats} forced rematch(es) this round[/]")
    console.print()


def _bye(event: ByeEvent, names: Mapping[str, str]) -> None:
    console.print(
        f"  [dim]Bye:[/] [bold]{_name(names, event.participant_id)}[/] "
        f"[dim](+{event.score:.1f})[/]"
    )


def _match_scored(event: MatchScoredEvent, names: Mapping[str, str]) -> None:
    white = _name(names, event.white_id)
    black = _name(names, event.black_id)
    if event.white_score > event.black_score:
        summary = f"[green]✓[/] [bold]{white}[/] beats {black}"
    elif event.black_score > event.white_score:
        summary = f"[green]✓[/] [bold]{black}[/] beats {white}"
    else:
        summary = f"[yellow]½[/] {white} and {black} draw"
    console.print(
        f"  {summary}  [dim]({event.status}, "
        f"{event.white_score:.1f}–{event.black_score:.1f})[/]"
    )


def _standings_table(title: str, standings: list[StandingEntry], highlight_leader: bool) -> Table:
    table = Table(
        title=title,
        show_header=True,
        header_style="bold",
        border_style="dim",
        show_lines=False,
    )
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("W", justify="center", width=4)
    table.add_column("D", justify="center", width=4)
    table.add_column("L", justify="center", width=4)
    table.add_column("Bye", justify="center", width=4)
    table.add_column("Pts", justify="right", width=5)

    for i, entry in enumerate(standings, 1):
        style = "bold yellow" if highlight_leader and i == 1 else ""
        table.add_row(
            str(i),
            entry.player_id,
            str(entry.wins),
            str(entry.draws),
            str(entry.losses),
            str(entry.byes),
            f"{entry.score:.1f}",
            style=style,
        )
    return table


def _round_complete(event: RoundCompleteEvent) -> None:
    console.print()
    console.rule(f"[dim]Round {event.round_num} complete[/]", style="dim")

    if not event.standings:
        return

    console.print()
    console.print(
        _standings_table(f"Standings after Round {event.round_num}", event.standings, False)
    )


def _tournament_complete(event: TournamentCompleteEvent, names: Mapping[str, str]) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold yellow]★  {_name(names, event.winner_id)}[/]\n\n"
            f"[dim]{event.rounds_completed} rounds  •  "
            f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Tournament Champion [/]",
            border_style="yellow",
            expand=False,
        )
    )
    console.print()
    console.print(_standings_table("Final Standings", event.final_standings, True))
    console.print()
