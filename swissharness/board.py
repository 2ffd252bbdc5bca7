"""
Thin facade over python-chess Board.

Gives the match simulator the few things it needs (legal moves, the side to
move, and how the game ended expressed as a match status) without leaking
python-chess internals into the rest of the codebase.
"""

from __future__ import annotations

import chess

from swissharness.events import MatchStatus, Side


class ChessBoard:
    """Facade over chess.Board."""

    def __init__(self, fen: str | None = None) -> None:
        self._board = chess.Board(fen) if fen else chess.Board()

    # ------------------------------------------------------------------ #
    # State queries                                                        #
    # ------------------------------------------------------------------ #

    @property
    def fen(self) -> str:
        return self._board.fen()

    @property
    def side(self) -> Side:
        """Side to move: 1 white, 2 black."""
        return 1 if self._board.turn == chess.WHITE else 2

    @property
    def ply(self) -> int:
        return len(self._board.move_stack)

    @property
    def is_game_over(self) -> bool:
        # Claimable draws (threefold repetition, fifty-move) end the game;
        # nobody is around to claim them in a simulated match.
        return self._board.is_game_over(claim_draw=True)

    def legal_moves_uci(self) -> list[str]:
        return [m.uci() for m in self._board.legal_moves]

    # ------------------------------------------------------------------ #
    # Move application                                                    #
    # ------------------------------------------------------------------ #

    def push_uci(self, move_str: str) -> str:
        """
        Apply a legal move given in UCI notation.  Returns its SAN string.

        Raises:
            ValueError: the move is malformed or illegal in this position.
        """
        move = chess.Move.from_uci(move_str)
        if move not in self._board.legal_moves:
            raise ValueError(f"Illegal move {move_str} in {self.fen}")
        san = self._board.san(move)
        self._board.push(move)
        return san

    # ------------------------------------------------------------------ #
    # Game-over info                                                      #
    # ------------------------------------------------------------------ #

    def match_status(self) -> MatchStatus:
        """
        Terminal match status for a finished game, 'continue' otherwise.

        Checkmate is reported together with `side`: the side to move is the
        side that was mated.
        """
        outcome = self._board.outcome(claim_draw=True)
        if outcome is None:
            return "continue"
        match outcome.termination:
            case chess.Termination.CHECKMATE:
                return "checkmate"
            case chess.Termination.STALEMATE:
                return "stalemate"
            case _:
                return "draw"
