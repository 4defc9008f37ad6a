"""
Command-line interface for Chess Sparring.

This module provides the main entry point, argument parsing and the
interactive terminal loop for playing a sparring game against a local
UCI engine.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import chess
from rich.console import Console, Group
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.prompt import IntPrompt, Prompt

from . import __version__
from .core.engine import EngineError, create_session
from .core.game import MatchOrchestrator
from .core.models import (
    ANALYSIS_DEPTH_MAX,
    ANALYSIS_DEPTH_MIN,
    DIFFICULTY_OPTIONS,
    Config,
    GamePhase,
    MoveResult,
    Winner,
    code_to_color,
)
from .core.storage import JsonFileStore
from .ui.board import THEME_NAMES, ChessBoardRenderer, describe_result, format_centipawns


def setup_logging(level=logging.INFO, log_file: Optional[str] = None):
    """Setup logging that doesn't interfere with the Rich board display."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root_logger.addHandler(file_handler)
    else:
        root_logger.addHandler(logging.NullHandler())
    root_logger.setLevel(level)


setup_logging()
logger = logging.getLogger(__name__)

console = Console()

HELP_TEXT = """[bold]Commands[/bold]
  <move>        play a move in SAN (Nf3) or UCI (g1f3)
  hint          show/hide the engine's suggested move
  undo          take back your last move
  resign        resign the game
  go            ask the engine to move again after it timed out
  back / next   step through the game history
  start / end   jump to the first position / back to the live game
  goto N        show the position after ply N
  depth N       set analysis depth ({dmin}-{dmax})
  analyze       score every position of the game
  save / load   save or restore the game
  restart       rematch with the same colour and difficulty
  new           choose colour and difficulty for a new game
  theme NAME    change board theme ({themes})
  help          show this help
  quit          exit"""


class SparringCLI:
    """Interactive terminal client driving a MatchOrchestrator."""

    def __init__(self, orchestrator: MatchOrchestrator, renderer: ChessBoardRenderer):
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.last_move: Optional[chess.Move] = None
        self.message: Optional[str] = None

        orchestrator.on_move = self._on_move
        orchestrator.on_game_over = self._on_game_over

    def _on_move(self, result: MoveResult, by_engine: bool) -> None:
        self.last_move = result.move
        if by_engine:
            self.message = f"Engine played {result.san}"

    def _on_game_over(self, winner: Optional[Winner]) -> None:
        self.message = describe_result(winner, self.orchestrator.state.termination)

    def render(self) -> None:
        """Draw the board, evaluation bar, move list and status."""
        orch = self.orchestrator
        state = orch.state
        timeline = orch.timeline
        fen = orch.view_position()
        live = timeline.is_live

        hint = state.best_move_hint if state.showing_hint and live else None
        title = None if live else f"Replay: position {timeline.view_index()} of {timeline.ply_count}"
        parts = [
            self.renderer.render_board(fen, last_move=self.last_move if live else None, hint=hint, title=title),
        ]
        if live and state.phase is not GamePhase.SETUP:
            parts.append(self.renderer.render_eval_bar(state.evaluation, state.turn))
        parts.append(self.renderer.render_move_list(timeline.notations(), None if live else timeline.view_index()))
        if state.analysis_results is not None:
            parts.append(self.renderer.render_analysis_graph(state.analysis_results.evaluations))
        console.print(Group(*parts))

        if state.is_over:
            console.print(f"[bold magenta]{describe_result(state.winner, state.termination)}[/bold magenta]")
        if self.message:
            console.print(f"[cyan]{self.message}[/cyan]")
            self.message = None

    async def choose_and_start(self, color: Optional[str] = None, difficulty: Optional[int] = None) -> None:
        """Ask for colour and difficulty where not given, then start the game."""
        settings = self.orchestrator.settings
        if color is None:
            default = "white" if settings.player_color == "w" else "black"
            color = await asyncio.to_thread(Prompt.ask, "Play as", choices=["white", "black"], default=default)
        if difficulty is None:
            difficulty = await asyncio.to_thread(
                IntPrompt.ask, "Difficulty (1-10)",
                choices=[str(d) for d in DIFFICULTY_OPTIONS], default=settings.difficulty,
            )
        self.last_move = None
        await self.orchestrator.start_game(code_to_color(color[0]), difficulty)
        self.renderer.flip_board = self.orchestrator.state.player_color == chess.BLACK
        await self.orchestrator.wait_for_engine()

    async def handle_command(self, line: str) -> bool:
        """
        Execute one command line.

        Returns:
            False when the user asked to quit
        """
        orch = self.orchestrator
        parts = line.strip().split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]

        if command in ("quit", "exit", "q"):
            return False
        elif command == "help":
            console.print(HELP_TEXT.format(
                dmin=ANALYSIS_DEPTH_MIN, dmax=ANALYSIS_DEPTH_MAX, themes=", ".join(THEME_NAMES)))
            return True
        elif command == "hint":
            move = orch.toggle_hint()
            if orch.state.showing_hint and move is None:
                self.message = "No suggestion yet"
        elif command == "undo":
            if await orch.take_back():
                self.last_move = None
            else:
                self.message = "Nothing to take back"
        elif command == "resign":
            await orch.resign()
        elif command in ("go", "retry"):
            await self.retry_engine()
        elif command == "back":
            orch.step_back()
        elif command == "next":
            orch.step_forward()
        elif command == "start":
            orch.jump_to_start()
        elif command == "end":
            orch.jump_to_end()
        elif command == "goto" and args and args[0].isdigit():
            orch.jump_to(int(args[0]))
        elif command == "depth" and args and args[0].isdigit():
            self.message = f"Analysis depth set to {orch.set_analysis_depth(int(args[0]))}"
        elif command == "analyze":
            await self.run_scoring()
        elif command == "save":
            self.message = "Game saved" if orch.save_game() else "Nothing to save"
        elif command == "load":
            if await orch.load_game():
                self.last_move = None
                self.renderer.flip_board = orch.state.player_color == chess.BLACK
                self.message = "Game loaded"
                await orch.wait_for_engine()
            else:
                self.message = "No valid saved game"
        elif command == "restart":
            self.last_move = None
            await orch.restart()
            await orch.wait_for_engine()
        elif command == "new":
            await orch.new_game()
            await self.choose_and_start()
        elif command == "theme" and args:
            try:
                self.renderer.set_theme(args[0].lower())
                orch.update_settings(theme=self.renderer.theme)
            except ValueError as e:
                self.message = str(e)
        else:
            await self.play(line.strip())

        self.render()
        return True

    async def play(self, move_text: str) -> None:
        orch = self.orchestrator
        if not orch.state.is_playing:
            self.message = "The game is over; use restart or new"
            return
        if not orch.timeline.is_live:
            self.message = "Return to the live position (end) before moving"
            return
        if not orch.state.is_player_turn:
            self.message = "Wait for the engine to move"
            return

        result = await orch.play_move(move_text)
        if result is None:
            self.message = f"Illegal move: {move_text}"
            return
        await orch.wait_for_engine()

    async def retry_engine(self) -> None:
        """Ask the engine for its move again after it timed out or declined."""
        orch = self.orchestrator
        if not orch.state.is_playing or orch.state.is_player_turn:
            self.message = "Not the engine's turn"
            return
        if not orch.engine_ready:
            self.message = "Engine unavailable"
            return
        if orch.engine_move_pending:
            await orch.wait_for_engine()
            return

        if await orch.make_engine_move() is None:
            self.message = "Engine still has no move; try go again"

    async def run_scoring(self) -> None:
        orch = self.orchestrator
        if not orch.engine_ready:
            self.message = "Engine unavailable"
            return

        with Progress(
            TextColumn("[bold blue]Analyzing game"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("scoring", total=orch.timeline.ply_count + 1)
            results = await orch.score_game(
                on_progress=lambda done, total: progress.update(task, completed=done, total=total)
            )

        if results is None:
            self.message = "Analysis cancelled"
        else:
            self.message = "Scores: " + " ".join(format_centipawns(v) for v in results.evaluations)

    async def run(self) -> None:
        """Read commands until the user quits."""
        self.render()
        while True:
            line = await asyncio.to_thread(console.input, "[bold green]> [/bold green]")
            if not await self.handle_command(line):
                break


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Play sparring games against a local UCI chess engine in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Play White at difficulty 5
  python main.py

  # Play Black against a stronger engine
  python main.py --color black --difficulty 8

  # Use a specific engine binary and log protocol traffic
  python main.py --stockfish-path /usr/local/bin/stockfish --verbose --log-file sparring.log
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    engine_group = parser.add_argument_group("Engine Configuration")
    engine_group.add_argument("--stockfish-path", help="Path to the Stockfish executable (auto-detected if omitted)")
    engine_group.add_argument("--move-timeout", type=float, default=15.0,
                              help="Seconds to wait for an engine move (default: 15)")
    engine_group.add_argument("--movetime", type=int, default=300,
                              help="Milliseconds per position for post-game analysis (default: 300)")
    engine_group.add_argument("--depth", type=int, default=18,
                              choices=range(ANALYSIS_DEPTH_MIN, ANALYSIS_DEPTH_MAX + 1), metavar="N",
                              help=f"Live analysis depth, {ANALYSIS_DEPTH_MIN}-{ANALYSIS_DEPTH_MAX} (default: 18)")

    game_group = parser.add_argument_group("Game Configuration")
    game_group.add_argument("--color", choices=["white", "black"], help="Side to play")
    game_group.add_argument("--difficulty", type=int, choices=DIFFICULTY_OPTIONS, metavar="1-10",
                            help="Engine difficulty")
    game_group.add_argument("--save-file", default="~/.chess_sparring.json",
                            help="File for saved games and settings (default: ~/.chess_sparring.json)")
    game_group.add_argument("--theme", choices=THEME_NAMES, help="Board theme")

    log_group = parser.add_argument_group("Logging")
    log_group.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    log_group.add_argument("--log-file", help="Write log output to this file")

    return parser


async def main_async(args: argparse.Namespace) -> int:
    """Main async function."""
    config = Config(
        stockfish_path=args.stockfish_path,
        move_timeout=args.move_timeout,
        analysis_depth=args.depth,
        scoring_movetime_ms=args.movetime,
        save_file=args.save_file,
    )

    try:
        engine = create_session(config)
    except EngineError as e:
        console.print(f"[yellow]{e}[/yellow]")
        console.print("[yellow]Continuing without an engine opponent.[/yellow]")
        engine = None

    orchestrator = MatchOrchestrator(engine, config, store=JsonFileStore(config.save_file))
    theme = args.theme or orchestrator.settings.theme
    if theme not in THEME_NAMES:
        theme = "classic"

    try:
        if engine is not None and await orchestrator.start_engine():
            console.print(f"[green]Engine ready: {engine.engine_name}[/green]")
        elif orchestrator.engine_error:
            console.print(f"[red]Engine failed to start: {orchestrator.engine_error}[/red]")

        renderer = ChessBoardRenderer(theme=theme)
        cli = SparringCLI(orchestrator, renderer)
        await cli.choose_and_start(args.color, args.difficulty)
        await cli.run()
        return 0

    except (EOFError, KeyboardInterrupt):
        console.print("\n[bold yellow]Goodbye[/bold yellow]")
        return 0
    except Exception as e:
        console.print(f"\n[bold red]Session failed: {e}[/bold red]")
        logger.exception("Session failed with exception")
        return 1
    finally:
        await orchestrator.close()


def main() -> int:
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted by user[/bold yellow]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
