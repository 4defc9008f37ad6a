"""
Match orchestration for Chess Sparring.

The orchestrator sequences everything that happens in a game against the
engine: player moves, delayed engine replies, analysis restarts, hints,
take-back, resignation, replay navigation, save/load and post-game
scoring. It runs on a single event loop; scheduled work (the delayed
engine move, the scoring loop) is held as cancellable handles and cleared
on every state-invalidating transition.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

import chess

from .engine import EngineSession, EngineStartupError
from .match import MatchState
from .models import (
    ANALYSIS_DEPTH_MAX,
    ANALYSIS_DEPTH_MIN,
    AnalysisInfo,
    AnalysisResults,
    Config,
    Evaluation,
    GamePhase,
    MoveResult,
    Settings,
    Winner,
)
from .rules import BoardRules, MoveSpec
from .storage import (
    SAVE_KEY,
    KeyValueStore,
    LoadError,
    MemoryStore,
    load_settings,
    read_record,
    save_settings,
    write_record,
)
from .timeline import Timeline

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class MatchOrchestrator:
    """
    Coordinates MatchState, Timeline and EngineSession for one player.

    The engine is optional: if it is missing or fails to start, the match
    still runs and every engine-dependent step quietly does nothing.
    """

    def __init__(
        self,
        engine: Optional[EngineSession],
        config: Optional[Config] = None,
        state: Optional[MatchState] = None,
        timeline: Optional[Timeline] = None,
        store: Optional[KeyValueStore] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            engine: Engine session (may be None to play without engine assistance)
            config: Global configuration
            state: Match state (a fresh one by default)
            timeline: Replay timeline (a fresh one by default)
            store: Key/value store for saved games and settings
        """
        self.config = config or Config()
        self.engine = engine
        self.state = state or MatchState(config=self.config)
        self.timeline = timeline or Timeline()
        self.store = store or MemoryStore()
        self.settings: Settings = load_settings(self.store)
        self.engine_error: Optional[str] = None

        # Listener hooks
        self.on_move: Optional[Callable[[MoveResult, bool], None]] = None
        self.on_evaluation: Optional[Callable[[Evaluation], None]] = None
        self.on_game_over: Optional[Callable[[Optional[Winner]], None]] = None

        self._engine_move_task: Optional[asyncio.Task] = None
        self._scoring_generation = 0
        self._analysis_fen: Optional[str] = None

        if self.engine is not None:
            self.engine.add_analysis_listener(self._handle_analysis_update)

    # ------------------------------------------------------------------
    # Engine lifecycle

    @property
    def engine_ready(self) -> bool:
        return self.engine is not None and self.engine.is_ready

    async def start_engine(self) -> bool:
        """Start the engine session; a failure is recorded once and the match carries on without it."""
        if self.engine is None:
            return False
        try:
            await self.engine.start()
        except EngineStartupError as e:
            self.engine_error = str(e)
            logger.error(f"Engine failed to initialize, continuing without engine: {e}")
            return False
        return True

    async def close(self) -> None:
        """Cancel scheduled work and shut the engine down."""
        self._cancel_engine_move()
        self.cancel_scoring()
        if self.engine is not None:
            self.engine.remove_analysis_listener(self._handle_analysis_update)
            await self.engine.close()

    # ------------------------------------------------------------------
    # Game flow

    async def start_game(self, color: chess.Color, difficulty: int) -> None:
        """Begin a match from the starting position."""
        self._invalidate_scheduled()
        if self.state.phase is not GamePhase.SETUP:
            self.state.new_game()
        self.state.start_game(color, difficulty)
        self.settings.player_color = "w" if color == chess.WHITE else "b"
        self.settings.difficulty = self.state.difficulty
        save_settings(self.store, self.settings)
        self._begin()

    async def restart(self) -> None:
        """Rematch with the last used colour and difficulty."""
        self._invalidate_scheduled()
        self.state.restart()
        self._begin()

    async def new_game(self) -> None:
        """Abandon the current game and return to setup."""
        self._invalidate_scheduled()
        if self.engine_ready:
            self.engine.stop_analysis()
        self._analysis_fen = None
        self.state.new_game()
        self.timeline.clear()

    def _begin(self) -> None:
        self.timeline.clear()
        self.timeline.set_initial(self.state.position)
        if self.engine_ready:
            self.engine.set_strength(self.state.difficulty)
        self.restart_analysis()
        if not self.state.is_player_turn:
            self._schedule_engine_move(self.config.first_move_delay)

    async def play_move(self, move_spec: MoveSpec) -> Optional[MoveResult]:
        """
        Apply the player's move.

        Returns:
            MoveResult, or None if the move is illegal or not allowed right now
            (not playing, replaying history, or not the player's turn)
        """
        if not self.state.is_playing or not self.timeline.is_live or not self.state.is_player_turn:
            return None

        result = self._accept_move(move_spec, by_engine=False)
        if result is None:
            return None

        if self.state.is_over:
            self._finish()
        elif not self.state.is_player_turn:
            # Analysis stays off until the engine has replied
            self._schedule_engine_move(self.config.engine_move_delay)
        else:
            self.restart_analysis()
        return result

    async def make_engine_move(self) -> Optional[MoveResult]:
        """
        Ask the engine for its move and play it.

        Returns:
            MoveResult, or None if the engine timed out, failed, declined, or
            the game moved on while it was thinking (the turn stays with the engine)
        """
        if not self.state.is_playing or self.state.is_player_turn or not self.engine_ready:
            return None

        self.engine.stop_analysis()
        self._analysis_fen = None
        fen = self.state.position
        move = await self.engine.request_best_move(fen, self.state.difficulty)
        if move is None:
            logger.warning("Engine produced no move; waiting for a retry")
            return None

        if not self.state.is_playing or self.state.position != fen:
            logger.debug(f"Discarding stale engine move {move.uci()}")
            return None

        # Recording the reply returns a replaying viewer to the live position
        result = self._accept_move(move, by_engine=True)
        if result is None:
            logger.warning(f"Engine suggested an illegal move: {move.uci()}")
            return None

        if self.state.is_over:
            self._finish()
        else:
            self.restart_analysis()
        return result

    def _accept_move(self, move_spec: MoveSpec, by_engine: bool) -> Optional[MoveResult]:
        start_fen = self.timeline.start_fen or self.state.position
        result = self.state.apply_move(move_spec)
        if result is None:
            return None

        self._analysis_fen = None
        self.timeline.record(result.san, result.fen, start_fen)
        self._invalidate_scoring()
        logger.debug(f"{'Engine' if by_engine else 'Player'} played {result.san}")
        if self.on_move is not None:
            self.on_move(result, by_engine)
        return result

    def _finish(self) -> None:
        self._cancel_engine_move()
        if self.engine_ready:
            self.engine.stop_analysis()
        self._analysis_fen = None
        if self.on_game_over is not None:
            self.on_game_over(self.state.winner)

    async def take_back(self) -> int:
        """
        Undo so that the player is to move again.

        One ply is undone when the engine is to move (the player just moved),
        two when the player is to move (the engine's reply and the player's move).

        Returns:
            Number of plies undone (0 if take-back is not possible)
        """
        if not self.state.is_playing or not self.timeline.is_live:
            return 0

        plies = 2 if self.state.is_player_turn else 1
        if self.timeline.ply_count < plies:
            return 0

        self._cancel_engine_move()
        if self.engine_ready:
            self.engine.stop_analysis()
        self._analysis_fen = None

        undone = 0
        for _ in range(plies):
            if not self.state.undo_last_ply():
                break
            self.timeline.undo_last()
            undone += 1

        self._invalidate_scoring()
        logger.info(f"Took back {undone} plies")
        self.restart_analysis()
        return undone

    async def resign(self) -> bool:
        """The player resigns: the game ends at once and pending engine work is cancelled."""
        if not self.state.is_playing:
            return False
        self._cancel_engine_move()
        if self.engine_ready:
            self.engine.stop_analysis()
        self._analysis_fen = None
        self.state.resign(self.state.player_color)
        self._finish()
        return True

    def _schedule_engine_move(self, delay: float) -> None:
        self._cancel_engine_move()
        self._engine_move_task = asyncio.get_running_loop().create_task(self._delayed_engine_move(delay))

    async def _delayed_engine_move(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.make_engine_move()

    def _cancel_engine_move(self) -> None:
        if self._engine_move_task is not None and not self._engine_move_task.done():
            self._engine_move_task.cancel()
        self._engine_move_task = None

    @property
    def engine_move_pending(self) -> bool:
        return self._engine_move_task is not None and not self._engine_move_task.done()

    async def wait_for_engine(self) -> None:
        """Wait for a scheduled engine move to finish (used by the terminal client and tests)."""
        task = self._engine_move_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _invalidate_scheduled(self) -> None:
        self._cancel_engine_move()
        self.cancel_scoring()

    # ------------------------------------------------------------------
    # Continuous analysis and hints

    def restart_analysis(self) -> None:
        """(Re)start streaming analysis of the current position while the game is in progress."""
        if not self.state.is_playing or not self.engine_ready:
            return
        self.state.clear_evaluation()
        self._analysis_fen = self.state.position
        self.engine.start_analysis(self._analysis_fen, self.state.analysis_depth)

    def set_analysis_depth(self, depth: int) -> int:
        """Change the live analysis depth (clamped) and restart analysis if it is running."""
        depth = max(ANALYSIS_DEPTH_MIN, min(ANALYSIS_DEPTH_MAX, int(depth)))
        self.state.analysis_depth = depth
        if self._analysis_fen is not None:
            self.restart_analysis()
        return depth

    def _handle_analysis_update(self, info: AnalysisInfo) -> None:
        if self.state.phase not in (GamePhase.PLAYING, GamePhase.OVER):
            return
        if self._analysis_fen is None or self.engine is None or info.search_id != self.engine.live_search_id:
            return
        if self.state.set_evaluation(info, self._analysis_fen) and self.on_evaluation is not None:
            self.on_evaluation(self.state.evaluation)

    def toggle_hint(self) -> Optional[chess.Move]:
        """Flip hint display; returns the move to show (None when hidden or not yet known)."""
        showing = self.state.toggle_hint()
        return self.state.best_move_hint if showing else None

    # ------------------------------------------------------------------
    # Replay navigation (each returns the FEN to display)

    def view_position(self) -> str:
        if self.timeline.is_live:
            return self.state.position
        return self.timeline.entries[self.timeline.view_index()].fen

    def step_back(self) -> str:
        self.timeline.step_back()
        return self.view_position()

    def step_forward(self) -> str:
        self.timeline.step_forward()
        return self.view_position()

    def jump_to(self, index: int) -> str:
        self.timeline.jump_to(index)
        return self.view_position()

    def jump_to_start(self) -> str:
        self.timeline.jump_to_start()
        return self.view_position()

    def jump_to_end(self) -> str:
        self.timeline.jump_to_end()
        return self.view_position()

    # ------------------------------------------------------------------
    # Post-game scoring

    async def score_game(
        self,
        movetime_ms: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[AnalysisResults]:
        """
        Score every recorded position with a fixed time budget.

        Scores are converted to White's perspective using the side to move of
        each position. A finished run is memoized on the match state and
        returned directly on later calls.

        Returns:
            AnalysisResults, or None if cancelled or no engine is available
        """
        if self.state.analysis_results is not None:
            return self.state.analysis_results
        if not self.engine_ready:
            return None

        # A new run supersedes any run still in flight
        self.cancel_scoring()
        generation = self._scoring_generation
        movetime_ms = movetime_ms or self.config.scoring_movetime_ms
        self.engine.stop_analysis()
        self._analysis_fen = None

        positions = self.timeline.positions() or [self.state.position]
        total = len(positions)
        evaluations: List[Optional[int]] = []
        logger.info(f"Scoring {total} positions at {movetime_ms}ms each")

        for index, fen in enumerate(positions):
            if generation != self._scoring_generation:
                return None
            evaluation = await self.engine.analyze_position(fen, movetime_ms)
            if generation != self._scoring_generation:
                return None

            if evaluation is None:
                logger.warning(f"No score for position {index}")
                evaluations.append(None)
            else:
                evaluations.append(evaluation.white_centipawns(BoardRules.side_to_move(fen)))
            if on_progress is not None:
                on_progress(index + 1, total)

        results = AnalysisResults(evaluations=evaluations, movetime=movetime_ms)
        self.state.analysis_results = results
        logger.info("Post-game scoring complete")
        return results

    def cancel_scoring(self) -> None:
        """Cooperatively cancel a running scoring loop; partial results are discarded."""
        self._scoring_generation += 1

    def _invalidate_scoring(self) -> None:
        self.cancel_scoring()
        self.state.analysis_results = None

    # ------------------------------------------------------------------
    # Persistence

    def save_game(self) -> bool:
        """Write the current match and its timeline to the store."""
        if self.state.phase is GamePhase.SETUP:
            logger.info("Nothing to save")
            return False
        record = self.state.serialize()
        record["timeline"] = self.timeline.to_list()
        write_record(self.store, SAVE_KEY, record)
        logger.info("Game saved")
        return True

    async def load_game(self) -> bool:
        """
        Restore the saved match. A missing or corrupt record leaves the current game untouched.

        Returns:
            True if a game was loaded
        """
        try:
            record = read_record(self.store, SAVE_KEY)
            if record is None:
                logger.info("No saved game found")
                return False

            scratch = Timeline()
            if record.get("timeline"):
                scratch.from_list(record["timeline"])
            staged = MatchState(config=self.config)
            staged.deserialize(record, scratch.start_fen, scratch.notations())
        except (LoadError, ValueError) as e:
            logger.error(f"Failed to load game: {e}")
            return False

        self._invalidate_scheduled()
        if self.engine_ready:
            self.engine.stop_analysis()
        self._analysis_fen = None

        self.state.deserialize(record, scratch.start_fen, scratch.notations())
        positions = scratch.positions()
        if positions and positions[-1] == self.state.position:
            self.timeline.from_list(record["timeline"])
        else:
            self.timeline.clear()
            self.timeline.set_initial(self.state.position)
        logger.info("Game loaded")

        if self.engine_ready:
            self.engine.set_strength(self.state.difficulty)
        if self.state.is_playing:
            self.restart_analysis()
            if not self.state.is_player_turn:
                self._schedule_engine_move(self.config.first_move_delay)
        return True

    def update_settings(self, **changes) -> Settings:
        """Change and persist user settings (theme, volume, sound_enabled, ...)."""
        for name, value in changes.items():
            if hasattr(self.settings, name):
                setattr(self.settings, name, value)
        save_settings(self.store, self.settings)
        return self.settings
