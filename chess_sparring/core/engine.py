"""
Engine session management for Chess Sparring.

This module wraps a python-chess UCI protocol in a disciplined asynchronous
API: handshake, strength configuration, single best-move requests with
timeouts, debounced continuous analysis streaming and one-shot fixed-time
scoring. Only one search is ever live at a time; every search carries a
session-owned token and results of superseded searches are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

import chess
import chess.engine as chess_engine

from .models import (
    AnalysisInfo,
    Config,
    DifficultyConfig,
    EngineState,
    Evaluation,
    get_difficulty_config,
)

logger = logging.getLogger(__name__)

# Seconds to wait for the engine to exit after "quit"
QUIT_TIMEOUT = 2.0

Connector = Callable[[], Awaitable[Tuple[asyncio.SubprocessTransport, chess_engine.UciProtocol]]]
AnalysisListener = Callable[[AnalysisInfo], None]


class EngineError(Exception):
    """Custom exception for engine-related errors."""
    pass


class EngineStartupError(EngineError):
    """The engine process failed or never acknowledged the handshake."""
    pass


def uci_connector(engine_path: str) -> Connector:
    """Connector that spawns the engine binary and completes the UCI handshake."""
    async def connect():
        return await chess_engine.popen_uci(engine_path)
    return connect


@dataclass
class _Search:
    """One search issued to the engine: a best move, a score, or streaming analysis."""

    token: int
    kind: str  # "move", "score" or "analysis"
    future: Optional[asyncio.Future] = None
    handle: Optional[chess_engine.AnalysisResult] = None
    active: bool = True
    last_info: Optional[AnalysisInfo] = None

    def stop(self) -> None:
        self.active = False
        if self.handle is not None:
            self.handle.stop()

    def resolve(self, result: Any) -> None:
        if self.future is not None and not self.future.done():
            self.future.set_result(result)


class EngineSession:
    """
    Manages one external engine process behind typed async operations.

    At most one best-move or scoring request is outstanding; a new request
    (or an analysis start) supersedes it, resolving the old caller with None.
    Protocol commands are serialized: a search is only issued once the
    previous one has delivered its best move and a readiness check has been
    acknowledged, so a best move flushed by an earlier stop can never be
    attributed to the new search. Searches are stopped, never cancelled.
    """

    def __init__(self, connect: Connector, config: Optional[Config] = None):
        """
        Initialize the engine session.

        Args:
            connect: Coroutine factory returning a (transport, UciProtocol) pair
                with the handshake completed, e.g. uci_connector(path)
            config: Global configuration (timeouts, debounce, strength scale)
        """
        self._connect = connect
        self.config = config or Config()
        self.on_analysis_update: Optional[AnalysisListener] = None
        self._listeners: List[AnalysisListener] = []

        self._state = EngineState.UNSTARTED
        self._engine_name = "Unknown"
        self._strength: Optional[DifficultyConfig] = None
        self._pending_options: Optional[Dict[str, int]] = None

        self._transport: Optional[asyncio.SubprocessTransport] = None
        self._protocol: Optional[chess_engine.UciProtocol] = None
        self._lock: Optional[asyncio.Lock] = None
        self._token = 0
        self._search: Optional[_Search] = None
        self._live_analysis_id: Optional[int] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._search_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """
        Spawn the engine and complete the capability handshake and readiness check.

        Raises:
            EngineStartupError: If the process fails or stops before acknowledging
        """
        if self._state in (EngineState.CLOSED, EngineState.FAILED):
            raise EngineStartupError("Engine session is closed")
        if self._state is not EngineState.UNSTARTED:
            return

        self._state = EngineState.HANDSHAKING
        self._lock = asyncio.Lock()
        try:
            self._transport, self._protocol = await self._connect()
            await self._protocol.ping()
            if self._state is EngineState.CLOSED:
                raise EngineStartupError("Engine session closed during handshake")
        except EngineStartupError:
            self._abort_startup()
            raise
        except asyncio.CancelledError:
            self._abort_startup()
            raise
        except Exception as e:
            self._abort_startup()
            raise EngineStartupError(f"Failed to start engine: {e}") from e

        self._engine_name = self._protocol.id.get("name", "Unknown")
        self._protocol.returncode.add_done_callback(self._handle_process_exit)
        self._state = EngineState.READY
        logger.info(f"Engine ready: {self._engine_name}")

    async def close(self) -> None:
        """Send quit and release the process. Safe to call more than once."""
        if self._state is EngineState.CLOSED:
            return

        was_running = self.is_ready
        self._state = EngineState.CLOSED
        self._cancel_debounce()
        self._live_analysis_id = None
        self._stop_search()

        if was_running and self._protocol is not None:
            try:
                await asyncio.wait_for(self._protocol.quit(), timeout=QUIT_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Engine did not exit after quit, killing it")
            except chess_engine.EngineError as e:
                logger.warning(f"Error stopping engine: {e}")
        self._release_transport()

        if self._search_tasks:
            await asyncio.wait(set(self._search_tasks), timeout=QUIT_TIMEOUT)
        logger.info("Engine session closed")

    def _abort_startup(self) -> None:
        self._state = EngineState.CLOSED
        self._release_transport()

    def _release_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                logger.debug(f"Error releasing engine process: {e}")

    def _handle_process_exit(self, returncode: asyncio.Future) -> None:
        if returncode.cancelled() or self._state in (EngineState.CLOSED, EngineState.FAILED):
            return

        logger.warning(f"Engine process exited with code {returncode.result()}, continuing without it")
        self._state = EngineState.FAILED
        self._cancel_debounce()
        self._live_analysis_id = None
        self._stop_search()

    # ------------------------------------------------------------------
    # Public operations

    def set_strength(self, level: int) -> None:
        """
        Map a 1-10 difficulty onto the engine's skill option. Ignored unless ready.

        The option is sent ahead of the next search.
        """
        if not self.is_ready:
            logger.debug("Strength change ignored: engine not ready")
            return
        self._strength = get_difficulty_config(level, self.config.native_skill_max, self.config.depth_cap)
        self._pending_options = {"Skill Level": self._strength.skill_level}
        logger.debug(f"Engine strength set: level {level} -> skill {self._strength.skill_level}, "
                     f"depth {self._strength.depth}")

    async def request_best_move(self, fen: str, level: int) -> Optional[chess.Move]:
        """
        Ask the engine for its move in a position.

        Args:
            fen: Position to search
            level: Difficulty (1-10) that bounds the search depth

        Returns:
            The engine's move, or None on timeout, failure, supersession or
            when the engine declines to move
        """
        if not self.is_ready:
            logger.debug("Best-move request ignored: engine not ready")
            return None
        depth = get_difficulty_config(level, self.config.native_skill_max, self.config.depth_cap).depth
        return await self._request("move", fen, chess_engine.Limit(depth=depth), self.config.move_timeout)

    async def analyze_position(self, fen: str, milliseconds: int) -> Optional[Evaluation]:
        """
        Run a fixed-time search and return the last evaluation reported before its best move.

        Returns:
            Evaluation relative to the side to move, or None on timeout/failure
        """
        if not self.is_ready:
            return None
        timeout = milliseconds / 1000.0 + self.config.scoring_timeout_grace
        return await self._request("score", fen, chess_engine.Limit(time=milliseconds / 1000.0), timeout)

    def start_analysis(self, fen: str, max_depth: int = 18) -> None:
        """
        Begin continuous analysis of a position.

        The previous search is stopped at once; the new search is debounced
        so only the last call within the debounce window runs.
        """
        if not self.is_ready:
            return
        token = self._supersede()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounced_analysis(token, fen, max_depth)
        )

    def stop_analysis(self) -> None:
        """Stop continuous analysis. Updates may still arrive for it; callers filter them."""
        if not self.is_ready:
            return
        self._cancel_debounce()
        self._live_analysis_id = None
        if self._search is not None and self._search.kind == "analysis":
            self._stop_search()

    def add_analysis_listener(self, listener: AnalysisListener) -> None:
        """Register an additional subscriber for streamed analysis updates."""
        self._listeners.append(listener)

    def remove_analysis_listener(self, listener: AnalysisListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Search plumbing

    async def _request(self, kind: str, fen: str, limit: chess_engine.Limit, timeout: float) -> Any:
        search = _Search(token=self._supersede(), kind=kind,
                         future=asyncio.get_running_loop().create_future())
        self._spawn(search, fen, limit)
        try:
            return await asyncio.wait_for(search.future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Engine {kind} request timed out after {timeout:.1f}s")
            self._abandon(search)
            return None
        except asyncio.CancelledError:
            self._abandon(search)
            raise

    async def _debounced_analysis(self, token: int, fen: str, max_depth: int) -> None:
        await asyncio.sleep(self.config.analysis_debounce)
        if token != self._token or not self.is_ready:
            return
        self._debounce_task = None
        self._live_analysis_id = token
        self._spawn(_Search(token=token, kind="analysis"), fen, chess_engine.Limit(depth=max_depth))

    def _spawn(self, search: _Search, fen: str, limit: chess_engine.Limit) -> None:
        self._search = search
        task = asyncio.get_running_loop().create_task(self._run_search(search, fen, limit))
        self._search_tasks.add(task)
        task.add_done_callback(self._search_tasks.discard)

    async def _run_search(self, search: _Search, fen: str, limit: chess_engine.Limit) -> None:
        try:
            async with self._lock:
                if not search.active or not self.is_ready:
                    return
                await self._apply_pending_options()
                await self._protocol.ping()
                if not search.active or not self.is_ready:
                    return

                self._state = EngineState.BUSY
                search.handle = await self._protocol.analysis(chess.Board(fen), limit)
                if not search.active:
                    search.handle.stop()
                async for info in search.handle:
                    self._on_info(search, info)
                best = await search.handle.wait()

                if search.kind == "move":
                    # A null move ("0000") means the engine declines too
                    search.resolve(best.move or None)
                elif search.kind == "score":
                    search.resolve(search.last_info.to_evaluation() if search.last_info else None)
        except (chess_engine.EngineError, ValueError) as e:
            logger.warning(f"Engine {search.kind} search failed: {e}")
        finally:
            search.resolve(None)
            if self._search is search:
                self._search = None
            if self._state is EngineState.BUSY:
                self._state = EngineState.READY

    async def _apply_pending_options(self) -> None:
        options, self._pending_options = self._pending_options, None
        if not options:
            return
        try:
            await self._protocol.configure(options)
        except chess_engine.EngineError as e:
            logger.warning(f"Engine rejected options {options}: {e}")

    def _on_info(self, search: _Search, info: chess_engine.InfoDict) -> None:
        update = AnalysisInfo.from_engine(info, search.token)
        if update is None:
            return
        search.last_info = update

        listeners = list(self._listeners)
        if self.on_analysis_update is not None:
            listeners.insert(0, self.on_analysis_update)
        for listener in listeners:
            try:
                listener(update)
            except Exception as e:
                logger.warning(f"Analysis listener failed: {e}")

    def _supersede(self) -> int:
        """Stop whatever is running, invalidate the outstanding request and return a fresh token."""
        self._cancel_debounce()
        self._stop_search()
        self._live_analysis_id = None
        self._token += 1
        return self._token

    def _stop_search(self) -> None:
        search, self._search = self._search, None
        if search is not None:
            search.stop()
            search.resolve(None)

    def _abandon(self, search: _Search) -> None:
        """Stop a timed-out or cancelled request; its late result is discarded."""
        search.stop()
        if self._search is search:
            self._search = None

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    # ------------------------------------------------------------------
    # Properties

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        """True once the handshake completed and until the session closes or the engine dies."""
        return self._state in (EngineState.READY, EngineState.BUSY)

    @property
    def live_search_id(self) -> Optional[int]:
        """Token of the analysis currently streaming, or None when analysis is stopped."""
        return self._live_analysis_id

    @property
    def engine_name(self) -> str:
        return self._engine_name

    @property
    def strength(self) -> Optional[DifficultyConfig]:
        return self._strength

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit with cleanup."""
        await self.close()


def autodetect_stockfish(cli_path: Optional[str] = None) -> Optional[str]:
    """
    Auto-detect Stockfish installation path.

    Search order:
    1. Explicit CLI path argument
    2. STOCKFISH_PATH environment variable
    3. System PATH lookup
    4. Common installation directories

    Returns:
        Path to Stockfish executable if found, None otherwise
    """
    if cli_path and Path(cli_path).exists():
        return cli_path

    env_path = os.getenv("STOCKFISH_PATH")
    if env_path and Path(env_path).exists():
        return env_path

    which_path = shutil.which("stockfish")
    if which_path:
        return which_path

    common_paths = [
        "/usr/local/bin/stockfish",
        "/usr/bin/stockfish",
        "/usr/games/stockfish",
        "/opt/homebrew/bin/stockfish",
        "C:/Program Files/Stockfish/stockfish.exe",
    ]
    for path in common_paths:
        if Path(path).exists():
            return path

    return None


def get_friendly_stockfish_hint() -> str:
    """User-facing instructions for installing Stockfish."""
    return (
        "Stockfish not found. Install it and try again:\n"
        "• macOS:    brew install stockfish\n"
        "• Ubuntu:   sudo apt-get install stockfish\n"
        "• Windows:  choco install stockfish\n"
        "\nOr set environment variable: export STOCKFISH_PATH=/path/to/stockfish"
    )


def create_session(config: Config, engine_path: Optional[str] = None) -> EngineSession:
    """
    Build an engine session for the configured (or auto-detected) engine binary.

    Raises:
        EngineError: If no engine executable can be found
    """
    path = engine_path or autodetect_stockfish(config.stockfish_path)
    if not path:
        raise EngineError(get_friendly_stockfish_hint())
    return EngineSession(uci_connector(path), config)
