#!/usr/bin/env python3
"""
Chess Sparring - Main Entry Point

Play practice games against a local Stockfish engine in the terminal, with
live evaluation, hints, take-back, replay navigation, save/load and
post-game scoring.

Quick Examples:
    # Play White at the default difficulty
    python main.py

    # Play Black at difficulty 8 with a deeper live analysis
    python main.py --color black --difficulty 8 --depth 20

    # Log engine protocol traffic to a file
    python main.py --verbose --log-file sparring.log

Requirements:
    - Python 3.9+
    - Stockfish chess engine installed and in PATH (or STOCKFISH_PATH set)

Installation:
    pip install -e .
    # Or install Stockfish:
    # macOS:    brew install stockfish
    # Ubuntu:   sudo apt-get install stockfish
    # Windows:  choco install stockfish
"""

import sys
from pathlib import Path

# Add the project root to the Python path so we can import our package
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

try:
    from chess_sparring.cli import main
except ImportError as e:
    print(f"Error importing chess_sparring package: {e}", file=sys.stderr)
    print("\nInstall the package in development mode:", file=sys.stderr)
    print("  pip install -e .", file=sys.stderr)
    sys.exit(1)

if __name__ == "__main__":
    sys.exit(main())
