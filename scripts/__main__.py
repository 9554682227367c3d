"""Run a maintenance script: `python -m scripts [seed|sweep]` (default: seed)."""

import asyncio
import sys

from scripts.seed import _run_seed
from scripts.sweep_previews import _run_sweep

_COMMANDS = {"seed": _run_seed, "sweep": _run_sweep}

command = sys.argv[1] if len(sys.argv) > 1 else "seed"
if command not in _COMMANDS:
    sys.exit(f"Unknown command {command!r}; expected one of: {', '.join(_COMMANDS)}")
asyncio.run(_COMMANDS[command]())
