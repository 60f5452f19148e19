from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from life_game.config import load_settings
from life_game.jobs_runner import run_job
from life_game.logging_setup import setup_logging


def main() -> None:
    if len(sys.argv) != 2:
        raise SystemExit("Usage: python jobs.py <daily_reset|export|backup>")

    settings = load_settings()
    setup_logging(settings.log_level)
    run_job(sys.argv[1], settings)


if __name__ == "__main__":
    main()
