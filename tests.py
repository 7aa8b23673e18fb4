"""
Run the crvena test suite.

Usage (from project root):

    python tests.py            # engine, bots, env, tournament, CLI
    python tests.py --rl       # also install numpy/torch so the PPO tests run
    python tests.py -k agents  # anything else is passed through to pytest
"""
from __future__ import annotations

import importlib.util
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent


def _missing(*modules: str) -> list[str]:
    return [m for m in modules if importlib.util.find_spec(m) is None]


def install_extras(with_rl: bool) -> None:
    """Editable install with the dev extra (plus rl when asked) if anything is missing."""
    wanted = ["pytest"] + (["numpy", "torch"] if with_rl else [])
    if not _missing(*wanted) and importlib.util.find_spec("crvena") is not None:
        return
    extras = "dev,rl" if with_rl else "dev"
    print(f"Installing .[{extras}] ...", flush=True)
    subprocess.check_call([sys.executable, "-m", "pip", "install", "-e", f".[{extras}]"], cwd=str(ROOT))


def main(argv: list[str]) -> int:
    with_rl = "--rl" in argv
    pytest_args = [a for a in argv if a != "--rl"]
    install_extras(with_rl)
    if not with_rl and _missing("torch"):
        print("torch not installed: PPO/checkpoint tests will pass trivially", flush=True)
    return subprocess.call([sys.executable, "-m", "pytest", *pytest_args], cwd=str(ROOT))


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
