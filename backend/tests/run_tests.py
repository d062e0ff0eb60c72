#!/usr/bin/env python3
"""
Page proxy test runner

Usage:
    python backend/tests/run_tests.py              # run all tests
    python backend/tests/run_tests.py -k populate  # only tests matching "populate"
    python backend/tests/run_tests.py --report     # HTML report (needs pytest-html)

Quick start:
    pip install -e ".[test]"
    python backend/tests/run_tests.py
"""

import os
import subprocess
import sys
from pathlib import Path

# Run from the repository root so pyproject.toml settings apply
repo_root = Path(__file__).parent.parent.parent
os.chdir(repo_root)


def main():
    cmd = [sys.executable, "-m", "pytest", "backend/tests/"]
    args = sys.argv[1:]

    if not any(arg.startswith("-v") for arg in args):
        cmd.append("-v")

    if "--report" in args:
        args.remove("--report")
        cmd.extend(["--html=backend/tests/report.html", "--self-contained-html"])

    cmd.extend(args)

    print(f"\n{'='*60}")
    print("Page proxy tests")
    print(f"{'='*60}")
    print(f"Command: {' '.join(cmd)}")
    print(f"{'='*60}\n")

    result = subprocess.run(cmd)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
