#!/usr/bin/env python3
"""Run the crop test suite headless.

Sets QT_QPA_PLATFORM=offscreen and pins the texture ceiling so the
sample-size planning is the same on every machine.

Usage:
  python scripts/run_tests_offscreen.py [--timeout SECONDS] [--texture-size N] [--] [pytest args...]

Examples:
  python scripts/run_tests_offscreen.py tests/test_crop_controller.py::test_square_crop_of_large_jpeg
  python scripts/run_tests_offscreen.py -- -k highlight -q
"""

from __future__ import annotations

import argparse
import os
import shlex
import subprocess
import sys


def main() -> int:
    p = argparse.ArgumentParser(description="Run pytest offscreen with a fixed texture ceiling")
    p.add_argument("--timeout", type=int, default=600, help="Maximum seconds to allow the whole pytest run")
    p.add_argument("--texture-size", type=int, default=2048, help="Value for IMAGE_CROPPER_MAX_TEXTURE_SIZE")
    p.add_argument("--verbose", action="store_true", help="Don't use -q (quiet)")
    p.add_argument("pytest_args", nargs=argparse.REMAINDER, help="Additional pytest args")
    args = p.parse_args()

    env = os.environ.copy()
    env.setdefault("QT_QPA_PLATFORM", "offscreen")
    env.setdefault("IMAGE_CROPPER_MAX_TEXTURE_SIZE", str(args.texture_size))

    cmd = [sys.executable, "-m", "pytest"]
    if not args.verbose:
        cmd += ["-q", "-x", "--maxfail=1"]
    # per-test limit; pyproject sets the default
    cmd.append(f"--timeout={min(120, args.timeout)}")
    cmd += [a for a in args.pytest_args if a != "--"]

    print("Running:", " ".join(shlex.quote(c) for c in cmd))
    try:
        completed = subprocess.run(cmd, env=env, check=False, timeout=args.timeout)
    except subprocess.TimeoutExpired:
        print(f"pytest run timed out after {args.timeout} seconds", file=sys.stderr)
        return 124
    return completed.returncode


if __name__ == "__main__":
    raise SystemExit(main())
