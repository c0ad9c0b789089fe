#!/usr/bin/env python3
"""
Test Runner for Agent Memory System
Copyright 2025 Jurden Bruce

Runs the pytest suite against an in-process fake Redis; no server needed.

Usage:
    python run_tests.py
    python run_tests.py -k graph -v
"""

import sys
import subprocess
from pathlib import Path

def main():
    """Run the test suite"""
    test_dir = Path(__file__).parent / "tests"

    if not test_dir.is_dir():
        print(f"Error: Test directory not found: {test_dir}")
        sys.exit(1)

    # Pass through any arguments (like -v or -k)
    cmd = [sys.executable, "-m", "pytest", str(test_dir)] + sys.argv[1:]

    print(f"Running: {' '.join(cmd)}\n")
    result = subprocess.run(cmd)

    sys.exit(result.returncode)

if __name__ == "__main__":
    main()
