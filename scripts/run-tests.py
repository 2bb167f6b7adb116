#!/usr/bin/env python3
"""
Test runner for the BOOTH notifier.

Selects tests by marker (unit, integration, slow), re-runs failures, and
produces coverage reports for the booth_notifier package.
"""

import argparse
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List

# Marker expression and label for each selection flag
SELECTIONS = {
    "unit": ("unit", "Unit tests"),
    "integration": ("integration", "Integration tests"),
    "fast": ("not slow", "Fast tests"),
    "slow": ("slow", "Slow tests"),
}

ARTIFACTS = [".pytest_cache", ".coverage", "htmlcov", "coverage.xml"]


class TestRunner:
    """Runs pytest with the configurations used during development."""

    def __init__(self, project_root: Path):
        self.project_root = project_root

    def run_command(self, command: List[str], description: str) -> bool:
        """Run a command and return success status."""
        print(f"\n🧪 {description}...")
        print(f"Running: {' '.join(command)}")

        try:
            result = subprocess.run(command, cwd=self.project_root, check=False)
        except FileNotFoundError:
            print(f"❌ {description} failed - pytest not found")
            return False

        if result.returncode == 0:
            print(f"✅ {description} completed successfully")
            return True

        print(f"❌ {description} failed with exit code {result.returncode}")
        return False

    def run_selection(self, name: str, verbose: bool = False) -> bool:
        """Run the tests matching one of the marker selections."""
        expression, description = SELECTIONS[name]
        cmd = ["pytest", "-m", expression]
        if verbose:
            cmd.append("-v")
        return self.run_command(cmd, description)

    def run_tests(
        self, target: str = None, last_failed: bool = False, verbose: bool = False
    ) -> bool:
        """Run the whole suite, one test path, or the last failures."""
        cmd = ["pytest"]
        description = "All tests"

        if target:
            cmd.append(target)
            description = f"Specific test: {target}"
        elif last_failed:
            cmd.append("--lf")
            description = "Failed tests from last run"

        if verbose:
            cmd.append("-v")
        return self.run_command(cmd, description)

    def run_coverage(self, min_coverage: int = 85) -> bool:
        """Run the suite with coverage, writing terminal, HTML and XML reports."""
        cmd = [
            "pytest",
            "--cov=booth_notifier",
            f"--cov-fail-under={min_coverage}",
            "--cov-report=term-missing",
            "--cov-report=html:htmlcov",
            "--cov-report=xml:coverage.xml",
        ]
        success = self.run_command(cmd, f"Coverage tests (min {min_coverage}%)")

        if success:
            print(f"\n📋 HTML coverage: {self.project_root}/htmlcov/index.html")
        return success

    def clean_test_artifacts(self) -> None:
        """Remove coverage output and pytest caches."""
        print("\n🧹 Cleaning test artifacts...")

        for artifact in ARTIFACTS:
            path = self.project_root / artifact
            if path.is_dir():
                shutil.rmtree(path)
                print(f"  Removed directory: {artifact}")
            elif path.exists():
                path.unlink()
                print(f"  Removed file: {artifact}")

        for pycache in self.project_root.rglob("__pycache__"):
            shutil.rmtree(pycache, ignore_errors=True)

        print("✅ Test artifacts cleaned")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the BOOTH notifier tests")

    selection = parser.add_mutually_exclusive_group()
    for name, (_, description) in SELECTIONS.items():
        selection.add_argument(
            f"--{name}", action="store_true", help=f"Run {description.lower()} only"
        )
    selection.add_argument(
        "--failed", action="store_true", help="Re-run failed tests from last run"
    )
    selection.add_argument(
        "--coverage", action="store_true", help="Run with coverage reporting"
    )
    selection.add_argument("--test", type=str, help="Run specific test file or function")
    selection.add_argument("--clean", action="store_true", help="Clean test artifacts")

    parser.add_argument(
        "--min-coverage", type=int, default=85, help="Minimum coverage percentage"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path(__file__).resolve().parent.parent,
        help="Project root directory",
    )

    args = parser.parse_args()
    runner = TestRunner(args.project_root)

    if args.clean:
        runner.clean_test_artifacts()
        return

    chosen = next((name for name in SELECTIONS if getattr(args, name)), None)
    if chosen:
        success = runner.run_selection(chosen, args.verbose)
    elif args.coverage:
        success = runner.run_coverage(args.min_coverage)
    else:
        success = runner.run_tests(args.test, args.failed, args.verbose)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
