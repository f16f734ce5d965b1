"""
Gamebook CLI - Command-line interface for the engine.

Usage:
    gamebook validate [--content-path DIR]          Validate content and graph
    gamebook run <script>                           Run one playthrough script
    gamebook run-all <directory>                    Run every script in a directory
    gamebook coverage <directory>                   Scene coverage over a script directory
    gamebook serve [--host H] [--port P]            Serve the REST API

Exit codes:
    0  everything passed
    1  validation errors or failing playthroughs
    2  configuration error (unreadable content or script)
"""

from pathlib import Path
import argparse
import json
import logging
import sys
import time

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

logger = logging.getLogger("gamebook")


def setup_logging(verbose: bool = False, log_file: str | None = None):
    """
    Attach handlers to the package logger.

    Console gets warnings (everything with --verbose); the optional log file
    always gets DEBUG. Safe to call multiple times.
    """
    if logger.handlers:
        return
    logger.setLevel(logging.DEBUG)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-7s | %(message)s",
                                          datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gamebook - Deterministic narrative engine",
        prog="gamebook",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--log-file", help="Append DEBUG logs to this file")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def content_option(sub):
        sub.add_argument("--content-path", default="./content", help="Content directory (default: ./content)")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate content and scene graph")
    content_option(validate_parser)
    validate_parser.add_argument("--strict", action="store_true", help="Treat warnings as failures")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a single playthrough script")
    run_parser.add_argument("script", help="Path to playthrough script (JSON)")
    content_option(run_parser)
    run_parser.add_argument("--snapshot-dir", help="Write state snapshots here")
    run_parser.add_argument("--output", "-o", help="Write the result summary (JSON)")
    run_parser.add_argument("--ci", action="store_true", help="Non-interactive: summary only, exit 1 on failures")

    # Run-all command
    run_all_parser = subparsers.add_parser("run-all", help="Run every playthrough script in a directory")
    run_all_parser.add_argument("directory", help="Directory of playthrough scripts")
    content_option(run_all_parser)
    run_all_parser.add_argument("--snapshot-dir", help="Write state snapshots here")
    run_all_parser.add_argument("--output", "-o", help="Write the result summary (JSON)")
    run_all_parser.add_argument("--ci", action="store_true", help="Non-interactive: summary only, exit 1 on failures")

    # Coverage command
    coverage_parser = subparsers.add_parser("coverage", help="Scene coverage over a script directory")
    coverage_parser.add_argument("directory", help="Directory of playthrough scripts")
    content_option(coverage_parser)
    coverage_parser.add_argument("--output", "-o", help="Write the coverage report (JSON)")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Serve the REST API")
    content_option(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")
    serve_parser.add_argument("--save-dir", help="Autosave directory (one folder per session)")
    serve_parser.add_argument("--no-autosave", action="store_true", help="Disable autosave")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    commands = {
        "validate": cmd_validate,
        "run": cmd_run,
        "run-all": cmd_run_all,
        "coverage": cmd_coverage,
        "serve": cmd_serve,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return EXIT_CONFIG
    return command(args)


# =============================================================================
# Commands
# =============================================================================

def cmd_validate(args) -> int:
    """Validate every scene plus the reachability graph."""
    from .content_schema import SceneLoader, ContentError

    loader = SceneLoader.from_path(args.content_path)
    try:
        manifest = loader.initialize()
    except ContentError as e:
        print(f"Error: {e}")
        return EXIT_CONFIG

    result = loader.validate_all()
    print(f"Content: {manifest.title} (version {manifest.content_version})")
    print(f"Scenes: {len(manifest.scene_index)}")

    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")

    if result.errors or (args.strict and result.warnings):
        print("\nValidation FAILED")
        return EXIT_FAILED
    print("\nValidation passed")
    return EXIT_OK


def cmd_run(args) -> int:
    """Run one playthrough script."""
    from .playthrough import HeadlessRunner, PlaythroughSummary

    script = _load_script(args.script)
    if script is None:
        return EXIT_CONFIG
    if not _content_ready(args.content_path):
        return EXIT_CONFIG

    runner = HeadlessRunner(content_path=args.content_path, snapshot_dir=args.snapshot_dir)
    result = runner.run(script)
    if not args.ci:
        _print_result(result, verbose=args.verbose)

    summary = PlaythroughSummary.from_results([result], duration_ms=result.duration_ms)
    _print_summary(summary)
    if args.output:
        _write_json(args.output, summary.model_dump_json(by_alias=True, indent=2))
    return EXIT_OK if result.passed else EXIT_FAILED


def cmd_run_all(args) -> int:
    """Run every *.json script in a directory, in name order."""
    from .playthrough import PlaythroughSummary

    if not _content_ready(args.content_path):
        return EXIT_CONFIG
    results, duration_ms = _run_directory(args.directory, args.content_path, args.snapshot_dir)
    if results is None:
        return EXIT_CONFIG

    if not args.ci:
        for result in results:
            _print_result(result, verbose=args.verbose)

    summary = PlaythroughSummary.from_results(results, duration_ms=duration_ms)
    _print_summary(summary)
    if args.output:
        _write_json(args.output, summary.model_dump_json(by_alias=True, indent=2))
    return EXIT_OK if summary.failed == 0 else EXIT_FAILED


def cmd_coverage(args) -> int:
    """Report which indexed scenes the scripts in a directory visit."""
    from .content_schema import SceneLoader, ContentError
    from .playthrough import scene_coverage

    loader = SceneLoader.from_path(args.content_path)
    try:
        loader.initialize()
    except ContentError as e:
        print(f"Error: {e}")
        return EXIT_CONFIG

    results, _ = _run_directory(args.directory, args.content_path, None)
    if results is None:
        return EXIT_CONFIG

    report = scene_coverage(results, loader.all_scene_ids())
    print(f"Scene coverage: {report.covered_scenes}/{report.total_scenes} ({report.coverage_percent}%)")
    if report.uncovered_scenes:
        print("\nUncovered scenes:")
        for scene_id in report.uncovered_scenes:
            print(f"  - {scene_id}")

    if args.output:
        _write_json(args.output, report.model_dump_json(by_alias=True, indent=2))
    return EXIT_OK


def cmd_serve(args) -> int:
    """Serve the REST API with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install fastapi uvicorn")
        return EXIT_CONFIG

    from .api import APIService, create_app
    from .session import SessionManager

    manager = SessionManager(
        content_path=args.content_path,
        save_dir=args.save_dir,
        disable_autosave=args.no_autosave,
    )
    app = create_app(APIService(session_manager=manager))
    uvicorn.run(app, host=args.host, port=args.port)
    return EXIT_OK


# =============================================================================
# Helpers
# =============================================================================

def _content_ready(content_path: str) -> bool:
    from .content_schema import SceneLoader, ContentError

    try:
        SceneLoader.from_path(content_path).initialize()
    except ContentError as e:
        print(f"Error: Failed to load content: {e}")
        return False
    return True


def _load_script(path):
    from pydantic import ValidationError
    from .playthrough import load_script

    try:
        return load_script(path)
    except FileNotFoundError:
        print(f"Error: File not found: {path}")
    except (OSError, ValueError, ValidationError) as e:
        print(f"Error: Invalid playthrough script {path}: {e}")
    return None


def _run_directory(directory: str, content_path: str, snapshot_dir: str | None):
    """Run every script under `directory`. Returns (None, 0) on a bad directory or script."""
    from .playthrough import HeadlessRunner

    folder = Path(directory)
    if not folder.is_dir():
        print(f"Error: Not a directory: {directory}")
        return None, 0
    paths = sorted(folder.glob("*.json"))
    if not paths:
        print(f"Error: No playthrough scripts in {directory}")
        return None, 0

    scripts = []
    for path in paths:
        script = _load_script(path)
        if script is None:
            return None, 0
        scripts.append(script)

    runner = HeadlessRunner(content_path=content_path, snapshot_dir=snapshot_dir)
    started = time.monotonic()
    results = [runner.run(script) for script in scripts]
    return results, int((time.monotonic() - started) * 1000)


def _print_result(result, verbose: bool = False):
    print(f"[{result.status.value.upper()}] {result.playthrough} ({result.steps} steps, {result.duration_ms}ms)")
    if result.failure:
        failure = result.failure
        print(f"  step {failure.step}: {failure.reason}")
        if failure.expected is not None or failure.actual is not None:
            print(f"    expected: {failure.expected}")
            print(f"    actual:   {failure.actual}")
    if result.softlock and result.softlock.softlocked:
        softlock = result.softlock
        print(f"  softlock: {softlock.reason.value} at {softlock.scene_id} (step {softlock.step})")
    if verbose and result.visited_scenes:
        print(f"  visited: {', '.join(result.visited_scenes)}")
    for name in result.snapshots:
        print(f"  snapshot: {name}")


def _print_summary(summary):
    print(f"\n{summary.passed}/{summary.total} playthroughs passed ({summary.duration_ms}ms)")


def _write_json(path: str, text: str):
    Path(path).write_text(text, encoding="utf-8")
    print(f"Wrote {path}")


if __name__ == "__main__":
    sys.exit(main())
