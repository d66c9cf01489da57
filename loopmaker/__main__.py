"""Entry point for loopmaker - handles CLI arg parsing."""

import argparse
import logging
import sys

from loopmaker import __version__


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="loopmaker",
        description="Create seamlessly looping videos",
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Video files to loop",
    )
    parser.add_argument(
        "--technique", "-t",
        type=str,
        default=None,
        help="Looping technique: reverse (default) or crossfade",
    )
    parser.add_argument(
        "--fade", "-f",
        type=float,
        default=None,
        help="Crossfade duration in seconds (default: 0.5)",
    )
    parser.add_argument(
        "--start", "-s",
        type=float,
        default=None,
        help="Second the crossfade loop starts at (default: 0)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path (default: <input>_loop.mp4)",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to a YAML job configuration file",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Run independent extractions concurrently",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every ffmpeg step",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print errors",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from loopmaker.app import run_cli

    config = None
    if args.config:
        from loopmaker.yaml_config import load_job_config

        try:
            config = load_job_config(args.config)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    # Precedence: CLI positional args > YAML inputs
    files = args.files if args.files else (config.inputs if config else [])

    # Precedence: CLI --output > YAML output
    output = args.output or (config.output_path if config else None)

    return run_cli(
        files,
        output_path=output,
        technique=args.technique,
        fade_duration=args.fade,
        start_second=args.start,
        quiet=args.quiet,
        parallel=args.parallel,
        config=config,
    )


if __name__ == "__main__":
    sys.exit(main())
