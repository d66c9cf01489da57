"""Command-line runner."""

from __future__ import annotations

import sys

from loopmaker.config import Settings
from loopmaker.yaml_config import JobConfig, apply_config_to_settings


def run_cli(
    files: list[str],
    output_path: str | None = None,
    technique: str | None = None,
    fade_duration: float | None = None,
    start_second: float | None = None,
    quiet: bool = False,
    parallel: bool = False,
    config: JobConfig | None = None,
    settings: Settings | None = None,
) -> int:
    """Create a loop for every input file.

    Values passed here win over the YAML job config, which wins over the
    stored settings.

    Returns 0 when every file produced a loop, 1 otherwise.
    """
    if not files:
        print("Error: no input files specified", file=sys.stderr)
        return 1
    if output_path and len(files) > 1:
        print("Error: --output can only be used with a single input file", file=sys.stderr)
        return 1

    from loopmaker.engine import LoopSynthesisEngine
    from loopmaker.errors import LoopMakerError
    from loopmaker.model.request import LoopRequest

    settings = settings or Settings.load()
    if config is not None:
        settings = apply_config_to_settings(config, settings)
    if parallel:
        settings.parallel_extraction = True

    try:
        request = LoopRequest(
            technique=technique if technique is not None else settings.default_technique,
            fade_duration=fade_duration if fade_duration is not None else settings.default_fade_duration,
            start_second=start_second if start_second is not None else settings.default_start_second,
        )
    except LoopMakerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    engine = LoopSynthesisEngine(settings)

    def on_progress(p: float) -> None:
        if not quiet:
            print(f"  Progress: {p:.0%}", end="\r")

    failures = 0
    for path in files:
        if not quiet:
            print(f"Processing {path} ({request.technique.value})...")
        try:
            output = engine.synthesize(
                path,
                request,
                output_path=output_path,
                progress_callback=on_progress,
            )
        except LoopMakerError as e:
            print(f"\nError: {path}: {e}", file=sys.stderr)
            failures += 1
            continue
        if not quiet:
            print(f"\nDone! Loop saved to: {output}")

    return 1 if failures else 0
