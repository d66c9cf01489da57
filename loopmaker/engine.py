"""Loop synthesis engine: probes, plans, transcodes and assembles one loop."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
import shutil
import threading

from loopmaker.assembler import assemble_clips
from loopmaker.config import Settings
from loopmaker.errors import (
    CancelledError,
    LoopMakerError,
    ResourceError,
    ValidationError,
)
from loopmaker.media.transcoder import FFmpegTranscoder
from loopmaker.media.workspace import Workspace
from loopmaker.model.asset import VideoAsset
from loopmaker.model.request import LoopRequest, Technique
from loopmaker.model.segments import SegmentPlan, SegmentRole
from loopmaker.planner import blend_tail_start, plan

logger = logging.getLogger(__name__)

OUTPUT_NAME = "loop.mp4"


def default_output_path(source_path: str) -> str:
    """Output written next to the source: ``clip.mp4`` -> ``clip.mp4_loop.mp4``."""
    return f"{source_path}_loop.mp4"


def _check_cancel(cancel_flag: callable | None) -> None:
    if cancel_flag and cancel_flag():
        raise CancelledError("Loop synthesis cancelled")


class _Progress:
    """Reports completed steps out of a known total as a 0-1 fraction."""

    def __init__(self, callback: callable | None, total: int):
        self.callback = callback
        self.total = max(total, 1)
        self.done = 0
        self._lock = threading.Lock()

    def step(self) -> None:
        with self._lock:
            self.done += 1
            fraction = min(self.done / self.total, 1.0)
        if self.callback:
            self.callback(fraction)


class LoopSynthesisEngine:
    """Turns one source video into a seamlessly looping video.

    Each call to :meth:`synthesize` owns its own Workspace, so one engine
    can be shared by concurrent callers.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transcoder: FFmpegTranscoder | None = None,
    ):
        self.settings = settings or Settings()
        self.transcoder = transcoder or FFmpegTranscoder.from_settings(self.settings)

    def default_request(self) -> LoopRequest:
        return LoopRequest(
            technique=self.settings.default_technique,
            fade_duration=self.settings.default_fade_duration,
            start_second=self.settings.default_start_second,
        )

    def synthesize(
        self,
        source_path: str,
        request: LoopRequest | dict | None = None,
        output_path: str | None = None,
        progress_callback: callable | None = None,
        cancel_flag: callable | None = None,
    ) -> str:
        """Build a loop from *source_path* and return the output path.

        Args:
            source_path: Source video; never modified.
            request: LoopRequest, a mapping of its fields, or None for defaults.
            output_path: Final location; defaults to ``<source>_loop.mp4``.
            progress_callback: Optional callable(float) for progress (0-1).
            cancel_flag: Optional callable() -> bool that returns True to cancel.

        Raises:
            LoopMakerError: A typed subclass describing the failing step.
        """
        if request is None:
            request = self.default_request()
        elif isinstance(request, dict):
            request = LoopRequest.from_mapping(request)

        source = os.path.abspath(source_path)
        final = os.path.abspath(output_path or default_output_path(source))

        logger.info("Creating %s loop of %s -> %s", request.technique.value, source, final)
        published = False
        try:
            with Workspace(self.settings.workspace_dir) as ws:
                _check_cancel(cancel_flag)
                if not os.path.isfile(source):
                    raise ValidationError(f"Video file not found: {source_path}")
                if final == source:
                    raise ValidationError("Output path must differ from the source path")

                if request.technique == Technique.CROSSFADE:
                    built = self._crossfade(source, request, ws, progress_callback, cancel_flag)
                else:
                    built = self._reverse(source, ws, progress_callback, cancel_flag)

                _check_cancel(cancel_flag)
                self._publish(built, final)
                published = True
        except ResourceError as e:
            # the loop is already in place; only the scratch directory leaked
            if not published:
                raise
            logger.warning("Loop written to %s but workspace cleanup failed: %s", final, e)
        except LoopMakerError:
            raise
        except OSError as e:
            raise ResourceError("File operation failed during loop synthesis", str(e)) from e

        if progress_callback:
            progress_callback(1.0)
        logger.info("Loop created at %s", final)
        return final

    async def synthesize_async(
        self,
        source_path: str,
        request: LoopRequest | dict | None = None,
        output_path: str | None = None,
        progress_callback: callable | None = None,
    ) -> str:
        """Awaitable :meth:`synthesize` running in a worker thread.

        Cancelling the awaiting task stops ffmpeg, waits for the workspace
        to be removed, then re-raises asyncio.CancelledError.
        """
        cancelled = threading.Event()
        task = asyncio.ensure_future(
            asyncio.to_thread(
                self.synthesize,
                source_path,
                request,
                output_path,
                progress_callback,
                cancelled.is_set,
            )
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            cancelled.set()
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.debug("Worker stopped after cancellation: %s", task.exception())
            raise

    # ---- techniques ----

    def _reverse(
        self,
        source: str,
        ws: Workspace,
        progress_callback: callable | None,
        cancel_flag: callable | None,
    ) -> str:
        progress = _Progress(progress_callback, 2)
        logger.info("Reversing %s", source)
        reversed_clip = self.transcoder.reverse(source, ws.file("reverse.mp4"), cancel_flag=cancel_flag)
        progress.step()

        _check_cancel(cancel_flag)
        output = assemble_clips(
            [source, reversed_clip],
            ws.file(OUTPUT_NAME),
            self.transcoder,
            copy_first=False,
            cancel_flag=cancel_flag,
        )
        progress.step()
        return output

    def _crossfade(
        self,
        source: str,
        request: LoopRequest,
        ws: Workspace,
        progress_callback: callable | None,
        cancel_flag: callable | None,
    ) -> str:
        asset = self.transcoder.probe(source)
        segment_plan = plan(asset.duration, request.fade_duration, request.start_second)
        logger.info(
            "Crossfade plan for %.3fs clip (fade %.3fs, start %.3fs), %.3fs loop: %s",
            asset.duration,
            request.fade_duration,
            request.start_second,
            segment_plan.output_duration,
            ", ".join(
                f"{s.role.value}[{s.source_start:.3f}+{s.source_duration:.3f}]"
                for s in segment_plan
            ),
        )

        if segment_plan.roles == [SegmentRole.FULL_COPY]:
            output = ws.file(OUTPUT_NAME)
            shutil.copyfile(source, output)
            return output

        clips = self._materialize(source, asset, segment_plan, ws, progress_callback, cancel_flag)
        _check_cancel(cancel_flag)
        return assemble_clips(clips, ws.file(OUTPUT_NAME), self.transcoder, cancel_flag=cancel_flag)

    def _materialize(
        self,
        source: str,
        asset: VideoAsset,
        segment_plan: SegmentPlan,
        ws: Workspace,
        progress_callback: callable | None,
        cancel_flag: callable | None,
    ) -> list[str]:
        """Write every planned clip into the workspace; return paths in plan order."""
        fade = segment_plan.fade_duration
        has_blend = SegmentRole.CROSSFADE_BLEND in segment_plan.roles

        remaining: dict[str, tuple[float, float, bool]] = {}
        for i, seg in enumerate(segment_plan):
            if seg.role != SegmentRole.CROSSFADE_BLEND:
                key = f"{i}_{seg.role.value}"
                remaining[key] = (seg.source_start, seg.source_duration, seg.requires_reencode)

        # boundary clips + blend, then the remaining segments, then assembly
        total = (3 if has_blend else 0) + len(remaining) + 1
        progress = _Progress(progress_callback, total)

        blend_path = None
        if has_blend:
            boundaries = self._extract_many(
                source,
                {
                    "head": (0.0, fade, True),
                    "tail": (blend_tail_start(asset.duration, fade), fade, True),
                },
                asset.frame_rate,
                ws,
                progress,
                cancel_flag,
            )
            _check_cancel(cancel_flag)
            blend_path = self.transcoder.blend(
                boundaries["tail"],
                boundaries["head"],
                ws.file("crossfade.mp4"),
                fade,
                asset.frame_rate,
                cancel_flag=cancel_flag,
            )
            progress.step()

        paths = self._extract_many(source, remaining, asset.frame_rate, ws, progress, cancel_flag)

        clips = []
        for i, seg in enumerate(segment_plan):
            if seg.role == SegmentRole.CROSSFADE_BLEND:
                clips.append(blend_path)
            else:
                clips.append(paths[f"{i}_{seg.role.value}"])
        return clips

    def _extract_many(
        self,
        source: str,
        jobs: dict[str, tuple[float, float, bool]],
        frame_rate: float,
        ws: Workspace,
        progress: _Progress,
        cancel_flag: callable | None,
    ) -> dict[str, str]:
        """Extract independent ranges, in parallel when enabled."""
        if not jobs:
            return {}

        def extract(key: str, start: float, duration: float, reencode: bool, flag) -> str:
            path = self.transcoder.extract(
                source,
                ws.file(f"{key}.mp4"),
                start,
                duration,
                frame_rate=frame_rate,
                reencode=reencode,
                cancel_flag=flag,
            )
            progress.step()
            return path

        if not self.settings.parallel_extraction or len(jobs) == 1:
            results = {}
            for key, (start, duration, reencode) in jobs.items():
                _check_cancel(cancel_flag)
                results[key] = extract(key, start, duration, reencode, cancel_flag)
            return results

        # A failure in one worker stops its siblings.
        stop = threading.Event()

        def flag() -> bool:
            return stop.is_set() or bool(cancel_flag and cancel_flag())

        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            future_to_key = {
                executor.submit(extract, key, start, duration, reencode, flag): key
                for key, (start, duration, reencode) in jobs.items()
            }
            results = {}
            errors: list[BaseException] = []
            for future in concurrent.futures.as_completed(future_to_key):
                try:
                    results[future_to_key[future]] = future.result()
                except Exception as e:
                    stop.set()
                    errors.append(e)

        if errors:
            # Report the root failure, not a sibling stopped because of it.
            primary = [e for e in errors if not isinstance(e, CancelledError)]
            raise (primary or errors)[0]
        return results

    # ---- output ----

    @staticmethod
    def _publish(built: str, final: str) -> None:
        """Move the finished loop out of the workspace to *final*."""
        if not os.path.isfile(built) or os.path.getsize(built) == 0:
            raise ResourceError(f"Loop output is missing or empty: {built}")
        os.makedirs(os.path.dirname(final), exist_ok=True)
        partial = f"{final}.part"
        try:
            shutil.move(built, partial)
            os.replace(partial, final)
        finally:
            if os.path.exists(partial):
                os.remove(partial)
