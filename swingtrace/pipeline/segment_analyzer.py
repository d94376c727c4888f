"""
Parallel Segment Analyzer
Samples a motion-profiled video across a pool of independent workers.

Each worker owns its own frame source and pose estimator (decoders and
model sessions are not reentrant), walks its contiguous slice of the
segment plan at the rate each segment recommends, and returns the usable
frames it found. The orchestrating call joins all workers and sorts the
merged frames by timestamp; that sort is what makes the output a valid
PoseSequence regardless of worker completion order.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from swingtrace.analysis.motion_profiler import MotionSegment
from swingtrace.cameras.base_camera import BaseCamera
from swingtrace.cameras.video_file import VideoFileCamera
from swingtrace.exceptions import (
    AnalysisCancelledError,
    DecodeError,
    ModelUnavailableError,
)
from swingtrace.pose.base_estimator import BasePoseEstimator, EstimatorFactory
from swingtrace.pose.keypoints import Keypoint, PoseFrame, PoseSequence, SequenceMetadata
from swingtrace.pose.validator import usability_report
from swingtrace.utils.config import load_analysis_config
from swingtrace.utils.geometry import CropRect, center_square_crop, remap_to_source

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], BaseCamera]


@dataclass
class WorkerResult:
    """Frames and per-sample counters returned by one worker."""

    worker_id: int
    frames: List[PoseFrame] = field(default_factory=list)
    segments: int = 0
    samples: int = 0
    decode_failures: int = 0
    inference_failures: int = 0
    rejected: int = 0
    elapsed_seconds: float = 0.0


@dataclass
class AnalysisStats:
    """Aggregate counters of one analysis run."""

    workers: int = 0
    segments: int = 0
    samples: int = 0
    accepted: int = 0
    rejected: int = 0
    decode_failures: int = 0
    inference_failures: int = 0
    duplicates_dropped: int = 0
    elapsed_seconds: float = 0.0
    frames_per_worker: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        stats = asdict(self)
        stats["frames_per_worker"] = {str(k): v for k, v in self.frames_per_worker.items()}
        return stats


def partition_plan(plan: List[MotionSegment], worker_count: int) -> List[List[MotionSegment]]:
    """Split a plan into contiguous, roughly equal slices of segments.

    Args:
        plan: Time-ordered segments.
        worker_count: Number of slices wanted.

    Returns:
        Non-empty slices in timeline order; fewer than worker_count when the
        plan has fewer segments than workers.
    """
    if worker_count < 1:
        raise ValueError("worker_count must be >= 1")

    size, extra = divmod(len(plan), worker_count)
    parts = []
    start = 0
    for i in range(worker_count):
        end = start + size + (1 if i < extra else 0)
        if end > start:
            parts.append(list(plan[start:end]))
        start = end
    return parts


def merge_worker_frames(results: List[WorkerResult]) -> Tuple[List[PoseFrame], int]:
    """Concatenate worker outputs and restore global time order.

    Workers finish in any order, so results are first ordered by worker id
    (deterministic tie-breaking), then all frames are sorted by timestamp.
    Frames repeating an already-seen timestamp are dropped.

    Returns:
        Tuple of (strictly time-ordered frames, number of duplicates dropped).
    """
    ordered = sorted(results, key=lambda r: r.worker_id)
    frames = [frame for result in ordered for frame in result.frames]
    frames.sort(key=lambda f: f.timestamp_ms)

    merged: List[PoseFrame] = []
    duplicates = 0
    for frame in frames:
        if merged and frame.timestamp_ms == merged[-1].timestamp_ms:
            duplicates += 1
            continue
        merged.append(frame)

    return merged, duplicates


class ParallelSegmentAnalyzer:
    """
    Run sampling and inference over a segment plan with a bounded worker pool.

    Example:
        analyzer = ParallelSegmentAnalyzer(estimator_factory=YOLOPoseEstimator)
        plan = MotionProfiler().profile(source)
        sequence = analyzer.analyze("swing.mp4", plan, worker_count=4)
    """

    def __init__(
        self,
        estimator_factory: EstimatorFactory,
        min_workers: Optional[int] = None,
        max_workers: Optional[int] = None,
        center_crop: Optional[bool] = None,
        analysis_method: Optional[str] = None,
    ):
        """
        Initialize analyzer.

        Args:
            estimator_factory: Callable returning a new, loaded estimator.
                Called once per worker.
            min_workers: Lower bound of the worker pool size.
            max_workers: Upper bound of the worker pool size.
            center_crop: Feed the model a centered square crop of each frame.
            analysis_method: Tag recorded in the sequence metadata.
        """
        config = load_analysis_config()
        analyzer_config = config.get("segment_analyzer", {})

        self.estimator_factory = estimator_factory
        self.min_workers = (
            min_workers if min_workers is not None else analyzer_config.get("min_workers", 2)
        )
        self.max_workers = (
            max_workers if max_workers is not None else analyzer_config.get("max_workers", 6)
        )
        self.default_workers = analyzer_config.get("default_workers", 4)
        self.center_crop = (
            center_crop if center_crop is not None else analyzer_config.get("center_crop", True)
        )
        self.analysis_method = analysis_method or analyzer_config.get(
            "analysis_method", "motion_adaptive_parallel"
        )

        if self.min_workers < 1 or self.max_workers < self.min_workers:
            raise ValueError(
                f"Invalid worker bounds: min={self.min_workers}, max={self.max_workers}"
            )

        # Pending request, consumed by the next (or current) analyze() call
        self._cancel_event = threading.Event()
        self._run_event: Optional[threading.Event] = None
        self.last_stats: Optional[AnalysisStats] = None

    def cancel(self) -> None:
        """Ask the running analysis to stop. Its partial results are discarded.

        A request made before analyze() starts cancels that next run.
        """
        logger.info("Analysis cancellation requested")
        self._cancel_event.set()
        run_event = self._run_event
        if run_event is not None:
            run_event.set()

    def clamp_workers(self, requested: Optional[int], segment_count: int) -> int:
        """Bound the requested pool size, and never exceed the segment count."""
        if requested is None:
            requested = self.default_workers
        count = max(self.min_workers, min(self.max_workers, int(requested)))
        return max(1, min(count, segment_count))

    def analyze(
        self,
        video: str | Path | SourceFactory,
        plan: List[MotionSegment],
        worker_count: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        video_path: Optional[str] = None,
    ) -> PoseSequence:
        """
        Analyze a video according to a segment plan.

        Args:
            video: Video path, or a callable returning a new frame source.
            plan: Time-ordered motion segments.
            worker_count: Requested pool size (clamped to the configured bounds).
            cancel_event: Optional external cancellation flag.
            video_path: Path recorded in the metadata when video is a callable.

        Returns:
            Strictly time-ordered PoseSequence of usable frames.

        Raises:
            ModelUnavailableError: If no estimator can be created (before any
                worker starts).
            DecodeError: If the video cannot be opened, or no sample decodes.
            AnalysisCancelledError: If the analysis was cancelled.
        """
        if cancel_event is None:
            cancel_event = self._cancel_event
        elif self._cancel_event.is_set():
            cancel_event.set()

        self._run_event = cancel_event
        try:
            return self._analyze(video, plan, worker_count, cancel_event, video_path)
        finally:
            self._run_event = None
            self._cancel_event.clear()

    def _analyze(
        self,
        video: str | Path | SourceFactory,
        plan: List[MotionSegment],
        worker_count: Optional[int],
        cancel_event: threading.Event,
        video_path: Optional[str],
    ) -> PoseSequence:
        start_time = time.time()
        if video_path is None and not callable(video):
            video_path = str(video)
        source_factory = self._make_source_factory(video)

        if cancel_event.is_set():
            raise AnalysisCancelledError("Analysis was cancelled before it started")

        # Fail fast before spawning any worker
        probe_estimator = self._probe_model()
        try:
            probe_source = self._probe_video(source_factory)
        except DecodeError:
            probe_estimator.close()
            raise

        model_id = probe_estimator.model_id

        if not plan:
            logger.warning("Empty segment plan, nothing to analyze")
            probe_estimator.close()
            probe_source.release()
            return PoseSequence(
                metadata=self._build_metadata(model_id, video_path, plan, AnalysisStats())
            )

        workers = self.clamp_workers(worker_count, len(plan))
        parts = partition_plan(plan, workers)

        logger.info(
            f"Analyzing {len(plan)} segments with {len(parts)} worker(s) "
            f"(requested: {worker_count})"
        )

        results: List[WorkerResult] = []
        with ThreadPoolExecutor(max_workers=len(parts), thread_name_prefix="segment-worker") as executor:
            futures = {}
            for worker_id, segments in enumerate(parts):
                # Worker 0 reuses the already-opened probe contexts
                estimator = probe_estimator if worker_id == 0 else None
                source = probe_source if worker_id == 0 else None
                future = executor.submit(
                    self._run_worker,
                    worker_id,
                    segments,
                    source_factory,
                    cancel_event,
                    estimator,
                    source,
                )
                futures[future] = worker_id

            try:
                for future in as_completed(futures):
                    result = future.result()
                    results.append(result)
                    logger.debug(f"Worker {result.worker_id} joined")
            except Exception:
                # Stop the remaining workers; their output is useless now
                cancel_event.set()
                raise

        if cancel_event.is_set():
            logger.warning("Analysis cancelled, discarding partial results")
            raise AnalysisCancelledError("Analysis was cancelled")

        frames, duplicates = merge_worker_frames(results)

        stats = self._aggregate_stats(results, len(plan), duplicates, time.time() - start_time)
        self.last_stats = stats

        if stats.samples > 0 and stats.decode_failures == stats.samples:
            raise DecodeError(f"None of the {stats.samples} sampled frames could be decoded")

        logger.info(
            f"Analysis complete: {stats.accepted} frames from {stats.samples} samples "
            f"({stats.rejected} rejected, {stats.decode_failures} decode failures, "
            f"{stats.inference_failures} inference failures) in {stats.elapsed_seconds:.1f}s"
        )

        return PoseSequence(
            frames=frames,
            metadata=self._build_metadata(model_id, video_path, plan, stats),
        )

    def _make_source_factory(self, video: str | Path | SourceFactory) -> SourceFactory:
        if callable(video):
            return video

        path = Path(video)

        def factory() -> BaseCamera:
            return VideoFileCamera(path)

        return factory

    def _probe_model(self) -> BasePoseEstimator:
        """Create one estimator up front so a missing model fails immediately."""
        try:
            estimator = self.estimator_factory()
        except ModelUnavailableError:
            raise
        except Exception as e:
            raise ModelUnavailableError(f"Pose estimator could not be created: {e}") from e

        if estimator is None or not estimator.is_loaded():
            raise ModelUnavailableError("Pose estimator has no loaded model")

        return estimator

    def _probe_video(self, source_factory: SourceFactory) -> BaseCamera:
        try:
            source = source_factory()
        except (FileNotFoundError, OSError) as e:
            raise DecodeError(f"Video could not be opened: {e}") from e

        if not source.is_opened() and not source.open():
            raise DecodeError("Video could not be opened for decoding")

        return source

    def _run_worker(
        self,
        worker_id: int,
        segments: List[MotionSegment],
        source_factory: SourceFactory,
        cancel_event: threading.Event,
        estimator: Optional[BasePoseEstimator] = None,
        source: Optional[BaseCamera] = None,
    ) -> WorkerResult:
        """Sample and analyze one contiguous slice of the plan.

        Runs in a pool thread with exclusive ownership of its source and
        estimator.
        """
        start_time = time.time()
        result = WorkerResult(worker_id=worker_id, segments=len(segments))

        if cancel_event.is_set():
            if estimator is not None:
                estimator.close()
            if source is not None:
                source.release()
            return result

        if estimator is None:
            try:
                estimator = self.estimator_factory()
            except ModelUnavailableError:
                raise
            except Exception as e:
                raise ModelUnavailableError(f"Worker {worker_id} could not create estimator: {e}") from e

        try:
            if source is None:
                source = self._probe_video(source_factory)

            video_fps = source.get_fps()

            for segment in segments:
                for t in segment.sample_times():
                    if cancel_event.is_set():
                        logger.debug(f"Worker {worker_id} stopping at {t}ms")
                        return result
                    self._analyze_sample(source, estimator, t, segment, video_fps, result)
        finally:
            estimator.close()
            if source is not None:
                source.release()
            result.elapsed_seconds = time.time() - start_time

        logger.info(
            f"Worker {worker_id} finished {len(segments)} segment(s): "
            f"{len(result.frames)}/{result.samples} frames kept in {result.elapsed_seconds:.1f}s"
        )
        return result

    def _analyze_sample(
        self,
        source: BaseCamera,
        estimator: BasePoseEstimator,
        t: int,
        segment: MotionSegment,
        video_fps: float,
        result: WorkerResult,
    ) -> None:
        """Decode, infer and validate a single sample instant."""
        result.samples += 1

        try:
            frame = source.capture_frame() if source.seek_ms(t) else None
        except Exception as e:
            logger.warning(f"Worker {result.worker_id}: decode failed at {t}ms: {e}")
            frame = None

        if frame is None:
            result.decode_failures += 1
            logger.debug(f"Worker {result.worker_id}: no frame at {t}ms")
            return

        height, width = frame.shape[:2]
        crop = center_square_crop(width, height) if self.center_crop else CropRect(0, 0, width, height)

        try:
            raw_keypoints = estimator.infer(np.ascontiguousarray(crop.apply(frame)))
        except Exception as e:
            result.inference_failures += 1
            logger.warning(f"Worker {result.worker_id}: inference failed at {t}ms: {e}")
            return

        keypoints: Dict[str, Keypoint] = {}
        for kp in raw_keypoints:
            x, y = remap_to_source(kp.x, kp.y, crop, width, height)
            keypoints[kp.label] = Keypoint(label=kp.label, x=x, y=y, confidence=kp.confidence)

        report = usability_report(keypoints)
        if not report.usable:
            result.rejected += 1
            logger.debug(f"Worker {result.worker_id}: frame at {t}ms rejected ({report.reason})")
            return

        frame_index = int(round(t * video_fps / 1000.0)) if video_fps > 0 else result.samples - 1
        result.frames.append(
            PoseFrame.create(
                timestamp_ms=t,
                frame_index=frame_index,
                keypoints=keypoints,
                phase=segment.phase,
                sample_fps=segment.recommended_fps,
            )
        )

    def _aggregate_stats(
        self,
        results: List[WorkerResult],
        segment_count: int,
        duplicates: int,
        elapsed: float,
    ) -> AnalysisStats:
        stats = AnalysisStats(
            workers=len(results),
            segments=segment_count,
            duplicates_dropped=duplicates,
            elapsed_seconds=elapsed,
        )
        for result in results:
            stats.samples += result.samples
            stats.rejected += result.rejected
            stats.decode_failures += result.decode_failures
            stats.inference_failures += result.inference_failures
            stats.frames_per_worker[result.worker_id] = len(result.frames)
        stats.accepted = sum(stats.frames_per_worker.values()) - duplicates
        return stats

    def _build_metadata(
        self,
        model_id: str,
        video_path: Optional[str],
        plan: List[MotionSegment],
        stats: AnalysisStats,
    ) -> SequenceMetadata:
        return SequenceMetadata(
            model=model_id,
            analysis_method=self.analysis_method,
            video_path=video_path,
            analyzed_at=datetime.now().isoformat(),
            segments=tuple(plan),
            stats=stats.to_dict(),
        )
