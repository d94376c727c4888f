"""
SwingTrace Pipeline Orchestrator
Coordinates the analysis stages for one recorded swing video.

This module provides the main pipeline that runs:
- Motion profiling (coarse scan -> segment plan)
- Parallel segment analysis (sampling, inference, validation)
- Persistence of the resulting pose sequence
- Comparison of persisted swings
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from swingtrace.analysis.motion_profiler import MotionProfiler, MotionSegment
from swingtrace.analysis.swing_comparator import ComparisonResult, SwingComparator
from swingtrace.cameras.base_camera import BaseCamera
from swingtrace.cameras.video_file import VideoFileCamera
from swingtrace.exceptions import AnalysisCancelledError, DecodeError, ModelUnavailableError
from swingtrace.pipeline.segment_analyzer import ParallelSegmentAnalyzer
from swingtrace.pose.base_estimator import BasePoseEstimator, EstimatorFactory
from swingtrace.pose.keypoints import PoseSequence
from swingtrace.utils.serialization import (
    SHOULDER_FILE_SUFFIX,
    default_output_path,
    export_shoulder_track,
    save_sequence,
)

logger = logging.getLogger(__name__)

VideoSourceFactory = Callable[[str | Path], BaseCamera]


@dataclass
class PipelineConfig:
    """Configuration for the SwingTrace pipeline."""

    # Pose estimation
    model: Optional[str] = None  # None = model from pose_config.yaml
    device: str = "auto"  # cuda, mps, cpu, or auto for auto-detection

    # Parallel analysis
    worker_count: Optional[int] = None  # None = default from analysis_config.yaml

    # Motion profiling
    use_motion_profile: bool = True  # False = uniform default-rate sampling

    # Output
    save_results: bool = True
    output_dir: Path | None = None  # None = next to the video
    export_shoulders: bool = False


@dataclass
class VideoAnalysisResult:
    """Outcome of analyzing one video."""

    video_path: str
    sequence: PoseSequence
    plan: List[MotionSegment] = field(default_factory=list)
    used_fallback_plan: bool = False
    output_path: Optional[Path] = None
    shoulder_path: Optional[Path] = None
    processing_time: float = 0.0


class SwingAnalysisPipeline:
    """
    Main pipeline orchestrator for SwingTrace.

    Example:
        pipeline = SwingAnalysisPipeline(PipelineConfig(worker_count=4))
        result = pipeline.process_video("swing.mp4")
        print(f"{len(result.sequence)} poses saved to {result.output_path}")
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        estimator_factory: Optional[EstimatorFactory] = None,
        source_factory: Optional[VideoSourceFactory] = None,
    ):
        """
        Initialize pipeline with configuration.

        Args:
            config: Pipeline configuration.
            estimator_factory: Callable creating a loaded pose estimator. Defaults
                to YOLO11 pose with the configured model and device.
            source_factory: Callable opening a frame source for a video path.
                Defaults to VideoFileCamera.
        """
        self.config = config or PipelineConfig()
        self.estimator_factory = estimator_factory or self._default_estimator_factory
        self.source_factory = source_factory or VideoFileCamera

        self.profiler = MotionProfiler()
        self.analyzer = ParallelSegmentAnalyzer(estimator_factory=self.estimator_factory)
        self.comparator = SwingComparator()
        self._cancel_event = threading.Event()

        self.videos_processed = 0
        self.total_frames = 0
        self.total_time = 0.0

        logger.info(
            f"SwingTrace Pipeline initialized (workers: {self.config.worker_count or 'default'}, "
            f"motion profile: {'Enabled' if self.config.use_motion_profile else 'Disabled'})"
        )

    def _default_estimator_factory(self) -> BasePoseEstimator:
        from swingtrace.pose import YOLOPoseEstimator

        if YOLOPoseEstimator is None:
            raise ModelUnavailableError(
                "YOLO pose estimation requires the 'ultralytics' package "
                "(pip install swingtrace[yolo])"
            )
        return YOLOPoseEstimator(model_name=self.config.model, device=self.config.device)

    def build_plan(self, video_path: str | Path) -> tuple[List[MotionSegment], bool]:
        """
        Profile a video and return its sampling plan.

        Returns:
            Tuple of (plan, used_fallback). The fallback is a single default-rate
            segment spanning the whole video.

        Raises:
            DecodeError: If the video cannot be opened.
        """
        try:
            source = self.source_factory(video_path)
        except (FileNotFoundError, OSError) as e:
            raise DecodeError(f"Video could not be opened: {e}") from e

        try:
            if not source.is_opened() and not source.open():
                raise DecodeError(f"Video could not be opened: {video_path}")

            duration_ms = source.get_duration_ms()
            plan = self.profiler.profile(source, duration_ms) if self.config.use_motion_profile else []
        finally:
            source.release()

        if plan:
            return plan, False

        logger.info("Using uniform sampling plan")
        return self.profiler.fallback_plan(duration_ms), True

    def process_video(
        self,
        video_path: str | Path,
        output_path: str | Path | None = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> VideoAnalysisResult:
        """
        Analyze a swing video end to end.

        Args:
            video_path: Path to the video.
            output_path: Where to save the pose file (default: <video>_pose.json).
            cancel_event: Optional cancellation flag shared with the caller.

        Returns:
            VideoAnalysisResult with the pose sequence and output locations.

        Raises:
            DecodeError: If the video cannot be opened.
            ModelUnavailableError: If no pose estimator can be created.
            AnalysisCancelledError: If the analysis was cancelled.
        """
        start_time = time.time()
        video_path = str(video_path)

        logger.info(f"Processing video: {video_path}")

        # Per-run flag, shared by profiling and analysis
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()

        plan, used_fallback = self.build_plan(video_path)

        if self._cancel_event.is_set():
            logger.warning("Analysis cancelled during motion profiling")
            raise AnalysisCancelledError("Analysis was cancelled")

        sequence = self.analyzer.analyze(
            lambda: self.source_factory(video_path),
            plan,
            worker_count=self.config.worker_count,
            cancel_event=self._cancel_event,
            video_path=video_path,
        )

        result = VideoAnalysisResult(
            video_path=video_path,
            sequence=sequence,
            plan=plan,
            used_fallback_plan=used_fallback,
        )

        if self.config.save_results:
            result.output_path = save_sequence(
                sequence,
                output_path or default_output_path(video_path, self.config.output_dir),
            )
            if self.config.export_shoulders:
                result.shoulder_path = export_shoulder_track(
                    sequence,
                    default_output_path(video_path, self.config.output_dir, SHOULDER_FILE_SUFFIX),
                )

        result.processing_time = time.time() - start_time
        self.videos_processed += 1
        self.total_frames += len(sequence)
        self.total_time += result.processing_time

        logger.info(
            f"Processed {video_path}: {len(sequence)} poses from {len(plan)} segments "
            f"in {result.processing_time:.1f}s"
        )
        return result

    def compare(self, user_path: str | Path, reference_path: str | Path) -> ComparisonResult:
        """Compare two persisted pose files."""
        logger.info(f"Comparing {user_path} against {reference_path}")
        return self.comparator.compare_files(user_path, reference_path)

    def cancel(self) -> None:
        """Cancel the video currently being processed in another thread."""
        logger.info("Pipeline cancellation requested")
        self._cancel_event.set()

    def get_statistics(self) -> dict[str, Any]:
        """
        Get pipeline statistics.

        Returns:
            Dictionary with processing statistics.
        """
        stats = {
            "videos_processed": self.videos_processed,
            "total_frames": self.total_frames,
            "total_time": self.total_time,
        }
        if self.analyzer.last_stats is not None:
            stats["last_analysis"] = self.analyzer.last_stats.to_dict()
        return stats

    def reset(self):
        """Reset pipeline statistics."""
        self.videos_processed = 0
        self.total_frames = 0
        self.total_time = 0.0
        logger.info("Pipeline reset")
