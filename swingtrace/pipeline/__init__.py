"""
SwingTrace Pipeline Module
Runs motion profiling, parallel analysis and persistence for swing videos.
"""

from swingtrace.pipeline.orchestrator import (
    PipelineConfig,
    SwingAnalysisPipeline,
    VideoAnalysisResult,
)
from swingtrace.pipeline.segment_analyzer import (
    AnalysisStats,
    ParallelSegmentAnalyzer,
    merge_worker_frames,
    partition_plan,
)

__all__ = [
    "SwingAnalysisPipeline",
    "PipelineConfig",
    "VideoAnalysisResult",
    "ParallelSegmentAnalyzer",
    "AnalysisStats",
    "merge_worker_frames",
    "partition_plan",
]
