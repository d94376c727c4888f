#!/usr/bin/env python3
"""Analyze a recorded golf swing and save its pose sequence."""

import argparse
import logging
import sys
from pathlib import Path

from swingtrace.exceptions import SwingTraceError
from swingtrace.pipeline import PipelineConfig, SwingAnalysisPipeline


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Motion-adaptive golf swing pose analysis")
    parser.add_argument("video", type=Path, help="Path to the swing video")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Pose file to write (default: <video>_pose.json)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for output files (default: next to the video)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of parallel workers (clamped to 2-6)",
    )
    parser.add_argument("--model", default=None, help="YOLO pose model (e.g. yolo11s-pose.pt)")
    parser.add_argument(
        "--device",
        default="auto",
        choices=["auto", "cpu", "cuda", "mps"],
        help="Inference device",
    )
    parser.add_argument(
        "--uniform",
        action="store_true",
        help="Skip motion profiling and sample at the default rate",
    )
    parser.add_argument(
        "--export-shoulders",
        action="store_true",
        help="Also write the shoulders-only track",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = PipelineConfig(
        model=args.model,
        device=args.device,
        worker_count=args.workers,
        use_motion_profile=not args.uniform,
        output_dir=args.output_dir,
        export_shoulders=args.export_shoulders,
    )

    print("=" * 60)
    print("SwingTrace - Swing Analysis")
    print("=" * 60)

    try:
        pipeline = SwingAnalysisPipeline(config)
        result = pipeline.process_video(args.video, output_path=args.output)
    except SwingTraceError as e:
        print(f"❌ Analysis failed: {e}")
        return 1

    stats = pipeline.get_statistics().get("last_analysis", {})
    print(f"✅ {len(result.sequence)} poses from {len(result.plan)} segments")
    if result.used_fallback_plan:
        print("   (uniform sampling, motion profile unavailable)")
    print(f"   Samples: {stats.get('samples', 0)}, rejected: {stats.get('rejected', 0)}")
    print(f"   Time: {result.processing_time:.1f}s")
    if result.output_path:
        print(f"   Saved: {result.output_path}")
    if result.shoulder_path:
        print(f"   Shoulders: {result.shoulder_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
