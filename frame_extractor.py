# frame_extractor.py
import subprocess
from dataclasses import replace
from pathlib import Path

import config
from ffmpeg_builder import build_extract_invocation
from models import PipelineInvocation

class FrameExtractor:
    def __init__(self, ffmpeg_path: Path, ffprobe_path: Path | None = None,
                 sampling_fps: float = config.EXTRACT_SAMPLING_FPS,
                 dedup_filter: str = config.EXTRACT_DEDUP_FILTER,
                 logger=None):
        self.ffmpeg_path = Path(ffmpeg_path)
        self.ffprobe_path = Path(ffprobe_path) if ffprobe_path else None
        self.sampling_fps = sampling_fps
        self.dedup_filter = dedup_filter
        self.log = logger or (lambda msg, source='app': print(msg))

    def build_invocation(self, video_path: Path, output_dir: Path, verbose: bool = False) -> PipelineInvocation:
        invocation = build_extract_invocation(
            self.ffmpeg_path, Path(video_path), Path(output_dir),
            sampling_fps=self.sampling_fps,
            dedup_filter=self.dedup_filter,
            verbose=verbose,
        )
        # The frames directory is the product; individual names come from the pattern
        return replace(invocation, output_path=Path(output_dir))

    def read_duration(self, video_path: Path) -> float:
        if self.ffprobe_path is None:
            self.log("[WARNING] ffprobe not found; import progress will not be reported.", 'app')
            return 0.0

        command = [
            str(self.ffprobe_path),
            '-v', 'error',
            '-show_entries', 'format=duration',
            '-of', 'default=noprint_wrappers=1:nokey=1',
            str(video_path)
        ]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                timeout=config.FFPROBE_TIMEOUT_S,
                creationflags=config.SUBPROCESS_CREATION_FLAGS
            )
            return max(float(result.stdout.strip()), 0.0)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError, ValueError) as e:
            self.log(f"[WARNING] Could not get media duration for '{Path(video_path).name}': {e}", 'app')
            return 0.0

    @staticmethod
    def collect_frames(output_dir: Path) -> list[Path]:
        output_dir = Path(output_dir)
        if not output_dir.is_dir():
            return []
        frames = [p for p in output_dir.iterdir()
                  if p.is_file() and p.suffix.lower() == config.EXTRACT_IMAGE_EXTENSION]
        return sorted(frames, key=lambda p: p.name)
