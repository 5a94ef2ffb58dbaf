# ffmpeg_builder.py
from dataclasses import dataclass
from enum import Enum, auto
from fractions import Fraction
from pathlib import Path

import config
from models import ExportSettings, PipelineInvocation, QualityPreset, StackingMode

CONCAT_INPUT_OPTIONS = ['-f', 'concat', '-safe', '0']
STACKED_LABEL = '[stacked]'

class InputKind(Enum):
    CONCAT_LIST = auto()
    NORMALIZED_VIDEO = auto()

@dataclass(frozen=True)
class InputDescriptor:
    path: Path
    kind: InputKind = InputKind.CONCAT_LIST
    dimensions: tuple[int, int] | None = None

class FFmpegCommandBuilder:
    """Collects one ffmpeg run and freezes it into a PipelineInvocation.

    Arguments come out in the order ffmpeg reads them: global flags, each
    input's options ahead of its ``-i``, the filter graph, stream maps, then
    the output options and output path.
    """
    def __init__(self, ffmpeg_path: str | Path, verbose: bool = False):
        self.ffmpeg_path = Path(ffmpeg_path)
        self._global_args = ['-y', '-hide_banner']
        if verbose:
            self._global_args += ['-loglevel', 'info']
        self._inputs: list[tuple[Path, tuple[str, ...]]] = []
        self._graph: str | None = None
        self._mapped_labels: list[str] = []
        self._output: tuple[Path, tuple[str, ...]] | None = None

    def add_global_options(self, *opts: str) -> 'FFmpegCommandBuilder':
        self._global_args += opts
        return self

    def add_input(self, path: str | Path, options: list[str] | None = None) -> 'FFmpegCommandBuilder':
        self._inputs.append((Path(path), tuple(options or ())))
        return self

    def add_concat_input(self, list_path: Path, input_rate: str | None = None) -> 'FFmpegCommandBuilder':
        # With an input rate every listed file becomes exactly one frame
        rate_args = ['-r', input_rate] if input_rate else []
        return self.add_input(list_path, rate_args + CONCAT_INPUT_OPTIONS)

    def set_filter_complex(self, filter_string: str) -> 'FFmpegCommandBuilder':
        self._graph = filter_string
        return self

    def map_stream(self, label: str) -> 'FFmpegCommandBuilder':
        if self._graph is None or label not in self._graph:
            raise ValueError(f"Stream {label} is not produced by the filter graph.")
        self._mapped_labels.append(label)
        return self

    def set_output(self, path: str | Path, options: list[str] | None = None) -> 'FFmpegCommandBuilder':
        self._output = (Path(path), tuple(options or ()))
        return self

    def arguments(self) -> tuple[str, ...]:
        if self._output is None:
            raise ValueError("Output path must be set before building the command.")

        args = list(self._global_args)
        for path, options in self._inputs:
            args += [*options, '-i', str(path)]
        if self._graph:
            args += ['-filter_complex', self._graph]
        for label in self._mapped_labels:
            args += ['-map', label]

        output_path, output_options = self._output
        args += [*output_options, str(output_path)]
        return tuple(args)

    def build(self) -> list[str]:
        return [str(self.ffmpeg_path), *self.arguments()]

    def build_invocation(self, working_directory: Path) -> PipelineInvocation:
        arguments = self.arguments()
        return PipelineInvocation(
            program=self.ffmpeg_path,
            arguments=arguments,
            working_directory=Path(working_directory),
            output_path=self._output[0],
        )

def even_floor(value: int) -> int:
    value = int(value)
    return value - (value % 2)

def frame_rate_for_duration(frame_duration: float) -> str:
    if frame_duration <= 0:
        raise ValueError(f"Frame duration must be greater than zero, got {frame_duration}")
    rate = 1 / Fraction(str(frame_duration))
    return str(rate)

def resolution_filter(settings: ExportSettings) -> str:
    scale_filter = settings.resolution.scale_filter
    if scale_filter is None:
        # libx264 rejects odd dimensions ("Invalid argument")
        return config.EVEN_DIMENSIONS_FILTER
    return scale_filter

def video_codec_options(settings: ExportSettings, frame_rate: int) -> list[str]:
    fmt = settings.format
    quality = settings.quality

    if fmt.codec == 'libx264':
        if settings.uses_hardware_codec:
            options = ['-c:v', fmt.hardware_codec, '-allow_sw', '1']
        else:
            options = ['-c:v', fmt.codec, '-preset', quality.preset, '-crf', str(quality.crf)]
            if quality != QualityPreset.LOSSLESS:
                # Lossless x264 needs the High 4:4:4 profile
                options.extend(['-profile:v', config.SOFTWARE_CODEC_PROFILE])
    else:
        # Constrained quality: crf with an unbounded bitrate
        options = ['-c:v', fmt.codec, '-crf', str(quality.crf), '-b:v', '0']

    options.extend(['-r', str(frame_rate)])
    options.extend(['-pix_fmt', config.OUTPUT_PIXEL_FORMAT])
    if fmt.supports_faststart:
        options.extend(['-movflags', '+faststart'])
    return options

def stacking_filter(mode: StackingMode, spacing: int = 0, dimensions: tuple[int, int] | None = None) -> str:
    stack = mode.stack_filter
    if stack is None:
        raise ValueError("A stacking filter requires a horizontal or vertical stacking mode.")

    spacing = even_floor(spacing)
    if spacing == 0:
        return f"[0:v][1:v]{stack}=inputs=2{STACKED_LABEL}"

    if dimensions is None:
        raise ValueError("Frame dimensions are required to place sequences with spacing.")
    width, height = dimensions
    color = config.NORMALIZE_PAD_COLOR

    if mode == StackingMode.HORIZONTAL:
        if -spacing >= width:
            raise ValueError(f"Overlap of {-spacing}px is not smaller than the frame width ({width}px).")
        canvas = f"{2 * width + spacing}:{height}"
        offset = f"x={width + spacing}:y=0"
    else:
        if -spacing >= height:
            raise ValueError(f"Overlap of {-spacing}px is not smaller than the frame height ({height}px).")
        canvas = f"{width}:{2 * height + spacing}"
        offset = f"x=0:y={height + spacing}"

    return f"[0:v]pad={canvas}:0:0:color={color}[base];[base][1:v]overlay={offset}{STACKED_LABEL}"

def check_timing_order(command: list[str], concat_path: Path):
    """Reject commands that set a frame rate ahead of a concat list input.

    The duration directives in the list own frame timing; a rate set on the
    input would override them. The output rate must come after the input so
    it only duplicates or drops frames once timing is established.
    """
    concat_str = str(concat_path)
    input_index = None
    for i in range(len(command) - 1):
        if command[i] == '-i' and command[i + 1] == concat_str:
            input_index = i
            break
    if input_index is None:
        raise ValueError(f"Concat list '{concat_str}' is not an input of the command.")

    if any(arg in ('-r', '-framerate') for arg in command[1:input_index]):
        raise ValueError("A frame rate must not be set before a concat list input; "
                         "duration directives control timing.")
    if '-r' not in command[input_index + 2:]:
        raise ValueError("The output frame rate must be set after the concat list input.")

def build_export_invocation(
    ffmpeg_path: Path,
    primary: InputDescriptor,
    output_path: Path,
    settings: ExportSettings,
    frame_rate: int | None = None,
    secondary: InputDescriptor | None = None,
    working_directory: Path | None = None,
    verbose: bool = False,
) -> PipelineInvocation:
    frame_rate = frame_rate if frame_rate is not None else settings.frame_rate.value
    builder = FFmpegCommandBuilder(ffmpeg_path, verbose)
    codec_options = video_codec_options(settings, frame_rate)

    if primary.kind == InputKind.CONCAT_LIST:
        if secondary is not None:
            raise ValueError("Two sequences can only be composited from normalized videos.")
        # No input rate: the list's duration directives control timing.
        builder.add_concat_input(primary.path)
        builder.set_output(output_path, ['-vf', resolution_filter(settings)] + codec_options)
        invocation = builder.build_invocation(working_directory or primary.path.parent)
        check_timing_order(invocation.command_list, primary.path)
        return invocation

    builder.add_input(primary.path)
    if secondary is None or settings.stacking_mode == StackingMode.NONE:
        builder.set_output(output_path, codec_options)
    else:
        if secondary.kind != InputKind.NORMALIZED_VIDEO:
            raise ValueError("Both sequences must be normalized before stacking.")
        builder.add_input(secondary.path)
        builder.set_filter_complex(
            stacking_filter(settings.stacking_mode, settings.stacking_spacing, primary.dimensions)
        )
        builder.map_stream(STACKED_LABEL)
        builder.set_output(output_path, codec_options)
    return builder.build_invocation(working_directory or primary.path.parent)

def normalize_filter(dimensions: tuple[int, int]) -> str:
    width, height = dimensions
    return (f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:{config.NORMALIZE_PAD_COLOR},setsar=1")

def build_normalize_invocation(
    ffmpeg_path: Path,
    simple_concat_path: Path,
    output_path: Path,
    frame_duration: float,
    dimensions: tuple[int, int],
    working_directory: Path | None = None,
    verbose: bool = False,
) -> PipelineInvocation:
    rate = frame_rate_for_duration(frame_duration)
    builder = FFmpegCommandBuilder(ffmpeg_path, verbose)
    # The simple list has no durations: one image is one frame at this rate.
    builder.add_concat_input(simple_concat_path, input_rate=rate)
    builder.set_output(output_path, [
        '-vf', normalize_filter(dimensions),
        '-c:v', config.NORMALIZE_CODEC,
        '-preset', config.NORMALIZE_PRESET,
        '-crf', str(config.NORMALIZE_CRF),
        '-pix_fmt', config.OUTPUT_PIXEL_FORMAT,
        '-r', rate,
    ])
    return builder.build_invocation(working_directory or simple_concat_path.parent)

def build_extract_invocation(
    ffmpeg_path: Path,
    video_path: Path,
    output_dir: Path,
    sampling_fps: float = config.EXTRACT_SAMPLING_FPS,
    dedup_filter: str = config.EXTRACT_DEDUP_FILTER,
    verbose: bool = False,
) -> PipelineInvocation:
    builder = FFmpegCommandBuilder(ffmpeg_path, verbose)
    builder.add_global_options('-nostats', '-progress', 'pipe:1')
    builder.add_input(video_path)
    builder.set_output(output_dir / config.EXTRACT_FILENAME_PATTERN, [
        '-vf', f"fps={sampling_fps},{dedup_filter}",
        # Write only the frames the filters keep; no duplication to a fixed rate
        '-fps_mode', 'passthrough',
    ])
    return builder.build_invocation(output_dir)
