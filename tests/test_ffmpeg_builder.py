from pathlib import Path

import pytest

import config
from ffmpeg_builder import (FFmpegCommandBuilder, InputDescriptor, InputKind, build_export_invocation,
                            build_extract_invocation, build_normalize_invocation, check_timing_order,
                            even_floor, frame_rate_for_duration, stacking_filter, video_codec_options)
from models import (ExportSettings, FrameRateOption, OutputFormat, QualityPreset, ResolutionScale,
                    StackingMode)

FFMPEG = Path("/usr/bin/ffmpeg")
WORK = Path("/tmp/work")
CONCAT = WORK / "primary_list.txt"
OUTPUT = Path("/tmp/out/video.mp4")


def _export_args(settings: ExportSettings, **kwargs) -> list[str]:
    invocation = build_export_invocation(FFMPEG, InputDescriptor(CONCAT), OUTPUT, settings,
                                         working_directory=WORK, **kwargs)
    return invocation.command_list


def _value_after(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


class TestFFmpegCommandBuilder:
    def test_build_orders_inputs_filters_and_output(self):
        cmd = (FFmpegCommandBuilder(FFMPEG)
               .add_input("a.mp4", ["-ss", "1"])
               .add_input("b.mp4")
               .set_filter_complex("[0:v][1:v]hstack=inputs=2[stacked]")
               .set_output("out.mp4", ["-map", "[stacked]"])
               .build())

        assert cmd == [
            str(FFMPEG), "-y", "-hide_banner",
            "-ss", "1", "-i", "a.mp4",
            "-i", "b.mp4",
            "-filter_complex", "[0:v][1:v]hstack=inputs=2[stacked]",
            "-map", "[stacked]", "out.mp4",
        ]

    def test_build_without_output_raises(self):
        with pytest.raises(ValueError):
            FFmpegCommandBuilder(FFMPEG).add_input("a.mp4").build()

    def test_verbose_adds_loglevel(self):
        cmd = FFmpegCommandBuilder(FFMPEG, verbose=True).set_output("o.mp4").build()
        assert cmd[1:5] == ["-y", "-hide_banner", "-loglevel", "info"]

    def test_concat_input_rate_precedes_demuxer(self):
        cmd = FFmpegCommandBuilder(FFMPEG).add_concat_input(CONCAT, input_rate="1/2").set_output("o.mp4").build()
        assert cmd[3:10] == ["-r", "1/2", "-f", "concat", "-safe", "0", "-i"]
        assert cmd[10] == str(CONCAT)

    def test_mapped_stream_follows_filter_graph(self):
        cmd = (FFmpegCommandBuilder(FFMPEG)
               .add_input("a.mp4")
               .add_input("b.mp4")
               .set_filter_complex("[0:v][1:v]vstack=inputs=2[stacked]")
               .map_stream("[stacked]")
               .set_output("out.mp4", ["-c:v", "libx264"])
               .build())
        assert cmd[-7:] == ["-filter_complex", "[0:v][1:v]vstack=inputs=2[stacked]",
                            "-map", "[stacked]", "-c:v", "libx264", "out.mp4"]

    def test_mapping_an_unknown_stream_raises(self):
        with pytest.raises(ValueError):
            FFmpegCommandBuilder(FFMPEG).map_stream("[stacked]")
        with pytest.raises(ValueError):
            FFmpegCommandBuilder(FFMPEG).set_filter_complex("[0:v]null[out]").map_stream("[stacked]")

    def test_invocation_is_immutable(self):
        invocation = FFmpegCommandBuilder(FFMPEG).set_output(OUTPUT).build_invocation(WORK)
        assert invocation.program == FFMPEG
        assert invocation.output_path == OUTPUT
        assert isinstance(invocation.arguments, tuple)
        with pytest.raises(AttributeError):
            invocation.output_path = Path("/elsewhere.mp4")


class TestExportArguments:
    def test_single_sequence_mp4_high_quality(self):
        settings = ExportSettings(format=OutputFormat.MP4, resolution=ResolutionScale.ORIGINAL,
                                  quality=QualityPreset.HIGH, frame_rate=FrameRateOption.FPS_30)
        args = _export_args(settings)

        assert args[args.index("-i") - 4:args.index("-i")] == ["-f", "concat", "-safe", "0"]
        assert _value_after(args, "-i") == str(CONCAT)
        assert _value_after(args, "-vf") == config.EVEN_DIMENSIONS_FILTER
        assert _value_after(args, "-c:v") == "libx264"
        assert _value_after(args, "-preset") == "slow"
        assert _value_after(args, "-crf") == "18"
        assert _value_after(args, "-profile:v") == "main"
        assert _value_after(args, "-r") == "30"
        assert _value_after(args, "-pix_fmt") == "yuv420p"
        assert _value_after(args, "-movflags") == "+faststart"
        assert "-y" in args
        assert args[-1] == str(OUTPUT)

    def test_frame_rate_only_after_concat_input(self):
        args = _export_args(ExportSettings())
        assert args.count("-r") == 1
        assert args.index("-r") > args.index("-i")

    def test_explicit_frame_rate_overrides_setting(self):
        args = _export_args(ExportSettings(frame_rate=FrameRateOption.FPS_24), frame_rate=60)
        assert _value_after(args, "-r") == "60"

    @pytest.mark.parametrize("resolution", [r for r in ResolutionScale if r != ResolutionScale.ORIGINAL])
    def test_scaled_resolution_replaces_parity_filter(self, resolution):
        args = _export_args(ExportSettings(resolution=resolution))
        assert _value_after(args, "-vf") == resolution.scale_filter
        assert config.EVEN_DIMENSIONS_FILTER not in args

    @pytest.mark.parametrize("quality, crf, preset", [
        (QualityPreset.LOW, "28", "faster"),
        (QualityPreset.MEDIUM, "23", "medium"),
        (QualityPreset.HIGH, "18", "slow"),
        (QualityPreset.LOSSLESS, "0", "veryslow"),
    ])
    def test_quality_table(self, quality, crf, preset):
        args = _export_args(ExportSettings(quality=quality))
        assert _value_after(args, "-crf") == crf
        assert _value_after(args, "-preset") == preset

    def test_lossless_omits_main_profile(self):
        args = _export_args(ExportSettings(quality=QualityPreset.LOSSLESS))
        assert "-profile:v" not in args

    @pytest.mark.parametrize("fmt", [OutputFormat.MP4, OutputFormat.MOV])
    def test_hardware_encoding_when_requested(self, fmt):
        args = _export_args(ExportSettings(format=fmt, use_hardware_encoding=True))
        assert _value_after(args, "-c:v") == "h264_videotoolbox"
        assert _value_after(args, "-allow_sw") == "1"
        assert "-crf" not in args
        assert "-movflags" in args

    def test_webm_uses_constrained_quality_and_ignores_hardware(self):
        args = _export_args(ExportSettings(format=OutputFormat.WEBM, quality=QualityPreset.MEDIUM,
                                           use_hardware_encoding=True))
        assert _value_after(args, "-c:v") == "libvpx-vp9"
        assert _value_after(args, "-crf") == "23"
        assert _value_after(args, "-b:v") == "0"
        assert "-movflags" not in args
        assert "-preset" not in args
        assert _value_after(args, "-pix_fmt") == "yuv420p"

    def test_stacked_normalized_inputs(self):
        settings = ExportSettings(stacking_mode=StackingMode.HORIZONTAL)
        primary = InputDescriptor(WORK / "primary.mp4", InputKind.NORMALIZED_VIDEO, (1920, 1080))
        secondary = InputDescriptor(WORK / "secondary.mp4", InputKind.NORMALIZED_VIDEO, (1920, 1080))

        args = build_export_invocation(FFMPEG, primary, OUTPUT, settings, secondary=secondary,
                                       working_directory=WORK).command_list

        assert args.count("-i") == 2
        assert "concat" not in args
        assert _value_after(args, "-filter_complex") == "[0:v][1:v]hstack=inputs=2[stacked]"
        assert _value_after(args, "-map") == "[stacked]"
        assert "-vf" not in args

    def test_concat_list_cannot_be_stacked(self):
        settings = ExportSettings(stacking_mode=StackingMode.VERTICAL)
        with pytest.raises(ValueError):
            build_export_invocation(FFMPEG, InputDescriptor(CONCAT), OUTPUT, settings,
                                    secondary=InputDescriptor(WORK / "other.txt"))


class TestStackingFilter:
    def test_vertical_without_spacing(self):
        assert stacking_filter(StackingMode.VERTICAL) == "[0:v][1:v]vstack=inputs=2[stacked]"

    def test_horizontal_spacing_pads_canvas(self):
        graph = stacking_filter(StackingMode.HORIZONTAL, 20, (1280, 720))
        assert graph == ("[0:v]pad=2580:720:0:0:color=black[base];"
                         "[base][1:v]overlay=x=1300:y=0[stacked]")

    def test_vertical_overlap_moves_secondary_up(self):
        graph = stacking_filter(StackingMode.VERTICAL, -100, (1080, 1080))
        assert "pad=1080:2060" in graph
        assert "overlay=x=0:y=980" in graph

    def test_odd_spacing_rounds_down_to_even(self):
        assert "overlay=x=1290:y=0" in stacking_filter(StackingMode.HORIZONTAL, 11, (1280, 720))
        assert "overlay=x=1268:y=0" in stacking_filter(StackingMode.HORIZONTAL, -11, (1280, 720))

    def test_odd_spacing_of_one_is_plain_stack(self):
        assert stacking_filter(StackingMode.HORIZONTAL, 1) == "[0:v][1:v]hstack=inputs=2[stacked]"

    def test_overlap_of_full_frame_is_rejected(self):
        with pytest.raises(ValueError):
            stacking_filter(StackingMode.HORIZONTAL, -1280, (1280, 720))

    def test_spacing_needs_dimensions(self):
        with pytest.raises(ValueError):
            stacking_filter(StackingMode.HORIZONTAL, 10)

    def test_none_mode_is_rejected(self):
        with pytest.raises(ValueError):
            stacking_filter(StackingMode.NONE)


class TestTimingOrder:
    def test_rate_before_concat_input_is_rejected(self):
        cmd = [str(FFMPEG), "-y", "-r", "30", "-f", "concat", "-safe", "0", "-i", str(CONCAT),
               "-r", "30", "out.mp4"]
        with pytest.raises(ValueError):
            check_timing_order(cmd, CONCAT)

    def test_missing_output_rate_is_rejected(self):
        cmd = [str(FFMPEG), "-f", "concat", "-safe", "0", "-i", str(CONCAT), "out.mp4"]
        with pytest.raises(ValueError):
            check_timing_order(cmd, CONCAT)

    def test_valid_order_passes(self):
        cmd = [str(FFMPEG), "-f", "concat", "-safe", "0", "-i", str(CONCAT), "-r", "30", "out.mp4"]
        check_timing_order(cmd, CONCAT)


class TestNormalizeArguments:
    def test_normalize_command(self):
        simple = WORK / "primary_normalized_simple.txt"
        out = WORK / "primary_normalized.mp4"
        args = build_normalize_invocation(FFMPEG, simple, out, 2.0, (1920, 1080)).command_list

        input_index = args.index("-i")
        assert args[input_index - 6:input_index] == ["-r", "1/2", "-f", "concat", "-safe", "0"]
        assert _value_after(args, "-vf") == (
            "scale=1920:1080:force_original_aspect_ratio=decrease,"
            "pad=1920:1080:(ow-iw)/2:(oh-ih)/2:black,setsar=1"
        )
        assert _value_after(args, "-c:v") == "libx264"
        assert _value_after(args, "-preset") == "ultrafast"
        assert _value_after(args, "-crf") == "18"
        assert args[-3:] == ["-r", "1/2", str(out)]

    @pytest.mark.parametrize("duration, rate", [(2.0, "1/2"), (0.5, "2"), (0.1, "10"), (1.5, "2/3")])
    def test_frame_rate_for_duration(self, duration, rate):
        assert frame_rate_for_duration(duration) == rate

    def test_zero_duration_rejected(self):
        with pytest.raises(ValueError):
            frame_rate_for_duration(0)


class TestExtractArguments:
    def test_extract_command(self):
        video = Path("/videos/clip.mov")
        out_dir = Path("/tmp/Import_x")
        invocation = build_extract_invocation(FFMPEG, video, out_dir)
        args = invocation.command_list

        assert _value_after(args, "-progress") == "pipe:1"
        assert _value_after(args, "-i") == str(video)
        assert _value_after(args, "-vf") == "fps=10,mpdecimate"
        assert _value_after(args, "-fps_mode") == "passthrough"
        assert args[-1] == str(out_dir / "frame_%05d.png")
        assert invocation.working_directory == out_dir

    def test_custom_sampling(self):
        args = build_extract_invocation(FFMPEG, Path("/v.mp4"), Path("/o"), sampling_fps=5,
                                        dedup_filter="mpdecimate=hi=512").command_list
        assert _value_after(args, "-vf") == "fps=5,mpdecimate=hi=512"


def test_even_floor():
    assert [even_floor(v) for v in (0, 1, 2, 3, -1, -2, -3)] == [0, 0, 2, 2, -2, -2, -4]


def test_codec_options_end_with_pixel_format_for_webm():
    options = video_codec_options(ExportSettings(format=OutputFormat.WEBM), 24)
    assert options[-4:] == ["-r", "24", "-pix_fmt", "yuv420p"]
