"""
Configuration file for pytest.

Shared fixtures: temporary directories, generated test images, and a fake
ffmpeg/ffprobe pair so the pipeline can run end to end without a real
FFmpeg installation.
"""

import json
import os
import pathlib
import stat
import sys
import tempfile

import pytest
from PIL import Image

ROOT = pathlib.Path(__file__).parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


FAKE_FFMPEG_SOURCE = '''#!{python}
import json
import os
import sys
import time
from pathlib import Path

args = sys.argv[1:]
log_path = os.environ.get("FAKE_FFMPEG_LOG")
if log_path:
    with open(log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(args) + "\\n")

if "-version" in args:
    print("ffmpeg version 6.1 Copyright (c) 2000-2023 the FFmpeg developers")
    sys.exit(0)

mode = os.environ.get("FAKE_FFMPEG_MODE", "ok")
if mode == "fail":
    sys.stderr.write("Input #0, concat, from 'list.txt':\\n")
    sys.stderr.write("[libx264 @ 0x0] width not divisible by 2\\n")
    sys.stderr.write("Error while opening encoder for output stream #0:0\\n")
    sys.stderr.write("Invalid argument\\n")
    sys.exit(1)
if mode == "fail_silent":
    sys.stderr.write("something unexpected happened\\n")
    sys.exit(3)
if mode == "sleep":
    time.sleep(30)
    sys.exit(0)

output = args[-1]
if mode != "no_output" and output != "-":
    out = Path(output)
    if "%" in out.name:
        for i in range(1, 4):
            (out.parent / (out.name % i)).write_bytes(b"frame")
    else:
        out.write_bytes(b"video")

for stamp in ("00:00:00.500000", "00:00:01.000000"):
    print("out_time=" + stamp, flush=True)
sys.stderr.write("frame=    1 fps=0.0 q=0.0 size=       0kB\\n")
sys.exit(0)
'''

FAKE_FFPROBE_SOURCE = '''#!{python}
import os
import sys

if "-version" in sys.argv:
    print("ffprobe version 6.1 Copyright (c) 2007-2023 the FFmpeg developers")
    sys.exit(0)
if os.environ.get("FAKE_FFPROBE_MODE") == "fail":
    sys.stderr.write("Invalid data found when processing input\\n")
    sys.exit(1)
print(os.environ.get("FAKE_FFPROBE_DURATION", "2.000000"))
'''


def _write_executable(path: pathlib.Path, source: str) -> pathlib.Path:
    path.write_text(source.replace("{python}", sys.executable), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeFFmpeg:
    def __init__(self, bin_dir: pathlib.Path, log_path: pathlib.Path):
        self.bin_dir = bin_dir
        self.log_path = log_path
        self.ffmpeg = _write_executable(bin_dir / "ffmpeg", FAKE_FFMPEG_SOURCE)
        self.ffprobe = _write_executable(bin_dir / "ffprobe", FAKE_FFPROBE_SOURCE)

    def calls(self) -> list[list[str]]:
        if not self.log_path.exists():
            return []
        with open(self.log_path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


def pytest_configure(config):
    """Run Qt without a display."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="function")
def temp_dir():
    """
    Pytest fixture to create a temporary directory for a test function.

    Yields:
        pathlib.Path: The path to the created temporary directory.
    """
    with tempfile.TemporaryDirectory(prefix="seqstitch_test_") as tmpdir:
        yield pathlib.Path(tmpdir)


@pytest.fixture
def temp_root(temp_dir):
    """Directory handed to the processor for its per-run temporary folders."""
    root = temp_dir / "work"
    root.mkdir()
    return root


@pytest.fixture
def fake_ffmpeg(tmp_path, monkeypatch):
    if sys.platform.startswith("win"):
        pytest.skip("fake ffmpeg relies on a shebang script")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    log_path = tmp_path / "ffmpeg_calls.jsonl"
    monkeypatch.setenv("FAKE_FFMPEG_LOG", str(log_path))
    monkeypatch.setenv("FAKE_FFMPEG_MODE", "ok")
    return FakeFFmpeg(bin_dir, log_path)


def make_images(folder: pathlib.Path, count: int, size=(64, 48), prefix="img") -> list[pathlib.Path]:
    folder.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(1, count + 1):
        path = folder / f"{prefix}{i}.png"
        Image.new("RGB", size, (i * 20 % 256, 80, 160)).save(path)
        paths.append(path)
    return paths


@pytest.fixture
def image_files(temp_dir):
    return make_images(temp_dir / "images", 5)


@pytest.fixture
def image_factory():
    return make_images
