# concat_list.py
"""Reading and writing ffmpeg concat demuxer lists.

A list holds one ``file '<path>'`` line per image, each followed by a
``duration <seconds>`` line. The demuxer applies a duration to the frame
only once it sees the *next* entry, so the final image is written a second
time as a bare ``file`` line; without it the last frame is dropped.
"""
from pathlib import Path

from errors import ArtifactWriteFailure, EmptyInput
from models import ConcatEntry


def escape_concat_path(path: str | Path) -> str:
    path_str = str(path)
    if '\n' in path_str or '\r' in path_str:
        raise ValueError(f"Path cannot be written to a concat list (contains a line break): {path_str!r}")
    # Close the quote, emit an escaped quote, reopen: ' -> '\''
    return path_str.replace("'", "'\\''")

def unescape_concat_token(token: str) -> str:
    chars = []
    in_quote = False
    i = 0
    while i < len(token):
        c = token[i]
        if in_quote:
            if c == "'":
                in_quote = False
            else:
                chars.append(c)
        elif c == "'":
            in_quote = True
        elif c == '\\' and i + 1 < len(token):
            i += 1
            chars.append(token[i])
        else:
            chars.append(c)
        i += 1
    return ''.join(chars)

def build_concat_entries(paths: list[Path], duration: float) -> list[ConcatEntry]:
    if not paths:
        raise EmptyInput("No images to export")
    if duration <= 0:
        raise ValueError(f"Frame duration must be greater than zero, got {duration}")

    duration = float(duration)
    entries = [ConcatEntry(Path(p), duration) for p in paths]
    entries.append(ConcatEntry(Path(paths[-1]), None))
    return entries

def format_concat_entries(entries: list[ConcatEntry]) -> str:
    lines = []
    for entry in entries:
        lines.append(f"file '{escape_concat_path(entry.path)}'")
        if entry.duration is not None:
            lines.append(f"duration {entry.duration}")
    return '\n'.join(lines) + '\n'

def _write_text(destination: Path, content: str):
    try:
        with destination.open('w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        raise ArtifactWriteFailure(f"Could not write concat list '{destination}': {e}") from e

def write_concat_file(paths: list[Path], duration: float, destination: Path) -> list[ConcatEntry]:
    entries = build_concat_entries(paths, duration)
    _write_text(destination, format_concat_entries(entries))
    return entries

def write_simple_concat_file(paths: list[Path], destination: Path):
    if not paths:
        raise EmptyInput("No images to normalize")
    entries = [ConcatEntry(Path(p)) for p in paths]
    _write_text(destination, format_concat_entries(entries))

def parse_concat_file(source: Path) -> list[ConcatEntry]:
    entries: list[ConcatEntry] = []
    with source.open('r', encoding='utf-8') as f:
        for raw_line in f:
            line = raw_line.strip()
            if line.startswith('file '):
                entries.append(ConcatEntry(Path(unescape_concat_token(line[5:].strip()))))
            elif line.startswith('duration ') and entries:
                last = entries[-1]
                entries[-1] = ConcatEntry(last.path, float(line[9:].strip()))
    return entries

def image_paths_from_entries(entries: list[ConcatEntry]) -> list[Path]:
    paths = [entry.path for entry in entries]
    if (len(entries) > 1 and entries[-1].duration is None
            and entries[-1].path == entries[-2].path):
        paths.pop()
    return paths
