# utils.py
import os
import re
import sys
import shlex
import shutil
import platform
from pathlib import Path

import config
from errors import BinaryNotFound

def resolve_resource_path(relative_path: str | Path) -> Path:
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        base_path = Path(sys._MEIPASS)
    else:
        base_path = Path(__file__).resolve().parent
    return base_path / relative_path

def _executable_name(tool: str) -> str:
    suffix = '.exe' if platform.system() == 'Windows' else ''
    return f'{tool}{suffix}'

def is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)

def candidate_binary_paths(tool: str, search_path: str | None = None) -> list[Path]:
    name = _executable_name(tool)

    # 1. Bundled copy shipped next to the application
    candidates = [resolve_resource_path(Path('ffmpeg') / 'bin' / name)]

    # 2. Well-known package manager locations
    candidates.extend(Path(d) / name for d in config.WELL_KNOWN_FFMPEG_DIRS)

    # 3. Every directory on the search path
    if search_path is None:
        search_path = os.environ.get('PATH', '')
    candidates.extend(Path(d) / name for d in search_path.split(os.pathsep) if d)

    unique = []
    seen = set()
    for candidate in candidates:
        key = str(candidate)
        if key not in seen:
            seen.add(key)
            unique.append(candidate)
    return unique

def find_ffmpeg(search_path: str | None = None) -> Path:
    for candidate in candidate_binary_paths('ffmpeg', search_path):
        if is_executable_file(candidate):
            return candidate
    raise BinaryNotFound(
        "FFmpeg not found. Install it with your package manager "
        "(e.g. 'brew install ffmpeg' or 'sudo apt install ffmpeg')."
    )

def find_ffprobe(ffmpeg_path: Path | None = None, search_path: str | None = None) -> Path | None:
    if ffmpeg_path is not None:
        sibling = Path(ffmpeg_path).with_name(_executable_name('ffprobe'))
        if is_executable_file(sibling):
            return sibling
    for candidate in candidate_binary_paths('ffprobe', search_path):
        if is_executable_file(candidate):
            return candidate
    return None

def format_command(command_list: list[str]) -> str:
    return ' '.join(shlex.quote(str(arg)) for arg in command_list)

def natural_sort_key(name: str) -> list:
    return [int(part) if part.isdigit() else part.casefold() for part in re.split(r'(\d+)', name)]

def cleanup_directory(path: Path | None) -> bool:
    if path is None or not path.exists():
        return True
    try:
        shutil.rmtree(path)
        return True
    except OSError:
        return False
