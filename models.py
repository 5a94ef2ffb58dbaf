# models.py
import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

import config
from utils import natural_sort_key


class OutputFormat(Enum):
    MP4 = "MP4"
    MOV = "MOV"
    WEBM = "WebM"

    @property
    def extension(self) -> str:
        return config.FORMAT_MAP[self.value]["extension"]

    @property
    def codec(self) -> str:
        return config.FORMAT_MAP[self.value]["codec"]

    @property
    def hardware_codec(self) -> str | None:
        return config.FORMAT_MAP[self.value]["hardware_codec"]

    @property
    def supports_faststart(self) -> bool:
        return self.value in config.FASTSTART_FORMATS

class ResolutionScale(Enum):
    ORIGINAL = "Original"
    SCALE_2X = "2x"
    SCALE_4X = "4x"
    HD_720 = "720p"
    HD_1080 = "1080p"
    UHD_4K = "4K"

    @property
    def scale_filter(self) -> str | None:
        return config.RESOLUTION_FILTERS[self.value]

class QualityPreset(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    LOSSLESS = "Lossless"

    @property
    def crf(self) -> int:
        return config.QUALITY_PRESETS[self.value]["crf"]

    @property
    def preset(self) -> str:
        return config.QUALITY_PRESETS[self.value]["preset"]

class FrameRateOption(Enum):
    FPS_24 = 24
    FPS_30 = 30
    FPS_60 = 60

    @property
    def display_name(self) -> str:
        return f"{self.value} fps"

class StackingMode(Enum):
    NONE = "None"
    HORIZONTAL = "Horizontal"
    VERTICAL = "Vertical"

    @property
    def stack_filter(self) -> str | None:
        return config.STACKING_MODES[self.value]

class NormalizationResolution(Enum):
    ORIGINAL = "Original"
    HD_720 = "720p"
    HD_1080 = "1080p"
    UHD_4K = "4K"
    SQUARE_1080 = "Square 1080"

    @property
    def dimensions(self) -> tuple[int, int] | None:
        return config.NORMALIZATION_RESOLUTIONS[self.value]

class ProcessState(Enum):
    IDLE = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    CANCELLED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessState.SUCCEEDED, ProcessState.FAILED, ProcessState.CANCELLED)

class SortOption(Enum):
    DATE_CREATED = auto()
    FILENAME = auto()

@dataclass
class ExportSettings:
    format: OutputFormat = OutputFormat.MP4
    resolution: ResolutionScale = ResolutionScale.ORIGINAL
    quality: QualityPreset = QualityPreset.HIGH
    frame_rate: FrameRateOption = FrameRateOption.FPS_30
    use_hardware_encoding: bool = False
    stacking_mode: StackingMode = StackingMode.NONE
    stacking_spacing: int = 0
    normalization_resolution: NormalizationResolution = NormalizationResolution.HD_1080
    keep_temp_files: bool = False

    @property
    def uses_hardware_codec(self) -> bool:
        return self.use_hardware_encoding and self.format.hardware_codec is not None

@dataclass(eq=False)
class SequenceItem:
    original_path: Path
    processed_path: Path | None = None
    date_created: datetime.datetime = field(default_factory=datetime.datetime.now)
    original_filename: str = ""
    is_from_pdf: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        self.original_path = Path(self.original_path)
        self.processed_path = Path(self.processed_path) if self.processed_path else self.original_path
        if not self.original_filename:
            self.original_filename = self.original_path.name

    def __eq__(self, other):
        if not isinstance(other, SequenceItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

@dataclass(frozen=True)
class ConcatEntry:
    path: Path
    duration: float | None = None

@dataclass(frozen=True)
class PipelineInvocation:
    program: Path
    arguments: tuple[str, ...]
    working_directory: Path
    output_path: Path

    @property
    def command_list(self) -> list[str]:
        return [str(self.program), *self.arguments]

@dataclass
class ExportRequest:
    primary: list[SequenceItem]
    frame_duration: float
    settings: ExportSettings
    output_path: Path
    secondary: list[SequenceItem] = field(default_factory=list)

    @property
    def is_stacked(self) -> bool:
        return bool(self.secondary) and self.settings.stacking_mode != StackingMode.NONE

    @property
    def frame_count(self) -> int:
        return len(self.primary) + (len(self.secondary) if self.is_stacked else 0)

class SequenceList:
    def __init__(self, items: list[SequenceItem] | None = None):
        self.items: list[SequenceItem] = list(items or [])

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def add_item(self, item: SequenceItem):
        self.items.append(item)

    def add_items(self, items: list[SequenceItem]):
        self.items.extend(items)

    def remove_item(self, index: int) -> SequenceItem | None:
        if not 0 <= index < len(self.items):
            return None
        item = self.items.pop(index)
        if item.is_from_pdf:
            _discard_rendered_file(item.processed_path)
        return item

    def remove_item_by_id(self, item_id: uuid.UUID) -> SequenceItem | None:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return self.remove_item(index)
        return None

    def move_items(self, source_indexes: set[int] | list[int], destination: int):
        indexes = sorted(i for i in set(source_indexes) if 0 <= i < len(self.items))
        if not indexes:
            return
        moving = [self.items[i] for i in indexes]
        remaining = [item for i, item in enumerate(self.items) if i not in indexes]
        insert_at = destination - sum(1 for i in indexes if i < destination)
        insert_at = max(0, min(insert_at, len(remaining)))
        self.items = remaining[:insert_at] + moving + remaining[insert_at:]

    def sort(self, option: SortOption):
        if option == SortOption.DATE_CREATED:
            self.items.sort(key=lambda item: item.date_created)
        else:
            self.items.sort(key=lambda item: natural_sort_key(item.original_filename))

    def clear_all(self):
        for item in self.items:
            if item.is_from_pdf:
                _discard_rendered_file(item.processed_path)
        self.items.clear()

    def processed_paths(self) -> list[Path]:
        return [item.processed_path for item in self.items]

@dataclass
class ProjectModel:
    primary: SequenceList = field(default_factory=SequenceList)
    secondary: SequenceList = field(default_factory=SequenceList)
    frame_duration: float = config.DEFAULT_FRAME_DURATION
    is_time_lapse_mode: bool = False
    target_duration: float = config.DEFAULT_TIME_LAPSE_DURATION
    export_settings: ExportSettings = field(default_factory=ExportSettings)

    @property
    def is_comparison_mode(self) -> bool:
        return len(self.secondary) > 0

    @property
    def effective_frame_duration(self) -> float:
        if self.is_time_lapse_mode and len(self.primary) > 0:
            return self.target_duration / len(self.primary)
        return self.frame_duration

    @property
    def total_duration(self) -> float:
        return len(self.primary) * self.effective_frame_duration

    def build_export_request(self, output_path: Path) -> ExportRequest:
        return ExportRequest(
            primary=list(self.primary),
            frame_duration=self.effective_frame_duration,
            settings=self.export_settings,
            output_path=Path(output_path),
            secondary=list(self.secondary),
        )

class ValidationMessages:
    def __init__(self):
        self.project_errors: list[str] = []
        self.project_warnings: list[str] = []
        self.project_notices: list[str] = []

    def add_project_error(self, message: str):
        self.project_errors.append(message)

    def add_project_warning(self, message: str):
        self.project_warnings.append(message)

    def add_project_notice(self, message: str):
        self.project_notices.append(message)

    def has_errors(self) -> bool:
        return bool(self.project_errors)

    def has_warnings(self) -> bool:
        return bool(self.project_warnings)

def _discard_rendered_file(path: Path | None):
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass
