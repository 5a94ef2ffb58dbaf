# settings_manager.py
import toml
from pathlib import Path
import datetime
import hashlib
import uuid

from models import (ExportSettings, FrameRateOption, NormalizationResolution, OutputFormat, ProjectModel,
                    QualityPreset, ResolutionScale, SequenceItem, SequenceList, StackingMode)
import config

SETTINGS_ENUMS = {
    'format': OutputFormat,
    'resolution': ResolutionScale,
    'quality': QualityPreset,
    'frame_rate': FrameRateOption,
    'stacking_mode': StackingMode,
    'normalization_resolution': NormalizationResolution,
}

WARNING_COMMENT = (
    "# --- SequenceStitch Project File ---\n"
    "# WARNING: This file is automatically generated by the application.\n"
    "# Manual editing is not recommended as it may cause unexpected behavior or data loss.\n\n"
)

def _calculate_hash(data: dict) -> str:
    data_string = toml.dumps(data)
    return hashlib.sha256(data_string.encode('utf-8')).hexdigest()

def _enum_from_value(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default

class SettingsManager:
    def __init__(self, logger=None):
        self.log = logger if callable(logger) else lambda *args, **kwargs: None

    def _settings_to_dict(self, settings: ExportSettings) -> dict:
        return {
            'format': settings.format.value,
            'resolution': settings.resolution.value,
            'quality': settings.quality.value,
            'frame_rate': settings.frame_rate.value,
            'use_hardware_encoding': settings.use_hardware_encoding,
            'stacking_mode': settings.stacking_mode.value,
            'stacking_spacing': settings.stacking_spacing,
            'normalization_resolution': settings.normalization_resolution.value,
            'keep_temp_files': settings.keep_temp_files,
        }

    def _settings_from_dict(self, data: dict) -> ExportSettings:
        settings = ExportSettings()
        for key, enum_cls in SETTINGS_ENUMS.items():
            if key in data:
                default = getattr(settings, key)
                value = _enum_from_value(enum_cls, data[key], default)
                if value is default and data[key] != default.value:
                    self.log(f"[WARNING] Unknown value '{data[key]}' for '{key}'; using '{default.value}'.")
                setattr(settings, key, value)

        settings.use_hardware_encoding = bool(data.get('use_hardware_encoding', settings.use_hardware_encoding))
        settings.stacking_spacing = int(data.get('stacking_spacing', settings.stacking_spacing))
        settings.keep_temp_files = bool(data.get('keep_temp_files', settings.keep_temp_files))
        return settings

    def _item_to_dict(self, item: SequenceItem) -> dict:
        return {
            'id': str(item.id),
            'original_path': str(item.original_path),
            'processed_path': str(item.processed_path),
            'original_filename': item.original_filename,
            'date_created': item.date_created.isoformat(),
            'is_from_pdf': item.is_from_pdf,
        }

    def _item_from_dict(self, data: dict) -> SequenceItem | None:
        processed_path = Path(data.get('processed_path') or data.get('original_path', ''))
        if not processed_path.is_file():
            self.log(f"[WARNING] Skipped missing image: {processed_path}")
            return None

        try:
            item_id = uuid.UUID(data.get('id', ''))
        except ValueError:
            item_id = uuid.uuid4()

        try:
            date_created = datetime.datetime.fromisoformat(data.get('date_created', ''))
        except ValueError:
            date_created = datetime.datetime.now()

        return SequenceItem(
            original_path=Path(data.get('original_path') or processed_path),
            processed_path=processed_path,
            date_created=date_created,
            original_filename=data.get('original_filename', ''),
            is_from_pdf=bool(data.get('is_from_pdf', False)),
            id=item_id,
        )

    def _load_items(self, entries: list) -> SequenceList:
        items = [self._item_from_dict(entry) for entry in entries]
        return SequenceList([item for item in items if item is not None])

    def _build_document(self, project_model: ProjectModel) -> dict:
        return {
            'project': {
                'file_version': config.PROJECT_FILE_VERSION,
                'frame_duration': float(project_model.frame_duration),
                'is_time_lapse_mode': project_model.is_time_lapse_mode,
                'target_duration': float(project_model.target_duration),
            },
            'export_settings': self._settings_to_dict(project_model.export_settings),
            'primary': [self._item_to_dict(item) for item in project_model.primary],
            'secondary': [self._item_to_dict(item) for item in project_model.secondary],
        }

    def save_project(self, file_path: Path, project_model: ProjectModel):
        file_path = Path(file_path)
        document = self._build_document(project_model)
        document['project']['integrity_hash'] = _calculate_hash(document)

        final_toml_data = {'config_version': config.APP_VERSION}
        final_toml_data.update(document)

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(WARNING_COMMENT)
            toml.dump(final_toml_data, f)
        self.log(f"[INFO] Project saved to: {file_path}")

    def load_project(self, file_path: Path) -> ProjectModel:
        file_path = Path(file_path)
        self.log(f"[INFO] Attempting to load project from: {file_path}")
        with open(file_path, 'r', encoding='utf-8') as f:
            data = toml.load(f)

        project_data = dict(data.get('project', {}))
        stored_hash = project_data.pop('integrity_hash', None)
        file_version = project_data.get('file_version', config.PROJECT_FILE_VERSION)
        if file_version > config.PROJECT_FILE_VERSION:
            raise ValueError(
                f"Project file version {file_version} is newer than supported version {config.PROJECT_FILE_VERSION}."
            )

        hashed_part = {
            'project': project_data,
            'export_settings': data.get('export_settings', {}),
            'primary': data.get('primary', []),
            'secondary': data.get('secondary', []),
        }
        if stored_hash and stored_hash != _calculate_hash(hashed_part):
            self.log("[WARNING] Integrity check failed: the project file was modified outside the application.")

        project_model = ProjectModel(
            primary=self._load_items(data.get('primary', [])),
            secondary=self._load_items(data.get('secondary', [])),
            frame_duration=float(project_data.get('frame_duration', config.DEFAULT_FRAME_DURATION)),
            is_time_lapse_mode=bool(project_data.get('is_time_lapse_mode', False)),
            target_duration=float(project_data.get('target_duration', config.DEFAULT_TIME_LAPSE_DURATION)),
            export_settings=self._settings_from_dict(data.get('export_settings', {})),
        )

        self.log(f"[INFO] Successfully loaded project ({len(project_model.primary)} primary, "
                 f"{len(project_model.secondary)} secondary images).")
        return project_model
