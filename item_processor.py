# item_processor.py
from pathlib import Path
import config
from errors import DocumentRenderError
from models import SequenceItem
from pdf_processor import get_creation_date, render_first_page
from utils import natural_sort_key

class BaseItemProcessor:
    def __init__(self, source_path: Path, render_dir: Path | None = None):
        self.source_path = Path(source_path)
        self.render_dir = render_dir

    def process(self) -> SequenceItem:
        raise NotImplementedError("Each processor must implement the 'process' method.")

class ImageItemProcessor(BaseItemProcessor):
    def process(self) -> SequenceItem:
        return SequenceItem(
            original_path=self.source_path,
            date_created=get_creation_date(self.source_path),
        )

class PdfItemProcessor(BaseItemProcessor):
    def process(self) -> SequenceItem:
        rendered = render_first_page(self.source_path, self.render_dir)
        return SequenceItem(
            original_path=self.source_path,
            processed_path=rendered,
            date_created=get_creation_date(self.source_path),
            is_from_pdf=True,
        )

class ItemProcessorFactory:
    @staticmethod
    def get_processor(source_path: Path, render_dir: Path | None = None) -> BaseItemProcessor:
        suffix = Path(source_path).suffix.lower()

        if suffix in config.SUPPORTED_DOCUMENT_FORMATS:
            return PdfItemProcessor(source_path, render_dir)
        elif suffix in config.SUPPORTED_IMAGE_FORMATS:
            return ImageItemProcessor(source_path, render_dir)
        else:
            raise ValueError(f"Unsupported file type: {Path(source_path).name}")

def is_supported_file(path: Path) -> bool:
    return path.is_file() and not path.name.startswith('.') and path.suffix.lower() in config.SUPPORTED_FORMATS

def scan_folder(folder: Path) -> list[Path]:
    folder = Path(folder)
    if not folder.is_dir():
        raise NotADirectoryError(f"Not a folder: {folder}")
    files = [p for p in folder.iterdir() if is_supported_file(p)]
    return sorted(files, key=lambda p: natural_sort_key(p.name))

def create_items(paths: list[Path], render_dir: Path | None = None, logger=None) -> list[SequenceItem]:
    log = logger or (lambda msg, source='app': None)
    items = []
    for path in paths:
        try:
            items.append(ItemProcessorFactory.get_processor(path, render_dir).process())
        except (ValueError, DocumentRenderError) as e:
            log(f"[WARNING] Skipped '{Path(path).name}': {e}", 'app')
    return items

def import_folder(folder: Path, render_dir: Path | None = None, logger=None) -> list[SequenceItem]:
    return create_items(scan_folder(folder), render_dir, logger)
