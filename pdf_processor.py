# pdf_processor.py
import datetime
import os
import tempfile
import uuid
from pathlib import Path

import fitz
from PIL import Image

import config
from errors import DocumentRenderError

def _render_page(doc: fitz.Document, page_num: int, dpi: int, output_path: Path) -> Path:
    page = doc.load_page(page_num)
    if page.rect.width == 0 or page.rect.height == 0:
        raise DocumentRenderError(f"PDF page {page_num + 1} has zero size.")

    # PDF user space is 72 points per inch
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False, colorspace=fitz.csRGB)
    pix.save(str(output_path))
    return output_path

def render_pages(pdf_path: Path, output_dir: Path | None = None, dpi: int = config.PDF_RENDER_DPI,
                 max_pages: int | None = None) -> list[Path]:
    pdf_path = Path(pdf_path)
    output_dir = Path(output_dir) if output_dir else Path(tempfile.gettempdir())

    try:
        doc = fitz.open(pdf_path)
    except (RuntimeError, OSError) as e:
        raise DocumentRenderError(f"Cannot open PDF document '{pdf_path.name}': {e}") from e

    # Same-named documents from different folders must not share rendered pages
    render_token = uuid.uuid4().hex

    with doc:
        page_count = doc.page_count if max_pages is None else min(doc.page_count, max_pages)
        if page_count == 0:
            raise DocumentRenderError(f"PDF has no pages: {pdf_path.name}")

        output_paths = []
        for page_num in range(page_count):
            out_path = output_dir / f"{pdf_path.stem}_{render_token}_page{page_num + 1}.png"
            try:
                output_paths.append(_render_page(doc, page_num, dpi, out_path))
            except (RuntimeError, ValueError, OSError) as e:
                raise DocumentRenderError(f"Failed to render page {page_num + 1} of '{pdf_path.name}': {e}") from e
    return output_paths

def render_all_pages(pdf_path: Path, output_dir: Path | None = None, dpi: int = config.PDF_RENDER_DPI) -> list[Path]:
    return render_pages(pdf_path, output_dir, dpi)

def render_first_page(pdf_path: Path, output_dir: Path | None = None, dpi: int = config.PDF_RENDER_DPI) -> Path:
    return render_pages(pdf_path, output_dir, dpi, max_pages=1)[0]

def create_thumbnail(image_path: Path, max_size: int = config.THUMBNAIL_MAX_SIZE) -> Image.Image | None:
    try:
        with Image.open(image_path) as img:
            thumbnail = img.convert("RGB")
    except OSError:
        return None
    # thumbnail() only ever shrinks
    thumbnail.thumbnail((max_size, max_size))
    return thumbnail

def get_creation_date(file_path: Path) -> datetime.datetime:
    try:
        stat = os.stat(file_path)
    except OSError:
        return datetime.datetime.now()
    timestamp = getattr(stat, 'st_birthtime', None) or stat.st_mtime
    return datetime.datetime.fromtimestamp(timestamp)
