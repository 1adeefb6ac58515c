"""
EPUB container helpers for the simplifier.

Reading the archive, pulling out stylesheets, images and content documents,
and writing the final HTML page.  Nothing here knows about the reduced
markup itself; see epub_simplifier.py for that.
"""

import re
import warnings
import zipfile
from pathlib import Path

import ebooklib
from ebooklib import epub as ep
from lxml import etree

# ebooklib emits many UserWarnings about unrecognized EPUB features
warnings.filterwarnings("ignore", category=UserWarning)

IMAGE_DIR_NAME = "image"
OUTPUT_FILE_NAME = "index.html"
IMAGE_RE = re.compile(r".*\.(jpg|jpeg|gif|png|bmp|svg)")

# Destination paths longer than this are cut down to MAX_IMAGE_PATH_KEEP chars
# plus the original three-letter extension
MAX_IMAGE_PATH_LEN = 150
MAX_IMAGE_PATH_KEEP = 140


class EpubReadError(Exception):
    """The EPUB container could not be opened or its package files read."""

    def __init__(self, epub_path: Path, reason: str):
        self.epub_path = epub_path
        self.reason = reason
        super().__init__(f"{reason} ({epub_path})")


# ===========================================================================
# Reading
# ===========================================================================
def read_epub(epub_path: Path) -> ep.EpubBook:
    """Read and return an EpubBook object.

    Raises EpubReadError for a missing file, a broken zip, or a container
    whose META-INF/container.xml or OPF package ebooklib cannot load.
    """
    print(f"Reading EPUB: {epub_path.name}")
    try:
        book = ep.read_epub(str(epub_path), {"ignore_ncx": True})
    except ep.EpubException as exc:
        raise EpubReadError(epub_path, str(getattr(exc, "msg", exc))) from exc
    except (OSError, zipfile.BadZipFile, KeyError, AttributeError, etree.LxmlError) as exc:
        raise EpubReadError(epub_path, f"{type(exc).__name__}: {exc}") from exc
    title = book_title(book, epub_path)
    if title:
        print(f"  Title:  {title}")
    return book


def book_title(book: ep.EpubBook, epub_path: Path) -> str:
    title = book.get_metadata("DC", "title")
    return title[0][0] if title else epub_path.stem


def iter_stylesheets(book: ep.EpubBook):
    """Yield ``(name, content_bytes)`` for every stylesheet in archive order."""
    for item in book.get_items_of_type(ebooklib.ITEM_STYLE):
        yield item.get_name(), item.get_content()


def iter_documents(book: ep.EpubBook):
    """Yield ``(name, content_bytes)`` for every content document in spine order."""
    for item_id, _linear in book.spine:
        item = book.get_item_with_id(item_id)
        if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue
        yield item.get_name(), item.content


# ===========================================================================
# Writing
# ===========================================================================
def output_dir_for(epub_path: Path) -> Path:
    """``books/foo.epub`` -> ``books/foo``."""
    name = epub_path.name
    if name.endswith(".epub"):
        name = name[: -len(".epub")]
    return epub_path.with_name(name)


def truncate_image_path(dest_path: Path) -> Path:
    """Shorten over-long image destinations, keeping the 3-char extension."""
    path_str = str(dest_path)
    if len(path_str) > MAX_IMAGE_PATH_LEN:
        path_str = path_str[:MAX_IMAGE_PATH_KEEP] + "." + path_str[-3:]
    return Path(path_str)


def extract_images(book: ep.EpubBook, output_dir: Path) -> list[Path]:
    """Copy every image in the archive into ``<output_dir>/image/``."""
    image_dir = output_dir / IMAGE_DIR_NAME
    written: list[Path] = []

    for item in book.get_items():
        name = item.get_name()
        if not IMAGE_RE.match(name):
            continue
        image_dir.mkdir(parents=True, exist_ok=True)
        dest_path = truncate_image_path(image_dir / name.split("/")[-1])
        dest_path.write_bytes(item.get_content())
        written.append(dest_path)

    if written:
        print(f"  Copied {len(written)} image(s) to {image_dir}")
    return written


def escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def write_output_html(body_html: str, output_dir: Path, title: str) -> Path:
    """Wrap the simplified body in a minimal page and write ``index.html``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    html_doc = (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{escape_html(title)}</title>\n"
        "</head>\n<body>\n"
        f"{body_html}\n"
        "</body>\n</html>"
    )
    html_path = output_dir / OUTPUT_FILE_NAME
    html_path.write_text(html_doc, encoding="utf-8")
    return html_path
