"""PDF merger - concatenates rendered pages into the final book."""

import logging
from pathlib import Path
from typing import Iterable

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from bookify.errors import MergeError

logger = logging.getLogger(__name__)


def merge_files(input_paths: Iterable, output_path) -> Path:
    """Concatenate PDFs in the given order into ``output_path``.

    Missing or unreadable inputs are skipped.

    Raises:
        MergeError: If no input contributed a page.
    """
    writer = PdfWriter()
    merged = 0

    for path in input_paths:
        path = Path(path)
        if not path.is_file():
            logger.debug("File mancante, saltato: %s", path)
            continue
        try:
            reader = PdfReader(str(path))
            for page in reader.pages:
                writer.add_page(page)
        except (PyPdfError, OSError, ValueError) as e:
            logger.warning("PDF non leggibile, saltato: %s (%s)", path.name, e)
            continue
        merged += 1

    if len(writer.pages) == 0:
        raise MergeError("No pages to merge")

    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "wb") as f:
        writer.write(f)

    logger.info("Uniti %d file (%d pagine) in %s", merged, len(writer.pages), out.name)
    return out
