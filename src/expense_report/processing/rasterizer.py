import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import pymupdf
from PIL import Image

from expense_report.config import settings
from expense_report.core.errors import RasterizationError, UnsupportedMediaTypeError
from expense_report.core.schema import ImageFile, PdfDocument, SourceFile
from expense_report.processing.image import decode_image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """One bitmap ready to be placed on its own page of the report."""
    image: Image.Image
    source_name: str
    page_index: int = 1
    page_count: int = 1
    paginated: bool = False

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def caption(self, label: str) -> str:
        text = f"{label}: {self.source_name}"
        if self.paginated:
            text += f" (Page {self.page_index} of {self.page_count})"
        return text


def _rasterize_image(source: ImageFile) -> List[Frame]:
    try:
        image = decode_image(source.data)
    except Exception as e:
        logger.error("Image decoding failed for %s: %s", source.name, e)
        raise RasterizationError(f"Could not read image {source.name}. File might be corrupted.") from e
    return [Frame(image=image, source_name=source.name)]


def _rasterize_document(source: PdfDocument, scale: float) -> List[Frame]:
    try:
        doc = pymupdf.open(stream=source.data, filetype="pdf")
    except Exception as e:
        logger.error("PDF opening failed for %s: %s", source.name, e)
        raise RasterizationError(f"Could not open PDF {source.name}. File might be corrupted.") from e

    frames = []
    with doc:
        page_count = doc.page_count
        if page_count == 0:
            raise RasterizationError(f"PDF {source.name} has no pages.")
        matrix = pymupdf.Matrix(scale, scale)
        for index, page in enumerate(doc, start=1):
            try:
                pixmap = page.get_pixmap(matrix=matrix, alpha=False)
                image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
            except Exception as e:
                logger.error("Rendering page %d of %s failed: %s", index, source.name, e)
                raise RasterizationError(f"Could not render page {index} of {source.name}.") from e
            logger.debug("Rendered %s page %d/%d at %dx%d", source.name, index, page_count, image.width, image.height)
            frames.append(Frame(image=image, source_name=source.name, page_index=index,
                                page_count=page_count, paginated=True))
    return frames


async def rasterize(source: SourceFile, scale: Optional[float] = None) -> List[Frame]:
    """Turns one source file into frames, one per renderable page, in page order.

    Every call decodes the file again; results are not cached.
    """
    scale = scale or settings.report.render_scale

    if isinstance(source, ImageFile):
        frames = await asyncio.to_thread(_rasterize_image, source)
    elif isinstance(source, PdfDocument):
        frames = await asyncio.to_thread(_rasterize_document, source, scale)
    else:
        raise UnsupportedMediaTypeError(source.name, source.media_type)

    logger.info("Rasterized %s into %d frame(s)", source.name, len(frames))
    return frames
