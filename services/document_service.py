"""
Image download and PDF assembly for story exports
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Optional, Union
from xml.sax.saxutils import escape
import asyncio
import logging
import uuid

import aiohttp
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, PageBreak, Paragraph, SimpleDocTemplate, Spacer

from utils.errors import UpstreamTransportError
from utils.text_utils import split_paragraphs

logger = logging.getLogger(__name__)

IMAGE_BOX = (500, 500)
DOWNLOAD_CHUNK_SIZE = 64 * 1024


async def fetch_image(
    url: str,
    scratch_dir: Union[str, Path],
    timeout: float = 60,
    session_factory: Callable[..., Any] = aiohttp.ClientSession,
) -> Path:
    """Stream a remote image into a unique file under scratch_dir and return its path"""
    scratch = Path(scratch_dir)
    await asyncio.to_thread(scratch.mkdir, parents=True, exist_ok=True)
    target = scratch / f"image_{uuid.uuid4().hex}.png"

    try:
        async with session_factory(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                # File I/O stays off the event loop
                f = await asyncio.to_thread(open, target, "wb")
                try:
                    async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                        await asyncio.to_thread(f.write, chunk)
                finally:
                    await asyncio.to_thread(f.close)
    except asyncio.TimeoutError:
        target.unlink(missing_ok=True)
        logger.error("Image download timed out after %ss: %s", timeout, url)
        raise UpstreamTransportError(f"Image download timed out after {timeout}s")
    except aiohttp.ClientResponseError as e:
        target.unlink(missing_ok=True)
        logger.error("Image host returned %s for %s", e.status, url)
        raise UpstreamTransportError(f"Image download failed: {e.status}", status=e.status)
    except aiohttp.ClientError as e:
        target.unlink(missing_ok=True)
        logger.error("Image download failed (%s): %s", type(e).__name__, str(e))
        raise UpstreamTransportError(f"Image download failed: {str(e)}")

    return target


def _image_flowable(image_path: Union[str, Path]) -> Image:
    """Normalise to RGB PNG and scale into IMAGE_BOX keeping the aspect ratio"""
    with PILImage.open(image_path) as img:
        rgb = img.convert("RGB")
    width, height = rgb.size
    scale = min(IMAGE_BOX[0] / width, IMAGE_BOX[1] / height)

    buffer = BytesIO()
    rgb.save(buffer, format="PNG")
    buffer.seek(0)

    flowable = Image(buffer, width=width * scale, height=height * scale)
    flowable.hAlign = "CENTER"
    return flowable


def build_pdf(
    title: str,
    image_path: Optional[Union[str, Path]],
    story: str,
    compress: bool = True,
) -> bytes:
    """Title (and image) on page 1, story body from page 2 on"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=title or "Story",
        pageCompression=1 if compress else 0,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "StoryTitle",
        parent=styles["Title"],
        fontSize=28,
        leading=34,
        textColor=colors.red,
        alignment=TA_CENTER,
    )
    body_style = ParagraphStyle(
        "StoryBody",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=12,
        leading=16,
        textColor=colors.black,
        alignment=TA_LEFT,
        spaceAfter=10,
    )

    elements = [Paragraph(escape(title or ""), title_style), Spacer(1, 12)]

    if image_path:
        elements.append(_image_flowable(image_path))
        elements.append(Spacer(1, 12))

    elements.append(PageBreak())
    for para in split_paragraphs(story):
        elements.append(Paragraph(escape(para.strip()).replace("\n", "<br/>"), body_style))

    doc.build(elements)
    return buffer.getvalue()
