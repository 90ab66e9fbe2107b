import logging
import os

from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .settings import DEFAULT_SETTINGS, CanvasSettings

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# PDF export of rendered card faces
# ─────────────────────────────────────────────

def export_pdf_from_list(image_list, output_path, settings: CanvasSettings = DEFAULT_SETTINGS):
    """
    Write a PDF with one card-sized page per image.
    Items may be PIL images or paths to PNG/JPG files; missing paths are skipped.
    """

    if not image_list:
        raise ValueError("Nothing to export: the image list is empty")

    folder = os.path.dirname(output_path)
    if folder:
        os.makedirs(folder, exist_ok=True)

    page_w, page_h = settings.card_width, settings.card_height
    pdf = canvas.Canvas(output_path, pagesize=(page_w, page_h))

    pages = 0
    for item in image_list:
        if isinstance(item, Image.Image):
            reader = ImageReader(item)
        else:
            if not os.path.exists(item):
                logger.warning("PDF export: file does not exist and is skipped: %s", item)
                continue
            reader = ImageReader(item)

        pdf.drawImage(reader, 0, 0, width=page_w, height=page_h, preserveAspectRatio=True, mask="auto")
        pdf.showPage()
        pages += 1

    pdf.save()
    logger.info("PDF saved: %s (%d pages)", output_path, pages)
    return pages
