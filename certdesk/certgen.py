from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from datetime import date
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from . import constants as c
from .errors import RenderError
from .shared.assets import BACKGROUND_IMAGE, LOGO_LEFT, LOGO_RIGHT, resolve_asset
from .shared.time import fmt_issue_date

logger = logging.getLogger("certdesk.certgen")

PAGE_SIZE = landscape(A4)
BACKGROUND_MAX_WIDTH = 1200
LOGO_MAX_WIDTH = 400
LOGO_TOP = 40
LOGO_HEIGHT = 55
JPEG_QUALITY = 85

# (realpath, mtime_ns, max_width) -> encoded image bytes
_optimized_images: dict[tuple[str, int, int], bytes] = {}


@dataclass(frozen=True)
class CertificateAssets:
    """Where the renderer looks for its images and optional PDF template."""

    asset_dir: str | None = None
    cwd: str | None = None
    template_pdf: str | None = None

    @classmethod
    def from_config(cls, config) -> "CertificateAssets":
        return cls(
            asset_dir=config.get("CERT_ASSET_DIR") or None,
            template_pdf=config.get("CERT_TEMPLATE_PDF") or None,
        )

    def check(self) -> None:
        if self.asset_dir and not os.path.isdir(self.asset_dir):
            raise RenderError(f"Certificate asset directory missing: {self.asset_dir}")
        if self.template_pdf and not os.path.isfile(self.template_pdf):
            raise RenderError(f"Certificate template missing: {self.template_pdf}")

    def find(self, filename: str) -> str | None:
        return resolve_asset(filename, self.asset_dir, self.cwd)


def clear_image_cache() -> None:
    _optimized_images.clear()


def optimize_image(path: str, max_width: int) -> bytes:
    """Downscale an image for embedding, memoised per source file version.

    When Pillow cannot process the file the original bytes are returned.
    """

    real = os.path.realpath(path)
    key = (real, os.stat(real).st_mtime_ns, max_width)
    cached = _optimized_images.get(key)
    if cached is not None:
        return cached

    try:
        with Image.open(real) as img:
            img.load()
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            has_alpha = img.mode in ("RGBA", "LA") or (
                img.mode == "P" and "transparency" in img.info
            )
            out = BytesIO()
            if has_alpha:
                img.convert("RGBA").save(out, "PNG", optimize=True)
            else:
                img.convert("RGB").save(out, "JPEG", quality=JPEG_QUALITY, optimize=True)
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        logger.warning("[CERT-IMAGE] could not optimize %s, using original: %s", real, exc)
        with open(real, "rb") as fh:
            return fh.read()

    data = out.getvalue()
    _optimized_images[key] = data
    logger.info("[CERT-IMAGE] optimized %s (%d bytes, cached)", os.path.basename(real), len(data))
    return data


def _draw_background(pdf: canvas.Canvas, path: str, width: float, height: float) -> None:
    try:
        reader = ImageReader(BytesIO(optimize_image(path, BACKGROUND_MAX_WIDTH)))
        img_w, img_h = reader.getSize()
        scale = max(width / img_w, height / img_h)
        draw_w, draw_h = img_w * scale, img_h * scale
        pdf.drawImage(reader, (width - draw_w) / 2, (height - draw_h) / 2, draw_w, draw_h)
    except Exception as exc:
        logger.warning("[CERT-IMAGE] background skipped path=%s error=%s", path, exc)


def _draw_logo(pdf: canvas.Canvas, path: str, x_center: float, top: float, height: float) -> None:
    try:
        reader = ImageReader(BytesIO(optimize_image(path, LOGO_MAX_WIDTH)))
        img_w, img_h = reader.getSize()
        draw_w = img_w * (LOGO_HEIGHT / img_h)
        pdf.drawImage(
            reader,
            x_center - draw_w / 2,
            height - top - LOGO_HEIGHT,
            draw_w,
            LOGO_HEIGHT,
            mask="auto",
        )
    except Exception as exc:
        logger.warning("[CERT-IMAGE] logo skipped path=%s error=%s", path, exc)


def _centered(pdf, text: str, font: str, size: float, color: str, top: float, height: float) -> None:
    pdf.setFont(font, size)
    pdf.setFillColor(HexColor(color))
    pdf.drawCentredString(PAGE_SIZE[0] / 2, height - top - size, text)


def _fit_font_size(pdf, text: str, font: str, largest: int, smallest: int, max_width: float) -> int:
    size = largest
    while size > smallest and pdf.stringWidth(text, font, size) > max_width:
        size -= 1
    return size


def _draw_certificate(name: str, submission_id: int, issue_date: date, assets: CertificateAssets) -> bytes:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE, invariant=1, pageCompression=1)
    width, height = PAGE_SIZE

    background = assets.find(BACKGROUND_IMAGE)
    if background:
        _draw_background(pdf, background, width, height)

    for filename, x_center in ((LOGO_LEFT, 120), (LOGO_RIGHT, width - 75)):
        logo = assets.find(filename)
        if logo:
            _draw_logo(pdf, logo, x_center, LOGO_TOP, height)

    brand_top = LOGO_TOP + LOGO_HEIGHT / 1.5
    _centered(pdf, c.ORGANIZER_BRAND, "Helvetica-Oblique", 20, c.COLOR_GOLD, brand_top, height)

    title_top = brand_top + 55
    _centered(pdf, c.CERTIFICATE_TITLE, "Helvetica-Bold", 28, c.COLOR_BARK, title_top, height)
    title_w = pdf.stringWidth(c.CERTIFICATE_TITLE, "Helvetica-Bold", 28)
    underline_y = height - (title_top + 32)
    pdf.setStrokeColor(HexColor(c.COLOR_GOLD))
    pdf.setLineWidth(2)
    pdf.line((width - title_w) / 2, underline_y, (width + title_w) / 2, underline_y)

    line_top = title_top + 55
    _centered(pdf, c.CERTIFICATE_LINES["awarded"], "Helvetica", 18, c.COLOR_BARK, line_top, height)

    name_size = _fit_font_size(pdf, name, "Helvetica-Bold", 38, 24, width - 80)
    _centered(pdf, name, "Helvetica-Bold", name_size, c.COLOR_FOREST, line_top + 60, height)

    _centered(pdf, c.CERTIFICATE_LINES["recognition"], "Helvetica", 20, c.COLOR_BARK, line_top + 110, height)
    _centered(pdf, c.EVENT_TITLE, "Helvetica-Bold", 26, c.COLOR_BARK, line_top + 150, height)
    _centered(pdf, c.CERTIFICATE_LINES["tagline"], "Helvetica-Oblique", 16, c.COLOR_OLIVE, line_top + 200, height)
    _centered(pdf, c.CERTIFICATE_LINES["organizer_1"], "Helvetica", 14, c.COLOR_BARK, line_top + 235, height)
    _centered(pdf, c.CERTIFICATE_LINES["organizer_2"], "Helvetica", 14, c.COLOR_BARK, line_top + 255, height)

    _centered(pdf, c.CERTIFICATE_LINES["hashtags"], "Helvetica", 11, c.COLOR_FOREST, height - 110, height)
    _centered(pdf, c.CERTIFICATE_LINES["digital_note"], "Helvetica-Oblique", 10, c.COLOR_OLIVE, height - 55, height)

    pdf.setFont("Helvetica", 12)
    pdf.setFillColor(HexColor(c.COLOR_BARK))
    footer_y = 70 - 12
    pdf.drawString(90, footer_y, f"Issued on: {fmt_issue_date(issue_date)}")
    pdf.drawRightString(
        width - 90,
        footer_y,
        f"Certificate ID: {c.certificate_id(submission_id, issue_date.year)}",
    )

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def _merge_onto_template(overlay_pdf: bytes, template_pdf: str) -> bytes:
    template = PdfReader(template_pdf)
    overlay = PdfReader(BytesIO(overlay_pdf))
    base_page = template.pages[0]
    base_page.merge_page(overlay.pages[0])

    writer = PdfWriter()
    writer.add_page(base_page)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


def render_certificate_pdf(
    name: str,
    submission_id: int,
    issue_date: date,
    assets: CertificateAssets | None = None,
) -> bytes:
    """Render a participation certificate and return the PDF bytes.

    Output depends only on the arguments and the asset files, so two calls
    with identical inputs produce identical bytes. Missing or unreadable
    images are skipped with a warning; a missing asset directory, a broken
    template or a drawing failure raises :class:`RenderError`.
    """

    assets = assets or CertificateAssets()
    display_name = (name or "").strip()
    if not display_name:
        raise RenderError("Participant name is empty", submission_id=submission_id)
    assets.check()

    try:
        pdf_bytes = _draw_certificate(display_name, submission_id, issue_date, assets)
        if assets.template_pdf:
            pdf_bytes = _merge_onto_template(pdf_bytes, assets.template_pdf)
    except PdfReadError as exc:
        raise RenderError(
            f"Certificate template unreadable: {exc}", submission_id=submission_id
        ) from exc
    except Exception as exc:
        logger.exception("[CERT-RENDER] failed submission=%s", submission_id)
        raise RenderError(
            f"Certificate rendering failed: {exc}", submission_id=submission_id
        ) from exc

    logger.info(
        "[CERT-RENDER] submission=%s bytes=%d sha256=%s",
        submission_id,
        len(pdf_bytes),
        hashlib.sha256(pdf_bytes).hexdigest()[:12],
    )
    return pdf_bytes
