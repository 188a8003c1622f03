import datetime
import io
import logging
from typing import List, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from PIL import Image, UnidentifiedImageError
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from alzeye_server.errors import ExportFailure, InputUnavailable
from alzeye_server.io_schemas import ClassificationPair, InterpretResponse, PredictResponse

logger = logging.getLogger(__name__)

REPORT_FILE_NAME = "AlzEyePredict_Risk_Report.pdf"
DISCLAIMER = ("Disclaimer: This is an AI-generated preliminary screening result, not a medical diagnosis. "
              "Always consult a qualified healthcare professional.")


def _now_utc() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def breakdown_chart_png(predictions: Sequence[ClassificationPair]) -> bytes:
    """Bar chart of every class probability, as PNG bytes."""
    labels = [p.label for p in predictions]
    vals = [p.probability for p in predictions]
    fig, ax = plt.subplots(figsize=(5.5, 2.6), dpi=150)
    try:
        ax.bar(labels, vals)
        ax.set_ylim(0, 1)
        ax.set_ylabel("Probability")
        ax.set_title("Classification breakdown", fontsize=11)
        for i, v in enumerate(vals):
            ax.text(i, v + 0.02, f"{v:.2f}", ha="center", va="bottom", fontsize=9)
        buf = io.BytesIO()
        fig.savefig(buf, format="PNG", bbox_inches="tight")
        return buf.getvalue()
    finally:
        plt.close(fig)


def wrap_lines(text: str, font: str, size: float, width: float) -> List[str]:
    """Split text into lines no wider than ``width`` points in the given font."""
    return simpleSplit(text, font, size, width)


def load_preview(data: bytes) -> Image.Image:
    """Open an uploaded file for on-page preview."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InputUnavailable(f"Could not read the uploaded image: {e}") from e
    return img


def _rgb(png_or_jpg: bytes) -> Image.Image:
    pil = Image.open(io.BytesIO(png_or_jpg))
    if pil.mode in ("RGBA", "LA"):
        bg = Image.new("RGB", pil.size, (255, 255, 255))
        bg.paste(pil, mask=pil.split()[-1])
        return bg
    return pil.convert("RGB")


def make_risk_report_pdf(prediction: PredictResponse, interpretation: InterpretResponse,
                         image_bytes: Optional[bytes] = None,
                         chart_png: Optional[bytes] = None) -> bytes:
    try:
        return _render_pdf(prediction, interpretation, image_bytes, chart_png)
    except Exception as e:
        logger.error("PDF export failed: %s", e)
        raise ExportFailure(str(e)) from e


def _render_pdf(prediction, interpretation, image_bytes, chart_png) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    W, H = A4; m = 16*mm; y = H - m

    def ensure(space):
        nonlocal y
        if y - space < 20*mm:
            c.showPage(); y = H - m

    def writeln(txt, size=11, leading=14):
        nonlocal y
        for para in (txt or "").splitlines() or [""]:
            for line in wrap_lines(para, "Helvetica", size, W - 2*m) or [""]:
                ensure(leading)
                c.setFont("Helvetica", size)
                c.drawString(m, y, line); y -= leading

    def heading(txt, size=12):
        nonlocal y
        ensure(20)
        c.setFont("Helvetica-Bold", size); c.drawString(m, y, txt); y -= 16

    def picture(data, title, height_ratio):
        nonlocal y
        w = W - 2*m; h = w * height_ratio
        ensure(h + 30)
        heading(title)
        c.drawImage(ImageReader(_rgb(data)), m, y - h, width=w, height=h, preserveAspectRatio=True, mask=None)
        y -= h + 12

    eff = interpretation.effective
    c.setFont("Helvetica-Bold", 14); c.drawString(m, y, "AlzEye Predict – Risk Report"); y -= 18
    writeln(f"Generated: {_now_utc()}"); writeln(f"Image: {prediction.case_id}"); y -= 6
    heading(f"Effective class: {eff.label} ({interpretation.confidence_percent}% confidence)")
    writeln(f"Risk category: {interpretation.risk_category.value}")
    writeln("Classification breakdown:")
    for p in prediction.predictions:
        writeln(f"• {p.label}: {p.probability * 100:.1f}%")
    y -= 8

    if image_bytes:
        picture(image_bytes, "Uploaded image", 0.45)
    if chart_png:
        picture(chart_png, "Breakdown chart", 0.45)

    narrative = interpretation.narrative
    heading("Interpretation"); writeln(narrative.interpretation); y -= 6
    heading("Risk visualization"); writeln(narrative.visualization); y -= 6
    heading("Suggested next steps"); writeln(narrative.next_steps); y -= 10

    c.setFont("Helvetica-Oblique", 8)
    for i, line in enumerate(wrap_lines(DISCLAIMER, "Helvetica-Oblique", 8, W - 2*m)):
        c.drawString(m, 16*mm - i * 10, line)
    c.showPage(); c.save(); return buf.getvalue()
