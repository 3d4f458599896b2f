"""Export pipeline: render a form's responses as CSV, JSON or PDF.

All renderers take the form's ordered fields and its responses (newest
first) and return the file body as bytes; generation is synchronous and
entirely in memory.
"""

import csv
import io
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote
from zoneinfo import ZoneInfo

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from formbuilder.core.config import settings
from formbuilder.models.form import Form
from formbuilder.models.form_field import FormField
from formbuilder.models.form_response import FormResponse
from formbuilder.services.responses import parse_response_data

logger = logging.getLogger(__name__)

DATE_HEADER = "Data/Hora"
IP_HEADER = "IP"

HEADER_FILL = colors.Color(59 / 255, 130 / 255, 246 / 255)
STRIPE_FILL = colors.Color(245 / 255, 247 / 255, 250 / 255)


class ExportError(Exception):
    """Raised for unsupported export requests."""


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    media_type: str
    filename: str

    @property
    def content_disposition(self) -> str:
        fallback = self.filename.encode("ascii", "ignore").decode("ascii").replace('"', "") or "export"
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(self.filename)}"


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def format_timestamp(value: datetime, tz_name: str | None = None) -> str:
    """``dd/mm/yyyy HH:MM:SS`` in the export timezone. Naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name or settings.EXPORT_TIMEZONE)).strftime("%d/%m/%Y %H:%M:%S")


def format_value(value: Any, missing: str = "") -> str:
    if value is None:
        return missing
    if isinstance(value, bool):
        return "Sim" if value else "Não"
    if isinstance(value, list):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def build_rows(
    fields: list[FormField], responses: list[FormResponse], missing: str = ""
) -> list[list[str]]:
    """One row per response: timestamp, each field value in field order, IP."""
    rows = []
    for response in responses:
        values = {e["fieldId"]: e.get("value") for e in parse_response_data(response.data)}
        row = [format_timestamp(response.created_at)]
        row.extend(format_value(values.get(str(field.id)), missing) for field in fields)
        row.append(response.ip or missing)
        rows.append(row)
    return rows


def headers_for(fields: list[FormField]) -> list[str]:
    return [DATE_HEADER, *(field.label for field in fields), IP_HEADER]


def export_filename(form_name: str, extension: str) -> str:
    base = re.sub(r'[\\/:*?"<>|\r\n]+', "", form_name).strip() or "formulario"
    return f"{base}-respostas.{extension}"


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def render_csv(fields: list[FormField], responses: list[FormResponse]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers_for(fields))
    writer.writerows(build_rows(fields, responses))
    return output.getvalue().encode("utf-8")


def render_json(responses: list[FormResponse]) -> bytes:
    payload = [
        {
            "id": str(response.id),
            "createdAt": response.created_at.isoformat(),
            "ip": response.ip,
            "data": response.data,
        }
        for response in responses
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def _markup(text: str) -> str:
    """Escape text for ReportLab Paragraph markup, keeping line breaks."""
    escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return escaped.replace("\n", "<br/>")


def render_pdf(form: Form, fields: list[FormField], responses: list[FormResponse]) -> bytes:
    """Landscape A4 table; the header row repeats on every page."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title=f"Respostas: {form.name}",
    )
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=8, leading=10)
    head_style = cell_style.clone("head", fontName="Helvetica-Bold", textColor=colors.white)
    meta_style = styles["Normal"].clone("meta", fontSize=10, textColor=colors.grey)

    def cell(text: str, style) -> Paragraph:
        return Paragraph(_markup(text), style)

    data = [[cell(h, head_style) for h in headers_for(fields)]]
    data.extend(
        [cell(v, cell_style) for v in row] for row in build_rows(fields, responses, missing="-")
    )

    columns = len(data[0])
    table = Table(data, colWidths=[doc.width / columns] * columns, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, STRIPE_FILL]),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("TOPPADDING", (0, 0), (-1, -1), 2 * mm),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 2 * mm),
            ]
        )
    )

    generated_at = format_timestamp(datetime.now(timezone.utc))
    story = [
        Paragraph(_markup(f"Respostas: {form.name}"), styles["Title"]),
        Paragraph(f"Total de respostas: {len(responses)}", meta_style),
        Paragraph(f"Gerado em: {generated_at}", meta_style),
        Spacer(1, 4 * mm),
        table,
    ]
    doc.build(story)
    return buffer.getvalue()


def export_responses(
    form: Form, fields: list[FormField], responses: list[FormResponse], fmt: str
) -> ExportFile:
    fmt = (fmt or "csv").lower()
    if fmt == "csv":
        content, media_type = render_csv(fields, responses), "text/csv; charset=utf-8"
    elif fmt == "json":
        content, media_type = render_json(responses), "application/json"
    elif fmt == "pdf":
        content, media_type = render_pdf(form, fields, responses), "application/pdf"
    else:
        raise ExportError("Unsupported format. Use csv, json or pdf.")

    logger.info("responses_exported form=%s format=%s count=%d", form.id, fmt, len(responses))
    return ExportFile(content=content, media_type=media_type, filename=export_filename(form.name, fmt))
