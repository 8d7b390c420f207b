"""Pytest configuration and shared fixtures for formfill tests."""

import base64
from io import BytesIO
import json

import pytest
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from formfill.model.field import FieldType, TemplateField
from formfill.model.geometry import Rect, Size
from formfill.model.template import Template

A4_SIZE = Size(*A4)


def make_pdf(pages=1, pagesize=A4, labels=True):
    """Build a small PDF in memory; each page optionally carries a 'Page n' heading."""
    buffer = BytesIO()
    report = canvas.Canvas(buffer, pagesize=pagesize)
    for number in range(1, pages + 1):
        if labels:
            report.setFont("Helvetica", 10)
            report.drawString(20, pagesize[1] - 20, f"Page {number}")
        report.showPage()
    report.save()
    return buffer.getvalue()


def make_cropped_pdf(cropbox=(100, 100, 495, 742)):
    """An A4 page cropped to ``cropbox``; the default leaves 395 x 642 points visible."""
    writer = PdfWriter(clone_from=PdfReader(BytesIO(make_pdf(labels=False))))
    writer.pages[0].cropbox = RectangleObject(list(cropbox))
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_png(width=200, height=100, color=(20, 40, 200, 255)):
    image = Image.new("RGBA", (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def data_url(png):
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def make_field(field_id, field_type=FieldType.TEXT, page=1, rect=(0.1, 0.1, 0.3, 0.05), **extra):
    return TemplateField(
        id=field_id,
        name=field_id,
        field_type=field_type,
        page=page,
        rect=Rect(*rect),
        **extra,
    )


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def two_page_pdf():
    return make_pdf(pages=2)


@pytest.fixture
def pdf_file(tmp_path, pdf_bytes):
    path = tmp_path / "base.pdf"
    path.write_bytes(pdf_bytes)
    return path


@pytest.fixture
def signature_png():
    return make_png()


@pytest.fixture
def template(pdf_file):
    return Template(
        name="Leave request",
        document=str(pdf_file),
        natural_size=A4_SIZE,
        page_count=1,
        fields=[
            make_field("field_1", FieldType.TEXT, rect=(0.1, 0.1, 0.4, 0.05)),
            make_field("field_2", FieldType.DATE, rect=(0.1, 0.2, 0.2, 0.04)),
            make_field("field_3", FieldType.CHECKBOX, rect=(0.1, 0.3, 0.05, 0.04)),
            make_field("field_4", FieldType.SIGNATURE, rect=(0.1, 0.4, 0.3, 0.08)),
        ],
    )


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
