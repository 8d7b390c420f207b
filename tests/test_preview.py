"""Tests for the raster fill preview."""

from formfill.pdf.loader import load_pdf_bytes
from formfill.service.preview import render_fill_preview, render_fill_preview_png

from conftest import data_url, make_png

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def field_box(template, field_id, image):
    rect = template.get_field(field_id).rect.scaled(image.width, image.height)
    return tuple(int(round(value)) for value in (rect.x, rect.y, rect.right, rect.bottom))


def darkest(image, box):
    return min(image.convert("L").crop(box).getdata())


def test_values_are_drawn_in_their_fields(template, pdf_bytes):
    values = {
        "field_1": "Jane Doe",
        "field_3": "yes",
        "field_4": data_url(make_png(120, 40, (0, 0, 0, 255))),
    }
    with load_pdf_bytes(pdf_bytes) as document:
        blank = render_fill_preview(document, template, {}, zoom=1.0)
        filled = render_fill_preview(document, template, values, zoom=1.0)

    assert filled.size == blank.size
    for field_id in ("field_1", "field_3", "field_4"):
        box = field_box(template, field_id, filled)
        assert darkest(blank, box) == 255
        assert darkest(filled, box) < 100
    assert darkest(filled, field_box(template, "field_2", filled)) == 255


def test_bad_signature_does_not_stop_other_fields(template, pdf_bytes):
    values = {"field_1": "Jane Doe", "field_4": "data:image/png;base64,@@@"}
    with load_pdf_bytes(pdf_bytes) as document:
        image = render_fill_preview(document, template, values, zoom=1.0)
    assert darkest(image, field_box(template, "field_1", image)) < 100
    assert darkest(image, field_box(template, "field_4", image)) == 255


def test_png_output(template, pdf_bytes):
    with load_pdf_bytes(pdf_bytes) as document:
        assert render_fill_preview_png(document, template, {"field_1": "x"}).startswith(PNG_MAGIC)
