"""Tests for the command line interface."""

from io import BytesIO

from PIL import Image
import pytest
from pypdf import PdfReader
from typer.testing import CliRunner

from formfill.cli import app

from conftest import write_json

runner = CliRunner()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "formfill.yaml"
    path.write_text(
        f"data_dir: {tmp_path / 'data'}\n"
        f"output_dir: {tmp_path / 'filled'}\n"
        f"uploads_dir: {tmp_path / 'uploads'}\n",
        encoding="utf-8",
    )
    return path


def invoke(config, *args):
    return runner.invoke(app, ["--config", str(config), *[str(arg) for arg in args]])


def test_compose(tmp_path, config, template):
    definition = write_json(tmp_path / "template.json", template.to_dict())
    values = write_json(tmp_path / "values.json", {"field_1": "Composed value", "field_3": "on"})
    output = tmp_path / "out.pdf"

    result = invoke(config, "compose", definition, values, output)

    assert result.exit_code == 0, result.output
    text = PdfReader(BytesIO(output.read_bytes())).pages[0].extract_text()
    assert "Composed value" in text


def test_compose_with_bad_template(tmp_path, config):
    definition = write_json(tmp_path / "template.json", {"name": "broken"})
    values = write_json(tmp_path / "values.json", {})
    result = invoke(config, "compose", definition, values, tmp_path / "out.pdf")
    assert result.exit_code == 1
    assert not (tmp_path / "out.pdf").exists()


def test_render_page(tmp_path, config, pdf_file):
    output = tmp_path / "page.png"
    result = invoke(config, "render", pdf_file, 1, output, "--zoom", "1.0")

    assert result.exit_code == 0, result.output
    with Image.open(output) as image:
        assert abs(image.width - 595) <= 1


def test_render_preview(tmp_path, config, pdf_file, template):
    definition = write_json(tmp_path / "template.json", template.to_dict())
    values = write_json(tmp_path / "values.json", {"field_1": "Preview"})
    output = tmp_path / "preview.png"

    result = invoke(config, "render", pdf_file, 1, output, "--template", definition, "--values", values)

    assert result.exit_code == 0, result.output
    assert output.exists()


def test_render_page_out_of_range(tmp_path, config, pdf_file):
    result = invoke(config, "render", pdf_file, 4, tmp_path / "page.png")
    assert result.exit_code == 1


def test_request_workflow(tmp_path, config, pdf_file):
    result = invoke(config, "new-template", pdf_file, "--name", "Leave")
    assert result.exit_code == 0, result.output
    assert "Created template 1" in result.output

    result = invoke(config, "templates")
    assert "Leave" in result.output

    result = invoke(config, "new-request", 1)
    assert result.exit_code == 0, result.output

    values = write_json(tmp_path / "values.json", {"field_1": "x"})
    result = invoke(config, "set-values", 1, values)
    assert result.exit_code == 0, result.output
    assert "field_1\tcreated" in result.output

    result = invoke(config, "fill", 1)
    assert result.exit_code == 0, result.output
    assert (tmp_path / "filled" / "request-1-filled.pdf").exists()


def test_new_request_for_unknown_template(config):
    result = invoke(config, "new-request", 9)
    assert result.exit_code == 1


def test_compose_rejects_non_object_values(tmp_path, config, template):
    definition = write_json(tmp_path / "template.json", template.to_dict())
    values = write_json(tmp_path / "values.json", ["Jane", "Doe"])
    output = tmp_path / "out.pdf"

    result = invoke(config, "compose", definition, values, output)

    assert result.exit_code == 1
    assert "JSON object" in result.output
    assert not output.exists()
