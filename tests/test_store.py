"""Tests for the JSON template and request stores."""

from pathlib import Path

import pytest

from formfill.model.field import TemplateError
from formfill.model.request import RequestStatus
from formfill.state.store import RequestStore, StoreError, TemplateStore, generate_token

from conftest import A4_SIZE, make_pdf


@pytest.fixture
def templates(tmp_path):
    return TemplateStore(tmp_path / "templates", tmp_path / "uploads")


@pytest.fixture
def requests_store(tmp_path):
    return RequestStore(tmp_path / "requests")


class TestTemplateStore:
    def test_ids_are_sequential(self, templates, template):
        first = templates.save(template)
        assert first.id == 1
        template.id = None
        assert templates.save(template).id == 2
        assert [item.id for item in templates.list()] == [1, 2]

    def test_get_round_trips(self, templates, template):
        saved = templates.save(template)
        loaded = templates.get(saved.id)
        assert loaded.name == template.name
        assert [item.id for item in loaded.fields] == [item.id for item in template.fields]

    def test_unknown_id(self, templates):
        with pytest.raises(StoreError):
            templates.get(42)

    def test_list_on_missing_directory(self, templates):
        assert templates.list() == []

    def test_list_skips_unreadable(self, templates, template):
        templates.save(template)
        (templates.root / "template-2.json").write_text("{not json", encoding="utf-8")
        assert [item.id for item in templates.list()] == [1]

    def test_active_and_delete(self, templates, template):
        templates.save(template)
        template.id = None
        template.is_active = False
        templates.save(template)
        assert [item.id for item in templates.active()] == [1]
        assert templates.delete(2)
        assert not templates.delete(2)

    def test_create_from_document(self, tmp_path, templates):
        source = tmp_path / "form.pdf"
        source.write_bytes(make_pdf(pages=3))

        created = templates.create_from_document("Form", source)
        assert created.id == 1
        assert created.page_count == 3
        assert created.natural_size.width == pytest.approx(A4_SIZE.width)
        uploaded = Path(created.document)
        assert uploaded.parent == tmp_path / "uploads"
        assert uploaded.name.startswith("template_")
        assert uploaded.read_bytes() == source.read_bytes()

    def test_rejects_non_pdf(self, tmp_path, templates):
        source = tmp_path / "notes.pdf"
        source.write_text("plain text", encoding="utf-8")
        with pytest.raises(TemplateError):
            templates.import_document(source)
        with pytest.raises(TemplateError):
            templates.import_document(tmp_path / "missing.pdf")


class TestRequestStore:
    def test_create_and_filter(self, requests_store):
        requests_store.create(1)
        requests_store.create(2)
        requests_store.create(1)
        assert [item.id for item in requests_store.for_template(1)] == [1, 3]

    def test_values_persist(self, requests_store):
        request = requests_store.create(1)
        request.set_value("field_1", "Jane")
        requests_store.save(request)

        loaded = requests_store.get(request.id)
        assert loaded.values == {"field_1": "Jane"}
        assert loaded.status is RequestStatus.IN_PROGRESS


def test_generate_token():
    token = generate_token()
    assert len(token) == 32
    assert token.isalnum()
    assert generate_token(8) != generate_token(8)
