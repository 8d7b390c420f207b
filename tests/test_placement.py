"""Tests for field placement: selection, drag/resize sessions and duplication."""

import pytest

from formfill.model.field import FieldType
from formfill.model.geometry import Rect, Size
from formfill.model.template import Template
from formfill.state.placement import (
    MIN_HEIGHT,
    MIN_WIDTH,
    DragSession,
    InteractionError,
    PlacementModel,
    ResizeHandle,
    ResizeSession,
    drag_rect,
    resize_rect,
)
from formfill.viewer.coordinates import FALLBACK_DISPLAY_RECT

from conftest import make_field

NATURAL = Size(612.0, 792.0)


def as_tuple(rect):
    return (rect.x, rect.y, rect.width, rect.height)


@pytest.fixture
def model():
    template = Template(name="Form", document="base.pdf", natural_size=NATURAL, page_count=2)
    placement = PlacementModel(template)
    placement.set_canvas(NATURAL)
    return placement


def place(model, field_id, display, page=1):
    """Add a field whose display rect on the mounted canvas is ``display``."""
    item = make_field(field_id, page=page, rect=as_tuple(model.space.normalize(Rect(*display))))
    model.template.add_field(item)
    return item


# ---------------------------------------------------------------------------
# Pure geometry
# ---------------------------------------------------------------------------

class TestResizeRect:
    def test_north_west_keeps_south_east_corner(self):
        rect = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.NW, -20, -10)
        assert as_tuple(rect) == (80, 90, 220, 110)
        assert (rect.right, rect.bottom) == (300, 200)

    def test_south_east_grows_from_origin(self):
        rect = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.SE, 30, 15)
        assert as_tuple(rect) == (100, 100, 230, 115)

    def test_north_east_and_south_west(self):
        ne = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.NE, 10, 10)
        assert as_tuple(ne) == (100, 110, 210, 90)
        sw = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.SW, 10, 10)
        assert as_tuple(sw) == (110, 100, 190, 110)

    def test_minimum_size_floor(self):
        rect = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.SE, -500, -500)
        assert (rect.width, rect.height) == (MIN_WIDTH, MIN_HEIGHT)

    def test_floor_keeps_opposite_corner_fixed(self):
        rect = resize_rect(Rect(100, 100, 200, 100), ResizeHandle.NW, 500, 500)
        assert (rect.width, rect.height) == (MIN_WIDTH, MIN_HEIGHT)
        assert (rect.right, rect.bottom) == (300, 200)


class TestDragRect:
    def test_moves_by_delta(self):
        assert as_tuple(drag_rect(Rect(100, 100, 50, 30), 25, -10)) == (125, 90, 50, 30)

    def test_clamped_at_origin(self):
        assert as_tuple(drag_rect(Rect(100, 100, 50, 30), -500, -500)) == (0, 0, 50, 30)


# ---------------------------------------------------------------------------
# Placement model
# ---------------------------------------------------------------------------

class TestAddField:
    def test_adds_at_fallback_rect_and_selects(self, model):
        item = model.add_field(FieldType.SIGNATURE)
        assert item.id == "field_1"
        assert item.name == "Signature 1"
        assert model.selected_field_id == "field_1"
        assert as_tuple(model.display_rect(item.id)) == pytest.approx(as_tuple(FALLBACK_DISPLAY_RECT))

    def test_ids_continue_after_existing_fields(self, model):
        place(model, "field_7", (10, 10, 100, 40))
        fresh = PlacementModel(model.template)
        fresh.set_canvas(NATURAL)
        assert fresh.add_field(FieldType.TEXT).id == "field_8"

    def test_requires_mounted_canvas(self, model):
        model.set_canvas(None)
        assert model.add_field(FieldType.TEXT) is None
        assert model.fields == []


class TestSelection:
    def test_field_at_prefers_topmost(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        place(model, "field_2", (150, 150, 200, 100))
        assert model.field_at(160, 160).id == "field_2"
        assert model.field_at(110, 110).id == "field_1"
        assert model.field_at(5, 5) is None

    def test_handle_hit_test(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        assert model.handle_at("field_1", 102, 98) is ResizeHandle.NW
        assert model.handle_at("field_1", 300, 200) is ResizeHandle.SE
        assert model.handle_at("field_1", 200, 150) is None

    def test_selected_handle_outside_the_field(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        assert model.field_at(97, 97) is None
        assert model.hit_test(97, 97) == (None, None)

        model.select("field_1")
        clicked, handle = model.hit_test(97, 97)
        assert clicked.id == "field_1"
        assert handle is ResizeHandle.NW

    def test_hit_test_inside_field(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        clicked, handle = model.hit_test(200, 150)
        assert clicked.id == "field_1"
        assert handle is None
        assert model.hit_test(298, 198)[1] is ResizeHandle.SE

    def test_select_unknown_field(self, model):
        with pytest.raises(InteractionError):
            model.select("missing")

    def test_page_change_clears_selection(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        model.select("field_1")
        model.set_page(2)
        assert model.selected_field_id is None
        assert model.current_page_fields() == []

    def test_page_out_of_range(self, model):
        with pytest.raises(InteractionError):
            model.set_page(3)


class TestSessions:
    def test_drag_writes_normalized_rect(self, model):
        item = place(model, "field_1", (100, 100, 200, 100))
        model.begin_drag("field_1", 150, 150)
        moved = model.move_to(170, 140)
        model.end_session()

        assert as_tuple(moved) == pytest.approx((120, 90, 200, 100))
        assert item.rect.x == pytest.approx(120 / NATURAL.width)
        assert item.rect.y == pytest.approx(90 / NATURAL.height)

    def test_resize_through_model(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        with model.resizing("field_1", ResizeHandle.NW, 100, 100):
            rect = model.move_to(80, 90)
        assert as_tuple(rect) == pytest.approx((80, 90, 220, 110))
        assert as_tuple(model.display_rect("field_1")) == pytest.approx((80, 90, 220, 110))

    def test_resize_survives_zoom(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        model.set_canvas(Size(NATURAL.width * 2, NATURAL.height * 2))
        with model.resizing("field_1", ResizeHandle.SE, 600, 400):
            model.move_to(640, 420)
        model.set_canvas(NATURAL)
        assert as_tuple(model.display_rect("field_1")) == pytest.approx((100, 100, 220, 110))

    def test_only_one_session(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        place(model, "field_2", (300, 300, 100, 50))
        session = model.begin_drag("field_1", 110, 110)
        assert isinstance(session, DragSession)

        with pytest.raises(InteractionError):
            model.begin_resize("field_2", ResizeHandle.SE, 400, 350)
        assert model.active_session is session

    def test_session_needs_canvas(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        model.set_canvas(None)
        with pytest.raises(InteractionError):
            model.begin_drag("field_1", 110, 110)

    def test_context_manager_ends_session_on_error(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        with pytest.raises(KeyError):
            with model.resizing("field_1", ResizeHandle.SE, 300, 200) as session:
                assert isinstance(session, ResizeSession)
                raise KeyError("boom")
        assert model.active_session is None
        model.begin_drag("field_1", 110, 110)

    def test_move_without_session_is_ignored(self, model):
        assert model.move_to(10, 10) is None

    def test_deleting_dragged_field_ends_session(self, model):
        place(model, "field_1", (100, 100, 200, 100))
        model.begin_drag("field_1", 110, 110)
        assert model.delete("field_1")
        assert model.active_session is None
        assert model.selected_field_id is None


class TestDuplicate:
    def test_creates_grouped_instances(self, model):
        source = place(model, "field_1", (100, 100, 200, 100))
        model.select("field_1")

        first_copy = model.duplicate_selected()
        assert source.group == "field_1"
        assert source.instance_number == 1
        assert first_copy.group == "field_1"
        assert first_copy.instance_number == 2
        assert as_tuple(model.display_rect(first_copy.id)) == pytest.approx((112, 112, 200, 100))
        assert model.selected_field_id == first_copy.id

        second_copy = model.duplicate_selected()
        assert second_copy.instance_number == 3
        assert len({item.id for item in model.fields}) == 3

    def test_nothing_selected(self, model):
        assert model.duplicate_selected() is None
        assert not model.delete_selected()
