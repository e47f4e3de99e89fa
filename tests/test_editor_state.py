import pytest

from frameup.delivery.schemas.body import BorderConfig, Mode
from frameup.domain.decoration import PointerDown, PointerMove, PointerUp
from frameup.domain.editor_state import BorderAsset, EditorState, Photo
from frameup.domain.errors import DecorationNotFoundError
from frameup.domain.geometry import Rect

from helpers import border_art, solid


class Recorder:
    def __init__(self):
        self.snapshots = []

    def on_state_change(self, snapshot):
        self.snapshots.append(snapshot)


def photo(size=(500, 500)):
    return Photo(source_ref="photo.png", image=solid(size), original_size=size)


def border(settings=None):
    config = BorderConfig.model_validate(settings or {"width": "40", "outset": "0"})
    return BorderAsset(id="classic", config=config, source_ref="frame.png", image=border_art())


@pytest.fixture
def state():
    return EditorState()


def test_every_mutation_notifies_with_fresh_layout(state):
    recorder = Recorder()
    state.subscribe(recorder)

    state.set_image(photo((1000, 2000)))
    state.set_border(border(), width_ratio=0.1)

    assert len(recorder.snapshots) == 2
    layout = recorder.snapshots[-1].layout
    assert layout.canvas_size == (1000, 2000)
    assert layout.metrics.final_widths == pytest.approx((100, 100, 100, 100))
    assert layout.metrics.padding == (100, 100, 100, 100)
    assert layout.photo_rect == Rect(100, 100, 800, 1800)
    assert recorder.snapshots[0].version < recorder.snapshots[1].version


def test_no_photo_means_no_layout(state):
    snapshot = state.snapshot()
    assert snapshot.layout is None
    assert snapshot.min_dimension == 500


def test_unsubscribe_stops_notifications(state):
    recorder = Recorder()
    state.subscribe(recorder)
    state.unsubscribe(recorder)
    state.set_mode(Mode.FRAME)
    assert recorder.snapshots == []


def test_width_ratio_is_clamped_and_kept_across_borders(state):
    state.set_image(photo())
    state.set_border_width_ratio(1.7)
    assert state.snapshot().width_ratio == 1.0
    state.set_border(border())
    assert state.snapshot().width_ratio == 1.0
    state.set_border(None)
    assert state.snapshot().layout.metrics is None


def test_add_decoration_selects_it(state):
    deco = state.add_decoration("deco.png", solid((4, 4)), base_size=50, scale=0.1)
    snapshot = state.snapshot()
    assert snapshot.selected_id == deco.id
    assert (deco.x, deco.y) == (0.5, 0.5)
    assert [d.id for d in snapshot.decorations] == [deco.id]


def test_removing_selected_decoration_clears_selection_in_same_notification(state):
    deco = state.add_decoration("deco.png", None, base_size=50, scale=0.1)
    recorder = Recorder()
    state.subscribe(recorder)

    state.remove_decoration(deco.id)

    assert len(recorder.snapshots) == 1
    assert recorder.snapshots[0].selected_id is None
    assert recorder.snapshots[0].decorations == ()


def test_removing_other_decoration_keeps_selection(state):
    first = state.add_decoration("a.png", None, base_size=50, scale=0.1)
    second = state.add_decoration("b.png", None, base_size=50, scale=0.1)
    state.select_decoration(first.id)
    state.remove_decoration(second.id)
    assert state.snapshot().selected_id == first.id


def test_selecting_unknown_decoration_raises(state):
    with pytest.raises(DecorationNotFoundError):
        state.select_decoration("missing")
    state.select_decoration(None)
    assert state.snapshot().selected_id is None


def test_update_decoration_clamps_position(state):
    deco = state.add_decoration("deco.png", None, base_size=50, scale=0.1)
    updated = state.update_decoration(deco.id, x=1.4, y=-0.2, rotation=30, scale=2.0)
    assert (updated.x, updated.y, updated.rotation, updated.scale) == (1.0, 0.0, 30, 2.0)


def test_update_decoration_rejects_bad_input(state):
    deco = state.add_decoration("deco.png", None, base_size=50, scale=0.1)
    with pytest.raises(ValueError):
        state.update_decoration(deco.id, scale=0)
    with pytest.raises(ValueError):
        state.update_decoration(deco.id, base_size=10)
    with pytest.raises(DecorationNotFoundError):
        state.update_decoration("missing", x=0.1)


def test_pointer_drag_moves_selected_decoration(state):
    state.set_image(photo((500, 500)))
    deco = state.add_decoration("deco.png", None, base_size=50, scale=0.1)
    state.select_decoration(None)

    state.handle_pointer(PointerDown(250, 250))
    assert state.snapshot().selected_id == deco.id
    assert state.dragging.target_id == deco.id

    state.handle_pointer(PointerMove(300, 250))
    assert state.snapshot().decorations[0].x == pytest.approx(0.6)

    state.handle_pointer(PointerMove(5000, 250))
    assert state.snapshot().decorations[0].x == 1.0

    state.handle_pointer(PointerUp())
    assert state.dragging is None
    before = state.snapshot().version
    state.handle_pointer(PointerMove(0, 0))
    assert state.snapshot().version == before


def test_pointer_events_without_photo_are_ignored(state):
    assert state.handle_pointer(PointerDown(1, 1)) is None


def test_removing_drag_target_ends_drag(state):
    state.set_image(photo())
    deco = state.add_decoration("deco.png", None, base_size=50, scale=1.0)
    state.handle_pointer(PointerDown(250, 250))
    state.remove_decoration(deco.id)
    assert state.dragging is None


def test_document_captures_persisted_fields(state):
    state.set_image(photo())
    state.set_border(border(), width_ratio=0.2)
    deco = state.add_decoration("deco.png", None, base_size=50, scale=0.3)
    state.update_decoration(deco.id, x=0.25, rotation=15)
    state.set_mode(Mode.DECORATION)

    document = state.snapshot().to_document()
    assert document.image_ref == "photo.png"
    assert document.border.id == "classic"
    assert document.border.width_ratio == 0.2
    assert document.mode == Mode.DECORATION
    record = document.decorations[0]
    assert (record.id, record.source_ref, record.x, record.y, record.scale, record.rotation, record.base_size) == \
        (deco.id, "deco.png", 0.25, 0.5, 0.3, 15, 50)


def test_restore_replaces_state_and_clears_selection(state):
    state.add_decoration("old.png", None, base_size=10, scale=1.0)
    recorder = Recorder()
    state.subscribe(recorder)

    from frameup.domain.decoration import Decoration
    restored = [Decoration(id="r1", source_ref="new.png", x=0.1, y=0.9, scale=2.0, rotation=5, base_size=20)]
    state.restore(photo(), border(), 0.3, restored, Mode.FRAME)

    assert len(recorder.snapshots) == 1
    snapshot = recorder.snapshots[0]
    assert [d.id for d in snapshot.decorations] == ["r1"]
    assert snapshot.selected_id is None
    assert snapshot.width_ratio == 0.3
    assert snapshot.mode == Mode.FRAME


def test_reset_clears_everything(state):
    state.set_image(photo())
    state.add_decoration("deco.png", None, base_size=50, scale=0.1)
    state.reset()
    snapshot = state.snapshot()
    assert snapshot.photo is None and snapshot.decorations == () and snapshot.selected_id is None


def test_sessions_do_not_share_state():
    first, second = EditorState(), EditorState()
    first.add_decoration("deco.png", None, base_size=50, scale=0.1)
    assert second.snapshot().decorations == ()


def test_border_request_tracking(state):
    state.begin_border_request("a")
    state.begin_border_request("b")
    assert not state.is_current_border_request("a")
    assert state.is_current_border_request("b")


@pytest.mark.parametrize("changes", [
    {"scale": 1e5},
    {"scale": float("inf")},
    {"rotation": float("nan")},
    {"x": float("nan")},
])
def test_update_decoration_rejects_unrenderable_values(state, changes):
    state.set_image(photo((200, 200)))
    deco = state.add_decoration("deco.png", solid((4, 4)), base_size=20, scale=1.0)
    version = state.snapshot().version

    with pytest.raises(ValueError):
        state.update_decoration(deco.id, **changes)

    snapshot = state.snapshot()
    assert snapshot.version == version
    assert snapshot.decorations[0] == deco
    state.set_mode(Mode.DECORATION)


class FailingRenderer:
    def __init__(self):
        self.fail = False

    def on_state_change(self, snapshot):
        if self.fail:
            self.fail = False
            raise MemoryError("render failed")


def test_failed_render_restores_previous_decoration(state):
    renderer = FailingRenderer()
    state.subscribe(renderer)
    state.set_image(photo((200, 200)))
    deco = state.add_decoration("deco.png", None, base_size=20, scale=1.0)

    renderer.fail = True
    with pytest.raises(MemoryError):
        state.update_decoration(deco.id, scale=5.0, rotation=10)

    assert state.snapshot().decorations[0].scale == 1.0
    assert state.snapshot().decorations[0].rotation == 0
    state.set_mode(Mode.DECORATION)
    assert state.snapshot().mode == Mode.DECORATION
