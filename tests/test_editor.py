import random

import pytest

from fanpanel.curve import DEFAULT_AXIS, DEFAULT_CURVE_POINTS
from fanpanel.editor import CurveEditor, EditorState
from fanpanel.models import ControlMode, CurvePoint, FanCurve, ValidationError
from fanpanel.sync import CurveStatus

from .conftest import BASE_POINTS, widget_xy

SCENARIO_POINTS = (
    CurvePoint(25, 30),
    CurvePoint(40, 35),
    CurvePoint(50, 40),
    CurvePoint(60, 50),
    CurvePoint(70, 60),
    CurvePoint(97, 70),
    CurvePoint(98, 75),
    CurvePoint(99, 80),
)


@pytest.fixture
def editor(desktop, backend, runner):
    backend.curves[(0, ControlMode.PWM)] = FanCurve(0, ControlMode.PWM, SCENARIO_POINTS)
    desktop.load_curve(0, ControlMode.PWM)
    runner.run_all()
    return CurveEditor(desktop, 0, ControlMode.PWM)


def drag(editor, start, end):
    index = editor.pointer_down(*widget_xy(editor.axis, *start))
    assert index is not None
    editor.pointer_move(*widget_xy(editor.axis, *end))
    return index


def test_displays_cached_curve(editor):
    assert editor.status == CurveStatus.READY
    assert editor.displayed_points() == SCENARIO_POINTS
    assert len(editor.display_path()) == 8
    assert not editor.is_dirty


def test_nothing_to_display_before_load(desktop):
    editor = CurveEditor(desktop, 1, ControlMode.DC)
    assert editor.displayed_points() is None
    assert editor.display_path() == []
    assert editor.pointer_down(100, 100) is None


def test_pointer_down_hits_nearest_point(editor):
    x, y = widget_xy(editor.axis, 60, 50)
    assert editor.pointer_down(x + 3, y - 2) == 3
    assert editor.state == EditorState.DRAGGING


def test_pointer_down_miss(editor):
    assert editor.pointer_down(*widget_xy(editor.axis, 85, 5)) is None
    assert editor.state == EditorState.VIEWING


def test_hit_area_is_round(editor):
    x, y = widget_xy(editor.axis, 60, 50)
    assert editor.pointer_down(x + 8, y + 8) is None
    assert editor.pointer_down(x + 7, y + 7) == 3


def test_drag_across_neighbour_reorders(editor, backend, runner):
    drag(editor, (60, 50), (95, 40))

    points = editor.displayed_points()
    assert points[3] == CurvePoint(70, 60)
    assert points[4] == CurvePoint(95, 40)
    assert editor.drag_index == 4
    assert editor.is_dirty
    # the cache still holds the confirmed curve
    assert editor._sync.curves.get(0, ControlMode.PWM).points == SCENARIO_POINTS

    editor.pointer_up()
    assert editor.commit()
    assert editor.is_saving
    runner.run_all()

    stored = backend.curves[(0, ControlMode.PWM)].points
    assert [p.temperature_c for p in stored] == [25, 40, 50, 70, 95, 97, 98, 99]
    assert not editor.is_dirty
    assert not editor.is_saving
    assert editor.displayed_points() == stored


def test_drag_is_clamped_to_axis(editor):
    index = editor.pointer_down(*widget_xy(editor.axis, 25, 30))
    editor.pointer_move(-500, 5000)
    assert editor.displayed_points()[index] == CurvePoint(20, 0)
    editor.pointer_move(5000, -500)
    assert editor.displayed_points()[editor.drag_index] == CurvePoint(100, 100)


def test_random_drags_keep_points_ordered_and_in_range(editor, runner):
    rng = random.Random(7)
    for _ in range(60):
        editor.start_drag(rng.randrange(8))
        editor.pointer_move(rng.uniform(-100, 600), rng.uniform(-100, 400))
        points = editor.displayed_points()
        temps = [p.temperature_c for p in points]
        assert temps == sorted(temps)
        assert all(20 <= p.temperature_c <= 100 and 0 <= p.duty_pct <= 100 for p in points)
        editor.pointer_up()
        try:
            editor.commit()
        except ValidationError:
            editor.discard()
        runner.run_all()

        stored = editor._sync.curves.get(0, ControlMode.PWM).points
        stored_temps = [p.temperature_c for p in stored]
        assert stored_temps == sorted(set(stored_temps))


def test_draft_survives_poll(editor, desktop, backend, runner):
    drag(editor, (50, 40), (52, 80))
    draft = editor.displayed_points()

    backend.curves[(0, ControlMode.PWM)] = FanCurve(0, ControlMode.PWM, BASE_POINTS)
    desktop.reload_curve(0, ControlMode.PWM)
    runner.tick()
    runner.run_all()

    assert desktop.curves.get(0, ControlMode.PWM).points == BASE_POINTS
    assert editor.displayed_points() == draft
    assert editor.state == EditorState.DRAGGING


def test_pointer_leave_ends_drag_and_keeps_draft(editor):
    drag(editor, (70, 60), (72, 65))
    editor.pointer_leave()
    assert editor.state == EditorState.VIEWING
    assert editor.drag_index is None
    assert editor.is_dirty


def test_invalid_draft_is_kept(editor, backend, runner):
    drag(editor, (25, 30), (40, 30))
    editor.pointer_up()
    with pytest.raises(ValidationError):
        editor.commit()
    assert editor.is_dirty
    assert not editor.is_saving
    assert runner.pending == []
    assert backend.count("set_fan_curve") == 0


def test_failed_commit_keeps_draft(editor, desktop, backend, runner):
    backend.fail.add("set_fan_curve")
    drag(editor, (97, 70), (97, 90))
    draft = editor.displayed_points()
    editor.commit()
    runner.run_all()

    assert editor.displayed_points() == draft
    assert desktop.curves.get(0, ControlMode.PWM).points == SCENARIO_POINTS
    assert desktop.last_error is not None

    backend.fail.clear()
    editor.commit()
    runner.run_all()
    assert not editor.is_dirty
    assert backend.curves[(0, ControlMode.PWM)].points == draft


def test_draft_edited_during_save_is_kept(editor, runner):
    drag(editor, (40, 35), (40, 50))
    editor.commit()
    drag(editor, (40, 50), (40, 55))
    runner.run_all()
    assert editor.is_dirty
    assert editor.displayed_points()[1] == CurvePoint(40, 55)


def test_commit_without_draft(editor, runner):
    assert not editor.commit()
    assert runner.pending == []


def test_discard_restores_cached_curve(editor):
    drag(editor, (60, 50), (61, 90))
    editor.discard()
    assert editor.displayed_points() == SCENARIO_POINTS
    assert editor.state == EditorState.VIEWING


def test_reset_to_default_is_a_draft(editor, backend, runner):
    editor.reset_to_default()
    assert editor.displayed_points() == DEFAULT_CURVE_POINTS
    assert backend.count("set_fan_curve") == 0
    editor.commit()
    runner.run_all()
    assert backend.curves[(0, ControlMode.PWM)].points == DEFAULT_CURVE_POINTS


def test_select_mode_discards_draft_and_loads(editor, backend, runner):
    drag(editor, (60, 50), (62, 52))
    editor.select_mode(ControlMode.DC)
    assert not editor.is_dirty
    assert editor.state == EditorState.VIEWING
    assert editor.status == CurveStatus.LOADING
    runner.run_all()
    assert editor.displayed_points() == BASE_POINTS

    editor.select_mode(ControlMode.PWM)
    assert editor.displayed_points() == SCENARIO_POINTS
    assert backend.count("get_fan_curve") == 2


def test_start_drag_rejects_bad_index(editor):
    with pytest.raises(IndexError):
        editor.start_drag(8)


def test_resize_changes_hit_targets(editor):
    editor.resize(960, 480)
    assert editor.axis.width == 960
    assert editor.pointer_down(*widget_xy(DEFAULT_AXIS, 99, 80)) is None
    assert editor.pointer_down(*widget_xy(editor.axis, 99, 80)) == 7


def test_listeners_notified(editor):
    events = []
    editor.connect_changed(lambda e: events.append(e.state))
    drag(editor, (60, 50), (61, 51))
    editor.pointer_up()
    assert events == [EditorState.DRAGGING, EditorState.DRAGGING, EditorState.VIEWING]
