"""
Tests for commands and undo/redo state management.

Covers:
- Every command kind: execute → undo restores, redo reproduces
- NotFound / no-op handling (nothing pushed, scene unchanged)
- N undos followed by N redos reproduce the final state
- Selection restored (and pruned) through undo/redo
- Listener notifications
- History trimming at max capacity
"""
import pytest

from conftest import make_layer
from flyer_canvas.errors import Status
from flyer_canvas.models import Effects, Keyframe, Transform
from flyer_canvas.services.commands import (
    AddLayer, BatchTransform, CompositeCommand, RemoveLayer, RenameLayer, ReorderLayer,
    SetCanvas, SetEffects, SetKeyframes, SetLayerWindow, SetOpacity, SetTransform, SetVisibility,
)
from flyer_canvas.services.history_manager import HistoryManager


def sample_commands():
    """One instance of every command kind against the three_layer_scene fixture"""
    return [
        AddLayer(make_layer('white', 50, 50, layer_id='d')),
        AddLayer(make_layer('white', 50, 50, layer_id='e'), index=0),
        RemoveLayer('b'),
        ReorderLayer('a', 2),
        SetTransform('c', Transform(10, 20, 2, 2, 45)),
        BatchTransform.of({'a': Transform(1, 1), 'c': Transform(2, 2)}),
        SetVisibility('a', False),
        SetOpacity('b', 0.3),
        SetKeyframes('b', (Keyframe(0.0), Keyframe(1.0, dx=50))),
        SetLayerWindow('a', 1.0, 2.0),
        SetEffects('c', Effects(brightness=0.5, blur=2.0)),
        RenameLayer('c', 'Headline'),
        SetCanvas(640, 480, (255, 255, 255, 255)),
        CompositeCommand((SetVisibility('a', False), ReorderLayer('c', 0)), "Combo"),
    ]


# ══════════════════════════════════════════════════════════════════════════
# Command reversibility
# ══════════════════════════════════════════════════════════════════════════

class TestCommandReversibility:

    @pytest.mark.parametrize("command", sample_commands(), ids=lambda c: type(c).__name__)
    def test_undo_restores_scene(self, three_layer_scene, command):
        hm = HistoryManager(three_layer_scene)
        assert hm.execute(command) is Status.OK
        assert not hm.scene.same_content(three_layer_scene)

        assert hm.undo() is Status.OK
        assert hm.scene.same_content(three_layer_scene)

    @pytest.mark.parametrize("command", sample_commands(), ids=lambda c: type(c).__name__)
    def test_redo_reapplies(self, three_layer_scene, command):
        hm = HistoryManager(three_layer_scene)
        hm.execute(command)
        after = hm.scene
        hm.undo()
        assert hm.redo() is Status.OK
        assert hm.scene.same_content(after)

    def test_prepared_command_round_trip(self, three_layer_scene):
        bound = SetTransform('a', Transform(5, 5)).prepare(three_layer_scene)
        after = bound.apply(three_layer_scene)
        assert bound.undo(after) == three_layer_scene

    def test_remove_restores_original_index(self, three_layer_scene):
        hm = HistoryManager(three_layer_scene)
        hm.execute(RemoveLayer('a'))
        hm.undo()
        assert hm.scene.layer_ids == ['a', 'b', 'c']

    def test_layer_id_stable_across_undo_redo(self, three_layer_scene):
        hm = HistoryManager(three_layer_scene)
        layer = make_layer(layer_id='stable')
        hm.execute(AddLayer(layer))
        hm.undo()
        hm.redo()
        assert hm.scene.get_layer('stable') == layer


# ══════════════════════════════════════════════════════════════════════════
# Rejections and no-ops
# ══════════════════════════════════════════════════════════════════════════

class TestRejections:

    def test_set_transform_on_missing_layer(self, history):
        before = history.scene
        status = history.execute(SetTransform('ghost', Transform(1, 1)))
        assert status is Status.NOT_FOUND
        assert history.scene.layer_count == before.layer_count
        assert history.scene.transforms() == before.transforms()
        assert not history.can_undo()

    def test_remove_missing_layer(self, history):
        assert history.execute(RemoveLayer('ghost')) is Status.NOT_FOUND

    def test_batch_with_one_missing_id_changes_nothing(self, history):
        before = history.scene
        status = history.execute(BatchTransform.of({'a': Transform(9, 9), 'ghost': Transform()}))
        assert status is Status.NOT_FOUND
        assert history.scene is before

    def test_reorder_to_current_index_is_noop(self, history):
        assert history.execute(ReorderLayer('b', 1)) is Status.NO_OP
        assert not history.can_undo()

    def test_reorder_out_of_range_clamps(self, history):
        assert history.execute(ReorderLayer('a', 50)) is Status.OK
        assert history.scene.layer_ids == ['b', 'c', 'a']
        assert history.execute(ReorderLayer('a', -50)) is Status.OK
        assert history.scene.layer_ids == ['a', 'b', 'c']

    def test_reorder_top_layer_past_end_is_noop(self, history):
        assert history.execute(ReorderLayer('c', 10)) is Status.NO_OP

    def test_same_transform_is_noop(self, history):
        current = history.scene.get_layer('a').transform
        assert history.execute(SetTransform('a', current)) is Status.NO_OP

    def test_zero_delta_batch_is_noop(self, history):
        assert history.execute(BatchTransform.of(history.scene.transforms())) is Status.NO_OP

    def test_non_positive_window_rejected(self, history, three_layer_scene):
        assert history.execute(SetLayerWindow('a', 1.0, 0.0)) is Status.INVALID_GEOMETRY
        assert history.scene == three_layer_scene
        assert not history.can_undo()

    def test_status_truthiness(self):
        assert Status.OK
        assert not Status.NO_OP
        assert not Status.NOT_FOUND


# ══════════════════════════════════════════════════════════════════════════
# Stack behaviour
# ══════════════════════════════════════════════════════════════════════════

class TestHistoryStack:

    def test_initial_state_empty(self, history):
        assert not history.can_undo()
        assert not history.can_redo()

    def test_undo_at_beginning(self, history):
        assert history.undo() is Status.NOTHING_TO_UNDO

    def test_redo_at_end(self, history):
        assert history.redo() is Status.NOTHING_TO_REDO

    def test_execute_clears_future(self, history):
        history.execute(SetVisibility('a', False))
        history.undo()
        assert history.can_redo()
        history.execute(SetVisibility('b', False))
        assert not history.can_redo()

    def test_n_undos_then_n_redos(self, three_layer_scene):
        hm = HistoryManager(three_layer_scene)
        commands = [
            SetTransform('a', Transform(10, 10)),
            ReorderLayer('a', 2),
            SetOpacity('b', 0.5),
            AddLayer(make_layer(layer_id='d')),
            RemoveLayer('c'),
            BatchTransform.of({'a': Transform(0, 0), 'b': Transform(5, 5)}),
        ]
        for command in commands:
            assert hm.execute(command) is Status.OK
        final = hm.scene

        for _ in commands:
            assert hm.undo() is Status.OK
        assert hm.scene.same_content(three_layer_scene)

        for _ in commands:
            assert hm.redo() is Status.OK
        assert hm.scene.same_content(final)

    def test_trimmed_at_max_history(self, three_layer_scene):
        hm = HistoryManager(three_layer_scene, max_history=3)
        for i in range(5):
            hm.execute(SetTransform('a', Transform(i + 1, 0)))
        assert len(hm.past) == 3
        for _ in range(3):
            hm.undo()
        assert hm.undo() is Status.NOTHING_TO_UNDO
        # Oldest two entries were evicted
        assert hm.scene.get_layer('a').transform.x == 2

    def test_unbounded_history(self, three_layer_scene):
        hm = HistoryManager(three_layer_scene, max_history=None)
        for i in range(150):
            hm.execute(SetTransform('a', Transform(i + 1, 0)))
        assert len(hm.past) == 150

    def test_invalid_max_history(self):
        with pytest.raises(ValueError):
            HistoryManager(max_history=0)

    def test_descriptions(self, history):
        history.execute(SetTransform('a', Transform(1, 1), label="Move layer"))
        assert history.get_undo_description() == "Move layer"
        history.undo()
        assert history.get_redo_description() == "Move layer"
        assert history.get_undo_description() == ""

    def test_reset_drops_history(self, history, empty_scene):
        history.execute(SetVisibility('a', False))
        history.reset(empty_scene)
        assert history.scene is empty_scene
        assert not history.can_undo()


# ══════════════════════════════════════════════════════════════════════════
# Selection
# ══════════════════════════════════════════════════════════════════════════

class TestSelectionHistory:

    def test_selection_change_is_not_an_undo_step(self, history):
        assert history.set_selection({'a'}) is Status.OK
        assert not history.can_undo()
        assert history.scene.selection == frozenset({'a'})

    def test_unchanged_selection_is_noop(self, history):
        history.set_selection({'a'})
        assert history.set_selection({'a'}) is Status.NO_OP

    def test_unknown_selection_rejected(self, history):
        assert history.set_selection({'ghost'}) is Status.NOT_FOUND
        assert history.scene.selection == frozenset()

    def test_undo_restores_selection_before(self, history):
        history.set_selection({'a'})
        history.execute(SetTransform('a', Transform(1, 1)))
        history.set_selection({'b'})
        history.undo()
        assert history.scene.selection == frozenset({'a'})

    def test_undo_of_add_prunes_selection(self, history):
        history.execute(AddLayer(make_layer(layer_id='d')))
        history.set_selection({'d'})
        history.execute(SetVisibility('d', False))
        history.undo()
        history.undo()
        assert 'd' not in history.scene.selection
        assert not history.scene.has_layer('d')


# ══════════════════════════════════════════════════════════════════════════
# Listeners
# ══════════════════════════════════════════════════════════════════════════

class TestListeners:

    def test_listener_receives_state(self, history):
        calls = []
        history.add_listener(lambda can_undo, can_redo: calls.append((can_undo, can_redo)))
        history.execute(SetVisibility('a', False))
        history.undo()
        assert calls == [(True, False), (False, True)]

    def test_removed_listener_not_called(self, history):
        calls = []
        callback = lambda *args: calls.append(args)
        history.add_listener(callback)
        history.remove_listener(callback)
        history.execute(SetVisibility('a', False))
        assert calls == []

    def test_rejected_command_does_not_notify(self, history):
        calls = []
        history.add_listener(lambda *args: calls.append(args))
        history.execute(SetTransform('ghost', Transform()))
        assert calls == []
