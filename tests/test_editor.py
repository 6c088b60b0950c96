import pytest

from jsontree.editor import Editor, initial_state, pick_selection_after_delete, reducer
from jsontree.errors import (
    ContainerIndexError, EditorError, InvalidJsonError, PresetNotFoundError,
    PresetValidationError,
)
from jsontree.model import plugin_order

from conftest import sample_doc


def slots(editor, path):
    return {e["container_index"]: e for e in editor.get_container(path)["selected_children"]}


class TestReducer:
    def test_unknown_action_returns_state(self):
        s = initial_state()
        assert reducer(s, {"type": "NOPE"}) is s

    def test_set_status_only_touches_given_fields(self):
        s = reducer(initial_state(), {"type": "SET_STATUS", "error": "bad"})
        assert s["status_error"] == "bad"
        assert s["status_validity"] == "(no document)"

    def test_selection_after_delete(self):
        assert pick_selection_after_delete([1, 2], (), "2") == ("1",)
        assert pick_selection_after_delete([1, 2], (), "0") == ("0",)
        assert pick_selection_after_delete({"a": 1, "b": 2}, (), "c") == ("b",)
        assert pick_selection_after_delete({}, (), "a") == ()


class TestLoad:
    def test_load_builds_both_copies(self, editor):
        s = editor.state
        assert s["original"] == s["display"]
        assert s["original"] is not s["display"]
        assert s["tree"]["value"] is s["original"]
        assert s["display_tree"]["value"] is s["display"]
        assert s["dirty"] == 0
        assert s["selected_kind"] == "root"

    def test_loaded_copy_is_independent_of_caller(self, presets):
        doc = sample_doc()
        ed = Editor(presets)
        ed.load("x.json", doc)
        doc["plugins"]["alpha"]["enabled"] = "changed"
        assert ed.state["original"]["plugins"]["alpha"]["enabled"] is True

    def test_null_content_is_rejected(self, presets):
        with pytest.raises(InvalidJsonError):
            Editor(presets).load("x.json", None)

    def test_edits_need_a_document(self):
        ed = Editor()
        with pytest.raises(EditorError):
            ed.update_value(("a",), 1)
        assert ed.state["status_error"] == "No document loaded"


class TestStructuralEdits:
    def test_update_value_touches_display_only(self, editor):
        editor.update_value(("plugins", "alpha", "enabled"), False)
        assert editor.state["display"]["plugins"]["alpha"]["enabled"] is False
        assert editor.state["original"]["plugins"]["alpha"]["enabled"] is True
        assert editor.state["dirty"] == 1
        assert editor.state["selected_path"] == ("plugins", "alpha", "enabled")
        assert editor.state["selected_kind"] == "object-key"

    def test_root_must_stay_composite(self, editor):
        with pytest.raises(EditorError):
            editor.update_value((), 3)
        assert editor.state["status_validity"] == "INVALID"

    def test_edit_value_text_coerces(self, editor):
        editor.edit_value_text(("name",), "42")
        assert editor.state["display"]["name"] == 42
        editor.edit_value_text(("name",), '"42"')
        assert editor.state["display"]["name"] == "42"
        editor.edit_value_text(("list", "0"), "null")
        assert editor.state["display"]["list"][0] is None

    def test_edit_value_text_refuses_composites(self, editor):
        with pytest.raises(EditorError):
            editor.edit_value_text(("plugins",), "1")
        with pytest.raises(EditorError):
            editor.edit_value_text(("ghost",), "1")

    def test_commit_text_parses_json(self, editor):
        editor.commit_text(("plugins", "beta", "opts"), '{"mode": "fast", "n": [1]}')
        assert editor.state["display"]["plugins"]["beta"]["opts"] == {"mode": "fast", "n": [1]}
        with pytest.raises(InvalidJsonError):
            editor.commit_text(("name",), "{oops")
        assert "line 1" in editor.state["status_error"]

    def test_add_property(self, editor):
        editor.add_property(("plugins", "alpha"), "priority", 5)
        assert list(editor.state["display"]["plugins"]["alpha"])[-1] == "priority"
        editor.add_property(("list",), None, 4)
        assert editor.state["display"]["list"] == [1, 2, 3, 4]
        assert editor.state["selected_path"] == ("list", "3")
        assert editor.state["selected_kind"] == "array-element"

    def test_add_property_rules(self, editor):
        with pytest.raises(EditorError):
            editor.add_property(("plugins", "alpha"), "enabled", 1)
        with pytest.raises(EditorError):
            editor.add_property(("plugins", "alpha"), "  ", 1)
        with pytest.raises(EditorError):
            editor.add_property(("name",), "x", 1)

    def test_delete_property(self, editor):
        editor.delete_property(("list", "1"))
        assert editor.state["display"]["list"] == [1, 3]
        assert editor.state["selected_path"] == ("list", "1")

    def test_delete_root_is_refused(self, editor):
        with pytest.raises(EditorError):
            editor.delete_property(())
        assert editor.state["display"] == sample_doc()

    def test_rename_key_moves_entry_to_end(self, editor):
        editor.rename_key(("name",), "title")
        assert list(editor.state["display"]) == ["plugins", "list", "title"]
        assert editor.state["selected_path"] == ("title",)

    def test_rename_rules(self, editor):
        with pytest.raises(EditorError):
            editor.rename_key(("list", "0"), "x")
        with pytest.raises(EditorError):
            editor.rename_key(("name",), "plugins")
        with pytest.raises(EditorError):
            editor.rename_key(("name",), "")
        with pytest.raises(EditorError):
            editor.rename_key((), "x")

    def test_rename_to_same_key_is_a_no_op(self, editor):
        before = editor.state
        editor.rename_key(("name",), "name")
        assert editor.state is before

    def test_edits_keep_container_slots(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        editor.update_value(("name",), "changed")
        assert slots(editor, ("plugins", "beta"))[0]["child_value"] == 2


class TestReorderAndReset:
    def test_reorder_leaves_original_alone(self, editor):
        editor.reorder_plugins(["gamma", "alpha", "beta"])
        assert plugin_order(editor.state["display"]) == ["gamma", "alpha", "beta"]
        assert plugin_order(editor.state["original"]) == ["alpha", "beta", "gamma"]
        assert list(editor.state["tree"]["children"]["plugins"]["children"]) == ["alpha", "beta", "gamma"]

    def test_reorder_keeps_configs(self, editor):
        editor.set_container(("plugins", "beta"), 4, ("opts", "mode"))
        before = editor.get_container(("plugins", "beta"))
        editor.reorder_plugins(["beta", "gamma", "alpha"])
        assert editor.get_container(("plugins", "beta")) == before
        assert editor.plugin_order() == ["beta", "gamma", "alpha"]

    def test_reorder_without_plugins(self, presets):
        ed = Editor(presets)
        ed.load("x.json", {"a": 1})
        with pytest.raises(EditorError):
            ed.reorder_plugins(["a"])

    def test_reset_is_idempotent(self, editor):
        editor.reorder_plugins(["gamma", "beta", "alpha"])
        editor.delete_property(("list",))
        editor.reset_display()
        once = editor.state["display"]
        editor.reset_display()
        assert editor.state["display"] == once == editor.state["original"]
        assert list(editor.state["display"]["plugins"]) == ["alpha", "beta", "gamma"]
        assert editor.state["display"] is not editor.state["original"]
        assert editor.state["dirty"] == 0

    def test_reset_drops_display_configs(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        editor.reset_display()
        assert editor.get_container(("plugins", "beta")) == {"selected_children": []}

    def test_mark_saved_adopts_display(self, editor):
        editor.reorder_plugins(["beta", "alpha", "gamma"])
        editor.mark_saved()
        assert plugin_order(editor.state["original"]) == ["beta", "alpha", "gamma"]
        assert editor.state["dirty"] == 0
        assert editor.state["original"] is not editor.state["display"]


class TestContainers:
    def test_set_container_syncs_display_only(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        alpha = slots(editor, ("plugins", "alpha"))[0]
        assert alpha["child_path"] == ["opts", "level"]
        assert alpha["child_value"] == 1

        tree = editor.state["tree"]
        alpha_orig = tree["children"]["plugins"]["children"]["alpha"]
        beta_orig = tree["children"]["plugins"]["children"]["beta"]
        assert alpha_orig["config"] is None
        assert beta_orig["config"]["selected_children"][0]["child_key"] == "level"

    def test_set_container_validation(self, editor):
        with pytest.raises(ContainerIndexError):
            editor.set_container(("plugins", "beta"), 8, ("level",))
        with pytest.raises(EditorError):
            editor.set_container(("name",), 0, ())
        with pytest.raises(EditorError):
            editor.set_container(("plugins", "beta"), 0, ("ghost",))

    def test_remove_container_is_local(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        editor.remove_container(("plugins", "beta"), 0)
        assert slots(editor, ("plugins", "beta")) == {}
        assert 0 in slots(editor, ("plugins", "alpha"))

    def test_get_container_on_unconfigured_node(self, editor):
        assert editor.get_container(("list",)) == {"selected_children": []}

    def test_editing_a_borrowed_value_refreshes_the_slot(self, editor):
        editor.set_container(("plugins", "alpha"), 0, ("opts", "level"))
        editor.update_value(("plugins", "alpha", "opts", "level"), 9)
        entry = slots(editor, ("plugins", "alpha"))[0]
        assert entry["child_value"] == 9
        assert entry["display_text"] == '"level": 9'

    def test_deleting_a_borrowed_child_drops_the_slot(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        editor.delete_property(("plugins", "beta", "level"))
        assert slots(editor, ("plugins", "beta")) == {}
        assert slots(editor, ("plugins", "alpha"))[0]["child_value"] == 1

    def test_array_delete_does_not_hand_a_slot_to_the_next_element(self, presets):
        ed = Editor(presets)
        ed.load("items.json", {"items": [{"n": "a"}, {"n": "b"}, {"n": "c"}]})
        ed.set_container(("items", "1"), 0, ("n",))
        ed.set_container(("items", "2"), 1, ("n",))
        ed.delete_property(("items", "1"))

        assert ed.state["display"]["items"] == [{"n": "a"}, {"n": "c"}]
        moved = slots(ed, ("items", "1"))
        assert list(moved) == [1]
        assert moved[1]["child_value"] == "c"
        assert slots(ed, ("items", "2")) == {}

    def test_array_delete_renumbers_child_paths_above_the_array(self, presets):
        ed = Editor(presets)
        ed.load("items.json", {"items": ["a", "b", "c"]})
        ed.set_container((), 0, ("items", "2"))
        ed.set_container((), 1, ("items", "0"))
        ed.delete_property(("items", "0"))

        entries = slots(ed, ())
        assert list(entries) == [0]
        assert entries[0]["child_path"] == ["items", "1"]
        assert entries[0]["child_key"] == "1"
        assert entries[0]["child_value"] == "c"


class TestExpansion:
    def test_toggle(self, editor):
        editor.toggle_expanded(("plugins",))
        assert editor.state["expanded"] == {'["plugins"]': True}
        editor.toggle_expanded(("plugins",))
        assert editor.state["expanded"] == {'["plugins"]': False}

    def test_expand_and_collapse_all(self, editor):
        editor.expand_all()
        expanded = editor.state["expanded"]
        assert expanded["[]"] is True
        assert '["plugins","gamma","tags"]' in expanded
        assert '["name"]' not in expanded
        editor.collapse_all()
        assert editor.state["expanded"] == {}


class TestPresets:
    def test_round_trip(self, editor, presets):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        editor.set_container(("plugins", "gamma"), 2, ("tags",))
        editor.reorder_plugins(["gamma", "alpha", "beta"])
        editor.toggle_expanded(("plugins",))
        captured = editor.snapshot()

        preset = editor.save_preset("layout", "three plugins")
        assert preset["file_hash"] == "config.json"
        assert preset["plugin_order"] == ["gamma", "alpha", "beta"]

        editor.reorder_plugins(["beta", "alpha", "gamma"])
        editor.remove_container(("plugins", "beta"), 0)
        editor.remove_container(("plugins", "gamma"), 2)
        editor.collapse_all()

        editor.apply_preset(preset["id"])
        after = editor.snapshot()
        assert after["plugin_order"] == captured["plugin_order"]
        assert after["containers"] == captured["containers"]
        assert after["expanded"] == captured["expanded"]
        assert presets.last_used()["id"] == preset["id"]

    def test_apply_reruns_sync_on_current_shape(self, editor):
        preset = {
            "id": "p1", "name": "p1", "plugin_order": ["beta", "alpha", "gamma"],
            "expanded_nodes": None,
            "parent_display_configs": {
                '["plugins","beta"]': {"selected_children": [{
                    "container_index": 1, "child_path": ["level"], "child_key": "level",
                    "child_value": 2, "display_text": '"level": 2'}]},
            },
        }
        editor.toggle_expanded(("list",))
        editor.apply_preset_data(preset)
        assert editor.plugin_order() == ["beta", "alpha", "gamma"]
        assert slots(editor, ("plugins", "gamma"))[1]["child_value"] == 3
        assert editor.state["expanded"] == {'["list"]': True}

    def test_apply_with_the_current_order_keeps_clean_state(self, editor):
        preset = {"id": "p1", "name": "same", "plugin_order": ["alpha", "beta", "gamma"],
                  "expanded_nodes": {'["plugins"]': True}, "parent_display_configs": {}}
        editor.apply_preset_data(preset)
        assert editor.state["dirty"] == 0
        assert editor.state["expanded"] == {'["plugins"]': True}

        editor.apply_preset_data(dict(preset, plugin_order=["gamma", "alpha", "beta"]))
        assert editor.state["dirty"] == 1

    def test_apply_refreshes_stored_child_values(self, editor):
        preset = {
            "id": "p1", "name": "p1", "plugin_order": ["alpha", "beta", "gamma"],
            "parent_display_configs": {
                '["plugins","beta"]': {"selected_children": [{
                    "container_index": 0, "child_path": ["level"], "child_key": "level",
                    "child_value": 99, "display_text": '"level": 99'}]},
            },
        }
        editor.apply_preset_data(preset)
        assert slots(editor, ("plugins", "beta"))[0]["child_value"] == 2

    def test_save_needs_plugins(self, presets):
        ed = Editor(presets)
        ed.load("x.json", {"a": 1})
        with pytest.raises(EditorError):
            ed.save_preset("p")

    def test_store_validation_propagates(self, editor):
        editor.save_preset("same")
        with pytest.raises(PresetValidationError):
            editor.save_preset("same")
        with pytest.raises(PresetValidationError):
            editor.save_preset("")

    def test_apply_unknown_preset(self, editor):
        with pytest.raises(PresetNotFoundError):
            editor.apply_preset("preset_missing")

    def test_needs_a_store(self):
        ed = Editor()
        ed.load("x.json", sample_doc())
        with pytest.raises(EditorError):
            ed.save_preset("p")


class TestSnapshot:
    def test_snapshot_is_plain_json(self, editor):
        editor.set_container(("plugins", "beta"), 0, ("level",))
        snap = editor.snapshot()
        assert snap["selected_path"] == []
        assert snap["dirty"] is False
        assert set(snap["containers"]) == {
            '["plugins","alpha"]', '["plugins","beta"]', '["plugins","gamma"]'}
