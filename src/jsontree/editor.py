# editor.py
# Editor state: the original/display document pair, their node trees,
# and the reducer that installs every change.

import logging

from . import containers
from .errors import ContainerIndexError, EditorError, InvalidJsonError
from .model import (
    COMPOSITE_KINDS, MISSING,
    build_node, coerce_literal, deep_copy, delete_by_path, find_node, get_by_path,
    has_plugins, iter_nodes, kind_of, last_key, parent_path, parse_json_text,
    path_to_str, plugin_order, rename_key, reorder_plugins, serialize_path, set_by_path,
)


logger = logging.getLogger(__name__)


def initial_state():
    return {
        "file_name":       None,
        "original":        None,
        "display":         None,
        "tree":            None,
        "display_tree":    None,
        "expanded":        {},
        "selected_path":   None,
        "selected_kind":   None,
        "dirty":           0,
        "status_validity": "(no document)",
        "status_error":    "",
    }


# ----------------------------
# reducer helpers
# ----------------------------

def _kind_of(doc, path):
    if path is None:
        return None
    if path == tuple():
        return "root"
    parent = get_by_path(doc, parent_path(path))
    if isinstance(parent, dict):
        return "object-key"
    if isinstance(parent, list):
        return "array-element"
    return "value"

def pick_selection_after_delete(doc, pp, removed_key):
    parent = get_by_path(doc, pp)

    if isinstance(parent, list):
        n = len(parent)
        if n == 0:
            return pp
        i = int(removed_key)
        if i < n:
            return pp + (str(i),)
        return pp + (str(i - 1),)

    if isinstance(parent, dict):
        keys = list(parent.keys())
        if not keys:
            return pp
        return pp + (keys[-1],)

    return pp


# ----------------------------
# reducer
# ----------------------------

def reducer(state, action):
    t = action["type"]
    if t == "LOAD_DOC":
        return {**state,
            "file_name": action["file_name"],
            "original": action["original"], "display": action["display"],
            "tree": action["tree"], "display_tree": action["display_tree"],
            "expanded": {}, "selected_path": tuple(), "selected_kind": "root",
            "dirty": 0, "status_validity": "loaded", "status_error": "",
        }
    if t in ("UPDATE_VALUE", "ADD_PROPERTY", "DELETE_PROPERTY", "RENAME_KEY", "COMMIT_TEXT",
             "REORDER_PLUGINS"):
        s = {**state,
            "display": action["display"], "display_tree": action["display_tree"],
            "dirty": 1, "status_validity": "valid", "status_error": "",
        }
        if action.get("selected_path") is not None:
            s["selected_path"] = action["selected_path"]
            s["selected_kind"] = _kind_of(s["display"], s["selected_path"])
        return s
    if t == "RESET_DISPLAY":
        return {**state,
            "display": action["display"], "display_tree": action["display_tree"],
            "selected_path": tuple(), "selected_kind": "root",
            "dirty": 0, "status_validity": "reset", "status_error": "",
        }
    if t == "SAVE_DONE":
        return {**state,
            "file_name": action["file_name"],
            "original": action["original"], "tree": action["tree"],
            "dirty": 0, "status_validity": "saved", "status_error": "",
        }
    if t == "SET_CONTAINERS":
        return {**state, "tree": action["tree"], "display_tree": action["display_tree"]}
    if t == "SET_EXPANDED":
        return {**state, "expanded": action["expanded"]}
    if t == "SELECT_PATH":
        return {**state, "selected_path": action["path"],
                "selected_kind": _kind_of(state["display"], action["path"])}
    if t == "APPLY_PRESET":
        return {**state,
            "display": action["display"], "display_tree": action["display_tree"],
            "tree": action["tree"], "expanded": action["expanded"],
            "dirty": action["dirty"],
            "status_validity": f"applied preset {action['name']}", "status_error": "",
        }
    if t == "SET_STATUS":
        s = dict(state)
        if action.get("validity") is not None:
            s["status_validity"] = action["validity"]
        if action.get("error") is not None:
            s["status_error"] = action["error"]
        return s
    return state


# ----------------------------
# editor
# ----------------------------

class Editor:
    """Holds the current state and turns edit requests into actions."""

    def __init__(self, presets=None):
        self.state = initial_state()
        self.presets = presets

    def dispatch(self, action):
        logger.debug("dispatch %s", action["type"])
        self.state = reducer(self.state, action)
        return self.state

    def _fail(self, message, exc=EditorError):
        self.dispatch({"type": "SET_STATUS", "validity": "INVALID", "error": message})
        raise exc(message)

    def _require_doc(self):
        if self.state["display_tree"] is None:
            self._fail("No document loaded")

    @property
    def loaded(self):
        return self.state["display_tree"] is not None

    def _display_tree_for(self, display, configs=None):
        if configs is None:
            configs = containers.collect_configs(self.state["display_tree"])
        return containers.refresh_configs(containers.restore_configs(build_node(display), configs))

    def _commit(self, action_type, display, selected_path=None, configs=None):
        self.dispatch({"type": action_type, "display": display,
                       "display_tree": self._display_tree_for(display, configs),
                       "selected_path": selected_path})

    # ----------------------------
    # document lifecycle
    # ----------------------------

    def load(self, file_name, content):
        if content is None:
            raise InvalidJsonError("File content is empty or malformed")
        kind_of(content)
        original = deep_copy(content)
        display = deep_copy(content)
        self.dispatch({"type": "LOAD_DOC", "file_name": file_name,
                       "original": original, "display": display,
                       "tree": build_node(original), "display_tree": build_node(display)})
        logger.info("loaded %s into the editor", file_name)

    def reset_display(self):
        self._require_doc()
        display = deep_copy(self.state["original"])
        self.dispatch({"type": "RESET_DISPLAY", "display": display,
                       "display_tree": build_node(display)})

    def mark_saved(self, file_name=None):
        self._require_doc()
        original = deep_copy(self.state["display"])
        tree = containers.preserve_configs(self.state["tree"], build_node(original))
        self.dispatch({"type": "SAVE_DONE", "original": original, "tree": tree,
                       "file_name": file_name or self.state["file_name"]})

    # ----------------------------
    # structural edits (display only)
    # ----------------------------

    def update_value(self, path, value):
        self._require_doc()
        p = tuple(str(x) for x in path)
        if p == tuple() and not isinstance(value, (dict, list)):
            self._fail("Root must be {} or [].")
        kind_of(value)
        display = set_by_path(self.state["display"], p, value)
        self._commit("UPDATE_VALUE", display, selected_path=p)

    def edit_value_text(self, path, text):
        self._require_doc()
        p = tuple(str(x) for x in path)
        current = get_by_path(self.state["display"], p)
        if current is MISSING:
            self._fail(f"No value at {path_to_str(p)}")
        if kind_of(current) in COMPOSITE_KINDS:
            self._fail("Only scalar values can be edited as literals")
        self.update_value(p, coerce_literal(text))

    def commit_text(self, path, text):
        self._require_doc()
        p = tuple(str(x) for x in path)
        obj, err = parse_json_text(text)
        if err:
            self._fail(str(err), exc=InvalidJsonError)
        if p == tuple() and not isinstance(obj, (dict, list)):
            self._fail("Root must be {} or [].")
        display = set_by_path(self.state["display"], p, obj)
        self._commit("COMMIT_TEXT", display, selected_path=p)

    def add_property(self, path, key, value):
        self._require_doc()
        p = tuple(str(x) for x in path)
        kind_of(value)
        parent = get_by_path(self.state["display"], p)
        if isinstance(parent, list):
            np = p + (str(len(parent)),)
        elif isinstance(parent, dict):
            k = (key or "").strip()
            if not k:
                self._fail("Key must be non-empty.")
            if k in parent:
                self._fail("Key already exists in this object.")
            np = p + (k,)
        else:
            self._fail(f"{path_to_str(p)} is not an object or array")
        display = set_by_path(self.state["display"], np, value)
        self._commit("ADD_PROPERTY", display, selected_path=np)

    def delete_property(self, path):
        self._require_doc()
        p = tuple(str(x) for x in path)
        if p == tuple():
            self._fail("Cannot delete the root node")
        if get_by_path(self.state["display"], p) is MISSING:
            self._fail(f"No value at {path_to_str(p)}")
        configs = None
        if isinstance(get_by_path(self.state["display"], parent_path(p)), list):
            configs = containers.shift_configs_after_delete(
                containers.collect_configs(self.state["display_tree"]), p)
        display = delete_by_path(self.state["display"], p)
        np = pick_selection_after_delete(display, parent_path(p), last_key(p))
        self._commit("DELETE_PROPERTY", display, selected_path=np, configs=configs)

    def rename_key(self, path, new_key):
        self._require_doc()
        p = tuple(str(x) for x in path)
        if _kind_of(self.state["display"], p) != "object-key":
            self._fail("Only object keys can be renamed")
        parent = get_by_path(self.state["display"], parent_path(p))
        oldk = last_key(p)
        if oldk not in parent:
            self._fail(f"No value at {path_to_str(p)}")
        k = (new_key or "").strip()
        if not k:
            self._fail("Key must be non-empty.")
        if k == oldk:
            return
        if k in parent:
            self._fail("Key already exists in this object.")
        display = rename_key(self.state["display"], p, k)
        self._commit("RENAME_KEY", display, selected_path=parent_path(p) + (k,))

    def reorder_plugins(self, new_order):
        self._require_doc()
        if not has_plugins(self.state["display"]):
            self._fail("Document has no plugins object")
        display = reorder_plugins(self.state["display"], list(new_order))
        self._commit("REORDER_PLUGINS", display)
        logger.info("plugins reordered: %s", ", ".join(plugin_order(display)))

    def plugin_order(self):
        return plugin_order(self.state["display"])

    # ----------------------------
    # container slots
    # ----------------------------

    def set_container(self, parent_path, container_index, child_path, child_key=None):
        self._require_doc()
        pp = tuple(str(x) for x in parent_path)
        try:
            containers.check_container_index(container_index)
        except ContainerIndexError as e:
            self._fail(e.message, exc=ContainerIndexError)

        parent = find_node(self.state["display_tree"], pp)
        if parent is None or parent["kind"] not in COMPOSITE_KINDS:
            self._fail(f"{path_to_str(pp)} is not an object or array")
        child = find_node(parent, tuple(str(x) for x in child_path))
        if child is None:
            self._fail(f"No child at {path_to_str(child_path)} under {path_to_str(pp)}")

        ref = containers.make_child_ref(child_path, child["value"], child_key)
        tree = containers.set_parent_display_config(
            self.state["tree"], pp, container_index, ref, sync=False)
        display_tree = containers.set_parent_display_config(
            self.state["display_tree"], pp, container_index, ref)
        self.dispatch({"type": "SET_CONTAINERS", "tree": tree, "display_tree": display_tree})

    def remove_container(self, parent_path, container_index):
        self._require_doc()
        pp = tuple(str(x) for x in parent_path)
        tree = containers.remove_parent_display_config(self.state["tree"], pp, container_index)
        display_tree = containers.remove_parent_display_config(
            self.state["display_tree"], pp, container_index)
        self.dispatch({"type": "SET_CONTAINERS", "tree": tree, "display_tree": display_tree})

    def get_container(self, parent_path):
        return containers.get_parent_display_config(self.state["display_tree"], parent_path)

    # ----------------------------
    # expansion and selection
    # ----------------------------

    def toggle_expanded(self, path):
        k = serialize_path(path)
        expanded = dict(self.state["expanded"])
        expanded[k] = not expanded.get(k, False)
        self.dispatch({"type": "SET_EXPANDED", "expanded": expanded})

    def expand_all(self):
        self._require_doc()
        expanded = {}
        for node in iter_nodes(self.state["display_tree"]):
            if node["kind"] in COMPOSITE_KINDS:
                expanded[serialize_path(node["path"])] = True
        self.dispatch({"type": "SET_EXPANDED", "expanded": expanded})

    def collapse_all(self):
        self.dispatch({"type": "SET_EXPANDED", "expanded": {}})

    def select(self, path):
        self._require_doc()
        p = tuple(str(x) for x in path)
        if get_by_path(self.state["display"], p) is MISSING:
            self._fail(f"No value at {path_to_str(p)}")
        self.dispatch({"type": "SELECT_PATH", "path": p})

    # ----------------------------
    # presets
    # ----------------------------

    def capture_preset(self):
        """The parts of the current state a preset records."""
        self._require_doc()
        configs = containers.collect_configs(self.state["display_tree"])
        return {
            "plugin_order":           plugin_order(self.state["display"]),
            "expanded_nodes":         dict(self.state["expanded"]),
            "parent_display_configs": containers.serialize_configs(configs),
        }

    def _require_presets(self):
        if self.presets is None:
            raise EditorError("No preset store configured")

    def save_preset(self, name, description=""):
        self._require_presets()
        self._require_doc()
        if not has_plugins(self.state["display"]):
            self._fail("No plugins data to save")
        payload = self.capture_preset()
        return self.presets.save_preset(
            name, description, payload["plugin_order"],
            file_hash=self.state["file_name"] or "unknown",
            expanded_nodes=payload["expanded_nodes"],
            parent_display_configs=payload["parent_display_configs"],
        )

    def apply_preset(self, preset_id):
        self._require_presets()
        self._require_doc()
        preset = self.presets.load_preset(preset_id)
        self.apply_preset_data(preset)
        return preset

    def apply_preset_data(self, preset):
        self._require_doc()
        display = self.state["display"]
        if has_plugins(display):
            display = reorder_plugins(display, preset["plugin_order"])
        display_tree = self._display_tree_for(display)

        expanded = self.state["expanded"]
        if preset.get("expanded_nodes") is not None:
            expanded = dict(preset["expanded_nodes"])

        configs = containers.deserialize_configs(preset.get("parent_display_configs"))
        tree = containers.refresh_configs(containers.restore_configs(self.state["tree"], configs))
        display_tree = containers.restore_configs(display_tree, configs)
        display_tree = containers.refresh_configs(
            containers.resync_plugin_configs(display_tree, configs))

        reordered = plugin_order(display) != plugin_order(self.state["display"])
        dirty = 1 if reordered else self.state["dirty"]
        self.dispatch({"type": "APPLY_PRESET", "name": preset.get("name", ""),
                       "display": display, "display_tree": display_tree, "tree": tree,
                       "expanded": expanded, "dirty": dirty})
        logger.info("applied preset %s to %s", preset.get("id"), self.state["file_name"])

    # ----------------------------
    # views
    # ----------------------------

    def snapshot(self):
        s = self.state
        configs = containers.collect_configs(s["display_tree"])
        return {
            "file_name":       s["file_name"],
            "original":        s["original"],
            "display":         s["display"],
            "plugin_order":    plugin_order(s["display"]),
            "expanded":        s["expanded"],
            "containers":      containers.serialize_configs(configs),
            "selected_path":   list(s["selected_path"]) if s["selected_path"] is not None else None,
            "selected_kind":   s["selected_kind"],
            "dirty":           bool(s["dirty"]),
            "status_validity": s["status_validity"],
            "status_error":    s["status_error"],
        }
