# containers.py
# Parent display configuration: composite nodes borrowing descendant values
# into a small fixed set of container slots.

from .errors import ContainerIndexError
from .model import (
    PLUGINS_KEY,
    compact, find_node, get_child, iter_nodes, replace_node,
    serialize_path, parse_path_key,
)


CONTAINER_SLOTS = 8
OPTS_KEY = "opts"


# ----------------------------
# entries
# ----------------------------

def empty_config():
    return {"selected_children": []}

def display_text_for(key, value):
    return f'"{key}": {compact(value)}'

def make_child_ref(child_path, child_value, child_key=None):
    child_path = tuple(str(x) for x in child_path)
    if child_key is None:
        child_key = child_path[-1] if child_path else ""
    return {
        "child_path":   list(child_path),
        "child_key":    child_key,
        "child_value":  child_value,
        "display_text": display_text_for(child_key, child_value),
    }

def check_container_index(container_index):
    if isinstance(container_index, bool) or not isinstance(container_index, int):
        raise ContainerIndexError(f"container index must be an integer, got {container_index!r}")
    if not 0 <= container_index < CONTAINER_SLOTS:
        raise ContainerIndexError(
            f"container index {container_index} outside 0..{CONTAINER_SLOTS - 1}")

def _put_slot(config, container_index, child_ref):
    entry = {"container_index": container_index, **child_ref}
    entries = list((config or empty_config())["selected_children"])
    for i, e in enumerate(entries):
        if e["container_index"] == container_index:
            entries[i] = entry
            break
    else:
        entries.append(entry)
    return {"selected_children": entries}

def _with_slot(container_index, child_ref):
    def fn(node):
        return {**node, "config": _put_slot(node["config"], container_index, child_ref)}
    return fn


# ----------------------------
# sibling broadcast
# ----------------------------

def _mirror_candidates(child_path):
    if not child_path:
        return [()]
    last = child_path[-1]
    # the final-segment fallback is (last,) again, so it folds into the third try
    out = []
    for c in (child_path, (OPTS_KEY, last), (last,)):
        if c not in out:
            out.append(c)
    return out

def resolve_mirrored_child(node, child_path):
    """Best-effort lookup of a sibling's counterpart of child_path.

    Tried in order: the identical relative path, the final key under an
    'opts' child, the final key as a direct child, the final segment alone.
    Returns (actual_path, node) or None.
    """
    child_path = tuple(str(x) for x in child_path)
    for candidate in _mirror_candidates(child_path):
        found = find_node(node, candidate)
        if found is not None:
            return candidate, found
    return None

def _is_plugins_path(p):
    return len(p) > 0 and p[0] == PLUGINS_KEY

def sync_plugin_siblings(tree, source_path, container_index, child_path):
    """Mirror one slot assignment onto every other node under 'plugins' at
    the depth of source_path. Nodes without a counterpart are left alone."""
    source_path = tuple(str(x) for x in source_path)
    if not _is_plugins_path(source_path):
        return tree
    plugins = get_child(tree, PLUGINS_KEY)
    if plugins is None:
        return tree

    targets = []
    for node in iter_nodes(plugins):
        p = node["path"]
        if len(p) == len(source_path) and p != source_path:
            hit = resolve_mirrored_child(node, child_path)
            if hit is not None:
                targets.append((p, hit))

    for p, (actual_path, found) in targets:
        ref = make_child_ref(actual_path, found["value"])
        tree = replace_node(tree, p, _with_slot(container_index, ref))
    return tree


# ----------------------------
# slot operations
# ----------------------------

def set_parent_display_config(tree, parent_path, container_index, child_ref, sync=True):
    check_container_index(container_index)
    parent_path = tuple(str(x) for x in parent_path)

    # phase 1: the target node
    tree = replace_node(tree, parent_path, _with_slot(container_index, child_ref))

    # phase 2: broadcast to the other plugin entries
    if sync and _is_plugins_path(parent_path):
        tree = sync_plugin_siblings(tree, parent_path, container_index, child_ref["child_path"])
    return tree

def remove_parent_display_config(tree, parent_path, container_index):
    def fn(node):
        config = node["config"]
        if config is None:
            return node
        kept = [e for e in config["selected_children"] if e["container_index"] != container_index]
        return {**node, "config": {"selected_children": kept}}
    return replace_node(tree, tuple(str(x) for x in parent_path), fn)

def get_parent_display_config(tree, parent_path):
    node = find_node(tree, tuple(str(x) for x in parent_path)) if tree is not None else None
    if node is None or node["config"] is None:
        return empty_config()
    return node["config"]


# ----------------------------
# bulk copy
# ----------------------------

def collect_configs(tree):
    out = {}
    if tree is None:
        return out
    for node in iter_nodes(tree):
        config = node["config"]
        if config and config["selected_children"]:
            out[node["path"]] = config
    return out

def serialize_configs(configs):
    return {serialize_path(p): config for p, config in configs.items()}

def deserialize_configs(data):
    return {parse_path_key(k): v for k, v in (data or {}).items()}

def restore_configs(tree, configs):
    """Attach each config to the node at its path, replacing what is there."""
    for p, config in configs.items():
        if find_node(tree, p) is None:
            continue
        entries = [dict(e) for e in config["selected_children"]]
        tree = replace_node(tree, p, lambda n, entries=entries: {
            **n, "config": {"selected_children": entries}})
    return tree

def refresh_configs(tree):
    """Re-read every borrowed value from the tree it now sits in.

    Entries whose child no longer exists under their parent are dropped.
    """
    for p, config in collect_configs(tree).items():
        node = find_node(tree, p)
        entries = []
        for e in config["selected_children"]:
            found = find_node(node, tuple(e["child_path"]))
            if found is None:
                continue
            entries.append({**e, "child_value": found["value"],
                            "display_text": display_text_for(e["child_key"], found["value"])})
        tree = replace_node(tree, p, lambda n, entries=entries: {
            **n, "config": {"selected_children": entries}})
    return tree

def preserve_configs(old_tree, new_tree):
    if old_tree is None or new_tree is None:
        return new_tree
    return refresh_configs(restore_configs(new_tree, collect_configs(old_tree)))

def shift_configs_after_delete(configs, deleted):
    """Renumber config paths after the array element at `deleted` is removed.

    The removed element loses its config and every slot borrowing from it.
    Later siblings move down by one, both as config owners and inside
    borrowed child paths.
    """
    deleted = tuple(str(x) for x in deleted)
    pp, i = deleted[:-1], int(deleted[-1])
    n = len(pp)

    def shift(p):
        if len(p) <= n or p[:n] != pp:
            return p
        j = int(p[n])
        if j == i:
            return None
        if j < i:
            return p
        return pp + (str(j - 1),) + p[n + 1:]

    out = {}
    for p, config in configs.items():
        np = shift(p)
        if np is None:
            continue
        entries = []
        for e in config["selected_children"]:
            old = tuple(e["child_path"])
            full = shift(p + old)
            if full is None:
                continue
            cp = full[len(np):]
            entry = {**e, "child_path": list(cp)}
            if old and cp[-1] != old[-1] and e["child_key"] == old[-1]:
                entry["child_key"] = cp[-1]
                entry["display_text"] = display_text_for(cp[-1], e["child_value"])
            entries.append(entry)
        if entries:
            out[np] = {"selected_children": entries}
    return out

def plugin_configs(configs):
    return {p: c for p, c in configs.items() if _is_plugins_path(p)}

def resync_plugin_configs(tree, configs):
    """Rerun the sibling broadcast for every recorded entry under 'plugins'."""
    for p, config in plugin_configs(configs).items():
        for entry in config["selected_children"]:
            tree = sync_plugin_siblings(tree, p, entry["container_index"], entry["child_path"])
    return tree
