# model.py
# JSON node tree and its path-addressed edits

import copy
import json
import re


# ----------------------------
# kinds
# ----------------------------

KIND_NULL   = "null"
KIND_BOOL   = "boolean"
KIND_NUMBER = "number"
KIND_STRING = "string"
KIND_OBJECT = "object"
KIND_ARRAY  = "array"

KINDS = (KIND_NULL, KIND_BOOL, KIND_NUMBER, KIND_STRING, KIND_OBJECT, KIND_ARRAY)
COMPOSITE_KINDS = (KIND_OBJECT, KIND_ARRAY)

ROOT_KEY = "root"


class _Missing:
    """Read-miss marker returned by get_by_path; distinct from a JSON null."""

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False

MISSING = _Missing()


def kind_of(value):
    if value is None:
        return KIND_NULL
    # bool is a subclass of int, so it has to be tested first
    if isinstance(value, bool):
        return KIND_BOOL
    if isinstance(value, (int, float)):
        return KIND_NUMBER
    if isinstance(value, str):
        return KIND_STRING
    if isinstance(value, dict):
        return KIND_OBJECT
    if isinstance(value, list):
        return KIND_ARRAY
    raise TypeError(f"not a JSON value: {type(value).__name__}")


# ----------------------------
# tiny helpers
# ----------------------------

_INDEX_RE = re.compile(r"[0-9]+")

def _as_index(segment):
    if isinstance(segment, bool):
        return None
    if isinstance(segment, int):
        return segment if segment >= 0 else None
    if isinstance(segment, str) and _INDEX_RE.fullmatch(segment):
        return int(segment)
    return None

def pretty(obj, indent=2):
    return json.dumps(obj, indent=indent, ensure_ascii=False, sort_keys=False)

def compact(obj):
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)

def deep_copy(x):
    return copy.deepcopy(x)

def path_to_str(p):
    if p is None:
        return ""
    return "[" + ", ".join(repr(x) for x in p) + "]"

def parent_path(p):
    if p is None or len(p) == 0:
        return None
    return tuple(p[:-1])

def last_key(p):
    if p is None or len(p) == 0:
        return None
    return p[-1]

def serialize_path(p):
    return compact([str(x) for x in p])

def parse_path_key(s):
    obj = json.loads(s)
    if not isinstance(obj, list):
        raise ValueError(f"path key must be a JSON list: {s!r}")
    return tuple(str(x) for x in obj)

def parse_json_text(s):
    try:
        obj = json.loads(s)
        return obj, None
    except json.JSONDecodeError as e:
        msg = f"{e.msg} (line {e.lineno}, col {e.colno})"
        return None, msg


# ----------------------------
# path-addressed access
# ----------------------------

def get_by_path(doc, p):
    obj = doc
    for k in p:
        if isinstance(obj, dict):
            k = str(k)
            if k not in obj:
                return MISSING
            obj = obj[k]
        elif isinstance(obj, list):
            i = _as_index(k)
            if i is None or i >= len(obj):
                return MISSING
            obj = obj[i]
        else:
            return MISSING
    return obj

def set_by_path(doc, p, value):
    """Returns a new document with value installed at p.

    Only the containers along p are copied; doc itself is left alone.
    """
    p = tuple(p)
    if not p:
        return value
    return _set_in(doc, p, value)

def _set_in(obj, p, value):
    k, rest = p[0], p[1:]

    if isinstance(obj, dict):
        k = str(k)
        new = dict(obj)
        if rest:
            child = obj[k] if k in obj else {}
            new[k] = _set_in(child, rest, value)
        else:
            new[k] = value
        return new

    if isinstance(obj, list):
        i = _as_index(k)
        new = list(obj)
        if i is None:
            return new
        if i >= len(new):
            # JSON has no holes: pad the gap with nulls
            new.extend([None] * (i - len(new)))
            new.append(_set_in({}, rest, value) if rest else value)
        else:
            new[i] = _set_in(new[i], rest, value) if rest else value
        return new

    # scalar in the middle of the path
    return obj

def delete_by_path(doc, p):
    p = tuple(p)
    if not p:
        return doc
    return _delete_in(doc, p)

def _delete_in(obj, p):
    k, rest = p[0], p[1:]

    if isinstance(obj, dict):
        k = str(k)
        new = dict(obj)
        if k not in obj:
            return new
        if rest:
            new[k] = _delete_in(obj[k], rest)
        else:
            del new[k]
        return new

    if isinstance(obj, list):
        i = _as_index(k)
        new = list(obj)
        if i is None or i >= len(obj):
            return new
        if rest:
            new[i] = _delete_in(obj[i], rest)
        else:
            del new[i]
        return new

    return obj


# ----------------------------
# node tree
# ----------------------------

def build_node(value, key=ROOT_KEY, path=()):
    path = tuple(path)
    kind = kind_of(value)
    children = None
    if kind == KIND_OBJECT:
        children = {}
        for k, v in value.items():
            children[k] = build_node(v, k, path + (k,))
    elif kind == KIND_ARRAY:
        children = [build_node(v, str(i), path + (str(i),)) for i, v in enumerate(value)]
    return {
        "key":      key,
        "value":    value,
        "kind":     kind,
        "depth":    len(path),
        "path":     path,
        "children": children,
        "config":   None,
    }

def child_nodes(node):
    children = node["children"]
    if children is None:
        return []
    if isinstance(children, dict):
        return list(children.values())
    return list(children)

def get_child(node, segment):
    children = node["children"]
    if isinstance(children, dict):
        return children.get(str(segment))
    if isinstance(children, list):
        i = _as_index(segment)
        if i is not None and i < len(children):
            return children[i]
    return None

def find_node(tree, p):
    node = tree
    for k in p:
        if node is None:
            return None
        node = get_child(node, k)
    return node

def iter_nodes(node):
    yield node
    for c in child_nodes(node):
        yield from iter_nodes(c)

def replace_node(tree, p, fn):
    """Returns a new tree where the node at p is replaced by fn(node).

    Path copying: untouched subtrees are shared with the old tree. A path
    that does not resolve returns tree as is.
    """
    p = tuple(p)
    if not p:
        return fn(tree)
    child = get_child(tree, p[0])
    if child is None:
        return tree
    new_child = replace_node(child, p[1:], fn)
    if new_child is child:
        return tree
    children = tree["children"]
    if isinstance(children, dict):
        new_children = dict(children)
        new_children[str(p[0])] = new_child
    else:
        new_children = list(children)
        new_children[_as_index(p[0])] = new_child
    return {**tree, "children": new_children}


# ----------------------------
# edit-time literals
# ----------------------------

_NUMBER_RE = re.compile(r"-?[0-9]+(\.[0-9]+)?")

def coerce_literal(text):
    s = text.strip()
    if s == "null":
        return None
    if s in ("true", "false"):
        return s == "true"
    m = _NUMBER_RE.fullmatch(s)
    if m:
        return float(s) if m.group(1) else int(s)
    if s.startswith('"') and s.endswith('"'):
        return s[1:-1]
    return s

def rename_key(doc, p, new_key):
    """Delete then re-insert under new_key; the entry ends up last in its parent."""
    p = tuple(p)
    if not p:
        return doc
    value = get_by_path(doc, p)
    if value is MISSING:
        return doc
    return set_by_path(delete_by_path(doc, p), p[:-1] + (new_key,), value)


# ----------------------------
# plugins
# ----------------------------

PLUGINS_KEY = "plugins"

def has_plugins(content):
    return isinstance(content, dict) and isinstance(content.get(PLUGINS_KEY), dict)

def plugin_order(content):
    if not has_plugins(content):
        return []
    return list(content[PLUGINS_KEY].keys())

def reorder_plugins(content, new_order):
    if not has_plugins(content):
        raise ValueError("document has no 'plugins' object")
    old = content[PLUGINS_KEY]
    plugins = {}
    for name in new_order:
        # stale names are skipped, unlisted ones dropped
        if name in old and name not in plugins:
            plugins[name] = old[name]
    return {**content, PLUGINS_KEY: plugins}
