# server.py
# Flask application: files, presets and editor blueprints over one root directory

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .editor import Editor
from .errors import (
    EditorError, InvalidJsonError, InvalidPathError, JsonTreeError, PresetValidationError,
)
from .files import EXPORT_FORMATS, FileStore, export_content, validate_content
from .model import parse_path_key
from .presets import PresetStore


logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 10 * 1024 * 1024
JSON_MIMETYPES = ("application/json", "text/json", "text/plain", "application/octet-stream")


# ----------------------------
# envelope and request helpers
# ----------------------------

def ok(data=None, message=None, status=200):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status

def fail(message, status, error=None):
    body = {"success": False, "error": error or message, "message": message}
    return jsonify(body), status

def attachment(text, filename):
    return Response(
        text,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

def _body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidJsonError("Request body must be a JSON object")
    return body

def _path(body, key="path"):
    p = body.get(key, [])
    if not isinstance(p, list) or not all(isinstance(x, (str, int)) and not isinstance(x, bool) for x in p):
        raise InvalidPathError(f"'{key}' must be a list of keys")
    return tuple(str(x) for x in p)

def _required(body, key):
    if key not in body:
        raise EditorError(f"Missing '{key}'")
    return body[key]

def _services():
    return current_app.extensions["jsontree"]

def _files():
    return _services()["files"]

def _presets():
    return _services()["presets"]

def _editor():
    return _services()["editor"]


# ----------------------------
# files
# ----------------------------

files_bp = Blueprint("files", __name__, url_prefix="/api/files")

@files_bp.get("", strict_slashes=False)
def list_files():
    return ok(_files().list_files())

@files_bp.post("/import")
def import_file():
    upload = request.files.get("file")
    if upload is None:
        return fail("No file uploaded", 400)
    name = upload.filename or ""
    if upload.mimetype not in JSON_MIMETYPES and not name.lower().endswith(".json"):
        logger.warning("rejected upload %s (%s)", name, upload.mimetype)
        return fail("Only JSON files are supported", 400)
    result = _files().import_file(upload.read(), name)
    return ok(result, message="File imported")

@files_bp.post("/export")
def export_file():
    body = _body()
    content = _required(body, "content")
    fmt = body.get("format", "pretty")
    if fmt not in EXPORT_FORMATS:
        fmt = "pretty"
    name = Path(body.get("filename") or "export.json").name
    logger.info("exporting %s as %s", name, fmt)
    return attachment(export_content(content, fmt), name)

@files_bp.post("/validate")
def validate_file():
    body = _body()
    valid, err = validate_content(_required(body, "content"))
    if not valid:
        return fail(err, 400, error="Invalid JSON format")
    return ok({"valid": True}, message="Valid JSON format")

@files_bp.get("/<path:filename>")
def read_file(filename):
    return ok(_files().read_file(filename))

@files_bp.post("/<path:filename>")
def save_file(filename):
    body = _body()
    if "content" not in body:
        return fail("Missing file content", 400)
    _files().save_file(filename, body["content"], bool(body.get("preserveFormat")))
    return ok(message="File saved")

@files_bp.put("/<path:filename>")
def create_file(filename):
    body = _body()
    _files().create_file(filename, body.get("content"))
    return ok(message="File created", status=201)

@files_bp.delete("/<path:filename>")
def delete_file(filename):
    _files().delete_file(filename)
    return ok(message="File deleted")


# ----------------------------
# presets
# ----------------------------

presets_bp = Blueprint("presets", __name__, url_prefix="/api/presets")

@presets_bp.get("", strict_slashes=False)
def list_presets():
    return ok(_presets().list_presets())

@presets_bp.post("", strict_slashes=False)
def create_preset():
    body = _body()
    plugin_order = body.get("plugin_order") or []
    if not isinstance(plugin_order, list):
        raise PresetValidationError("'plugin_order' must be a list")
    preset = _presets().save_preset(
        body.get("name"), body.get("description", ""), plugin_order,
        file_hash=body.get("file_hash"),
        expanded_nodes=body.get("expanded_nodes"),
        parent_display_configs=body.get("parent_display_configs"),
    )
    return ok(preset, message="Preset saved", status=201)

@presets_bp.get("/last-used")
def last_used_preset():
    return ok({"preset": _presets().last_used(),
               "auto_apply_last_used": _presets().auto_apply_last_used})

@presets_bp.put("/settings")
def preset_settings():
    body = _body()
    if "auto_apply_last_used" in body:
        _presets().auto_apply_last_used = body["auto_apply_last_used"]
    return ok({"auto_apply_last_used": _presets().auto_apply_last_used})

@presets_bp.get("/export")
def export_presets():
    return attachment(_presets().export_presets(), "presets.json")

@presets_bp.post("/import")
def import_presets():
    body = _body()
    text = body.get("data")
    if text is None:
        text = request.get_data(as_text=True)
    elif not isinstance(text, str):
        raise PresetValidationError("'data' must be the exported preset text")
    n = _presets().import_presets(text)
    return ok({"imported": n}, message=f"Imported {n} presets")

@presets_bp.get("/by-file/<path:file_hash>")
def presets_for_file(file_hash):
    return ok(_presets().presets_for_file(file_hash))

@presets_bp.get("/<preset_id>")
def get_preset(preset_id):
    return ok(_presets().get_preset(preset_id))

@presets_bp.patch("/<preset_id>")
def update_preset(preset_id):
    return ok(_presets().update_preset(preset_id, _body()), message="Preset updated")

@presets_bp.delete("/<preset_id>")
def delete_preset(preset_id):
    _presets().delete_preset(preset_id)
    return ok(message="Preset deleted")


# ----------------------------
# editor
# ----------------------------

editor_bp = Blueprint("editor", __name__, url_prefix="/api/editor")

def _state():
    return ok(_editor().snapshot())

@editor_bp.get("/state")
def editor_state():
    return _state()

@editor_bp.post("/load/<path:filename>")
def editor_load(filename):
    result = _files().read_file(filename)
    editor = _editor()
    editor.load(filename, result["content"])

    presets = _presets()
    preset = presets.last_used() if presets.auto_apply_last_used else None
    if preset and preset.get("file_hash") == filename:
        editor.apply_preset_data(preset)
    return _state()

@editor_bp.post("/save")
def editor_save():
    editor = _editor()
    if not editor.loaded:
        raise EditorError("No document loaded")
    name = _body().get("filename") or editor.state["file_name"]
    _files().save_file(name, editor.state["display"])
    editor.mark_saved(name)
    return _state()

@editor_bp.post("/reset")
def editor_reset():
    _editor().reset_display()
    return _state()

@editor_bp.post("/select")
def editor_select():
    _editor().select(_path(_body()))
    return _state()

@editor_bp.post("/value")
def editor_value():
    body = _body()
    _editor().update_value(_path(body), _required(body, "value"))
    return _state()

@editor_bp.post("/literal")
def editor_literal():
    body = _body()
    text = _required(body, "text")
    if not isinstance(text, str):
        raise EditorError("'text' must be a string")
    _editor().edit_value_text(_path(body), text)
    return _state()

@editor_bp.post("/text")
def editor_text():
    body = _body()
    text = _required(body, "text")
    if not isinstance(text, str):
        raise EditorError("'text' must be a string")
    _editor().commit_text(_path(body), text)
    return _state()

@editor_bp.post("/property")
def editor_property():
    body = _body()
    _editor().add_property(_path(body), body.get("key"), body.get("value"))
    return _state()

@editor_bp.post("/delete")
def editor_delete():
    _editor().delete_property(_path(_body()))
    return _state()

@editor_bp.post("/rename")
def editor_rename():
    body = _body()
    _editor().rename_key(_path(body), _required(body, "new_key"))
    return _state()

@editor_bp.post("/reorder")
def editor_reorder():
    order = _required(_body(), "order")
    if not isinstance(order, list):
        raise EditorError("'order' must be a list of plugin names")
    _editor().reorder_plugins(order)
    return _state()

@editor_bp.get("/container")
def editor_get_container():
    try:
        pp = parse_path_key(request.args.get("path", "[]"))
    except ValueError:
        raise InvalidPathError("'path' must be a JSON list of keys") from None
    return ok(_editor().get_container(pp))

@editor_bp.post("/container")
def editor_set_container():
    body = _body()
    _editor().set_container(
        _path(body, "parent_path"), _required(body, "container_index"),
        _path(body, "child_path"), body.get("child_key"))
    return _state()

@editor_bp.delete("/container")
def editor_remove_container():
    body = _body()
    _editor().remove_container(_path(body, "parent_path"), _required(body, "container_index"))
    return _state()

@editor_bp.post("/expanded")
def editor_toggle_expanded():
    _editor().toggle_expanded(_path(_body()))
    return _state()

@editor_bp.post("/expand-all")
def editor_expand_all():
    _editor().expand_all()
    return _state()

@editor_bp.post("/collapse-all")
def editor_collapse_all():
    _editor().collapse_all()
    return _state()

@editor_bp.post("/presets")
def editor_save_preset():
    body = _body()
    preset = _editor().save_preset(body.get("name"), body.get("description", ""))
    return ok(preset, message="Preset saved", status=201)

@editor_bp.post("/presets/<preset_id>/apply")
def editor_apply_preset(preset_id):
    _editor().apply_preset(preset_id)
    return _state()


# ----------------------------
# app factory
# ----------------------------

def _register_error_handlers(app):

    @app.errorhandler(JsonTreeError)
    def on_jsontree_error(e):
        logger.warning("%s %s failed: %s", request.method, request.path, e.message)
        return fail(e.message, e.status)

    @app.errorhandler(413)
    def on_too_large(e):
        return fail("File too large, limit is 10MB", 413)

    @app.errorhandler(404)
    def on_not_found(e):
        if request.path.startswith("/api"):
            return fail("API not found", 404)
        return fail("Not found", 404)

    @app.errorhandler(Exception)
    def on_error(e):
        if isinstance(e, HTTPException):
            return fail(e.description, e.code)
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return fail("Server internal error", 500)


def create_app(root_dir=None, presets_path=None, config=None):
    root = Path(root_dir or os.getcwd()).resolve()
    if presets_path is None:
        presets_path = root / ".jsontree" / "presets.json"

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    app.config.update(config or {})
    # plugin order is key order, so responses must keep it
    app.json.sort_keys = False
    CORS(app)

    presets = PresetStore(presets_path)
    app.extensions["jsontree"] = {
        "files":   FileStore(root, app.config.get("JSONTREE_PATTERN", "*.json")),
        "presets": presets,
        "editor":  Editor(presets),
    }

    app.register_blueprint(files_bp)
    app.register_blueprint(presets_bp)
    app.register_blueprint(editor_bp)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})

    logger.info("serving JSON files under %s (presets in %s)", root, presets_path)
    return app
