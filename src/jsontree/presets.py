# presets.py
# Named snapshots of plugin order, expansion state and container slots

import json
import logging
import random
import string
import time
from pathlib import Path

from .errors import PresetNotFoundError, PresetValidationError
from .files import atomic_write_text
from .model import deep_copy, pretty


logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
IMMUTABLE_FIELDS = ("id", "created_at")
_FIELD_TYPES = {
    "id":           str,
    "name":         str,
    "plugin_order": list,
    "created_at":   (int, float),
    "updated_at":   (int, float),
}
_OPTIONAL_MAPS = ("expanded_nodes", "parent_display_configs")


def now_ms():
    return int(time.time() * 1000)

def generate_preset_id():
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"preset_{now_ms()}_{suffix}"

def empty_storage():
    return {"presets": [], "last_used_preset_id": None, "auto_apply_last_used": True}

def preset_problem(entry):
    """None for a well-formed stored preset, else what is wrong with it."""
    if not isinstance(entry, dict):
        return "not an object"
    for field, types in _FIELD_TYPES.items():
        value = entry.get(field)
        if value is None:
            return f"missing {field!r}"
        if isinstance(value, bool) or not isinstance(value, types):
            return f"{field!r} has the wrong type"
    for field in _OPTIONAL_MAPS:
        if entry.get(field) is not None and not isinstance(entry[field], dict):
            return f"{field!r} must be an object or null"
    return None


class PresetStore:
    """Flat list of presets persisted as one JSON file.

    The whole file is rewritten on every change, so the last writer wins.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.storage = self._load()

    # ----------------------------
    # persistence
    # ----------------------------

    def _load(self):
        if not self.path.exists():
            return empty_storage()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("could not load presets from %s: %s", self.path, e)
            return empty_storage()
        if not isinstance(data, dict):
            logger.error("ignoring malformed preset file %s", self.path)
            return empty_storage()
        raw = data.get("presets")
        presets = []
        for entry in raw if isinstance(raw, list) else []:
            problem = preset_problem(entry)
            if problem:
                logger.error("dropping stored preset from %s: %s", self.path, problem)
                continue
            presets.append(entry)
        return {
            "presets":              presets,
            "last_used_preset_id":  data.get("last_used_preset_id"),
            "auto_apply_last_used": data.get("auto_apply_last_used", True),
        }

    def _save(self):
        atomic_write_text(self.path, pretty(self.storage, indent=2) + "\n")
        logger.debug("wrote %d presets to %s", len(self.storage["presets"]), self.path)

    def _find(self, preset_id):
        for p in self.storage["presets"]:
            if p["id"] == preset_id:
                return p
        raise PresetNotFoundError(f"Preset not found: {preset_id}")

    def _name_taken(self, name, except_id=None):
        return any(p["name"] == name and p["id"] != except_id for p in self.storage["presets"])

    # ----------------------------
    # operations
    # ----------------------------

    def save_preset(self, name, description, plugin_order, file_hash=None,
                    expanded_nodes=None, parent_display_configs=None):
        name = (name or "").strip()
        if not name:
            raise PresetValidationError("Preset name must not be empty")
        if not plugin_order:
            raise PresetValidationError("Plugin order must not be empty")
        if self._name_taken(name):
            raise PresetValidationError(f"A preset named {name!r} already exists")

        ts = now_ms()
        preset = {
            "id":                     generate_preset_id(),
            "name":                   name,
            "description":            (description or "").strip(),
            "plugin_order":           list(plugin_order),
            "expanded_nodes":         dict(expanded_nodes) if expanded_nodes is not None else None,
            "parent_display_configs": deep_copy(parent_display_configs) if parent_display_configs is not None else None,
            "created_at":             ts,
            "updated_at":             ts,
            "file_hash":              file_hash,
        }
        self.storage["presets"].append(preset)
        self._save()
        logger.info("saved preset %s (%s) with %d plugins", preset["id"], name, len(plugin_order))
        return deep_copy(preset)

    def load_preset(self, preset_id):
        preset = self._find(preset_id)
        self.set_last_used(preset_id)
        logger.info("loaded preset %s", preset_id)
        return deep_copy(preset)

    def get_preset(self, preset_id):
        return deep_copy(self._find(preset_id))

    def list_presets(self):
        presets = sorted(self.storage["presets"], key=lambda p: p["updated_at"], reverse=True)
        return deep_copy(presets)

    def delete_preset(self, preset_id):
        preset = self._find(preset_id)
        self.storage["presets"].remove(preset)
        if self.storage["last_used_preset_id"] == preset_id:
            self.storage["last_used_preset_id"] = None
        self._save()
        logger.info("deleted preset %s", preset_id)
        return preset

    def update_preset(self, preset_id, updates):
        preset = self._find(preset_id)
        updates = {k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}
        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise PresetValidationError("Preset name must not be empty")
            if name != preset["name"] and self._name_taken(name, except_id=preset_id):
                raise PresetValidationError(f"A preset named {name!r} already exists")
            updates["name"] = name
        if "plugin_order" in updates and not updates["plugin_order"]:
            raise PresetValidationError("Plugin order must not be empty")

        preset.update(deep_copy(updates))
        preset["updated_at"] = max(now_ms(), preset["updated_at"] + 1)
        self._save()
        logger.info("updated preset %s: %s", preset_id, ", ".join(sorted(updates)) or "(no fields)")
        return deep_copy(preset)

    def presets_for_file(self, file_hash):
        return deep_copy([p for p in self.storage["presets"] if p.get("file_hash") == file_hash])

    def set_last_used(self, preset_id):
        self.storage["last_used_preset_id"] = preset_id
        self._save()

    def last_used(self):
        preset_id = self.storage["last_used_preset_id"]
        if not preset_id:
            return None
        for p in self.storage["presets"]:
            if p["id"] == preset_id:
                return deep_copy(p)
        return None

    @property
    def auto_apply_last_used(self):
        return self.storage["auto_apply_last_used"]

    @auto_apply_last_used.setter
    def auto_apply_last_used(self, value):
        self.storage["auto_apply_last_used"] = bool(value)
        self._save()

    def export_presets(self):
        return pretty(self.storage, indent=2)

    def import_presets(self, text):
        try:
            data = json.loads(text)
        except ValueError as e:
            raise PresetValidationError(f"Invalid preset data: {e}") from None
        if not isinstance(data, dict) or not isinstance(data.get("presets"), list):
            raise PresetValidationError("Invalid preset data: expected an object with a 'presets' list")
        for i, entry in enumerate(data["presets"]):
            problem = preset_problem(entry)
            if problem:
                raise PresetValidationError(f"Invalid preset data: preset {i} {problem}")

        self.storage = {
            "presets":              data["presets"],
            "last_used_preset_id":  data.get("last_used_preset_id"),
            "auto_apply_last_used": data.get("auto_apply_last_used", True),
        }
        self._save()
        logger.info("imported %d presets", len(data["presets"]))
        return len(data["presets"])
