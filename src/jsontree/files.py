# files.py
# JSON documents on disk, rooted at one directory

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .errors import (
    DocumentExistsError, DocumentNotFoundError, InvalidJsonError, InvalidPathError,
)
from .model import compact, parse_json_text, pretty


logger = logging.getLogger(__name__)

BOM = "\ufeff"
SKIPPED_DIRS = ("node_modules",)
EXPORT_FORMATS = ("pretty", "compact", "original")


# ----------------------------
# tiny helpers
# ----------------------------

def atomic_write_text(path, text):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, str(path))
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass

def _iso_mtime(st):
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat()

def strip_bom(s):
    return s[1:] if s.startswith(BOM) else s

def parse_document_text(s):
    """Parse file text into a JSON value or raise InvalidJsonError."""
    if not s or not s.strip():
        raise InvalidJsonError("File is empty")
    obj, err = parse_json_text(strip_bom(s))
    if err:
        raise InvalidJsonError(f"JSON syntax error: {err}")
    return obj

def _decode_upload(data):
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("upload is not valid UTF-8, retrying as GBK")
    try:
        return data.decode("gbk")
    except UnicodeDecodeError:
        raise InvalidJsonError("Unsupported file encoding; expected a UTF-8 JSON file") from None

def export_content(content, fmt="pretty"):
    if fmt == "compact":
        return compact(content)
    return pretty(content, indent=2)

def validate_content(content):
    if isinstance(content, str):
        _, err = parse_json_text(content)
        if err:
            return False, err
    return True, None


# ----------------------------
# store
# ----------------------------

class FileStore:
    def __init__(self, root, pattern="*.json"):
        self.root = Path(root).resolve()
        self.pattern = pattern

    def resolve(self, filename):
        if not filename:
            raise InvalidPathError("Invalid file path")
        p = (self.root / filename).resolve()
        if p != self.root and self.root not in p.parents:
            logger.warning("rejected path outside root: %s", filename)
            raise InvalidPathError("Invalid file path")
        return p

    def _info(self, p):
        st = p.stat()
        return {
            "name":          p.name,
            "path":          p.relative_to(self.root).as_posix(),
            "size":          st.st_size,
            "lastModified":  _iso_mtime(st),
            "type":          "file",
        }

    def list_files(self):
        out = []

        def walk(d):
            for entry in sorted(d.iterdir()):
                if entry.is_dir():
                    # linked directories can loop back into the tree
                    if entry.is_symlink() or entry.name.startswith(".") or entry.name in SKIPPED_DIRS:
                        continue
                    walk(entry)
                elif entry.is_file() and entry.match(self.pattern):
                    out.append(self._info(entry))

        walk(self.root)
        out.sort(key=lambda info: (info["name"], info["path"]))
        logger.info("listed %d files under %s", len(out), self.root)
        return out

    def read_file(self, filename):
        p = self.resolve(filename)
        logger.info("reading %s", p)
        if not p.is_file():
            logger.error("file not found: %s", p)
            raise DocumentNotFoundError("File not found")

        st = p.stat()
        try:
            s = p.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.error("%s is not UTF-8 text", p)
            raise InvalidJsonError("File is not UTF-8 encoded") from None
        logger.debug("read %d characters from %s", len(s), p.name)
        try:
            content = parse_document_text(s)
        except InvalidJsonError as e:
            logger.error("could not parse %s: %s", p.name, e.message)
            raise

        if isinstance(content, dict):
            logger.info("parsed %s: object with %d keys", p.name, len(content))
        elif isinstance(content, list):
            logger.info("parsed %s: array of %d items", p.name, len(content))
        return {
            "content": content,
            "metadata": {
                "name":          p.name,
                "size":          st.st_size,
                "lastModified":  _iso_mtime(st),
                "encoding":      "utf-8",
            },
        }

    def save_file(self, filename, content, preserve_format=False):
        # preserve_format has no separate rendering; both paths write 2-space JSON
        p = self.resolve(filename)
        s = pretty(content, indent=2) + "\n"
        atomic_write_text(p, s)
        logger.info("saved %s (%d bytes)", p, len(s.encode("utf-8")))

    def create_file(self, filename, content=None):
        p = self.resolve(filename)
        if p.exists():
            logger.error("refusing to create existing file %s", p)
            raise DocumentExistsError("File already exists")
        if content is None:
            content = {}
        atomic_write_text(p, pretty(content, indent=2) + "\n")
        logger.info("created %s", p)

    def delete_file(self, filename):
        p = self.resolve(filename)
        if not p.is_file():
            logger.error("cannot delete missing file %s", p)
            raise DocumentNotFoundError("File not found")
        p.unlink()
        logger.info("deleted %s", p)

    def import_file(self, data, filename):
        name = Path(filename or "").name
        if not name:
            raise InvalidPathError("Uploaded file has no name")
        if not name.lower().endswith(".json"):
            logger.warning("importing %s without a .json extension", name)
        logger.info("importing %s (%d bytes)", name, len(data))

        s = strip_bom(_decode_upload(data).strip()).strip()
        if not s:
            raise InvalidJsonError("File is empty")
        first, last = s[0], s[-1]
        if not ((first == "{" and last == "}") or (first == "[" and last == "]")):
            logger.error("import %s: content starts with %r and ends with %r", name, first, last)
            raise InvalidJsonError(
                "File is not valid JSON (missing opening or closing bracket)")

        content, err = parse_json_text(s)
        if err:
            logger.error("import %s failed to parse: %s", name, err)
            raise InvalidJsonError(f"JSON syntax error: {err}")

        self.save_file(name, content)
        return {"content": content, "filename": name}
