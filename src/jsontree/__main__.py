# __main__.py
# python -m jsontree: serve a directory of JSON files

import argparse
import logging
from pathlib import Path

from .config import Settings, setup_logging
from .server import create_app


logger = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(prog="jsontree", description="JSON tree editor server")
    p.add_argument("root", nargs="?", help="directory holding the JSON files")
    p.add_argument("--presets", help="preset store file")
    p.add_argument("--pattern", help="file name pattern to list (default *.json)")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--log-level")
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.root:
        settings.root = Path(args.root).resolve()
        if not args.presets:
            settings.presets_path = settings.root / ".jsontree" / "presets.json"
    if args.presets:
        settings.presets_path = Path(args.presets)
    if args.pattern:
        settings.pattern = args.pattern
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings.log_level)
    if not settings.root.is_dir():
        logger.error("not a directory: %s", settings.root)
        return 2

    app = create_app(settings.root, settings.presets_path, settings.flask_config())
    logger.info("listening on http://%s:%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
