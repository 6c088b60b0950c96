import json

import pytest

from jsontree.editor import Editor
from jsontree.presets import PresetStore
from jsontree.server import create_app


# ----------------------------
# sample documents
# ----------------------------

def sample_doc():
    return {
        "name": "demo",
        "plugins": {
            "alpha": {"enabled": True, "opts": {"level": 1, "mode": "fast"}},
            "beta":  {"enabled": False, "level": 2, "opts": {"mode": "slow"}},
            "gamma": {"opts": {"level": 3}, "tags": ["x", "y"]},
        },
        "list": [1, 2, 3],
    }


@pytest.fixture
def doc():
    return sample_doc()


@pytest.fixture
def presets(tmp_path):
    return PresetStore(tmp_path / "presets" / "presets.json")


@pytest.fixture
def editor(presets):
    ed = Editor(presets)
    ed.load("config.json", sample_doc())
    return ed


# ----------------------------
# server
# ----------------------------

@pytest.fixture
def root(tmp_path):
    d = tmp_path / "docs"
    d.mkdir()
    (d / "config.json").write_text(json.dumps(sample_doc(), indent=2), encoding="utf-8")
    return d


@pytest.fixture
def app(root, tmp_path):
    application = create_app(root_dir=root, presets_path=tmp_path / "presets.json")
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
