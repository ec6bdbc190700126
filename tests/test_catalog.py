import json
from pathlib import Path

import jsonschema
import pytest

from recordkit.catalog import CollectionCatalog

SAMPLE = Path(__file__).resolve().parents[1] / "config" / "collections.yaml"


def test_loads_bundled_yaml():
    catalog = CollectionCatalog(SAMPLE)
    catalog.load()
    assert catalog.names() == ["users", "projects", "tasks"]

    projects = catalog.config_for("projects")
    assert projects.collection == "projects"
    assert projects.default_sort == "-created"
    assert projects.default_expand == ["owner"]
    assert projects.field_mapping == {"ownerId": "owner", "isArchived": "archived"}
    assert projects.retries == 2

    assert catalog.config_for("tasks").default_expand == ["project", "assignee"]


def test_loads_json_with_explicit_collection(tmp_path):
    path = tmp_path / "collections.json"
    path.write_text(json.dumps({"collections": {"people": {"collection": "users_v2"}}}), encoding="utf-8")
    catalog = CollectionCatalog(path)
    catalog.load()
    assert catalog.config_for("people").collection == "users_v2"


def test_missing_file(tmp_path):
    with pytest.raises(RuntimeError):
        CollectionCatalog(tmp_path / "nope.yaml").load()


def test_schema_violations_are_rejected():
    with pytest.raises(jsonschema.ValidationError):
        CollectionCatalog.from_mapping({"collections": {"posts": {"retries": -1}}})
    with pytest.raises(jsonschema.ValidationError):
        CollectionCatalog.from_mapping({"collections": {"posts": {"sortBy": "x"}}})


def test_unknown_collection():
    catalog = CollectionCatalog.from_mapping({"collections": {"posts": {}}})
    with pytest.raises(KeyError, match="Unknown collection: comments"):
        catalog.config_for("comments")


def test_service_for_caches(client, registry, classifier):
    catalog = CollectionCatalog.from_mapping({"collections": {"posts": {"defaultSort": "-created"}}})
    first = catalog.service_for("posts", client, registry, classifier)
    assert first is catalog.service_for("posts", client, registry, classifier)
    assert first.collection == "posts"
    assert first.subscriptions is registry
