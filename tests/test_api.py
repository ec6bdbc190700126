import pytest
from fastapi.testclient import TestClient

from recordkit.api import create_app
from recordkit.catalog import CollectionCatalog
from recordkit.realtime import Lifecycle

from .conftest import response_error


@pytest.fixture
def catalog():
    return CollectionCatalog.from_mapping({
        "collections": {
            "projects": {"defaultSort": "-created", "fieldMapping": {"ownerId": "owner"}},
        }
    })


@pytest.fixture
def api(client, catalog):
    with TestClient(create_app(client, catalog, Lifecycle())) as test_client:
        yield test_client


def test_healthz(api):
    res = api.get("/healthz")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "collections": ["projects"], "subscriptions": 0}


def test_list_collections(api):
    body = api.get("/collections").json()
    assert body["collections"][0]["name"] == "projects"
    assert body["collections"][0]["defaultSort"] == "-created"


def test_search(api, client):
    projects = client.collection("projects")
    projects.records = {"p1": {"id": "p1", "owner": "u1"}}
    res = api.post("/collections/projects/search", json={
        "perPage": 5,
        "filter": {"conditions": [{"field": "ownerId", "operator": "=", "value": "u1"}]},
    })
    assert res.status_code == 200
    assert res.json()["items"] == [{"id": "p1", "ownerId": "u1"}]
    _, page, per_page, kwargs = projects.calls[-1]
    assert (page, per_page) == (1, 5)
    assert kwargs["filter"] == "owner = 'u1'"
    assert kwargs["sort"] == "-created"


def test_search_rejects_malformed_options(api):
    res = api.post("/collections/projects/search", json={"page": 0})
    assert res.status_code == 400


def test_unknown_collection_is_404(api):
    res = api.get("/collections/comments/records/x")
    assert res.status_code == 404
    assert "Unknown collection" in res.json()["detail"]


def test_record_crud(api, client):
    res = api.post("/collections/projects/records", json={"title": "T", "ownerId": "u1"})
    assert res.status_code == 201
    assert res.json() == {"id": "r1", "title": "T", "ownerId": "u1"}

    assert api.get("/collections/projects/records/r1").json()["ownerId"] == "u1"

    res = api.patch("/collections/projects/records/r1", json={"title": "U"})
    assert res.json()["title"] == "U"

    assert api.delete("/collections/projects/records/r1").json() == {"deleted": True}


def test_service_errors_map_to_status(api, client):
    res = api.get("/collections/projects/records/missing")
    assert res.status_code == 404
    assert res.json()["detail"]["kind"] == "not_found"

    client.collection("projects").fail_next["create"] = [response_error(400, {
        "data": {"title": {"code": "validation_required", "message": "Missing required value."}},
    })]
    res = api.post("/collections/projects/records", json={})
    assert res.status_code == 400
    assert res.json()["detail"]["message"] == "Title: Missing required value."


def test_shutdown_emits_terminate(client, catalog):
    lifecycle = Lifecycle()
    events = []
    lifecycle.on("terminate", lambda: events.append("terminate"))
    app = create_app(client, catalog, lifecycle)
    with TestClient(app) as test_client:
        test_client.get("/healthz")
        assert events == []
    assert events == ["terminate"]
    assert app.state.subscriptions.get_subscription_stats()["total"] == 0
