import pytest
from fastapi.testclient import TestClient

from lazymd_brain.api.main import create_app
from lazymd_brain.services import DocumentRegistry, ToolDispatcher


@pytest.fixture
def client(dispatcher: ToolDispatcher) -> TestClient:
    return TestClient(create_app(dispatcher))


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "documents": 0}


def test_list_tools(client: TestClient) -> None:
    response = client.get("/api/tools")

    assert response.status_code == 200
    tools = response.json()
    assert len(tools) == 19
    assert tools[0]["name"] == "open_file"


def test_call_tool_success(client: TestClient) -> None:
    response = client.post("/api/tools/open_file", json={"path": "root.md"})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["tool"] == "open_file"
    assert body["result"]["title"] == "Intro"


def test_call_tool_without_body(client: TestClient) -> None:
    response = client.post("/api/tools/get_orphans")

    assert response.status_code == 200
    assert response.json()["result"] == {"orphans": [], "count": 0}


@pytest.mark.parametrize(
    "name,payload,status_code,kind",
    [
        ("format_disk", {}, 404, "UnknownTool"),
        ("open_file", {"path": "absent.md"}, 404, "NotFound"),
        ("read_section", {"path": "root.md", "section": "Nope"}, 404, "SectionNotFound"),
        ("read_document", {"path": "root.md", "start_line": -1}, 400, "InvalidArguments"),
        ("get_breadcrumb", {"path": "root.md", "line": 99}, 400, "OutOfRange"),
        (
            "move_section",
            {"path": "root.md", "section": "Intro", "target": "Intro", "position": "after"},
            400,
            "InvalidMove",
        ),
    ],
)
def test_error_kinds_map_to_status_codes(
    client: TestClient, name: str, payload: dict, status_code: int, kind: str
) -> None:
    response = client.post(f"/api/tools/{name}", json=payload)

    assert response.status_code == status_code
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["kind"] == kind


def test_non_object_body_is_a_bad_request(client: TestClient) -> None:
    response = client.post("/api/tools/open_file", json=["root.md"])

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InvalidArguments"


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    response = client.get("/api/nothing")

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "NotFound"


def test_graph_endpoint(client: TestClient, loaded_registry: DocumentRegistry) -> None:
    response = client.get("/api/graph")

    assert response.status_code == 200
    data = response.json()
    ids = {node["id"] for node in data["nodes"]}
    assert {"root.md", "beta.md", "notes/alpha.md", "lonely.md", "missing-note"} <= ids
    assert {"source": "root.md", "target": "beta.md", "resolved": True, "weight": 1} in data["links"]
