import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient

from backend.src.api.main import app
from backend.src.api.middleware import AuthContext, get_auth_context, get_auth_service
from backend.src.models.canvas import CanvasNodeCreate
from backend.src.services.auth import AuthService
from backend.src.services.backlinks import BacklinkResolver, get_backlink_resolver
from backend.src.services.canvas_service import CanvasService, get_canvas_service
from backend.src.services.config import AppConfig
from backend.src.services.embedding_provider import EmbeddingProviderError
from backend.src.services.embedding_queue import EmbeddingQueue, get_embedding_queue
from backend.src.services.link_materializer import LinkMaterializer, get_link_materializer
from backend.src.services.message_service import MessageService, get_message_service
from backend.src.services.relatedness import RelatednessEngine, get_relatedness_engine
from backend.src.services.wikilinks import WikiLinkService, get_wikilink_service

client = TestClient(app)


def _auth_as(user_id: str) -> None:
    mock_auth = Mock(spec=AuthContext)
    mock_auth.user_id = user_id
    mock_auth.method = "static"
    app.dependency_overrides[get_auth_context] = lambda: mock_auth


@pytest.fixture(autouse=True)
def overrides(
    canvas: CanvasService,
    messages: MessageService,
    queue: EmbeddingQueue,
    engine: RelatednessEngine,
):
    app.dependency_overrides[get_canvas_service] = lambda: canvas
    app.dependency_overrides[get_message_service] = lambda: messages
    app.dependency_overrides[get_embedding_queue] = lambda: queue
    app.dependency_overrides[get_relatedness_engine] = lambda: engine
    app.dependency_overrides[get_link_materializer] = lambda: LinkMaterializer(
        canvas, engine, dedupe=False
    )
    app.dependency_overrides[get_backlink_resolver] = lambda: BacklinkResolver(canvas)
    app.dependency_overrides[get_wikilink_service] = lambda: WikiLinkService(canvas)
    _auth_as("alice")
    yield
    app.dependency_overrides = {}


def test_health() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_missing_authorization_is_rejected() -> None:
    app.dependency_overrides.pop(get_auth_context)

    response = client.get("/api/canvas/nodes")

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


def test_node_crud_round_trip() -> None:
    created = client.post("/api/canvas/nodes", json={"content": "# Hello\n\n[[World]]"})
    assert created.status_code == 201
    node = created.json()
    assert node["title"] == "Hello"
    assert node["outgoing_links"] == ["World"]

    patched = client.patch(f"/api/canvas/nodes/{node['id']}", json={"content": "Changed"})
    assert patched.status_code == 200
    assert patched.json()["content"] == "Changed"

    assert client.delete(f"/api/canvas/nodes/{node['id']}").status_code == 204
    missing = client.get(f"/api/canvas/nodes/{node['id']}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_foreign_node_is_not_found(canvas: CanvasService) -> None:
    node = canvas.create_node("bob", CanvasNodeCreate(content="Bob only"))

    assert client.get(f"/api/canvas/nodes/{node.id}").status_code == 404
    assert client.post(f"/api/canvas/nodes/{node.id}/link-related").status_code == 404
    assert client.get(f"/api/canvas/nodes/{node.id}/backlinks").json() == []


@pytest.mark.asyncio
async def test_related_endpoint_returns_both_collections(
    canvas: CanvasService, messages: MessageService, queue: EmbeddingQueue, provider
) -> None:
    provider.vectors.update({"budget": [1.0, 0.0, 0.0, 0.0], "Q3 budget": [1.0, 0.2, 0.0, 0.0]})
    node = canvas.create_node("alice", CanvasNodeCreate(content="Q3 budget"))
    conversation = messages.create_conversation("alice")
    message = messages.send_message(conversation.id, "alice", "budget")
    await queue.process_pending()

    response = client.post("/api/related", json={"query": "budget", "limit": 5})

    assert response.status_code == 200
    data = response.json()
    assert [hit["id"] for hit in data["nodes"]] == [node.id]
    assert [hit["id"] for hit in data["messages"]] == [message.id]
    assert data["messages"][0]["score"] == pytest.approx(1.0)

    ranked = client.get("/api/search/semantic", params={"q": "budget"}).json()
    assert [item["id"] for item in ranked] == [message.id, node.id]


def test_related_rejects_blank_query_and_bad_limit() -> None:
    blank = client.post("/api/related", json={"query": "   "})
    assert blank.status_code == 400
    assert blank.json()["error"] == "validation_error"

    assert client.post("/api/related", json={"query": "x", "limit": 0}).status_code == 400
    assert client.post("/api/related", json={"query": "x", "limit": 257}).status_code == 400


def test_provider_failure_maps_to_bad_gateway(provider) -> None:
    provider.error = EmbeddingProviderError("upstream exploded", status_code=500)

    response = client.post("/api/related", json={"query": "anything"})

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "provider_error"
    assert body["message"] == "upstream exploded"
    assert body["detail"] == {"upstream_status": 500}


@pytest.mark.asyncio
async def test_link_related_and_backlinks(canvas: CanvasService, queue: EmbeddingQueue, provider) -> None:
    provider.vectors.update(
        {"Source idea": [1.0, 0.0, 0.0, 0.0], "Close idea": [0.92, 0.392, 0.0, 0.0]}
    )
    source = canvas.create_node("alice", CanvasNodeCreate(content="Source idea"))
    close = canvas.create_node("alice", CanvasNodeCreate(content="Close idea"))
    await queue.process_pending()

    response = client.post(f"/api/canvas/nodes/{source.id}/link-related", params={"limit": 3})

    assert response.status_code == 200
    [edge] = response.json()
    assert (edge["source"], edge["target"], edge["label"]) == (source.id, close.id, "92%")

    [backlink] = client.get(f"/api/canvas/nodes/{close.id}/backlinks").json()
    assert backlink["node"]["id"] == source.id
    assert backlink["edge_label"] == "92%"


def test_wikilink_endpoints(canvas: CanvasService) -> None:
    canvas.create_node("alice", CanvasNodeCreate(content="# Project Alpha"))
    linking = canvas.create_node("alice", CanvasNodeCreate(content="# Notes\n[[Project Alpha]]"))

    suggestions = client.get("/api/wikilinks/suggest", params={"q": "alpha"}).json()
    assert [item["title"] for item in suggestions["items"]] == ["Project Alpha"]
    assert suggestions["can_create"] is True

    backlinks = client.get("/api/notes/backlinks", params={"title": "Project Alpha"}).json()
    assert [note["id"] for note in backlinks] == [linking.id]

    opened = client.post("/api/wikilinks/open", json={"title": "Brand New"}).json()
    assert opened["created"] is True
    assert opened["state"] == "navigated"

    refused = client.post(
        "/api/wikilinks/open", json={"title": "Elsewhere", "create_if_missing": False}
    )
    assert refused.status_code == 404


def test_conversation_and_message_routes(queue: EmbeddingQueue) -> None:
    conversation = client.post("/api/conversations", json={"title": "Chat"}).json()

    sent = client.post(
        f"/api/conversations/{conversation['id']}/messages", json={"content": "Hi"}
    )
    assert sent.status_code == 201
    message_id = sent.json()["id"]

    listed = client.get(f"/api/conversations/{conversation['id']}/messages").json()
    assert [m["id"] for m in listed] == [message_id]

    jobs = client.get("/api/embeddings/jobs").json()
    assert [job["entity_id"] for job in jobs] == [message_id]

    _auth_as("bob")
    assert client.get(f"/api/messages/{message_id}").status_code == 404
    assert (
        client.post(
            f"/api/conversations/{conversation['id']}/messages", json={"content": "Hijack"}
        ).status_code
        == 404
    )


def test_embed_now_endpoint(canvas: CanvasService) -> None:
    node = canvas.create_node("alice", CanvasNodeCreate(content="Embed me"))

    response = client.post(f"/api/canvas/nodes/{node.id}/embed")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert canvas.get_node(node.id, "alice").has_embedding is True


def test_retry_failed_jobs_endpoint(canvas: CanvasService) -> None:
    assert client.post("/api/embeddings/jobs/retry").json() == {"requeued": 0}


def test_me_reports_counts(canvas: CanvasService, messages: MessageService) -> None:
    canvas.create_node("alice", CanvasNodeCreate(content="One"))
    messages.create_conversation("alice")

    data = client.get("/api/me").json()

    assert data == {
        "user_id": "alice",
        "auth_method": "static",
        "conversation_count": 1,
        "node_count": 1,
    }


def test_issue_token_round_trips_through_jwt() -> None:
    config = AppConfig(jwt_secret_key="s" * 40, enable_local_mode=False)
    auth_service = AuthService(config)
    app.dependency_overrides[get_auth_service] = lambda: auth_service

    response = client.post("/api/tokens")

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert auth_service.validate_jwt(body["token"]).sub == "alice"


def test_issue_token_without_secret_is_server_error() -> None:
    app.dependency_overrides[get_auth_service] = lambda: AuthService(
        AppConfig(enable_local_mode=False)
    )

    response = client.post("/api/tokens")

    assert response.status_code == 500
    assert response.json()["error"] == "missing_jwt_secret"
