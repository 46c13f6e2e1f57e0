from datetime import datetime, timezone
import threading

import pytest

from backend.src.models.canvas import CanvasNodeCreate
from backend.src.models.related import RelatedMessage, RelatedNode, RelatedResult
from backend.src.services.canvas_service import CanvasService
from backend.src.services.embedding_provider import EmbeddingProviderError
from backend.src.services.embedding_queue import EmbeddingQueue
from backend.src.services.message_service import MessageService
from backend.src.services.relatedness import RelatednessEngine, merge_ranked


QUERY = [1.0, 0.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_results_are_restricted_to_owner(
    engine: RelatednessEngine,
    canvas: CanvasService,
    messages: MessageService,
    queue: EmbeddingQueue,
    provider,
) -> None:
    provider.vectors.update(
        {
            "query": QUERY,
            "alice note": [1.0, 0.1, 0.0, 0.0],
            "bob note": QUERY,
            "alice message": [1.0, 0.2, 0.0, 0.0],
            "bob message": QUERY,
        }
    )
    mine = canvas.create_node("alice", CanvasNodeCreate(content="alice note"))
    canvas.create_node("bob", CanvasNodeCreate(content="bob note"))
    alice_chat = messages.create_conversation("alice")
    bob_chat = messages.create_conversation("bob")
    my_message = messages.send_message(alice_chat.id, "alice", "alice message")
    messages.send_message(bob_chat.id, "bob", "bob message")
    await queue.process_pending()

    result = await engine.find_related("query", "alice", limit=5)

    assert [hit.id for hit in result.nodes] == [mine.id]
    assert [hit.id for hit in result.messages] == [my_message.id]


@pytest.mark.asyncio
async def test_scores_are_sorted_descending_per_collection(
    engine: RelatednessEngine, canvas: CanvasService, queue: EmbeddingQueue, provider
) -> None:
    provider.vectors.update(
        {
            "query": QUERY,
            "far": [0.0, 1.0, 0.0, 0.0],
            "near": [1.0, 0.1, 0.0, 0.0],
            "middle": [1.0, 1.0, 0.0, 0.0],
        }
    )
    for content in ("far", "near", "middle"):
        canvas.create_node("alice", CanvasNodeCreate(content=content))
    await queue.process_pending()

    result = await engine.find_related("query", "alice", limit=5)

    scores = [hit.score for hit in result.nodes]
    assert [hit.content for hit in result.nodes] == ["near", "middle", "far"]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= score <= 1.0 for score in scores)
    assert all(isinstance(hit, RelatedNode) for hit in result.nodes)


@pytest.mark.asyncio
async def test_limit_two_returns_the_two_closest_notes(
    engine: RelatednessEngine, canvas: CanvasService, queue: EmbeddingQueue, provider
) -> None:
    provider.vectors.update(
        {
            "query": QUERY,
            "N1": [1.0, 0.1, 0.0, 0.0],
            "N2": [1.0, 0.5, 0.0, 0.0],
            "N3": [0.0, 0.0, 1.0, 0.0],
        }
    )
    n1 = canvas.create_node("alice", CanvasNodeCreate(content="N1"))
    n2 = canvas.create_node("alice", CanvasNodeCreate(content="N2"))
    n3 = canvas.create_node("alice", CanvasNodeCreate(content="N3"))
    await queue.process_pending()

    result = await engine.find_related("query", "alice", limit=2)

    ids = [hit.id for hit in result.nodes]
    assert ids == [n1.id, n2.id]
    assert n3.id not in ids
    assert result.nodes[0].score > result.nodes[1].score


@pytest.mark.asyncio
async def test_unembedded_entities_are_not_returned(
    engine: RelatednessEngine, canvas: CanvasService, provider
) -> None:
    provider.vectors["query"] = QUERY
    canvas.create_node("alice", CanvasNodeCreate(content="Not yet embedded"))

    result = await engine.find_related("query", "alice")

    assert result == RelatedResult()


@pytest.mark.asyncio
async def test_index_search_runs_off_the_event_loop(
    engine: RelatednessEngine, canvas: CanvasService, queue: EmbeddingQueue, provider
) -> None:
    provider.vectors.update({"query": QUERY, "Match": QUERY})
    node = canvas.create_node("alice", CanvasNodeCreate(content="Match"))
    await queue.process_pending()
    search_threads = []
    original_search = engine.vector_index.search

    def recording_search(*args, **kwargs):
        search_threads.append(threading.get_ident())
        return original_search(*args, **kwargs)

    engine.vector_index.search = recording_search

    result = await engine.find_related("query", "alice")

    assert [hit.id for hit in result.nodes] == [node.id]
    assert len(search_threads) == 2
    assert threading.get_ident() not in search_threads


@pytest.mark.asyncio
@pytest.mark.parametrize(("query", "limit"), [("", 5), ("   ", 5), ("ok", 0), ("ok", 257)])
async def test_invalid_arguments_raise_value_error(
    engine: RelatednessEngine, provider, query, limit
) -> None:
    with pytest.raises(ValueError):
        await engine.find_related(query, "alice", limit=limit)

    assert provider.calls == []


@pytest.mark.asyncio
async def test_provider_errors_propagate(engine: RelatednessEngine, provider) -> None:
    provider.error = EmbeddingProviderError("service unavailable", status_code=503)

    with pytest.raises(EmbeddingProviderError):
        await engine.find_related("anything", "alice")

    assert provider.calls == ["anything"]


def test_merge_ranked_interleaves_by_score() -> None:
    now = datetime.now(timezone.utc)
    result = RelatedResult(
        messages=[
            RelatedMessage(id="m1", conversation_id="c", role="user", content="m1", created_at=now, score=0.9),
            RelatedMessage(id="m2", conversation_id="c", role="user", content="m2", created_at=now, score=0.4),
        ],
        nodes=[
            RelatedNode(
                id="n1",
                user_id="alice",
                type="note",
                content="n1",
                title="n1",
                created_at=now,
                updated_at=now,
                score=0.7,
            )
        ],
    )

    ranked = merge_ranked(result)

    assert [(item.id, item.type) for item in ranked] == [
        ("m1", "message"),
        ("n1", "node"),
        ("m2", "message"),
    ]
    assert [item.id for item in merge_ranked(result, limit=2)] == ["m1", "n1"]
