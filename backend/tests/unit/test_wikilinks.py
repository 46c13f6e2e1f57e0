import pytest

from backend.src.models.canvas import CanvasNodeCreate
from backend.src.models.wikilink import WikiLinkState
from backend.src.services.canvas_service import CanvasService
from backend.src.services.embedding_queue import EmbeddingQueue
from backend.src.services.wikilinks import WikiLinkService


@pytest.fixture()
def wikilinks(canvas: CanvasService) -> WikiLinkService:
    return WikiLinkService(canvas)


def _note(canvas: CanvasService, title: str, user_id: str = "alice"):
    return canvas.create_node(user_id, CanvasNodeCreate(content=f"# {title}\n\nbody"))


def test_suggest_matches_substrings_case_insensitively(
    canvas: CanvasService, wikilinks: WikiLinkService
) -> None:
    _note(canvas, "Project Alpha")
    _note(canvas, "Alphabet soup")
    _note(canvas, "Beta release")

    suggestions = wikilinks.suggest("alice", "ALPHA")

    assert [item.title for item in suggestions.items] == ["Project Alpha", "Alphabet soup"]
    assert suggestions.state == WikiLinkState.SUGGESTING
    assert suggestions.can_create is True


def test_exact_match_disables_create(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    _note(canvas, "Project Alpha")

    assert wikilinks.suggest("alice", "project alpha").can_create is False


def test_empty_query_lists_first_ten(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    for i in range(12):
        _note(canvas, f"Note {i:02d}")

    suggestions = wikilinks.suggest("alice", "")

    assert [item.title for item in suggestions.items] == [f"Note {i:02d}" for i in range(10)]
    assert suggestions.can_create is False


def test_suggest_caps_requested_limit(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    for i in range(12):
        _note(canvas, f"Topic {i}")

    assert len(wikilinks.suggest("alice", "topic", limit=50).items) == 10
    assert len(wikilinks.suggest("alice", "topic", limit=3).items) == 3


def test_suggest_uses_injected_title_source(canvas: CanvasService) -> None:
    injected = [_note(canvas, "Injected")]
    _note(canvas, "Ignored")
    service = WikiLinkService(canvas, title_source=lambda user_id: injected)

    assert [item.title for item in service.suggest("alice", "").items] == ["Injected"]


def test_suggestions_are_owner_scoped(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    _note(canvas, "Bob's secret", user_id="bob")

    assert wikilinks.suggest("alice", "secret").items == []


def test_resolve_prefers_earliest_note(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    first = _note(canvas, "Duplicate")
    _note(canvas, "duplicate")

    assert wikilinks.resolve("alice", "DUPLICATE").id == first.id
    assert wikilinks.resolve("alice", "Missing") is None


def test_open_existing_link_navigates(canvas: CanvasService, wikilinks: WikiLinkService) -> None:
    note = _note(canvas, "Roadmap")

    resolution = wikilinks.open_link("alice", "roadmap")

    assert resolution.state == WikiLinkState.NAVIGATED
    assert resolution.node_id == note.id
    assert resolution.created is False


def test_open_missing_link_creates_note(
    canvas: CanvasService, wikilinks: WikiLinkService, queue: EmbeddingQueue
) -> None:
    resolution = wikilinks.open_link("alice", "  Fresh Idea ")

    assert resolution.created is True
    assert resolution.state == WikiLinkState.NAVIGATED
    created = canvas.get_node(resolution.node_id, "alice")
    assert created.title == "Fresh Idea"
    assert created.content == "# Fresh Idea"
    assert created.type == "note"
    assert [job.entity_id for job in queue.list_jobs("alice")] == [created.id]

    again = wikilinks.open_link("alice", "fresh idea")
    assert again.created is False
    assert again.node_id == created.id


def test_open_missing_link_without_create_raises(
    canvas: CanvasService, wikilinks: WikiLinkService
) -> None:
    with pytest.raises(LookupError):
        wikilinks.open_link("alice", "Nowhere", create_if_missing=False)

    assert canvas.list_notes("alice") == []


def test_open_blank_title_is_rejected(wikilinks: WikiLinkService) -> None:
    with pytest.raises(ValueError):
        wikilinks.open_link("alice", "   ")
