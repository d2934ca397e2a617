# tests/test_session_file_store.py
from v0_mcp.resources import (
    SessionFileStore,
    build_file_uri,
    build_file_id,
    language_from_file_name,
    normalize_file,
    parse_file_uri,
)

CURRENT_FILE = {"object": "file", "name": "app/page.tsx", "content": "export default function Page() {}", "locked": False}
LEGACY_FILE = {"lang": "python", "source": "print('hi')", "meta": {"filename": "main.py"}}


def test_language_inference():
    assert language_from_file_name("a/b/Button.tsx") == "typescript"
    assert language_from_file_name("styles.SCSS") == "scss"
    assert language_from_file_name("Dockerfile") == "text"
    assert language_from_file_name("notes.weird") == "weird"


def test_normalize_both_shapes():
    current = normalize_file(CURRENT_FILE)
    assert (current.name, current.language) == ("app/page.tsx", "typescript")

    legacy = normalize_file(LEGACY_FILE)
    assert (legacy.name, legacy.language, legacy.content) == ("main.py", "python", "print('hi')")

    unnamed = normalize_file({"lang": "javascript", "source": "1"})
    assert unnamed.name.startswith("file_") and unnamed.name.endswith(".js")


def test_uri_round_trip():
    uri = build_file_uri("sess", "chat_abc123")
    assert uri == "v0://session/sess/files/chat_abc123"
    assert parse_file_uri(uri) == {"session_id": "sess", "file_id": "chat_abc123"}
    assert parse_file_uri("v0://chats/abc") is None


async def test_files_are_deduplicated_per_chat(file_store):
    added = await file_store.add_files_from_chat("s1", "chat-1", [CURRENT_FILE, LEGACY_FILE], "msg-1")
    again = await file_store.add_files_from_chat("s1", "chat-1", [CURRENT_FILE])
    other_chat = await file_store.add_files_from_chat("s1", "chat-2", [CURRENT_FILE])

    assert len(added) == 2
    assert again == []
    assert len(other_chat) == 1
    assert added[0].id == build_file_id("chat-1", "typescript", CURRENT_FILE["content"])
    assert added[0].message_id == "msg-1"
    assert len(await file_store.get_session_files("s1")) == 3


async def test_same_content_in_two_languages_keeps_both(file_store):
    files = [
        {"name": "a.ts", "content": "const x = 1", "object": "file"},
        {"name": "a.js", "content": "const x = 1", "object": "file"},
    ]
    added = await file_store.add_files_from_chat("s1", "chat-1", files)

    assert len(added) == 2
    assert added[0].uri != added[1].uri
    assert (await file_store.get_file_by_uri(added[0].uri)).file.language == "typescript"
    assert (await file_store.get_file_by_uri(added[1].uri)).file.language == "javascript"


async def test_stats_and_last_chat(file_store):
    await file_store.add_files_from_chat("s1", "chat-1", [CURRENT_FILE, LEGACY_FILE])
    await file_store.set_last_chat_id("s1", "chat-9")

    stats = await file_store.get_file_stats("s1")
    assert stats.total_files == 2
    assert stats.by_language == {"typescript": 1, "python": 1}
    assert stats.by_chat_id == {"chat-1": 2}
    assert await file_store.get_last_chat_id("s1") == "chat-9"


async def test_cache_is_hydrated_from_redis(file_store):
    added = await file_store.add_files_from_chat("s1", "chat-1", [CURRENT_FILE])

    fresh = SessionFileStore()
    found = await fresh.get_file_by_uri(added[0].uri)
    assert found is not None
    assert found.file.content == CURRENT_FILE["content"]
    assert await fresh.get_last_chat_id("s1") == "chat-1"


async def test_clear_session_drops_everything(file_store):
    added = await file_store.add_files_from_chat("s1", "chat-1", [CURRENT_FILE])
    await file_store.add_files_from_chat("s2", "chat-1", [CURRENT_FILE])

    await file_store.clear_session("s1")

    assert await file_store.get_session_files("s1") == []
    assert await file_store.get_file_by_uri(added[0].uri) is None
    assert len(await file_store.get_session_files("s2")) == 1
