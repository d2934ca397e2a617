# v0_mcp/resources/session_file_store.py
import hashlib
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError
from redis.exceptions import RedisError

from ..storage import API_KV, AbstractKVStore

logger = logging.getLogger(__name__)

SESSION_DATA_TTL_SECONDS = 60 * 60 * 24 * 7  # 7 days
FILE_URI_SCHEME = "v0"

_FILE_URI_RE = re.compile(r"^v0://session/(?P<session_id>[^/]+)/files/(?P<file_id>[^/]+)$")

_EXTENSION_TO_LANGUAGE = {
    "js": "javascript", "jsx": "javascript",
    "ts": "typescript", "tsx": "typescript",
    "py": "python", "rb": "ruby", "go": "go", "java": "java",
    "cpp": "cpp", "c": "c", "cs": "csharp", "php": "php",
    "swift": "swift", "kt": "kotlin", "rs": "rust",
    "html": "html", "css": "css", "scss": "scss", "sass": "sass", "less": "less",
    "json": "json", "xml": "xml", "yaml": "yaml", "yml": "yaml",
    "md": "markdown", "mdx": "markdown",
    "sh": "bash", "bash": "bash", "zsh": "bash", "fish": "bash",
    "ps1": "powershell", "sql": "sql", "vue": "vue", "svelte": "svelte",
    "txt": "text", "svg": "svg",
}

_LANGUAGE_TO_EXTENSION = {
    "javascript": "js", "typescript": "ts", "python": "py", "ruby": "rb",
    "go": "go", "java": "java", "cpp": "cpp", "c": "c", "csharp": "cs",
    "php": "php", "swift": "swift", "kotlin": "kt", "rust": "rs",
    "html": "html", "css": "css", "scss": "scss", "sass": "sass", "less": "less",
    "json": "json", "xml": "xml", "yaml": "yaml", "markdown": "md",
    "bash": "sh", "powershell": "ps1", "sql": "sql", "vue": "vue",
    "svelte": "svelte", "text": "txt",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def language_from_file_name(file_name: str) -> str:
    """Infers a language from the file extension; falls back to the extension itself, then 'text'."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return _EXTENSION_TO_LANGUAGE.get(ext) or ext or "text"


def hash_content(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:12]


def build_file_id(chat_id: str, language: str, content: str) -> str:
    """The language is hashed with the content: identical content in two languages yields two ids."""
    return f"{chat_id}_{hash_content(f'{language}:{content}')}"


def build_file_uri(session_id: str, file_id: str) -> str:
    return f"{FILE_URI_SCHEME}://session/{session_id}/files/{file_id}"


def parse_file_uri(uri: str) -> Optional[Dict[str, str]]:
    match = _FILE_URI_RE.match(uri or "")
    return match.groupdict() if match else None


class NormalizedFile(BaseModel):
    object: str = "file"
    name: str
    content: str
    language: str
    locked: bool = False


class SessionFile(BaseModel):
    id: str
    session_id: str
    chat_id: str
    message_id: Optional[str] = None
    file: NormalizedFile
    created_at: datetime = Field(default_factory=_utcnow)
    uri: str
    is_latest_version: bool = False


class FileStats(BaseModel):
    total_files: int = 0
    by_language: Dict[str, int] = Field(default_factory=dict)
    by_chat_id: Dict[str, int] = Field(default_factory=dict)


class SessionFileBundle(BaseModel):
    """Durable snapshot of one session's file cache."""
    last_chat_id: Optional[str] = None
    files: List[SessionFile] = Field(default_factory=list)
    stats: FileStats = Field(default_factory=FileStats)
    updated_at: datetime = Field(default_factory=_utcnow)


def normalize_file(raw: Mapping[str, Any]) -> NormalizedFile:
    """
    Accepts both backend file shapes.

    Current:  {"object": "file", "name", "content", "locked"}
    Legacy:   {"lang", "source", "meta": {"filename"}}
    """
    if raw.get("object") == "file":
        name = raw.get("name") or "untitled.txt"
        return NormalizedFile(
            name=name,
            content=raw.get("content") or "",
            locked=bool(raw.get("locked", False)),
            language=language_from_file_name(name),
        )

    lang = raw.get("lang") or "text"
    meta = raw.get("meta") or {}
    name = meta.get("filename") if isinstance(meta, Mapping) else None
    if not name:
        ext = _LANGUAGE_TO_EXTENSION.get(lang, lang)
        name = f"file_{int(time.time() * 1000)}.{ext}"
    return NormalizedFile(name=name, content=raw.get("source") or "", locked=False, language=lang)


class SessionFileStore:
    """
    Process-local cache of generated files per session, written through to
    the API namespace (`session:{sid}:data`) on every mutation and hydrated
    from it on a miss.
    """

    def __init__(self, kv: Optional[AbstractKVStore] = None):
        self.kv = kv or API_KV
        self._session_files: Dict[str, List[SessionFile]] = {}
        self._file_index: Dict[str, SessionFile] = {}
        self._last_chat_ids: Dict[str, str] = {}

    @staticmethod
    def _bundle_key(session_id: str) -> str:
        return f"session:{session_id}:data"

    async def add_files_from_chat(
        self,
        session_id: str,
        chat_id: str,
        files: List[Mapping[str, Any]],
        message_id: Optional[str] = None,
        is_latest_version: bool = False,
    ) -> List[SessionFile]:
        """Returns only the files that were new to this chat."""
        file_list = await self.get_session_files(session_id)
        self._last_chat_ids[session_id] = chat_id
        added: List[SessionFile] = []

        for raw in files:
            normalized = normalize_file(raw)
            duplicate = any(
                sf.chat_id == chat_id
                and sf.file.content == normalized.content
                and sf.file.language == normalized.language
                for sf in file_list
            )
            if duplicate:
                continue

            file_id = build_file_id(chat_id, normalized.language, normalized.content)
            session_file = SessionFile(
                id=file_id,
                session_id=session_id,
                chat_id=chat_id,
                message_id=message_id,
                file=normalized,
                uri=build_file_uri(session_id, file_id),
                is_latest_version=is_latest_version,
            )
            file_list.append(session_file)
            self._file_index[session_file.uri] = session_file
            added.append(session_file)

        self._session_files[session_id] = file_list
        await self._cache_session_data(session_id)
        logger.debug(f"Session {session_id}: added {len(added)} of {len(files)} file(s) from chat {chat_id}")
        return added

    async def get_session_files(self, session_id: str) -> List[SessionFile]:
        if session_id not in self._session_files:
            await self._load_session_data(session_id)
        return self._session_files.setdefault(session_id, [])

    async def get_file_by_uri(self, uri: str) -> Optional[SessionFile]:
        session_file = self._file_index.get(uri)
        if session_file:
            return session_file
        parsed = parse_file_uri(uri)
        if not parsed:
            return None
        await self._load_session_data(parsed["session_id"])
        return self._file_index.get(uri)

    async def get_chat_files(self, session_id: str, chat_id: str) -> List[SessionFile]:
        return [f for f in await self.get_session_files(session_id) if f.chat_id == chat_id]

    async def get_file_stats(self, session_id: str) -> FileStats:
        return self._compute_stats(await self.get_session_files(session_id))

    @staticmethod
    def _compute_stats(files: List[SessionFile]) -> FileStats:
        stats = FileStats(total_files=len(files))
        for sf in files:
            lang = sf.file.language or language_from_file_name(sf.file.name)
            stats.by_language[lang] = stats.by_language.get(lang, 0) + 1
            stats.by_chat_id[sf.chat_id] = stats.by_chat_id.get(sf.chat_id, 0) + 1
        return stats

    async def get_last_chat_id(self, session_id: str) -> Optional[str]:
        if session_id not in self._last_chat_ids:
            await self._load_session_data(session_id)
        return self._last_chat_ids.get(session_id)

    async def set_last_chat_id(self, session_id: str, chat_id: str) -> None:
        if session_id not in self._session_files:
            await self._load_session_data(session_id)
        self._last_chat_ids[session_id] = chat_id
        await self._cache_session_data(session_id)

    async def clear_session(self, session_id: str) -> None:
        for sf in self._session_files.pop(session_id, []):
            self._file_index.pop(sf.uri, None)
        # entries hydrated by URI lookups may not be in the session list
        for uri in [u for u, sf in self._file_index.items() if sf.session_id == session_id]:
            del self._file_index[uri]
        self._last_chat_ids.pop(session_id, None)
        try:
            await self.kv.delete(self._bundle_key(session_id))
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Failed to delete cached session data for {session_id}: {e}")

    async def _cache_session_data(self, session_id: str) -> None:
        files = self._session_files.get(session_id, [])
        bundle = SessionFileBundle(
            last_chat_id=self._last_chat_ids.get(session_id),
            files=files,
            stats=self._compute_stats(files),
        )
        try:
            await self.kv.put(
                self._bundle_key(session_id),
                bundle.model_dump(mode="json"),
                ttl_seconds=SESSION_DATA_TTL_SECONDS,
            )
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Failed to cache session data for {session_id}: {e}")

    async def _load_session_data(self, session_id: str) -> None:
        raw = await self.kv.get(self._bundle_key(session_id))
        if not raw:
            return
        try:
            bundle = SessionFileBundle.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Failed to load session data for {session_id}: {e}")
            return
        self._session_files[session_id] = bundle.files
        if bundle.last_chat_id:
            self._last_chat_ids[session_id] = bundle.last_chat_id
        for sf in bundle.files:
            self._file_index[sf.uri] = sf


session_file_store = SessionFileStore()
