"""Derives source keys, hashes and chunk ids, and assembles VectorRecords with metadata."""

import hashlib
from datetime import datetime, timezone
from typing import Any

from shared.clients.rag.models.VectorRecord import VectorRecord
from shared.models.indexing import IndexJob

HASH_PREFIX_LENGTH = 32

PAGE_PATH_MARKER = "/notion/pages/"
PRIMARY_DATABASE_PATH_MARKER = "/databases/primary"


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _path(node: Any, *keys: Any) -> Any:
    """Walk dict keys / list indexes, returning None as soon as a step is missing."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if node is None:
            return None
    return node


def _text(node: Any) -> str:
    if node is None or isinstance(node, (dict, list)):
        return ""
    return str(node).strip()


def _first_text(*candidates: Any) -> str:
    for candidate in candidates:
        value = _text(candidate)
        if value:
            return value
    return ""


class DocumentFactory:
    """Turns an IndexJob and its chunks into VectorRecords.

    Understands both payload shapes the pipeline sees: the flattened DTOs
    (primary database listing, page detail) and raw Notion API objects.
    """

    ##########################################
    ############### IDENTITY #################
    ##########################################

    def build_source_key(self, job: IndexJob) -> str:
        """Return "sourceType|teamId|apiPath" plus "|resourceId" when a resource id is set."""
        key = f"{job.source_type.value}|{job.team_id}|{job.api_path}"
        if job.resource_id:
            key += f"|{job.resource_id}"
        return key

    def sha256_hex(self, value: str) -> str:
        return sha256_hex(value)

    def document_prefix(self, source_key: str) -> str:
        """Chunk id namespace of a source key: the first 32 hex chars of its SHA-256."""
        return sha256_hex(source_key)[:HASH_PREFIX_LENGTH]

    @staticmethod
    def chunk_ids(prefix: str, start: int, end: int) -> list[str]:
        """Ids prefix-start .. prefix-(end-1)."""
        return [f"{prefix}-{i}" for i in range(start, end)]

    @staticmethod
    def escape(value: str) -> str:
        """Escape a value for use inside a single-quoted filter literal."""
        return value.replace("\\", "\\\\").replace("'", "\\'")

    ##########################################
    ############### RECORDS ##################
    ##########################################

    def to_vector_records(
        self, job: IndexJob, source_key: str, prefix: str, chunks: list[str], content_hash: str = ""
    ) -> list[VectorRecord]:
        """Build one VectorRecord per chunk, ids prefix-0 .. prefix-(n-1).

        Args:
            job (IndexJob): The job the chunks came from.
            source_key (str): The job's source key.
            prefix (str): The job's document prefix.
            chunks (list[str]): Chunks in document order.
            content_hash (str): Hash of the normalized text the chunks came from.

        Returns:
            list[VectorRecord]: Records in chunk order.
        """
        payload = job.payload
        now = datetime.now(timezone.utc).isoformat()
        is_page_doc = PAGE_PATH_MARKER in job.api_path
        is_database_doc = PRIMARY_DATABASE_PATH_MARKER in job.api_path

        shared_metadata: dict[str, Any] = {
            "sourceType": job.source_type.value,
            "teamId": job.team_id,
            "apiPath": job.api_path,
            "sourceKey": source_key,
            "contentHash": content_hash,
            "databaseId": self._extract_database_id(payload),
            "pageId": self._extract_page_id(job, payload),
            "blockId": self._extract_first_block_id(payload),
            "title": self._extract_title(payload),
            "lastEditedTime": self._extract_last_edited_time(payload),
        }
        if is_page_doc:
            shared_metadata.update({
                "status": _text(_path(payload, "status")),
                "startDate": _text(_path(payload, "date", "start")),
                "endDate": _text(_path(payload, "date", "end")),
                "pageUrl": _first_text(_path(payload, "url"), _path(payload, "query_result", "results", 0, "url")),
            })
        if is_database_doc:
            pages = _path(payload, "pages")
            shared_metadata.update({
                "databaseTitle": _text(_path(payload, "databaseTitle")),
                "pageCount": len(pages) if isinstance(pages, list) else 0,
            })

        records: list[VectorRecord] = []
        for index, chunk in enumerate(chunks):
            metadata = dict(shared_metadata)
            metadata.update({
                "position": index,
                "depth": self.infer_depth(chunk),
                "chunkIndex": index,
                "chunkCount": len(chunks),
                "updatedAt": now,
            })
            records.append(VectorRecord(id=f"{prefix}-{index}", text=chunk, metadata=metadata))
        return records

    @staticmethod
    def infer_depth(chunk: str) -> int:
        """Deepest indentation level in a chunk, two leading spaces per level. Advisory only."""
        if not chunk or not chunk.strip():
            return 0
        depth = 0
        for line in chunk.splitlines():
            spaces = len(line) - len(line.lstrip(" "))
            depth = max(depth, spaces // 2)
        return depth

    ##########################################
    ############### EXTRACTORS ###############
    ##########################################

    def _extract_database_id(self, payload: Any) -> str:
        if _path(payload, "object") == "database":
            return _text(_path(payload, "id"))
        return _first_text(
            _path(payload, "database", "id"),
            _path(payload, "child_databases", 0, "database", "id"),
        )

    def _extract_page_id(self, job: IndexJob, payload: Any) -> str:
        if job.resource_id:
            return job.resource_id
        if _path(payload, "object") == "database":
            return ""
        return _first_text(
            _path(payload, "id"),
            _path(payload, "query_result", "results", 0, "id"),
        )

    def _extract_title(self, payload: Any) -> str:
        return _first_text(
            _path(payload, "title"),
            _path(payload, "databaseTitle"),
            _path(payload, "title", 0, "plain_text"),
            _path(payload, "database", "title", 0, "plain_text"),
        )

    def _extract_last_edited_time(self, payload: Any) -> str:
        return _first_text(
            _path(payload, "last_edited_time"),
            _path(payload, "database", "last_edited_time"),
            _path(payload, "query_result", "results", 0, "last_edited_time"),
        )

    def _extract_first_block_id(self, payload: Any) -> str:
        first = _path(payload, "results", 0)
        if _path(first, "object") == "block":
            return _text(_path(first, "id"))
        return ""
