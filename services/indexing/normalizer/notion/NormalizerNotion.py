"""Normalizer for Notion read responses.

Handles the two flattened DTOs served by the workspace API (primary database
listing and page detail) as well as raw Notion API objects: database
schemas, query results (page records) and block trees. Anything else falls
back to a generic ``key: value`` walk.
"""

from typing import Any

from services.indexing.normalizer.NormalizeBuffer import NormalizeBuffer
from services.indexing.normalizer.NormalizerInterface import NormalizerInterface
from services.indexing.normalizer.notion import NotionProperties as props
from shared.models.indexing import IndexJob, IndexSourceType

# hard recursion bound for nested payloads
MAX_DEPTH = 6

PRIMARY_DATABASE_PATH_MARKER = "/databases/primary"
PAGE_PATH_MARKER = "/notion/pages/"

HEADING_LEVELS = {"heading_1": 1, "heading_2": 2, "heading_3": 3}


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return "-"
    if isinstance(value, bool):
        value = "true" if value else "false"
    text = str(value).strip()
    return text or "-"


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _has_content(node: Any, depth: int = 0) -> bool:
    """True if the tree holds at least one non-blank scalar within MAX_DEPTH."""
    if node is None or depth > MAX_DEPTH:
        return False
    if isinstance(node, dict):
        return any(_has_content(value, depth + 1) for value in node.values())
    if isinstance(node, list):
        return any(_has_content(value, depth + 1) for value in node)
    return bool(_scalar_text(node))


class NormalizerNotion(NormalizerInterface):

    def source_type(self) -> IndexSourceType:
        return IndexSourceType.NOTION

    def normalize(self, job: IndexJob) -> str:
        root = job.payload
        if not _has_content(root):
            return ""

        out = NormalizeBuffer(self.max_chars)
        out.section("[Source]")
        out.line(f"API: {job.api_path}")
        if job.resource_id:
            out.line(f"ResourceId: {job.resource_id}")

        dto = isinstance(root, dict) and not self._is_raw_notion(root)
        if dto and PRIMARY_DATABASE_PATH_MARKER in job.api_path:
            self._normalize_primary_database(root, out)
        elif dto and PAGE_PATH_MARKER in job.api_path:
            self._normalize_page_detail(root, out)
        elif isinstance(root, dict) and root.get("object") == "database":
            self._normalize_database_schema(root, out)
        elif isinstance(root, dict) and isinstance(root.get("database"), dict):
            self._normalize_database_schema(root["database"], out)
            query_result = root.get("query_result")
            self._normalize_records(query_result.get("results") if isinstance(query_result, dict) else None, out)
        elif self._is_list_of(root, "page"):
            self._normalize_records(self._results(root), out)
        elif self._is_list_of(root, "block"):
            out.section("[Blocks]")
            self._append_blocks(self._results(root), out, depth=0, context=[])
        else:
            out.section("[Data]")
            self._append_generic(root, out, depth=0)

        if out.truncated:
            self.logging.debug("INDEX: normalized text truncated apiPath=%s resourceId=%s", job.api_path, job.resource_id)
        return out.result()

    ##########################################
    ################# DTOs ###################
    ##########################################

    def _normalize_primary_database(self, root: dict, out: NormalizeBuffer) -> None:
        out.section("[Database]")
        out.line(f"Title: {_as_text(root.get('databaseTitle'))}")

        out.section("[Pages]")
        pages = root.get("pages")
        if not isinstance(pages, list) or not pages:
            out.line("No pages")
            return
        for index, page in enumerate(pages, start=1):
            page = page if isinstance(page, dict) else {}
            out.line(
                f"#{index} id={_as_text(page.get('id'))}"
                f" | title={_as_text(page.get('title'))}"
                f" | status={_as_text(page.get('status'))}"
                f" | date={props.date_range(page.get('date'))}"
                f" | url={_as_text(page.get('url'))}"
            )

    def _normalize_page_detail(self, root: dict, out: NormalizeBuffer) -> None:
        out.section("[Page]")
        out.line(f"PageId: {_as_text(root.get('id'))}")
        out.line(f"Title: {_as_text(root.get('title'))}")
        out.line(f"Status: {_as_text(root.get('status'))}")
        out.line(f"Date: {props.date_range(root.get('date'))}")
        out.line(f"Url: {_as_text(root.get('url'))}")

        content = root.get("pageContent")
        if isinstance(content, str) and content.strip():
            out.section("[Content]")
            for content_line in content.strip().splitlines():
                out.line(content_line.rstrip())

        out.section("[Child Databases]")
        child_databases = root.get("childDatabases")
        if not isinstance(child_databases, list) or not child_databases:
            out.line("No child databases")
            return
        for index, child in enumerate(child_databases, start=1):
            child = child if isinstance(child, dict) else {}
            out.line(f"[child_db] #{index} title={_as_text(child.get('databaseTitle'))}")
            pages = child.get("pages")
            if not isinstance(pages, list) or not pages:
                out.line("  No pages")
                continue
            for page in pages:
                page = page if isinstance(page, dict) else {}
                out.line(
                    f"  - pageId={_as_text(page.get('id'))}"
                    f" | title={_as_text(page.get('title'))}"
                    f" | status={_as_text(page.get('status'))}"
                    f" | url={_as_text(page.get('url'))}"
                )

    ##########################################
    ############## RAW NOTION ################
    ##########################################

    @staticmethod
    def _is_raw_notion(root: Any) -> bool:
        if isinstance(root, list):
            return True
        return isinstance(root, dict) and ("object" in root or isinstance(root.get("database"), dict))

    @staticmethod
    def _results(root: Any) -> list:
        if isinstance(root, list):
            return root
        return root.get("results") or []

    @classmethod
    def _is_list_of(cls, root: Any, object_type: str) -> bool:
        if isinstance(root, dict) and not isinstance(root.get("results"), list):
            return False
        if not isinstance(root, (dict, list)):
            return False
        items = cls._results(root)
        return bool(items) and all(isinstance(item, dict) and item.get("object") == object_type for item in items)

    def _normalize_database_schema(self, database: dict, out: NormalizeBuffer) -> None:
        out.section("[Database]")
        out.line(f"Id: {_as_text(database.get('id'))}")
        out.line(f"Title: {_as_text(props.plain_text(database.get('title')) or None)}")
        if database.get("last_edited_time"):
            out.line(f"LastEdited: {_as_text(database.get('last_edited_time'))}")

        properties = database.get("properties")
        if not isinstance(properties, dict) or not properties:
            return
        out.section("[Schema]")
        for name, prop in properties.items():
            prop = prop if isinstance(prop, dict) else {}
            kind = prop.get("type") or "unknown"
            options = (prop.get(kind) or {}).get("options") if isinstance(prop.get(kind), dict) else None
            names = [str(opt.get("name")) for opt in options or [] if isinstance(opt, dict) and opt.get("name")]
            suffix = f": {', '.join(names)}" if names else ""
            out.line(f"- {name} ({kind}){suffix}")

    def _normalize_records(self, records: Any, out: NormalizeBuffer) -> None:
        out.section("[Records]")
        if not isinstance(records, list) or not records:
            out.line("No records")
            return
        for index, record in enumerate(records, start=1):
            record = record if isinstance(record, dict) else {}
            fields = [
                f"#{index} id={_as_text(record.get('id'))}",
                f"title={_as_text(props.page_title(record) or None)}",
                f"status={_as_text(props.page_status(record) or None)}",
                f"date={props.page_date(record)}",
                f"url={_as_text(record.get('url'))}",
            ]
            properties = record.get("properties")
            if isinstance(properties, dict):
                for name, prop in properties.items():
                    if not isinstance(prop, dict) or prop.get("type") in ("title", "status", "select", "date"):
                        continue
                    value = props.property_value(prop)
                    if value:
                        fields.append(f"{name}={value}")
            out.line(" | ".join(fields))

    def _append_blocks(self, blocks: list, out: NormalizeBuffer, depth: int, context: list[tuple[int, str]]) -> None:
        """Render a block tree, one line per block.

        Each line is indented two spaces per nesting level and tagged with the
        block id. Headings form a context path; later non-heading lines are
        prefixed with it. A heading replaces every context heading of the same
        or a lower level.
        """
        if depth > MAX_DEPTH:
            return
        indent = "  " * depth
        for block in blocks:
            if not isinstance(block, dict):
                continue
            kind = block.get("type") or "unknown"
            text = props.block_text(block)
            block_id = _as_text(block.get("id"))
            level = HEADING_LEVELS.get(kind)

            if level is not None:
                while context and context[-1][0] >= level:
                    context.pop()
                if text:
                    context.append((level, text))
                    out.line(f"{indent}[{block_id}] {'#' * level} {text}")
            else:
                body = text or f"[{kind}]"
                path = " > ".join(heading for _, heading in context)
                out.line(f"{indent}[{block_id}] ({path}) {body}" if path else f"{indent}[{block_id}] {body}")

            children = block.get("children")
            if isinstance(children, list) and children:
                self._append_blocks(children, out, depth + 1, context)

    ##########################################
    ################ GENERIC #################
    ##########################################

    def _append_generic(self, node: Any, out: NormalizeBuffer, depth: int) -> None:
        if node is None or depth > MAX_DEPTH:
            return
        if isinstance(node, str):
            out.line(node.strip())
            return
        if isinstance(node, list):
            for child in node:
                self._append_generic(child, out, depth + 1)
            return
        if isinstance(node, dict):
            for key, value in node.items():
                if value is None:
                    continue
                if isinstance(value, (dict, list)):
                    self._append_generic(value, out, depth + 1)
                else:
                    out.line(f"{key}: {_scalar_text(value)}")
