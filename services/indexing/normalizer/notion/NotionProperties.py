"""Value extraction from raw Notion API objects (rich text, page properties, blocks)."""

from typing import Any


def plain_text(rich_text: Any) -> str:
    """Concatenate a rich text array, preferring plain_text over text.content."""
    if not isinstance(rich_text, list):
        return ""
    parts = []
    for item in rich_text:
        if not isinstance(item, dict):
            continue
        value = item.get("plain_text")
        if value is None:
            value = (item.get("text") or {}).get("content")
        if value:
            parts.append(str(value))
    return "".join(parts).strip()


def date_range(date: Any) -> str:
    """"start~end", "start", or "-" when neither is set."""
    if not isinstance(date, dict):
        return "-"
    start = str(date.get("start") or "").strip()
    end = str(date.get("end") or "").strip()
    if not start and not end:
        return "-"
    if not end:
        return start
    return f"{start}~{end}"


def property_value(prop: Any) -> str:
    """Render one page property value as text. Unknown or empty values give ""."""
    if not isinstance(prop, dict):
        return ""
    kind = prop.get("type")
    value = prop.get(kind) if kind else None
    if value is None:
        return ""
    if kind in ("title", "rich_text"):
        return plain_text(value)
    if kind in ("select", "status"):
        return str(value.get("name") or "").strip() if isinstance(value, dict) else ""
    if kind == "multi_select":
        return ", ".join(str(opt.get("name")) for opt in value if isinstance(opt, dict) and opt.get("name"))
    if kind == "date":
        rendered = date_range(value)
        return "" if rendered == "-" else rendered
    if kind == "checkbox":
        return "true" if value else "false"
    if kind in ("number", "url", "email", "phone_number", "created_time", "last_edited_time"):
        return str(value).strip()
    if kind == "people":
        return ", ".join(str(p.get("name")) for p in value if isinstance(p, dict) and p.get("name"))
    if kind == "relation":
        return ", ".join(str(r.get("id")) for r in value if isinstance(r, dict) and r.get("id"))
    if kind == "formula" and isinstance(value, dict):
        inner = value.get(value.get("type"))
        return "" if inner is None else str(inner).strip()
    return ""


def find_property(properties: Any, kind: str) -> dict | None:
    """First property of the given type, e.g. the single "title" property of a page."""
    if not isinstance(properties, dict):
        return None
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type") == kind:
            return prop
    return None


def page_title(page: dict) -> str:
    return property_value(find_property(page.get("properties"), "title"))


def page_status(page: dict) -> str:
    prop = find_property(page.get("properties"), "status") or find_property(page.get("properties"), "select")
    return property_value(prop)


def page_date(page: dict) -> str:
    prop = find_property(page.get("properties"), "date")
    return date_range(prop.get("date")) if prop else "-"


def block_text(block: dict) -> str:
    """Text of a block: its rich text, or the title of child pages and databases."""
    kind = block.get("type")
    body = block.get(kind) if kind else None
    if not isinstance(body, dict):
        return ""
    if kind in ("child_page", "child_database"):
        return str(body.get("title") or "").strip()
    text = plain_text(body.get("rich_text"))
    if kind == "to_do":
        return ("[x] " if body.get("checked") else "[ ] ") + text if text else ""
    if kind == "bulleted_list_item" and text:
        return "- " + text
    if kind == "numbered_list_item" and text:
        return "1. " + text
    if kind == "quote" and text:
        return "> " + text
    return text
