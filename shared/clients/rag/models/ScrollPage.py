from pydantic import BaseModel, Field


class ScrollPage(BaseModel):
    """Points returned by a scroll, either one page or everything collected by do_scroll_all().

    Attributes:
        points:           Raw backend points; read their payload via extract_record_payload().
        next_page_offset: Cursor of the following page, None on the last page and on collected results.
    """

    points: list[dict] = Field(default_factory=list)
    next_page_offset: str | int | None = None
