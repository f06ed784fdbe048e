TRUNCATION_MARKER = "[TRUNCATED: max-normalized-chars reached]"


class NormalizeBuffer:
    """Line buffer with a hard character budget.

    When a line would exceed the budget, everything written since the start of
    the current section is dropped, a truncation marker is appended if it still
    fits, and all further writes are ignored. Readers therefore never see a
    half-written section.
    """

    def __init__(self, max_chars: int) -> None:
        self._parts: list[str] = []
        self._length = 0
        self._max_chars = max_chars
        self._section_start = 0
        self._truncated = False

    @property
    def truncated(self) -> bool:
        return self._truncated

    def section(self, header: str) -> None:
        if not header or not header.strip() or self._truncated:
            return
        self._section_start = self._length
        self.line(header)

    def line(self, text: str | None) -> None:
        if text is None or not text.strip() or self._truncated:
            return
        needed = len(text) + 1
        if self._length + needed > self._max_chars:
            self._truncate_at_section_boundary()
            return
        self._append(text)

    def _append(self, text: str) -> None:
        self._parts.append(text + "\n")
        self._length += len(text) + 1

    def _truncate_at_section_boundary(self) -> None:
        self._truncated = True
        if 0 < self._section_start < self._length:
            content = "".join(self._parts)[: self._section_start]
            self._parts = [content]
            self._length = len(content)
        if self._length + len(TRUNCATION_MARKER) + 1 <= self._max_chars:
            self._append(TRUNCATION_MARKER)

    def result(self) -> str:
        return "".join(self._parts).strip()
