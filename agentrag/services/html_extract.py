"""Visible-text extraction from fetched web pages using the stdlib HTML parser."""

import re
from html.parser import HTMLParser

# Content inside these never reaches the page text
_SKIP_TAGS = frozenset({"script", "style", "noscript", "svg", "head", "template", "iframe"})

# Tags that start a new paragraph in the extracted text
_BREAK_TAGS = frozenset(
    {
        "p", "div", "section", "article", "header", "footer", "nav", "main",
        "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr", "br", "hr",
        "blockquote", "pre", "table", "ul", "ol", "dl", "dt", "dd",
        "figure", "figcaption", "aside",
    }
)


class _VisibleTextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._hidden = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _SKIP_TAGS:
            self._hidden += 1
        elif tag in _BREAK_TAGS and not self._hidden:
            self._parts.append("\n\n")

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _BREAK_TAGS and not self._hidden:
            self._parts.append("\n\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIP_TAGS:
            self._hidden = max(0, self._hidden - 1)
        elif tag in _BREAK_TAGS and not self._hidden:
            self._parts.append("\n\n")

    def handle_data(self, data: str) -> None:
        if not self._hidden:
            self._parts.append(data)

    @property
    def text(self) -> str:
        return "".join(self._parts)


def html_to_text(html: str, collapse_whitespace: bool = False) -> str:
    """Convert HTML to its visible text.

    Script, style and similar elements are dropped. By default block
    elements become blank-line separated paragraphs; with
    ``collapse_whitespace`` every whitespace run becomes a single space.
    """
    parser = _VisibleTextParser()
    parser.feed(html or "")
    parser.close()
    text = parser.text

    if collapse_whitespace:
        return re.sub(r"\s+", " ", text).strip()

    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
