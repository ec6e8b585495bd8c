import html
import re
from html.parser import HTMLParser


def html_to_plain_text(raw_html: str) -> str:
    if not raw_html:
        return ""
    text = str(raw_html)
    text = re.sub(r"(?is)<\s*(style|script|head)[^>]*>.*?</\s*\1\s*>", "", text)
    text = re.sub(r"(?i)<\s*br\s*/?\s*>", "\n", text)
    text = re.sub(r"(?i)</\s*(p|div|li|h[1-6]|blockquote|pre|tr)\s*>", "\n", text)
    text = re.sub(r"(?i)</\s*(ul|ol|table)\s*>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    text = text.replace("\r", "\n").replace("\xa0", " ")
    raw_lines = [line.rstrip() for line in text.split("\n")]
    cleaned_lines = []
    blank_streak = 0
    for line in raw_lines:
        if not line.strip():
            blank_streak += 1
            if blank_streak > 1:
                continue
            cleaned_lines.append("")
            continue
        blank_streak = 0
        cleaned_lines.append(re.sub(r"\s+", " ", line).strip())
    return "\n".join(cleaned_lines).strip()


class _RichTextSanitizer(HTMLParser):
    """Allow-list sanitizer for rich-text descriptions written in the ELN editor."""
    _allowed_tags = {
        "p",
        "div",
        "br",
        "ul",
        "ol",
        "li",
        "strong",
        "b",
        "em",
        "i",
        "u",
        "s",
        "del",
        "blockquote",
        "pre",
        "code",
        "h1",
        "h2",
        "h3",
        "h4",
        "span",
        "a",
    }
    _void_tags = {"br"}
    _dropped_content_tags = {"script", "style"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self._parts = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        tag = tag.lower()
        if tag in self._dropped_content_tags:
            self._skip_depth += 1
            return
        if tag not in self._allowed_tags:
            return
        clean_attrs = []
        if tag == "a":
            attrs_dict = {name.lower(): (value or "") for name, value in attrs}
            href = attrs_dict.get("href", "").strip()
            if href and (
                href.startswith("http://")
                or href.startswith("https://")
                or href.startswith("mailto:")
            ):
                clean_attrs.append(f'href="{html.escape(href, quote=True)}"')
                clean_attrs.append('target="_blank" rel="noopener noreferrer"')
        attr_text = f" {' '.join(clean_attrs)}" if clean_attrs else ""
        self._parts.append(f"<{tag}{attr_text}>")

    def handle_endtag(self, tag):
        tag = tag.lower()
        if tag in self._dropped_content_tags:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if tag in self._allowed_tags and tag not in self._void_tags:
            self._parts.append(f"</{tag}>")

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag.lower() in self._dropped_content_tags:
            self._skip_depth = max(0, self._skip_depth - 1)

    def handle_data(self, data):
        if data and not self._skip_depth:
            self._parts.append(html.escape(data, quote=False))

    def get_html(self) -> str:
        return "".join(self._parts).strip()


def sanitize_rich_text(raw_html: str) -> str:
    if not raw_html:
        return ""
    sanitizer = _RichTextSanitizer()
    sanitizer.feed(str(raw_html))
    sanitizer.close()
    return sanitizer.get_html()
