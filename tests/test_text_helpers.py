from text_helpers import html_to_plain_text, sanitize_rich_text


def test_html_to_plain_text_normalizes_line_breaks():
    raw = "<p>Hello</p><p>World</p>"
    assert html_to_plain_text(raw) == "Hello\nWorld"


def test_html_to_plain_text_drops_style_blocks():
    raw = "<html><head><style>.x { color: red; }</style></head><body><p>Due soon</p></body></html>"
    assert html_to_plain_text(raw) == "Due soon"


def test_sanitize_rich_text_drops_script_content():
    raw = '<p>Safe</p><script>alert(1)</script>'
    assert sanitize_rich_text(raw) == '<p>Safe</p>'


def test_sanitize_rich_text_strips_event_handlers_and_unknown_tags():
    raw = '<p onclick="steal()">Run <img src=x onerror=alert(1)>gel</p>'
    assert sanitize_rich_text(raw) == '<p>Run gel</p>'


def test_sanitize_rich_text_keeps_only_safe_links():
    assert sanitize_rich_text('<a href="javascript:alert(1)">x</a>') == '<a>x</a>'
    assert sanitize_rich_text('<a href="https://lab.example.com/sop">SOP</a>') == (
        '<a href="https://lab.example.com/sop" target="_blank" rel="noopener noreferrer">SOP</a>'
    )


def test_sanitize_rich_text_escapes_text():
    assert sanitize_rich_text('5 &lt; 6 & more') == '5 &lt; 6 &amp; more'
