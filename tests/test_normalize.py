from letterbox import normalize
from letterbox.normalize import normalize_to_markdown


def test_empty_content():
    assert normalize_to_markdown("") == ""
    assert normalize_to_markdown(None) == ""


def test_markdown_body_passes_through():
    body = "# Title\n\nSome _emphasis_ and **strong** text with a [link](https://example.com).\n\n- one\n- two"
    out = normalize_to_markdown(body)
    assert "# Title" in out
    assert "_emphasis_" in out
    assert "**strong**" in out
    assert "[link](https://example.com)" in out
    assert "\n\n" in out


def test_html_converted_to_markdown():
    html = '<h2>Hello</h2><p>Read <a href="https://example.com" class="btn" style="color:red">this</a> <em>now</em>.</p>'
    out = normalize_to_markdown(html)
    assert "## Hello" in out
    assert "[this](https://example.com)" in out
    assert "_now_." in out
    assert "style" not in out
    assert "<" not in out


def test_scripts_styles_and_media_removed():
    html = "<p>Visible</p><script>alert(1)</script><style>p { color: red }</style><iframe src='https://x'></iframe>"
    out = normalize_to_markdown(html)
    assert out == "Visible"


def test_comments_removed():
    out = normalize_to_markdown("<!-- internal note --><p>Body</p>")
    assert "internal note" not in out
    assert "<!--" not in out
    assert out == "Body"


def test_space_before_punctuation_collapsed():
    out = normalize_to_markdown("<p>Hello <strong>world</strong> !</p>")
    assert out == "Hello **world**!"


def test_plaintext_marker_keeps_authors_line_breaks():
    body = "<!-- buttondown-editor-mode: plaintext -->Line one\nLine two\n\n\n\nLine three"
    out = normalize_to_markdown(body)
    assert out == "Line one\nLine two\n\nLine three"


def test_plaintext_marker_with_real_markup_converted():
    body = "<!-- buttondown-editor-mode: plaintext --><div><p>a</p><p>b</p><p>c</p><p><b>d</b></p></div>"
    out = normalize_to_markdown(body)
    assert "**d**" in out
    assert "<p>" not in out


def test_tables_flattened_to_blocks():
    html = "<table><tr><td>Left</td><td>Right</td></tr><tr><td>Next row</td></tr></table>"
    out = normalize_to_markdown(html)
    assert "Left Right" in out
    assert "Next row" in out
    assert "|" not in out


def test_layout_div_with_image_keeps_image():
    html = '<div><img src="https://cdn.example.com/a.png" alt="a photo" width="10"></div><div></div><p>after</p>'
    out = normalize_to_markdown(html)
    assert "![a photo](https://cdn.example.com/a.png)" in out
    assert out.endswith("after")


def test_failure_returns_original(monkeypatch):
    def boom(content):
        raise ValueError("bad markup")

    monkeypatch.setattr(normalize, "_normalize_html", boom)
    assert normalize_to_markdown("<p>x</p>") == "<p>x</p>"


def test_is_likely_html():
    assert normalize.is_likely_html("<p><b>a</b></p>") is False
    assert normalize.is_likely_html("<p><b>a</b><i>b</i></p>") is True


def test_preview_normalization_reports_lengths():
    preview = normalize.preview_normalization("<p>Hello</p>" + "x" * 600)
    assert preview["is_html"] is False
    assert preview["length_before"] == 612
    assert preview["original"].endswith("...")
    assert len(preview["original"]) == 503
