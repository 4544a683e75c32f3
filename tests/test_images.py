import struct

import pytest

from letterbox import images
from letterbox.errors import ImageDownloadError


class FakeResp:
    def __init__(self, status_code=200, content=b"", content_type="image/png"):
        self.status_code = status_code
        self.content = content
        self.headers = {"content-type": content_type} if content_type else {}
        self.reason = "Not Found" if status_code == 404 else "OK"


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.requested = []

    def request(self, method, url, params=None, headers=None, timeout=None):
        self.requested.append(url)
        return self.responses[url]


def png(width, height):
    return b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + struct.pack(">II", width, height) + b"\x00" * 8


def test_extract_image_urls_from_all_contexts():
    text = (
        "![one](https://x/1.png) "
        '<img class="a" src="https://x/2.jpg"> '
        '<td style="background-image: url(\'https://x/3.gif\')"> '
        '<div style="background: #fff url(https://x/4.webp) no-repeat;"> '
        "![dup](https://x/1.png) ![local](/api/images/3)"
    )
    assert images.extract_image_urls(text) == [
        "https://x/1.png",
        "https://x/2.jpg",
        "https://x/3.gif",
        "https://x/4.webp",
    ]
    assert images.extract_image_urls("") == []


def test_replace_image_urls_only_touches_image_contexts():
    text = "![pic](https://x/a.png) and [link](https://x/a.png) <IMG src='https://x/a.png'>"
    out = images.replace_image_urls(text, {"https://x/a.png": "/api/images/7"})
    assert out == "![pic](/api/images/7) and [link](https://x/a.png) <IMG src='/api/images/7'>"


def test_image_dimensions():
    assert images.get_image_dimensions(png(10, 20), "image/png") == (10, 20)
    gif = b"GIF89a" + struct.pack("<HH", 3, 4) + b"\x00" * 4
    assert images.get_image_dimensions(gif, "image/gif") == (3, 4)
    jpeg = b"\xff\xd8" + b"\xff\xc0\x00\x11\x08" + struct.pack(">HH", 30, 40) + b"\x00" * 10
    assert images.get_image_dimensions(jpeg, "image/jpeg") == (40, 30)
    assert images.get_image_dimensions(b"short", "image/png") is None
    assert images.get_image_dimensions(b"anything", "image/webp") is None


def test_download_image_reads_type_and_dimensions():
    session = FakeSession({"https://x/a.png": FakeResp(content=png(5, 6), content_type="image/PNG; charset=binary")})
    image = images.download_image("https://x/a.png", session=session)
    assert image.mime_type == "image/png"
    assert image.file_size == len(png(5, 6))
    assert (image.width, image.height) == (5, 6)


def test_download_image_defaults_to_jpeg():
    session = FakeSession({"https://x/a": FakeResp(content=b"data", content_type=None)})
    assert images.download_image("https://x/a", session=session).mime_type == "image/jpeg"


def test_download_image_rejects_non_images_and_errors():
    session = FakeSession(
        {
            "https://x/page": FakeResp(content=b"<html>", content_type="text/html"),
            "https://x/gone": FakeResp(status_code=404),
        }
    )
    with pytest.raises(ImageDownloadError, match="Not an image"):
        images.download_image("https://x/page", session=session)
    with pytest.raises(ImageDownloadError, match="HTTP 404"):
        images.download_image("https://x/gone", session=session)


def test_download_all_images_skips_failures_and_keeps_order():
    session = FakeSession(
        {
            "https://x/1.png": FakeResp(content=png(1, 1)),
            "https://x/2.png": FakeResp(status_code=404),
            "https://x/3.png": FakeResp(content=png(3, 3)),
        }
    )
    text = "![](https://x/1.png) ![](https://x/2.png) ![](https://x/3.png)"
    result = images.download_all_images(text, concurrency=2, session=session)
    assert list(result) == ["https://x/1.png", "https://x/3.png"]
    assert images.download_all_images("no images", session=session) == {}


def test_build_local_image_map_includes_unescaped_variant():
    rows = [{"id": 3, "original_url": "https://x/a.png?w=1&amp;h=2"}, {"id": 4, "original_url": "https://x/b.png"}]
    assert images.build_local_image_map(rows) == {
        "https://x/a.png?w=1&amp;h=2": "/api/images/3",
        "https://x/a.png?w=1&h=2": "/api/images/3",
        "https://x/b.png": "/api/images/4",
    }


def test_small_helpers():
    assert images.image_to_data_uri(b"abc", "image/gif") == "data:image/gif;base64,YWJj"
    assert images.format_bytes(512) == "512 B"
    assert images.format_bytes(2048) == "2.00 KB"
    assert images.format_bytes(3 * 1024 * 1024) == "3.00 MB"
    assert images.extension_for_mime("image/jpeg") == "jpg"
    assert images.extension_for_mime("image/bmp") == "png"
    assert images.extension_for_mime(None) == "png"
