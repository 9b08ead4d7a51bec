import pytest

from camera_url import normalize_camera_url
from errors import InvalidUrl


@pytest.mark.parametrize(
    "text, expected",
    [
        ("192.168.1.10:8080", "http://192.168.1.10:8080"),
        ("192.168.1.10", "http://192.168.1.10"),
        ("http://10.0.0.1", "http://10.0.0.1"),
        ("https://10.0.0.1:443/video", "https://10.0.0.1:443/video"),
        ("HTTP://10.0.0.1/mjpg", "HTTP://10.0.0.1/mjpg"),
        ("  192.168.1.10/mjpg/video.mjpg  ", "http://192.168.1.10/mjpg/video.mjpg"),
        ("10.0.0.1:80/", "http://10.0.0.1:80/"),
    ],
)
def test_valid_urls_are_normalized(text, expected):
    assert normalize_camera_url(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "192.168.1",
        "192.168.a.10",
        "192.168.1.10.5",
        "1921.168.1.1",
        "http://192.168.1.1000",
        "camera.local:8080",
        "192.168.1.10:port",
        "rtsp://192.168.1.10",
        "ftp://192.168.1.10",
        "http://",
    ],
)
def test_malformed_urls_are_rejected(text):
    with pytest.raises(InvalidUrl):
        normalize_camera_url(text)


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_url_asks_for_input(text):
    with pytest.raises(InvalidUrl, match="Please enter the IP camera URL"):
        normalize_camera_url(text)


def test_invalid_url_kind():
    with pytest.raises(InvalidUrl) as excinfo:
        normalize_camera_url("not a url")
    assert excinfo.value.kind == "InvalidUrl"
