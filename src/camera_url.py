# camera_url.py

import re

from errors import InvalidUrl

# Optional scheme, dotted-quad host, optional port, optional path.
_CAMERA_URL_RE = re.compile(r"^(http://|https://)?(\d{1,3}\.){3}\d{1,3}(:\d+)?(/.*)?$", re.IGNORECASE)


def normalize_camera_url(text: str) -> str:
    """Return ``text`` as an http(s) camera URL or raise InvalidUrl.

    The scheme defaults to ``http://``. Only IPv4 hosts are accepted, so no
    name resolution or network access happens here.
    """
    url = (text or "").strip()
    if not url:
        raise InvalidUrl("Please enter the IP camera URL.")

    lowered = url.lower()
    if not (lowered.startswith("http://") or lowered.startswith("https://")):
        url = "http://" + url

    if not _CAMERA_URL_RE.match(url):
        raise InvalidUrl(f"Please enter a valid IP camera URL (e.g., http://192.168.1.100:8080), got {text!r}.")
    return url
