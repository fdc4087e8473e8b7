import re
from typing import Optional
from .models import SourceDetection, SourceKind

YOUTUBE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
YOUTUBE_URL_PATTERNS = [
    re.compile(r"[?&]v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([a-zA-Z0-9_-]{11})"),
]
SOUNDCLOUD_URL_RE = re.compile(r"^https?://((www\.|m\.)?soundcloud\.com|on\.soundcloud\.com)/.+")

DISPLAY_NAMES = {
    SourceKind.YOUTUBE: "YouTube",
    SourceKind.SOUNDCLOUD: "SoundCloud",
}


def extract_youtube_id(url: str) -> Optional[str]:
    if not url:
        return None
    if YOUTUBE_ID_RE.match(url):
        return url
    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_youtube_url(url: str) -> bool:
    if not url:
        return False
    return bool(YOUTUBE_ID_RE.match(url)) or "youtube.com" in url or "youtu.be" in url


def is_soundcloud_url(url: str) -> bool:
    return bool(url) and bool(SOUNDCLOUD_URL_RE.match(url))


def normalize_soundcloud_url(url: str) -> str:
    """Strip query string and trailing slashes, force https."""
    normalized = url.split("?")[0].rstrip("/")
    if normalized.startswith("http://"):
        normalized = "https://" + normalized[len("http://"):]
    return normalized


def detect_source(text: str) -> Optional[SourceDetection]:
    """
    Works out which provider a pasted URL (or bare YouTube ID) belongs to.
    YouTube sources are keyed by video ID, SoundCloud by the normalized track URL.
    """
    if not text or not isinstance(text, str):
        return None
    text = text.strip()

    if is_youtube_url(text):
        video_id = extract_youtube_id(text)
        if video_id:
            return SourceDetection(source_kind=SourceKind.YOUTUBE, source_id=video_id)

    if is_soundcloud_url(text):
        return SourceDetection(source_kind=SourceKind.SOUNDCLOUD, source_id=normalize_soundcloud_url(text))

    return None


def source_display_name(kind: SourceKind) -> str:
    return DISPLAY_NAMES.get(kind, "Unknown")
