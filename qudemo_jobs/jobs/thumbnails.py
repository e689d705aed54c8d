"""Thumbnail URLs for the video platforms demos are built from."""

import re
from typing import Optional

PLACEHOLDER_THUMBNAIL = "https://via.placeholder.com/400x200?text=No+Thumbnail"

_LOOM_RE = re.compile(r"loom\.com/(?:share|embed|recordings)/([a-zA-Z0-9-]+)")
_YOUTUBE_RE = re.compile(
    r"(?:youtube\.com/(?:[^/\n\s]+/\S+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)([\w-]{11})"
)


def thumbnail_url(video_url: Optional[str]) -> Optional[str]:
    if not video_url:
        return None

    if "loom.com" in video_url:
        match = _LOOM_RE.search(video_url)
        if match:
            return f"https://cdn.loom.com/sessions/thumbnails/{match.group(1)}-with-play.gif"

    match = _YOUTUBE_RE.search(video_url)
    if match:
        return f"https://img.youtube.com/vi/{match.group(1)}/hqdefault.jpg"

    return PLACEHOLDER_THUMBNAIL
