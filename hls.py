# hls.py
"""
HLS helpers used when turning a player page into a playable stream.

- find_master_playlist_url: first .m3u8 URL embedded in a player page
- parse_master_playlist: variant list from an #EXTM3U master playlist
- pick_best_variant: highest-resolution variant
"""
import re
import m3u8
from typing import List, Optional

from models import HlsVariant

MASTER_URL_PATTERN = re.compile(r'(https?://[^\s"\']+\.m3u8)')


def quality_label(height: int) -> str:
    if height >= 2160:
        return '4K'
    if height >= 1080:
        return '1080p'
    if height >= 720:
        return '720p'
    if height >= 480:
        return '480p'
    if height > 0:
        return f"{height}p"
    return 'SD'


def find_master_playlist_url(page_text: str) -> Optional[str]:
    if not page_text:
        return None
    match = MASTER_URL_PATTERN.search(page_text)
    return match.group(1) if match else None


def parse_master_playlist(playlist_text: str, master_url: str) -> List[HlsVariant]:
    """Variants of a master playlist, with URIs resolved against master_url."""
    playlist = m3u8.loads(playlist_text or '', uri=master_url)
    if not playlist.is_variant:
        return []

    variants = []
    for variant in playlist.playlists:
        resolution = variant.stream_info.resolution if variant.stream_info else None
        height = resolution[1] if resolution else 0
        variants.append(HlsVariant(height=height, label=quality_label(height), url=variant.absolute_uri))
    return variants


def pick_best_variant(playlist_text: str, master_url: str) -> Optional[HlsVariant]:
    # max() keeps the first of equal heights
    variants = parse_master_playlist(playlist_text, master_url)
    if not variants:
        return None
    return max(variants, key=lambda v: v.height)
