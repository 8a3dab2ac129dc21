"""
YouTube Transcript Fetcher

Scrapes the caption track list from a video's watch page and downloads the
chosen track's XML:

1. Resolve the video id (bare 11-character id, or any common URL shape)
2. Fetch https://www.youtube.com/watch?v=<id>
3. Cut the JSON between '"captions":' and ',"videoDetails"'
4. Pick the track for the requested language, else the first track
5. Fetch the track XML and join the unescaped <text> nodes with spaces

Every failure raises TranscriptError; the request layer skips that URL.
"""

import asyncio
import html
import json
import re
from typing import List, Optional

import aiohttp

from config import get_logger
from exceptions import TranscriptError
from vendors.session_manager_async import AsyncSessionManager

logger = get_logger(__name__).bind(component="youtube")

VIDEO_ID_RE = re.compile(
    r'(?:youtube\.com\/(?:[^\/]+\/.+\/|(?:v|e(?:mbed)?)\/|.*[?&]v=)|youtu\.be\/)([^"&?\/\s]{11})'
)
TRANSCRIPT_TEXT_RE = re.compile(r'<text start="([^"]*)" dur="([^"]*)">([^<]*)<\/text>')

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
CAPTIONS_MARKER = '"captions":'
VIDEO_DETAILS_MARKER = ',"videoDetails'


def extract_video_id(url: str) -> str:
    """Video id from a URL or a bare id

    Raises:
        TranscriptError: If no id can be found
    """
    if len(url) == 11:
        return url
    match = VIDEO_ID_RE.search(url)
    if match:
        return match.group(1)
    raise TranscriptError("invalid YouTube URL or video ID", url=url)


def parse_caption_tracks(page_html: str, video_id: str) -> List[dict]:
    """Caption tracks listed on a watch page

    Raises:
        TranscriptError: If the page has no captions or they cannot be parsed
    """
    _, marker, rest = page_html.partition(CAPTIONS_MARKER)
    if not marker:
        raise TranscriptError(f"no captions available for video {video_id}")

    end = rest.find(VIDEO_DETAILS_MARKER)
    if end == -1:
        raise TranscriptError(f"failed to parse captions data for video {video_id}")

    try:
        captions = json.loads(rest[:end])
    except ValueError as e:
        raise TranscriptError(f"failed to parse captions data for video {video_id}: {e}") from e

    tracks = (captions.get("playerCaptionsTracklistRenderer") or {}).get("captionTracks") or []
    if not tracks:
        raise TranscriptError(f"no transcripts available for video {video_id}")
    return tracks


def select_track_url(tracks: List[dict], lang: Optional[str] = None) -> str:
    """Base URL of the track for lang, or of the first track when lang is empty"""
    if lang:
        for track in tracks:
            if track.get("languageCode") == lang:
                return track.get("baseUrl", "")
        raise TranscriptError(f"no transcript available in language {lang}")
    return tracks[0].get("baseUrl", "")


def parse_transcript_xml(xml_text: str) -> str:
    """Join the HTML-unescaped text of every <text> node with spaces"""
    return "".join(html.unescape(match.group(3)) + " " for match in TRANSCRIPT_TEXT_RE.finditer(xml_text))


class YoutubeTranscriptFetcher:
    """TranscriptFetcher backed by aiohttp"""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, lang: Optional[str] = None):
        """
        Args:
            session: HTTP session (defaults to the shared "youtube" session)
            lang: Preferred caption language code (first track if None)
        """
        self._session = session
        self.lang = lang

    async def fetch(self, url: str) -> str:
        """Plain-text transcript of a video

        Raises:
            TranscriptError: If the id, captions or track cannot be resolved
        """
        video_id = extract_video_id(url)
        session = self._session or await AsyncSessionManager.get_session("youtube")

        page = await self._get_text(session, WATCH_URL.format(video_id=video_id), url)
        tracks = parse_caption_tracks(page, video_id)
        track_url = select_track_url(tracks, self.lang)
        if not track_url:
            raise TranscriptError(f"caption track for video {video_id} has no URL", url=url)

        xml_text = await self._get_text(session, track_url, url)
        transcript = parse_transcript_xml(xml_text)
        if not transcript.strip():
            raise TranscriptError(f"transcript for video {video_id} is empty", url=url)

        logger.info("fetched transcript", video_id=video_id, length=len(transcript), tracks=len(tracks))
        return transcript

    @staticmethod
    async def _get_text(session, request_url: str, source_url: str) -> str:
        try:
            async with session.get(request_url) as response:
                if response.status != 200:
                    raise TranscriptError(f"HTTP {response.status} fetching {request_url}", url=source_url)
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise TranscriptError(f"failed to fetch {request_url}: {type(e).__name__} {e}", url=source_url) from e
