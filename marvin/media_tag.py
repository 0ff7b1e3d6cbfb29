"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

media_tag.py

Translate media comments in user HTML between the two forms Marvin uses.

Stored content marks embedded media with an anchor:

    <a id="media_comment_0_abc" class="instructure_inline_media_comment video_comment"
       href="/media_objects/0_abc">this is a media comment</a>

API responses expose the same media as HTML5 elements:

    <video preload="none" class="instructure_inline_media_comment"
           data-media_comment_id="0_abc" data-media_comment_type="video"
           controls="controls" poster="..." src="...">...</video>

rewrite_outgoing() turns anchors into <audio>/<video>, rewrite_incoming()
turns them back into anchors.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag


logger = logging.getLogger(__name__)

MEDIA_COMMENT_CLASS = "instructure_inline_media_comment"
MEDIA_COMMENT_ID_PREFIX = re.compile(r"^media_comment_")
AUDIO_COMMENT = re.compile(r"\baudio_comment\b")
AV_COMMENT = re.compile(r"\b(audio|video)_comment\b")


# ============================================================================
# Media Objects
# ============================================================================

@dataclass
class MediaTrack:
    id: int
    kind: str = "subtitles"
    locale: str = "en"
    content: str = ""
    media_object_id: Optional[str] = None


@dataclass
class MediaObject:
    media_id: str
    media_type: str = "video"
    workflow_state: str = "active"
    media_tracks: List[MediaTrack] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.workflow_state != "deleted"


class MediaObjectRegistry:
    """Lookup of media objects by their media id."""

    def __init__(self, media_objects: Iterable[MediaObject] = ()):
        self._by_id: Dict[str, MediaObject] = {}
        for media_object in media_objects:
            self.add(media_object)

    def add(self, media_object: MediaObject) -> MediaObject:
        self._by_id[media_object.media_id] = media_object
        return media_object

    def active_by_media_id(self, media_id: Optional[str]) -> Optional[MediaObject]:
        media_object = self._by_id.get(media_id or "")
        if media_object and media_object.active:
            return media_object
        return None


class MediaUrlHelper:
    """Builds the URLs embedded in outgoing media elements."""

    def __init__(self, host: str = ""):
        self.host = host.rstrip("/")

    def media_object_thumbnail_url(self, media_id: str) -> str:
        return f"{self.host}/media_objects/{quote(media_id)}/thumbnail?height=448&type=3&width=550"

    def media_redirect_url(self, media_id: str, media_type: str) -> str:
        return f"{self.host}/courses/media_download?entryId={quote(media_id)}&media_type={media_type}&redirect=1"

    def show_media_tracks_url(self, media_object_id: str, track_id: int) -> str:
        return f"{self.host}/media_objects/{quote(media_object_id)}/media_tracks/{track_id}"


def _class_string(tag: Tag) -> str:
    value = tag.get("class")
    if isinstance(value, list):
        return " ".join(value)
    return value or ""


# ============================================================================
# Tags
# ============================================================================

class TrackTag:
    """A <track> child for one media track."""

    def __init__(self, media_track: MediaTrack, soup: BeautifulSoup):
        self.media_track = media_track
        self.soup = soup

    def to_node(self, url_helper: MediaUrlHelper, media_object_id: str) -> Tag:
        track = self.media_track
        node = self.soup.new_tag("track")
        node["kind"] = track.kind
        node["srclang"] = track.locale
        node["src"] = url_helper.show_media_tracks_url(media_object_id, track.id)
        node["label"] = track.locale
        return node


class MediaTag:
    """One media comment element, in either anchor or HTML5 form."""

    def __init__(self, tag: Tag, soup: BeautifulSoup, media_objects: Optional[MediaObjectRegistry] = None):
        self.tag = tag
        self.soup = soup
        self.media_objects = media_objects or MediaObjectRegistry()

    def has_media_comment(self) -> bool:
        return bool(self.media_id)

    @property
    def media_type(self) -> str:
        return "audio" if AUDIO_COMMENT.search(_class_string(self.tag)) else "video"

    @property
    def media_id(self) -> str:
        if self.is_anchor:
            tag_id = self.tag.get("id") or ""
            if not MEDIA_COMMENT_ID_PREFIX.match(tag_id):
                return ""
            return MEDIA_COMMENT_ID_PREFIX.sub("", tag_id)
        return self.tag.get("data-media_comment_id") or ""

    @property
    def is_anchor(self) -> bool:
        return self.tag.name == "a"

    @property
    def media_object(self) -> Optional[MediaObject]:
        return self.media_objects.active_by_media_id(self.media_id)

    def as_html5_node(self, url_helper: MediaUrlHelper) -> Tag:
        """Outgoing: the anchor as an <audio> or <video> element."""
        media_id, media_type = self.media_id, self.media_type
        node = self.soup.new_tag(media_type)
        node["preload"] = "none"
        node["class"] = MEDIA_COMMENT_CLASS
        node["data-media_comment_id"] = media_id
        node["data-media_comment_type"] = media_type
        node["controls"] = "controls"
        if media_type == "video":
            node["poster"] = url_helper.media_object_thumbnail_url(media_id)
        node["src"] = url_helper.media_redirect_url(media_id, media_type)
        if self.tag.get("data-alt") is not None:
            node["data-alt"] = self.tag["data-alt"]

        for child in list(self.tag.contents):
            node.append(copy.copy(child))

        media_object = self.media_object
        if media_object:
            for track in media_object.media_tracks:
                node.append(TrackTag(track, self.soup).to_node(url_helper, media_id))
        return node

    def as_anchor_node(self) -> Tag:
        """Incoming: the element as a media comment anchor."""
        node = self.soup.new_tag("a")
        if self.is_anchor:
            for name, value in self.tag.attrs.items():
                node[name] = " ".join(value) if isinstance(value, list) else value
            media_object = self.media_object
            if not AV_COMMENT.search(_class_string(self.tag)) and media_object:
                node["class"] = f"{node.get('class', '')} {media_object.media_type}_comment".strip()
        else:
            node["class"] = f"{MEDIA_COMMENT_CLASS} {self.tag.name}_comment"
            node["id"] = f"media_comment_{self.media_id}"
        node["href"] = f"/media_objects/{self.media_id}"
        return node


# ============================================================================
# Document Rewriting
# ============================================================================

def rewrite_outgoing(
    html: str,
    url_helper: MediaUrlHelper,
    media_objects: Optional[MediaObjectRegistry] = None,
) -> str:
    """Replace media comment anchors in `html` with HTML5 media elements."""
    soup = BeautifulSoup(html, "html.parser")
    count = 0
    for anchor in soup.select(f"a.{MEDIA_COMMENT_CLASS}"):
        media_tag = MediaTag(anchor, soup, media_objects)
        if not media_tag.has_media_comment():
            continue
        anchor.replace_with(media_tag.as_html5_node(url_helper))
        count += 1
    logger.debug("[media] rewrote %d anchor(s) to html5", count)
    return str(soup)


def rewrite_incoming(html: str, media_objects: Optional[MediaObjectRegistry] = None) -> str:
    """Replace <audio>/<video> media comment elements in `html` with anchors."""
    soup = BeautifulSoup(html, "html.parser")
    count = 0
    for element in soup.find_all(["audio", "video"], attrs={"data-media_comment_id": True}):
        media_tag = MediaTag(element, soup, media_objects)
        if not media_tag.has_media_comment():
            continue
        element.replace_with(media_tag.as_anchor_node())
        count += 1
    logger.debug("[media] rewrote %d html5 element(s) to anchors", count)
    return str(soup)
