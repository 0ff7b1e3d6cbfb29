"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

media_tracks.py

Import caption and subtitle tracks that arrive with a course migration.

Migration data maps the migration id of a media file to the tracks that
belong to it:

    {
        "media_file_1": [
            {"migration_id": "track_file_1", "kind": "subtitles", "locale": "en"},
        ],
    }

Each track points at another migration attachment holding the track
text (WebVTT/SRT). Tracks that fail validation are skipped with a
migration warning; the import keeps going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from marvin.errors import RecordInvalid, capture_exception
from marvin.media_tag import MediaObject, MediaTrack


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
TRACK_KINDS = ("subtitles", "captions", "descriptions", "chapters", "metadata")
MEDIA_OBJECTS_FOLDER = "course files/media_objects/"


@dataclass
class MigrationAttachment:
    migration_id: str
    display_name: str
    full_path: str = ""
    media_object: Optional[MediaObject] = None
    source: Optional[str] = None  # local path or http(s) URL of the file body

    def read(self) -> str:
        if not self.source:
            return ""
        if self.source.startswith(("http://", "https://")):
            response = requests.get(self.source, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.text
        return Path(self.source).read_text(encoding="utf-8")


@dataclass
class ContentMigration:
    attachments: List[MigrationAttachment] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    def find_attachment(self, migration_id: Optional[str]) -> Optional[MigrationAttachment]:
        for attachment in self.attachments:
            if attachment.migration_id == migration_id:
                return attachment
        return None

    def add_warning(self, message: str, error_report_id: Optional[str] = None) -> None:
        logger.warning("[migration:warn] %s", message)
        self.warnings.append({"message": message, "error_report_id": error_report_id})

    def delete_attachment(self, attachment: MigrationAttachment) -> None:
        self.attachments = [a for a in self.attachments if a is not attachment]


def validate_media_track(track: MediaTrack) -> None:
    errors: Dict[str, List[str]] = {}
    if track.kind not in TRACK_KINDS:
        errors["kind"] = ["is not included in the list"]
    if not track.locale:
        errors["locale"] = ["can't be blank"]
    if not track.content:
        errors["content"] = ["can't be blank"]
    if errors:
        raise RecordInvalid(errors, record=track)


class MediaTrackImporter:
    """Attach imported track files to their media objects."""

    @classmethod
    def process_migration(cls, data: Optional[Dict[str, List[Dict[str, Any]]]], migration: ContentMigration) -> None:
        if not data:
            return
        for file_id, track_list in data.items():
            attachment = migration.find_attachment(file_id)
            if not attachment or not attachment.media_object:
                continue
            for track in track_list:
                cls.import_from_migration(attachment.media_object, track, migration)

    @classmethod
    def import_from_migration(
        cls,
        media_object: MediaObject,
        track: Dict[str, Any],
        migration: ContentMigration,
    ) -> Optional[MediaTrack]:
        attachment = migration.find_attachment(track.get("migration_id"))
        if not attachment:
            return None

        imported: Optional[MediaTrack] = None
        try:
            media_track = MediaTrack(
                id=max((t.id for t in media_object.media_tracks), default=0) + 1,
                kind=track.get("kind"),
                locale=track.get("locale"),
                content=attachment.read(),
                media_object_id=media_object.media_id,
            )
            validate_media_track(media_track)
            media_object.media_tracks.append(media_track)
            imported = media_track
        except (RecordInvalid, OSError, UnicodeDecodeError, requests.RequestException) as e:
            report_id = capture_exception("import_media_tracks", e)
            migration.add_warning(
                f"Subtitles could not be imported from {attachment.display_name}",
                error_report_id=report_id,
            )

        # track files exported alongside media are temporary
        if attachment.full_path.startswith(MEDIA_OBJECTS_FOLDER):
            migration.delete_attachment(attachment)
        return imported
