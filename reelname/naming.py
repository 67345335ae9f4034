"""
Destination path templates for Jellyfin and Plex libraries.

Jellyfin:
    Movie:    "Movie (year)/Movie (year).ext"
    Episode:  "Show (year)/Season 01/Show S01E02 - Title.ext"
    Special:  "Show (year)/Season 00/Show S00E03 - Title.ext"
    Extra:    "Show (year)/behind the scenes/file.ext" (lowercase folders)

Plex:
    Movie:    "Movie (year)/Movie (year).ext"
    Episode:  "Show (year)/Season 01/Show (year) - s01e02 - Title.ext"
    Special:  "Show (year)/Specials/Show (year) - s00e03 - Title.ext"
    Extra:    "Show (year)/Behind The Scenes/file.ext" (title case folders)
"""

from __future__ import annotations

import re
from typing import Dict, Optional

from reelname.config import NamingConfig
from reelname.models import Destination, Group, MediaFile

NAMING_PRESETS: Dict[str, Dict[str, str]] = {
    "jellyfin": {
        "movie": "{title} ({year})/{title} ({year}).{ext}",
        "tv": "{title} ({year})/Season {season:2}/{title} S{season:2}E{episode:2} - {episodeTitle}.{ext}",
        "special": "{title} ({year})/Season 00/{title} S00E{episode:2} - {episodeTitle}.{ext}",
        "extra": "{title} ({year})/{extraType}/{fileName}.{ext}",
    },
    "plex": {
        "movie": "{title} ({year})/{title} ({year}).{ext}",
        "tv": "{title} ({year})/Season {season:2}/{title} ({year}) - s{season:2}e{episode:2} - {episodeTitle}.{ext}",
        "special": "{title} ({year})/{specialsFolder}/{title} ({year}) - s00e{episode:2} - {episodeTitle}.{ext}",
        "extra": "{title} ({year})/{extraType}/{fileName}.{ext}",
    },
}

EXTRA_FOLDER_NAMES: Dict[str, Dict[str, str]] = {
    "jellyfin": {
        "behind_the_scenes": "behind the scenes",
        "deleted_scenes": "deleted scenes",
        "featurettes": "featurettes",
        "interviews": "interviews",
        "scenes": "clips",
        "shorts": "shorts",
        "trailers": "trailers",
        "other": "extras",
    },
    "plex": {
        "behind_the_scenes": "Behind The Scenes",
        "deleted_scenes": "Deleted Scenes",
        "featurettes": "Featurettes",
        "interviews": "Interviews",
        "scenes": "Scenes",
        "shorts": "Shorts",
        "trailers": "Trailers",
        "other": "Other",
    },
}

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
_PADDED_SEASON = re.compile(r"\{season:(\d+)\}")
_PADDED_EPISODE = re.compile(r"\{episode:(\d+)\}")


def sanitize(value: str) -> str:
    return _WHITESPACE.sub(" ", _UNSAFE_CHARS.sub("", value)).strip(" .")


def _pad(value: Optional[int], width: int) -> str:
    return str(value if value is not None else 0).zfill(width)


def _strip_extension(file_name: str) -> str:
    return re.sub(r"\.[^.]+$", "", file_name)


def select_template(
    media_file: MediaFile,
    naming_config: NamingConfig,
    destination: Optional[Destination] = None,
) -> str:
    templates = NAMING_PRESETS.get(naming_config.preset, NAMING_PRESETS["jellyfin"])
    category = media_file.file_category
    if category == "movie":
        override = destination.movie_template if destination else None
        return override or templates["movie"]
    if category in ("special", "extra"):
        return templates[category]
    override = destination.tv_template if destination else None
    return override or templates["tv"]


def resolve_path(
    media_file: MediaFile,
    group: Optional[Group],
    naming_config: NamingConfig,
    destination: Optional[Destination] = None,
) -> str:
    """Relative destination path for ``media_file`` under its library root."""
    preset = naming_config.preset if naming_config.preset in NAMING_PRESETS else "jellyfin"
    template = select_template(media_file, naming_config, destination)

    group_title = (group.catalog_title or group.parsed_title) if group else None
    title = sanitize(group_title or media_file.catalog_title or media_file.parsed_title or "") or "Unknown"
    year = (
        ((group.catalog_year or group.parsed_year) if group else None)
        or media_file.catalog_year
        or media_file.parsed_year
        or ""
    )
    extra_folders = EXTRA_FOLDER_NAMES[preset]
    if media_file.extra_type:
        extra_folder = extra_folders.get(media_file.extra_type, extra_folders["other"])
    else:
        extra_folder = naming_config.extras_folder_name

    values = {
        "{title}": title,
        "{year}": str(year),
        "{ext}": media_file.file_extension.lstrip("."),
        "{episodeTitle}": sanitize(media_file.episode_title or "") or "Episode",
        "{quality}": media_file.parsed_quality or "",
        "{fileName}": sanitize(_strip_extension(media_file.file_name)) or "Unknown",
        "{extraType}": extra_folder,
        "{specialsFolder}": naming_config.specials_folder_name,
    }
    result = template
    for token, value in values.items():
        result = result.replace(token, value)

    result = _PADDED_SEASON.sub(lambda m: _pad(media_file.parsed_season, int(m.group(1))), result)
    result = _PADDED_EPISODE.sub(lambda m: _pad(media_file.parsed_episode, int(m.group(1))), result)
    result = result.replace("{season}", str(media_file.parsed_season or 0))
    result = result.replace("{episode}", str(media_file.parsed_episode or 0))

    # Empty episode titles and years leave separators behind.
    result = result.replace(" - .", ".", 1)
    result = result.replace(" - Episode.", ".", 1)
    return result.replace(" ()", "")
