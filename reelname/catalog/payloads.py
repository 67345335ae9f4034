"""Payload shape guards for catalog responses."""

from __future__ import annotations

from reelname.catalog.types import CatalogResult, SeasonSummary, parse_year

SEARCH_RESULT_LIMIT = 10
OVERVIEW_MAX_CHARS = 500


def expect_dict(value: object, context: str) -> dict:
    if isinstance(value, dict):
        return value
    value_type = type(value).__name__
    raise ValueError(f"{context} has unexpected type '{value_type}'")


def optional_list(container: dict, key: str, context: str) -> list:
    value = container.get(key, [])
    if value is None:
        return []
    if isinstance(value, list):
        return value
    value_type = type(value).__name__
    raise ValueError(f"{context}.{key} has unexpected type '{value_type}'")


def optional_list_of_dicts(container: dict, key: str, context: str) -> list[dict]:
    values = optional_list(container, key, context)
    output: list[dict] = []
    for idx, value in enumerate(values):
        output.append(expect_dict(value, f"{context}.{key}[{idx}]"))
    return output


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _popularity(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def map_search_result(item: dict, media_type: str | None = None) -> CatalogResult | None:
    """
    Normalize a search hit.

    ``media_type`` forces the type for single-type endpoints; multi search
    hits carry their own and anything other than movie/tv is dropped.
    """
    kind = media_type or item.get("media_type")
    if kind not in ("movie", "tv"):
        return None
    raw_id = item.get("id")
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        return None
    title = item.get("title") or item.get("name") or ""
    date_value = item.get("release_date") or item.get("first_air_date")
    overview = _optional_str(item.get("overview"))
    return CatalogResult(
        id=raw_id,
        media_type=kind,
        title=str(title),
        year=parse_year(date_value),
        poster_path=_optional_str(item.get("poster_path")),
        overview=overview[:OVERVIEW_MAX_CHARS] if overview else None,
        popularity=_popularity(item.get("popularity")),
    )


def search_results(payload: object, context: str, media_type: str | None = None) -> list[CatalogResult]:
    root = expect_dict(payload, f"{context} payload")
    output: list[CatalogResult] = []
    for item in optional_list_of_dicts(root, "results", context):
        mapped = map_search_result(item, media_type)
        if mapped is not None:
            output.append(mapped)
    return output


def episode_name(payload: object, context: str) -> str | None:
    root = expect_dict(payload, f"{context} payload")
    return _optional_str(root.get("name"))


def season_summaries(payload: object, context: str) -> list[SeasonSummary]:
    root = expect_dict(payload, f"{context} payload")
    output: list[SeasonSummary] = []
    for item in optional_list_of_dicts(root, "seasons", context):
        number = item.get("season_number")
        if isinstance(number, bool) or not isinstance(number, int):
            continue
        count = item.get("episode_count")
        output.append(
            SeasonSummary(
                season_number=number,
                name=str(item.get("name") or f"Season {number}"),
                episode_count=count if isinstance(count, int) else 0,
                air_date=_optional_str(item.get("air_date")),
                poster_path=_optional_str(item.get("poster_path")),
            )
        )
    return output
