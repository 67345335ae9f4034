from __future__ import annotations

import json

import pytest

from reelname.catalog.types import CatalogResult
from reelname.errors import CatalogUnavailableError, InvalidTransitionError, MissingCredentialError
from reelname.matching import matcher as matcher_module
from reelname.matching.matcher import ConfidenceMatcher
from reelname.models import Group, GroupUpdate, MediaFile
from reelname.store import MemoryStore


class _FakeLogger:
    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.outcomes: list[tuple[int, str, float | None]] = []

    def info(self, _msg: str) -> None:
        return None

    def debug(self, _msg: str) -> None:
        return None

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def match_outcome(self, group_id: int, _title: str, status: str, confidence: float | None) -> None:
        self.outcomes.append((group_id, status, confidence))


class _FakeCatalog:
    def __init__(
        self,
        results: list[CatalogResult] | None = None,
        episodes: dict[tuple[int, int], str] | None = None,
        api_key: str = "key",
    ) -> None:
        self.results = list(results or [])
        self.episodes = dict(episodes or {})
        self.api_key = api_key
        self.searches: list[tuple[str, str | None, int | None]] = []
        self.episode_calls: list[tuple[int, int, int]] = []
        self.search_error: Exception | None = None
        self.episode_error: Exception | None = None
        self.failing_queries: set[str] = set()

    def ensure_credential(self) -> None:
        if not self.api_key:
            raise MissingCredentialError("no key")

    async def search(self, query, media_type_hint=None, year=None):
        self.ensure_credential()
        self.searches.append((query, media_type_hint, year))
        if self.search_error is not None or query in self.failing_queries:
            raise self.search_error or CatalogUnavailableError("down", status=503)
        return list(self.results)

    async def fetch_episode_title(self, show_id, season, episode):
        self.episode_calls.append((show_id, season, episode))
        if self.episode_error is not None:
            raise self.episode_error
        return self.episodes.get((season, episode))

    async def list_seasons(self, show_id):
        return []


@pytest.fixture
def fake_log(monkeypatch: pytest.MonkeyPatch) -> _FakeLogger:
    log = _FakeLogger()
    monkeypatch.setattr(matcher_module.logger, "get_logger", lambda: log)
    return log


def _result(result_id: int, title: str = "Show Name", year: int | None = 2020, **fields) -> CatalogResult:
    values = {"id": result_id, "media_type": "tv", "title": title, "year": year, "popularity": 0.0}
    values.update(fields)
    return CatalogResult(**values)


def _fixed_scores(scores: dict[int, float]):
    def _scorer(_title, _year, _media_type, candidate: CatalogResult) -> float:
        return scores[candidate.id]

    return _scorer


def _seed(store: MemoryStore, **group_fields) -> Group:
    values = {
        "folder_path": "/media/Show.Name.2020",
        "folder_name": "Show.Name.2020",
        "parsed_title": "Show Name",
        "parsed_year": 2020,
        "media_type": "tv",
    }
    values.update(group_fields)
    group = store.add_group(Group(**values))
    for episode in (1, 2):
        store.add_file(
            MediaFile(
                source_path=f"/media/Show.Name.2020/S01E0{episode}.mkv",
                file_name=f"S01E0{episode}.mkv",
                file_size=10,
                file_extension="mkv",
                group_id=group.id,
                parsed_season=1,
                parsed_episode=episode,
            )
        )
    store.add_file(
        MediaFile(
            source_path="/media/Show.Name.2020/Extras/Featurette.mkv",
            file_name="Featurette.mkv",
            file_size=5,
            file_extension="mkv",
            group_id=group.id,
            file_category="extra",
            extra_type="featurettes",
            parsed_season=1,
            parsed_episode=9,
        )
    )
    return group


@pytest.mark.asyncio
async def test_show_name_scenario_auto_matches_exact_result(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    catalog = _FakeCatalog(
        [
            _result(100, popularity=50.0),
            _result(200, year=2023, popularity=90.0),
        ],
        episodes={(1, 1): "Pilot"},
    )

    updated = await ConfidenceMatcher(store, catalog).match_group(group)

    assert catalog.searches == [("Show Name", "tv", 2020)]
    assert updated.status == "matched"
    assert updated.catalog_id == 100
    assert updated.match_confidence == pytest.approx(0.975)
    candidates = store.list_candidates(group.id)
    assert [c.catalog_id for c in candidates] == [100, 200]
    assert candidates[1].confidence == pytest.approx(0.745)
    files = store.list_files(group_id=group.id)
    assert {f.status for f in files} == {"matched"}
    assert {f.catalog_id for f in files} == {100}
    episode_titles = {f.parsed_episode: f.episode_title for f in files if f.file_category != "extra"}
    assert episode_titles == {1: "Pilot", 2: None}
    # Extras are never looked up.
    assert (100, 1, 9) not in catalog.episode_calls
    assert fake_log.outcomes == [(group.id, "matched", pytest.approx(0.975))]


@pytest.mark.asyncio
async def test_missing_title_goes_ambiguous_without_catalog_call(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store, parsed_title=None)
    catalog = _FakeCatalog([_result(1)])

    updated = await ConfidenceMatcher(store, catalog).match_group(group.id)

    assert updated.status == "ambiguous"
    assert updated.match_confidence is None
    assert catalog.searches == []


@pytest.mark.asyncio
async def test_no_results_goes_ambiguous_keeping_confidence(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    store.update_group(group.id, GroupUpdate(status="ambiguous", match_confidence=0.4))

    updated = await ConfidenceMatcher(store, _FakeCatalog([])).match_group(group.id)

    assert updated.status == "ambiguous"
    assert updated.match_confidence == pytest.approx(0.4)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "top, second, expected",
    [
        (0.85, 0.70, "matched"),
        (0.85, 0.71, "ambiguous"),
        (1.00, 0.86, "ambiguous"),
        (0.84, 0.10, "ambiguous"),
    ],
)
async def test_auto_match_boundaries(fake_log: _FakeLogger, top: float, second: float, expected: str) -> None:
    store = MemoryStore()
    group = _seed(store, media_type="movie")
    catalog = _FakeCatalog([_result(1, media_type="movie"), _result(2, media_type="movie")])
    matcher = ConfidenceMatcher(store, catalog, scorer=_fixed_scores({1: top, 2: second}))

    updated = await matcher.match_group(group.id)

    assert updated.status == expected
    assert updated.match_confidence == pytest.approx(top)
    if expected == "ambiguous":
        assert updated.catalog_id is None
        assert {f.status for f in store.list_files(group_id=group.id)} == {"scanned"}


@pytest.mark.asyncio
async def test_single_result_uses_full_gap(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store, media_type="unknown")
    catalog = _FakeCatalog([_result(5, media_type="movie", title="Heat")])
    matcher = ConfidenceMatcher(store, catalog, scorer=_fixed_scores({5: 0.9}))

    updated = await matcher.match_group(group.id)

    assert updated.status == "matched"
    assert updated.media_type == "movie"
    assert catalog.episode_calls == []


@pytest.mark.asyncio
async def test_only_top_ten_results_are_scored(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    catalog = _FakeCatalog([_result(i, title=f"Other {i}") for i in range(15)])

    await ConfidenceMatcher(store, catalog).match_group(group.id)

    assert len(store.list_candidates(group.id)) == 10


@pytest.mark.asyncio
async def test_rematch_replaces_previous_candidates(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    catalog = _FakeCatalog([_result(1), _result(2)])
    matcher = ConfidenceMatcher(store, catalog, scorer=_fixed_scores({1: 0.5, 2: 0.4, 3: 0.6}))
    await matcher.match_group(group.id)

    catalog.results = [_result(3)]
    await matcher.match_group(group.id)

    assert [c.catalog_id for c in store.list_candidates(group.id)] == [3]


@pytest.mark.asyncio
async def test_confirmed_group_cannot_be_rematched(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    store.update_group(group.id, GroupUpdate(status="confirmed"))

    with pytest.raises(InvalidTransitionError):
        await ConfidenceMatcher(store, _FakeCatalog([_result(1)])).match_group(group.id)


@pytest.mark.asyncio
async def test_catalog_failure_propagates_from_match_group(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    catalog = _FakeCatalog([_result(1)])
    catalog.search_error = CatalogUnavailableError("down", status=503)

    with pytest.raises(CatalogUnavailableError):
        await ConfidenceMatcher(store, catalog).match_group(group.id)

    assert store.get_group(group.id).status == "scanned"


@pytest.mark.asyncio
async def test_episode_backfill_failure_keeps_match(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    group = _seed(store)
    catalog = _FakeCatalog([_result(100, popularity=50.0)])
    catalog.episode_error = CatalogUnavailableError("down")

    updated = await ConfidenceMatcher(store, catalog).match_group(group.id)

    assert updated.status == "matched"
    assert len(fake_log.warnings) == 2


@pytest.mark.asyncio
async def test_match_all_groups_counts_and_isolates_failures(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    good = _seed(store)
    broken = store.add_group(Group(folder_path="/media/Broken", folder_name="Broken", parsed_title="Broken"))
    untitled = store.add_group(Group(folder_path="/media/Untitled", folder_name="Untitled"))
    already = store.add_group(Group(folder_path="/media/Done", folder_name="Done", status="confirmed"))
    catalog = _FakeCatalog([_result(100, popularity=50.0)])
    catalog.failing_queries = {"Broken"}

    summary = await ConfidenceMatcher(store, catalog).match_all_groups()

    assert summary == matcher_module.MatchSummary(matched=1, ambiguous=2)
    assert store.get_group(good.id).status == "matched"
    assert store.get_group(broken.id).status == "scanned"
    assert store.get_group(untitled.id).status == "ambiguous"
    assert store.get_group(already.id).status == "confirmed"
    assert len(fake_log.errors) == 1


@pytest.mark.asyncio
async def test_match_all_groups_survives_unexpected_exceptions(fake_log: _FakeLogger) -> None:
    class _GarbledCatalog(_FakeCatalog):
        async def search(self, query, media_type_hint=None, year=None):
            if query == "Broken":
                raise json.JSONDecodeError("Expecting value", "", 0)
            return await super().search(query, media_type_hint, year)

    store = MemoryStore()
    broken = store.add_group(Group(folder_path="/media/Broken", folder_name="Broken", parsed_title="Broken"))
    good = _seed(store)
    catalog = _GarbledCatalog([_result(100, popularity=50.0)])

    summary = await ConfidenceMatcher(store, catalog).match_all_groups()

    assert summary == matcher_module.MatchSummary(matched=1, ambiguous=1)
    assert store.get_group(broken.id).status == "scanned"
    assert store.get_group(good.id).status == "matched"
    assert len(fake_log.errors) == 1
    assert "Expecting value" in fake_log.errors[0]


@pytest.mark.asyncio
async def test_match_all_groups_fails_fast_without_credential(fake_log: _FakeLogger) -> None:
    store = MemoryStore()
    _seed(store)
    catalog = _FakeCatalog([_result(1)], api_key="")

    with pytest.raises(MissingCredentialError):
        await ConfidenceMatcher(store, catalog).match_all_groups()

    assert catalog.searches == []
