import threading
import time
import unittest
from unittest.mock import Mock, patch

from torrentseek.core.cache import LRUCache
from torrentseek.core.classifier import TorrentClassifier
from torrentseek.core.errors import ConfigurationError, MetadataUnavailableError, NoResultsError, ProviderSearchError
from torrentseek.core.event_bus import EventBus, Events
from torrentseek.core.search_orchestrator import SearchOrchestrator
from torrentseek.models.search_result import (
    MOVIE,
    SERIES,
    CandidateTorrent,
    CategoryBuckets,
    ContentMetadata,
    SearchQuery,
)
from torrentseek.sources.apibay import ApiBayProvider
from torrentseek.sources.base import BaseProvider
from torrentseek.sources.ygg import YggProvider
from torrentseek.utils.query import build_search_query


class DummyProvider(BaseProvider):
    """Returns one movie candidate per query and records what it received"""

    def __init__(self, name, fail=None, delay=0.0):
        self.name = name
        self.fail = fail
        self.delay = delay
        self.queries = []
        self.cache = None
        self._lock = threading.Lock()

    def search(self, query):
        with self._lock:
            self.queries.append(query)
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        return CategoryBuckets(movie=[
            CandidateTorrent(id="1", title=f"{query.free_text} low", content_hash="h1",
                             source_provider=self.name, confidence=10),
            CandidateTorrent(id="2", title=f"{query.free_text} high", content_hash="h2",
                             source_provider=self.name, confidence=90),
        ])

    def get_content_hash(self, candidate_id):
        return f"{self.name}-{candidate_id}"

    def set_cache(self, cache):
        self.cache = cache

    def build_search_url(self, query):
        return f"https://{self.name}.test/?q={build_search_query(query)}"


class _Settings:
    def __init__(self, **data):
        self.data = data

    def get(self, key, default=None):
        return self.data.get(key, default)


AMELIE = ContentMetadata(
    original_language="fr",
    english_title="Amelie",
    localized_title="Le Fabuleux Destin d'Amelie Poulain",
    localized_language="fr",
    year=2001,
)
INCEPTION = ContentMetadata(
    original_language="en",
    english_title="Inception",
    localized_title="Inception",
    localized_language="fr",
    year=2010,
)


def _fetcher(metadata=None, error=None):
    fetcher = Mock()
    if error is not None:
        fetcher.fetch_metadata.side_effect = error
        fetcher.fetch_metadata_by_external_id.side_effect = error
    else:
        fetcher.fetch_metadata.return_value = metadata
        fetcher.fetch_metadata_by_external_id.return_value = metadata
    return fetcher


def _orchestrator(fetcher, *providers, **kwargs):
    orchestrator = SearchOrchestrator(
        metadata_fetcher=fetcher,
        classifier=TorrentClassifier(parser=Mock()),
        **kwargs
    )
    for provider in providers:
        orchestrator.register(provider)
    return orchestrator


class TestRegistration(unittest.TestCase):
    def test_register_requires_base_provider(self):
        orchestrator = SearchOrchestrator()

        class Invalid:
            name = "X"

            def search(self, query):
                return CategoryBuckets()

        with self.assertRaises(TypeError):
            orchestrator.register(Invalid())

    def test_register_rejects_empty_name(self):
        with self.assertRaises(ValueError):
            SearchOrchestrator().register(DummyProvider(""))

    def test_register_attaches_cache(self):
        cache = LRUCache(capacity=5, ttl_seconds=60)
        provider = DummyProvider("apibay")
        SearchOrchestrator(cache=cache).register(provider)
        self.assertIs(provider.cache, cache)

    def test_unregister(self):
        orchestrator = _orchestrator(_fetcher(INCEPTION), DummyProvider("apibay"), DummyProvider("ygg"))
        orchestrator.unregister("apibay")
        self.assertEqual(orchestrator.get_provider_names(), ["ygg"])


class TestSearchSmartRouting(unittest.TestCase):
    def test_non_english_content_routes_localized_title_to_secondary_provider(self):
        ygg, apibay, tcsv = DummyProvider("ygg"), DummyProvider("apibay"), DummyProvider("torrentscsv")
        orchestrator = _orchestrator(_fetcher(AMELIE), ygg, apibay, tcsv)

        combined, metadata = orchestrator.search_smart("amelie", MOVIE)

        self.assertEqual(metadata, AMELIE)
        self.assertEqual([q.free_text for q in ygg.queries], ["Le Fabuleux Destin d'Amelie Poulain"])
        self.assertEqual(ygg.queries[0].language_hint, "fr")
        self.assertEqual([q.free_text for q in apibay.queries], ["Amelie"])
        self.assertEqual([q.free_text for q in tcsv.queries], ["Amelie"])
        self.assertEqual(apibay.queries[0].year, 2001)
        self.assertEqual(sorted(combined.results), ["apibay", "torrentscsv", "ygg"])
        self.assertEqual(combined.debug_info["apibay"], "https://apibay.test/?q=Amelie+2001")
        self.assertEqual(combined.errors, {})

    def test_english_content_skips_secondary_provider(self):
        ygg, apibay, tcsv = DummyProvider("ygg"), DummyProvider("apibay"), DummyProvider("torrentscsv")
        orchestrator = _orchestrator(_fetcher(INCEPTION), ygg, apibay, tcsv)

        combined, _ = orchestrator.search_smart("inception", MOVIE)

        self.assertEqual(ygg.queries, [])
        self.assertNotIn("ygg", combined.results)
        self.assertEqual(apibay.queries[0].free_text, "Inception")
        self.assertEqual(tcsv.queries[0].free_text, "Inception")

    def test_secondary_provider_is_configurable(self):
        ygg, apibay = DummyProvider("ygg"), DummyProvider("apibay")
        orchestrator = _orchestrator(
            _fetcher(AMELIE), ygg, apibay, settings=_Settings(secondary_language_provider="apibay"),
        )
        orchestrator.search_smart("amelie", MOVIE)
        self.assertEqual(apibay.queries[0].free_text, AMELIE.localized_title)
        self.assertEqual(ygg.queries[0].free_text, AMELIE.english_title)

    def test_series_parameters_are_forwarded(self):
        apibay = DummyProvider("apibay")
        orchestrator = _orchestrator(_fetcher(INCEPTION), apibay)
        orchestrator.search_smart("show", SERIES, season=2, episode=3, specific_episode=True)
        query = apibay.queries[0]
        self.assertEqual((query.season, query.episode, query.want_specific_episode), (2, 3, True))
        self.assertEqual(query.content_type, SERIES)

    def test_imdb_id_uses_external_lookup(self):
        fetcher = _fetcher(INCEPTION)
        orchestrator = _orchestrator(fetcher, DummyProvider("apibay"))
        orchestrator.search_smart("tt1375666", MOVIE)
        fetcher.fetch_metadata_by_external_id.assert_called_once_with("tt1375666", MOVIE)
        fetcher.fetch_metadata.assert_not_called()

    def test_results_are_sorted_per_provider(self):
        orchestrator = _orchestrator(_fetcher(INCEPTION), DummyProvider("apibay"))
        combined, _ = orchestrator.search_smart("inception", MOVIE)
        self.assertEqual([c.confidence for c in combined.results["apibay"].movie], [90, 10])

    def test_missing_fetcher_is_a_configuration_error(self):
        orchestrator = SearchOrchestrator()
        orchestrator.register(DummyProvider("apibay"))
        with self.assertRaises(ConfigurationError):
            orchestrator.search_smart("inception", MOVIE)

    def test_configuration_error_from_fetcher_propagates(self):
        orchestrator = _orchestrator(_fetcher(error=ConfigurationError("no key")), DummyProvider("apibay"))
        with self.assertRaises(ConfigurationError):
            orchestrator.search_smart("inception", MOVIE)


class TestFailureIsolation(unittest.TestCase):
    def test_one_failing_provider_does_not_affect_others(self):
        failing = DummyProvider("apibay", fail=ProviderSearchError("apibay", "HTTP 500", "https://apibay.test/x"))
        tcsv = DummyProvider("torrentscsv")
        orchestrator = _orchestrator(_fetcher(INCEPTION), failing, tcsv)

        combined, _ = orchestrator.search_smart("inception", MOVIE)

        self.assertIn("HTTP 500", combined.errors["apibay"])
        self.assertTrue(combined.results["apibay"].is_empty())
        self.assertEqual(combined.debug_info["apibay"], "https://apibay.test/x")
        self.assertEqual(combined.results["torrentscsv"].total(), 2)
        self.assertEqual(combined.succeeded(), ["torrentscsv"])

    def test_unexpected_exception_is_isolated(self):
        orchestrator = _orchestrator(_fetcher(INCEPTION), DummyProvider("apibay", fail=RuntimeError("bug")))
        combined, _ = orchestrator.search_smart("inception", MOVIE)
        self.assertEqual(combined.errors["apibay"], "bug")

    def test_providers_run_concurrently(self):
        providers = [DummyProvider(f"p{i}", delay=0.3) for i in range(4)]
        orchestrator = _orchestrator(_fetcher(INCEPTION), *providers)
        started = time.perf_counter()
        combined, _ = orchestrator.search_smart("inception", MOVIE)
        elapsed = time.perf_counter() - started
        self.assertEqual(len(combined.results), 4)
        self.assertLess(elapsed, 1.0)


class TestMetadataFallback(unittest.TestCase):
    def test_fallback_sends_raw_query_to_every_provider(self):
        ygg, apibay = DummyProvider("ygg"), DummyProvider("apibay")
        orchestrator = _orchestrator(_fetcher(error=MetadataUnavailableError("no match")), ygg, apibay)

        combined, metadata = orchestrator.search_smart("some obscure thing", MOVIE)

        self.assertIsNone(metadata)
        self.assertEqual(ygg.queries[0].free_text, "some obscure thing")
        self.assertEqual(apibay.queries[0].free_text, "some obscure thing")
        self.assertEqual(sorted(combined.succeeded()), ["apibay", "ygg"])

    def test_fallback_with_partial_failure_returns_results(self):
        ygg = DummyProvider("ygg", fail=ProviderSearchError("ygg", "down"))
        orchestrator = _orchestrator(_fetcher(error=MetadataUnavailableError("x")), ygg, DummyProvider("apibay"))
        combined, _ = orchestrator.search_smart("thing", MOVIE)
        self.assertEqual(combined.succeeded(), ["apibay"])
        self.assertIn("ygg", combined.errors)

    def test_fallback_with_all_providers_failing_raises(self):
        orchestrator = _orchestrator(
            _fetcher(error=MetadataUnavailableError("x")),
            DummyProvider("ygg", fail=ProviderSearchError("ygg", "down")),
            DummyProvider("apibay", fail=ProviderSearchError("apibay", "down")),
        )
        with self.assertRaises(NoResultsError):
            orchestrator.search_smart("thing", MOVIE)

    def test_fallback_without_providers_raises(self):
        orchestrator = _orchestrator(_fetcher(error=MetadataUnavailableError("x")))
        with self.assertRaises(NoResultsError):
            orchestrator.search_smart("thing", MOVIE)


class TestEvents(unittest.TestCase):
    def test_lifecycle_events(self):
        bus = EventBus()
        seen = []
        for event in (Events.SEARCH_STARTED, Events.METADATA_RESOLVED, Events.SEARCH_PROGRESS,
                      Events.PROVIDER_FAILED, Events.SEARCH_COMPLETED):
            bus.subscribe(event, lambda data, event=event: seen.append((event, data)))
        orchestrator = _orchestrator(
            _fetcher(INCEPTION),
            DummyProvider("apibay"),
            DummyProvider("torrentscsv", fail=ProviderSearchError("torrentscsv", "down")),
            event_bus=bus,
        )

        orchestrator.search_smart("inception", MOVIE)

        names = [name for name, _ in seen]
        self.assertEqual(names[0], Events.SEARCH_STARTED)
        self.assertEqual(names[1], Events.METADATA_RESOLVED)
        self.assertEqual(names[-1], Events.SEARCH_COMPLETED)
        self.assertEqual(names.count(Events.SEARCH_PROGRESS), 2)
        self.assertEqual(names.count(Events.PROVIDER_FAILED), 1)
        completed = seen[-1][1]
        self.assertEqual(completed["count"], 2)
        self.assertIn("torrentscsv", completed["errors"])

    def test_fallback_event(self):
        bus = EventBus()
        fallback = []
        bus.subscribe(Events.METADATA_FALLBACK, fallback.append)
        orchestrator = _orchestrator(
            _fetcher(error=MetadataUnavailableError("no match")), DummyProvider("apibay"), event_bus=bus,
        )
        orchestrator.search_smart("thing", MOVIE)
        self.assertEqual(fallback[0]["query"], "thing")


class TestSingleProviderOperations(unittest.TestCase):
    def setUp(self):
        self.orchestrator = _orchestrator(_fetcher(INCEPTION), DummyProvider("ygg"))

    def test_search_single_provider(self):
        results = self.orchestrator.search("ygg", SearchQuery("Inception", MOVIE))
        self.assertEqual([c.confidence for c in results.movie], [90, 10])

    def test_search_unknown_provider(self):
        with self.assertRaises(ValueError):
            self.orchestrator.search("nope", SearchQuery("Inception", MOVIE))

    def test_get_provider_hash(self):
        self.assertEqual(self.orchestrator.get_provider_hash("ygg", "42"), "ygg-42")

    def test_filter_and_debug_info(self):
        results = self.orchestrator.search("ygg", SearchQuery("Inception", MOVIE))
        kept = self.orchestrator.filter_by_min_confidence(results, 50)
        self.assertEqual(len(kept.movie), 1)
        lines = self.orchestrator.get_debug_info(results.movie)
        self.assertEqual(lines[0], "1. 90% - Inception high")


class TestSeriesSearchWithReleaseNames(unittest.TestCase):
    """Real providers and the guessit-backed classifier, with HTTP mocked"""

    ROWS = [
        {"id": "1", "name": "Breaking.Bad.S01E01.1080p.BluRay.x264-ROVERS", "info_hash": "a" * 40,
         "size": "1000", "seeders": "50", "leechers": "3"},
        {"id": "2", "name": "Breaking.Bad.S01.1080p.BluRay.x264-ROVERS", "info_hash": "b" * 40,
         "size": "9000", "seeders": "80", "leechers": "5"},
        {"id": "3", "name": "Breaking Bad Complete Series 1080p", "info_hash": "c" * 40,
         "size": "90000", "seeders": "120", "leechers": "9"},
        {"id": "4", "name": "Breaking.Bad.S01-S05.Complete.1080p.BluRay", "info_hash": "d" * 40,
         "size": "95000", "seeders": "60", "leechers": "2"},
    ]

    def test_english_series_search_buckets_release_names(self):
        apibay, ygg = ApiBayProvider(), YggProvider()
        response = Mock(status_code=200)
        response.json.return_value = self.ROWS
        metadata = ContentMetadata(original_language="en", english_title="Breaking Bad",
                                   localized_title="Breaking Bad", localized_language="fr", year=2008)
        orchestrator = SearchOrchestrator(metadata_fetcher=_fetcher(metadata), cache=LRUCache())
        orchestrator.register(ygg)
        orchestrator.register(apibay)

        with patch.object(apibay.session, "get", return_value=response):
            with patch.object(ygg.session, "get") as ygg_get:
                combined, resolved = orchestrator.search_smart("Breaking Bad", SERIES, 1, 1, True)

        ygg_get.assert_not_called()
        self.assertEqual(resolved, metadata)
        self.assertNotIn("ygg", combined.results)
        self.assertEqual(combined.errors, {})
        self.assertEqual(combined.debug_info["apibay"], "https://apibay.org/q.php?q=Breaking+Bad+s01e01&cat=video")

        buckets = combined.results["apibay"]
        self.assertEqual([c.title for c in buckets.episode], ["Breaking.Bad.S01E01.1080p.BluRay.x264-ROVERS"])
        self.assertEqual([c.title for c in buckets.complete_season], ["Breaking.Bad.S01.1080p.BluRay.x264-ROVERS"])
        self.assertEqual(
            sorted(c.title for c in buckets.complete_series),
            ["Breaking Bad Complete Series 1080p", "Breaking.Bad.S01-S05.Complete.1080p.BluRay"],
        )
        self.assertEqual(buckets.movie, [])
        self.assertGreater(buckets.episode[0].confidence, 0)
        self.assertEqual(buckets.episode[0].parsed_info.resolved_title, "Breaking Bad")


if __name__ == "__main__":
    unittest.main()
