"""Tests for whole-document resolution."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from helpers import make_orchestrator, make_sources, property_names, property_value, total_source_calls

from certin_mapper._enrichment.document import DocumentResolver, merge_properties, seed_properties
from certin_mapper._enrichment.models import CERT_IN_PROPERTIES, NA, PATCH_STATUS, RELEASE_DATE
from certin_mapper._enrichment.orchestrator import (
    FAILED_SOURCE_RETRY_MS,
    Resolution,
    ResolutionPath,
    ResolutionState,
)
from certin_mapper.fingerprint import document_fingerprint


def _document(*components):
    return {
        "bomFormat": "CycloneDX",
        "specVersion": "1.5",
        "metadata": {"timestamp": "2024-05-01T12:00:00Z"},
        "components": list(components),
    }


def _resolver(cache, **records):
    sources = make_sources(**records)
    return DocumentResolver(make_orchestrator(cache, sources)), sources


class TestSeedProperties:
    def test_adds_missing_properties_as_na(self, lodash):
        seeded = seed_properties(lodash)
        assert property_names(seeded) == CERT_IN_PROPERTIES
        assert all(property_value(seeded, name) == NA for name in CERT_IN_PROPERTIES)

    def test_keeps_existing_properties(self, lodash):
        component = {**lodash, "properties": [{"name": PATCH_STATUS, "value": "Pinned"}, {"name": "x", "value": "y"}]}
        seeded = seed_properties(component)
        assert property_value(seeded, PATCH_STATUS) == "Pinned"
        assert property_value(seeded, "x") == "y"
        assert len(seeded["properties"]) == len(CERT_IN_PROPERTIES) + 1

    def test_input_untouched(self, lodash):
        seed_properties(lodash)
        assert "properties" not in lodash


class TestMergeProperties:
    def test_na_and_empty_values_do_not_overwrite(self, lodash):
        component = {**lodash, "properties": [{"name": RELEASE_DATE, "value": "2020-01-01"}]}
        merged = merge_properties(component, {RELEASE_DATE: NA, PATCH_STATUS: None})
        assert property_value(merged, RELEASE_DATE) == "2020-01-01"
        assert property_value(merged, PATCH_STATUS) is None

    def test_overwrites_and_appends(self, lodash):
        component = {**lodash, "properties": [{"name": PATCH_STATUS, "value": NA}]}
        merged = merge_properties(component, {PATCH_STATUS: "Up to date", RELEASE_DATE: "2021-02-20"})
        assert property_value(merged, PATCH_STATUS) == "Up to date"
        assert property_value(merged, RELEASE_DATE) == "2021-02-20"

    def test_none_property_set(self, lodash):
        assert merge_properties(lodash, None)["properties"] == []


class TestDocumentResolver:
    def test_rejects_zero_concurrency(self, cache):
        with pytest.raises(ValueError):
            DocumentResolver(make_orchestrator(cache, make_sources()), max_concurrency=0)

    def test_enriches_components_in_order(self, cache, lodash, requests_component):
        resolver, _ = _resolver(cache, package={"releaseDate": "2023-05-22", "latestVersion": "2.31.0"})

        resolution = asyncio.run(resolver.resolve(_document(lodash, requests_component)))

        assert not resolution.from_cache
        assert [c["name"] for c in resolution.components] == ["lodash", "requests"]
        assert all(property_names(c) == CERT_IN_PROPERTIES for c in resolution.components)
        assert property_value(resolution.components[0], RELEASE_DATE) == "2023-05-22"
        assert resolution.path_counts == {"fetched": 2}

    def test_order_preserved_when_completion_order_differs(self, cache, lodash, requests_component):
        async def registry(ecosystem, name, group=None):
            # lodash finishes last
            await asyncio.sleep(0.02 if name == "lodash" else 0)
            return {"releaseDate": f"{name}-date"}

        resolver, sources = _resolver(cache)
        sources["registry"].fetch = AsyncMock(side_effect=registry)

        components = asyncio.run(resolver.resolve_document(_document(lodash, requests_component)))

        assert property_value(components[0], RELEASE_DATE) == "lodash-date"
        assert property_value(components[1], RELEASE_DATE) == "requests-date"

    def test_document_cache_short_circuits(self, cache, lodash):
        resolver, sources = _resolver(cache)
        document = _document(lodash)
        first = asyncio.run(resolver.resolve(document))

        fresh_sources = make_sources()
        second = asyncio.run(DocumentResolver(make_orchestrator(cache, fresh_sources)).resolve(document))

        assert second.from_cache
        assert second.components == first.components
        assert total_source_calls(fresh_sources) == 0
        fresh_sources["lifecycle"].fetch.assert_not_called()

    def test_cached_components_are_copies(self, cache, lodash):
        resolver, _ = _resolver(cache)
        document = _document(lodash)
        asyncio.run(resolver.resolve(document))

        hit = asyncio.run(resolver.resolve(document))
        hit.components[0]["name"] = "mutated"

        assert cache.get(document_fingerprint(document))[0]["name"] == "lodash"

    def test_failed_component_keeps_seeded_properties(self, cache, lodash, requests_component):
        orchestrator = Mock(cache=cache)

        async def resolve(component, vulns):
            if component["name"] == "lodash":
                raise RuntimeError("unexpected")
            return Resolution(
                properties={PATCH_STATUS: "Up to date"},
                state=ResolutionState.RESOLVED,
                path=ResolutionPath.FETCHED,
                fingerprint="component:x",
            )

        orchestrator.resolve = resolve
        resolution = asyncio.run(DocumentResolver(orchestrator).resolve(_document(lodash, requests_component)))

        assert property_value(resolution.components[0], PATCH_STATUS) == NA
        assert property_value(resolution.components[1], PATCH_STATUS) == "Up to date"
        assert resolution.path_counts == {"failed": 1, "fetched": 1}

    def test_source_errors_reported_by_index(self, cache, lodash, requests_component):
        resolver, sources = _resolver(cache)
        sources["repositories"].fetch = AsyncMock(side_effect=ConnectionError("reset"))

        resolution = asyncio.run(resolver.resolve(_document(requests_component, lodash)))

        assert list(resolution.errors) == [1]
        assert "repository" in resolution.errors[1]

    def test_document_with_source_errors_is_retried_later(self, cache, clock, lodash):
        resolver, sources = _resolver(cache)
        sources["repositories"].fetch = AsyncMock(side_effect=ConnectionError("reset"))
        document = _document(lodash)
        asyncio.run(resolver.resolve(document))

        assert asyncio.run(resolver.resolve(document)).from_cache

        clock.advance(FAILED_SOURCE_RETRY_MS + 1)
        sources["repositories"].fetch = AsyncMock(return_value={"stars": 59000})
        retried = asyncio.run(resolver.resolve(document))

        assert not retried.from_cache
        assert retried.errors == {}
        sources["repositories"].fetch.assert_awaited_once()

    def test_clean_document_result_does_not_expire(self, cache, clock, lodash):
        resolver, _ = _resolver(cache)
        document = _document(lodash)
        asyncio.run(resolver.resolve(document))

        clock.advance(FAILED_SOURCE_RETRY_MS + 1)

        assert asyncio.run(resolver.resolve(document)).from_cache

    def test_concurrency_is_bounded(self, cache):
        active = 0
        peak = 0

        async def registry(ecosystem, name, group=None):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return None

        sources = make_sources()
        sources["registry"].fetch = AsyncMock(side_effect=registry)
        resolver = DocumentResolver(make_orchestrator(cache, sources), max_concurrency=2)
        components = [{"name": f"pkg{i}", "version": "1.0.0", "purl": f"pkg:npm/pkg{i}@1.0.0"} for i in range(6)]

        asyncio.run(resolver.resolve(_document(*components)))

        assert sources["registry"].fetch.await_count == 6
        assert peak <= 2

    def test_empty_document(self, cache):
        resolver, _ = _resolver(cache)
        resolution = asyncio.run(resolver.resolve(_document()))
        assert resolution.components == []
