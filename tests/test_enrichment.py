"""Tests for the SBOM file enrichment pipeline."""

import json
from unittest.mock import patch

import pytest
from helpers import make_orchestrator, make_sources, property_value, total_source_calls

from certin_mapper._cache import JsonFileSnapshotStore, MemorySnapshotStore
from certin_mapper._enrichment.models import CRITICALITY, PATCH_STATUS, UNIQUE_IDENTIFIER
from certin_mapper.config import Config
from certin_mapper.enrichment import build_cache, enrich_sbom_file, load_sbom
from certin_mapper.exceptions import FileProcessingError, ParsingError, ValidationError


@pytest.fixture
def sbom_file(tmp_path, lodash):
    path = tmp_path / "sbom.json"
    document = {
        "bomFormat": "CycloneDX",
        "specVersion": "1.5",
        "metadata": {"timestamp": "2024-05-01T12:00:00Z"},
        "components": [lodash],
        "vulnerabilities": [
            {"id": "CVE-2021-23337", "affects": [{"ref": lodash["bom-ref"]}], "ratings": [{"severity": "HIGH"}]}
        ],
    }
    path.write_text(json.dumps(document))
    return path


class TestLoadSbom:
    def test_loads_document(self, sbom_file):
        assert load_sbom(sbom_file)["bomFormat"] == "CycloneDX"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileProcessingError):
            load_sbom(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{")
        with pytest.raises(ParsingError):
            load_sbom(path)

    def test_missing_components(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"bomFormat": "CycloneDX"}))
        with pytest.raises(ValidationError, match="components"):
            load_sbom(path)


class TestBuildCache:
    def test_persistent_when_enabled(self, tmp_path):
        cache = build_cache(Config(cache_file=tmp_path / "cache.json"))
        assert isinstance(cache._store, JsonFileSnapshotStore)
        assert cache.initialized

    def test_memory_when_disabled(self):
        cache = build_cache(Config(cache_enabled=False))
        assert isinstance(cache._store, MemorySnapshotStore)


class TestEnrichSbomFile:
    def _run(self, sbom_file, output, config, sources):
        def factory(cache, _config):
            return make_orchestrator(cache, sources)

        with patch("certin_mapper.enrichment.create_default_orchestrator", side_effect=factory):
            return enrich_sbom_file(sbom_file, output, config)

    def test_writes_enriched_document(self, sbom_file, tmp_path):
        output = tmp_path / "out" / "enriched.json"
        sources = make_sources(
            package={"latestVersion": "4.17.21", "author": "jdalton"},
            vulnerabilities={"hasVulnerabilities": True, "fixedVersions": ["4.17.21"]},
        )

        resolution = self._run(sbom_file, output, Config(cache_enabled=False), sources)

        written = json.loads(output.read_text())
        component = written["components"][0]
        assert property_value(component, PATCH_STATUS) == "Update available (>= 4.17.21)"
        assert property_value(component, CRITICALITY) == "High"
        assert property_value(component, UNIQUE_IDENTIFIER) == "pkg:supplier/Vendor/npm/lodash@4.17.20"
        assert written["vulnerabilities"] == json.loads(sbom_file.read_text())["vulnerabilities"]
        assert resolution.path_counts == {"fetched": 1}

    def test_second_run_served_from_persisted_cache(self, sbom_file, tmp_path):
        config = Config(cache_file=tmp_path / "cache.json")
        self._run(sbom_file, tmp_path / "first.json", config, make_sources())

        sources = make_sources()
        resolution = self._run(sbom_file, tmp_path / "second.json", Config(cache_file=tmp_path / "cache.json"), sources)

        assert resolution.from_cache
        assert total_source_calls(sources) == 0
        assert (tmp_path / "first.json").read_text() == (tmp_path / "second.json").read_text()

    def test_input_file_untouched(self, sbom_file, tmp_path):
        before = sbom_file.read_text()
        self._run(sbom_file, tmp_path / "out.json", Config(cache_enabled=False), make_sources())
        assert sbom_file.read_text() == before

    def test_sources_closed_after_run(self, sbom_file, tmp_path):
        sources = make_sources()
        self._run(sbom_file, tmp_path / "out.json", Config(cache_enabled=False), sources)

        for name in ("registry", "vulnerabilities", "repositories"):
            sources[name].close.assert_called_once_with()

    def test_sources_closed_when_run_fails(self, sbom_file, tmp_path):
        sources = make_sources()

        with patch("certin_mapper.enrichment.enrich_document", side_effect=RuntimeError("interrupted")):
            with pytest.raises(RuntimeError):
                self._run(sbom_file, tmp_path / "out.json", Config(cache_enabled=False), sources)

        sources["registry"].close.assert_called_once_with()
