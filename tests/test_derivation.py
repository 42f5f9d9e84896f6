"""Tests for the CERT-In property derivation rules."""

import pytest

from certin_mapper._enrichment.derivation import (
    COPYLEFT,
    OPEN_SOURCE,
    PERMISSIVE,
    PROPRIETARY,
    STRONG_COPYLEFT,
    THIRD_PARTY,
    VENDOR,
    append_recommendation,
    build_comments,
    build_property_set,
    compute_patch_status,
    degraded_property_set,
    determine_criticality_from_cvss,
    determine_criticality_from_sbom,
    determine_origin,
    determine_supplier,
    determine_usage_restrictions,
    generate_unique_identifier,
    resolve_criticality,
)
from certin_mapper._enrichment.models import (
    CERT_IN_PROPERTIES,
    COMMENTS,
    CRITICALITY,
    END_OF_LIFE_DATE,
    EXECUTABLE_PROPERTY,
    NA,
    PATCH_STATUS,
    RELEASE_DATE,
    UNIQUE_IDENTIFIER,
    PackageInfo,
)

LODASH = PackageInfo(ecosystem="npm", name="lodash", version="4.17.20")


def _rated(ref, *severities):
    return {"affects": [{"ref": ref}], "ratings": [{"severity": s} for s in severities]}


class TestPatchStatus:
    def test_vulnerable_with_fix(self):
        """Known vulnerabilities point at the first fixed version."""
        status = compute_patch_status({"hasVulnerabilities": True, "fixedVersions": ["4.17.21"]}, LODASH, None)
        assert status == "Update available (>= 4.17.21)"

    def test_vulnerable_without_fix(self):
        assert compute_patch_status({"hasVulnerabilities": True, "fixedVersions": []}, LODASH, None) == (
            "Update available (>= NA)"
        )

    def test_newer_release(self):
        status = compute_patch_status({"hasVulnerabilities": False}, LODASH, {"latestVersion": "4.17.21"})
        assert status == "Update available (latest 4.17.21)"

    def test_up_to_date(self):
        assert compute_patch_status({"hasVulnerabilities": False}, LODASH, {"latestVersion": "4.17.20"}) == (
            "Up to date"
        )

    def test_no_data(self):
        assert compute_patch_status(None, None, None) == "Up to date"


class TestCriticality:
    def test_sbom_rating(self, lodash):
        vulns = [_rated(lodash["bom-ref"], "HIGH")]
        assert determine_criticality_from_sbom(vulns, lodash) == "High"

    def test_highest_sbom_rating_wins(self, lodash):
        vulns = [_rated(lodash["bom-ref"], "low"), _rated(lodash["bom-ref"], "CRITICAL", "medium")]
        assert determine_criticality_from_sbom(vulns, lodash) == "Critical"

    def test_unrecognized_severity_ranks_below_low(self, lodash):
        vulns = [_rated(lodash["bom-ref"], "INFO", "LOW")]
        assert determine_criticality_from_sbom(vulns, lodash) == "Low"

    def test_unrecognized_severity_alone(self, lodash):
        assert determine_criticality_from_sbom([_rated(lodash["bom-ref"], "none")], lodash) == "None"

    def test_other_components_ignored(self, lodash):
        assert determine_criticality_from_sbom([_rated("pkg:npm/other@1", "HIGH")], lodash) is None

    def test_component_without_ref(self):
        assert determine_criticality_from_sbom([_rated("x", "HIGH")], {"name": "anon"}) is None

    @pytest.mark.parametrize(
        "score,expected",
        [(9.8, "Critical"), (9.0, "Critical"), (7.5, "High"), (4.0, "Medium"), (0.1, "Low"), (0, None)],
    )
    def test_cvss_bands(self, score, expected):
        assert determine_criticality_from_cvss({"maxCvssScore": score}) == expected

    def test_sbom_rating_beats_external_aggregate(self, lodash):
        """An in-document rating decides regardless of the source's CVSS score."""
        vulns = [_rated(lodash["bom-ref"], "HIGH")]
        assert resolve_criticality(vulns, lodash, {"maxCvssScore": 9.8, "categoricalSeverity": "Critical"}) == "High"

    def test_categorical_fallback(self, lodash):
        assert resolve_criticality([], lodash, {"maxCvssScore": 0, "categoricalSeverity": "Medium"}) == "Medium"

    def test_nothing_known(self, lodash):
        assert resolve_criticality([], lodash, None) is None


class TestUsageRestrictions:
    @pytest.mark.parametrize(
        "license_str,expected",
        [
            ("AGPL-3.0", STRONG_COPYLEFT),
            ("GPL-2.0-only", COPYLEFT),
            ("LGPL-2.1", COPYLEFT),
            ("MIT", PERMISSIVE),
            ("Apache-2.0", PERMISSIVE),
            ("BSD-3-Clause", NA),
            (None, NA),
            ("", NA),
        ],
    )
    def test_license_classification(self, license_str, expected):
        assert determine_usage_restrictions(license_str) == expected


class TestSupplierAndOrigin:
    def test_starred_repository_is_open_source(self):
        assert determine_supplier({"author": "John-David Dalton"}, {"stars": 5}) == OPEN_SOURCE
        assert determine_origin({"license": "Proprietary"}, {"stars": 5}) == OPEN_SOURCE

    def test_author_is_vendor(self):
        assert determine_supplier({"author": "John-David Dalton"}, {"stars": 0}) == VENDOR

    def test_unknown_supplier(self):
        assert determine_supplier(None, None) == THIRD_PARTY

    def test_proprietary_license(self):
        assert determine_origin({"license": "Proprietary EULA"}, None) == PROPRIETARY

    def test_default_origin(self):
        assert determine_origin(None, None) == OPEN_SOURCE


class TestUniqueIdentifier:
    def test_from_purl(self, lodash):
        assert generate_unique_identifier(lodash, LODASH, VENDOR) == "pkg:supplier/Vendor/npm/lodash@4.17.20"

    def test_from_scoped_purl_keeps_last_segment(self):
        component = {"purl": "pkg:npm/%40babel/core@7.24.0"}
        assert generate_unique_identifier(component, None, OPEN_SOURCE) == "pkg:supplier/Open-source/npm/core@7.24.0"

    def test_synthesized_maven(self):
        component = {"name": "slf4j-api", "version": "2.0.9"}
        info = PackageInfo(ecosystem="maven", name="slf4j-api", group="org.slf4j", version="2.0.9")
        assert generate_unique_identifier(component, info, THIRD_PARTY) == (
            "pkg:supplier/Third-party/maven/org.slf4j/slf4j-api@2.0.9"
        )

    def test_falls_back_to_name(self):
        assert generate_unique_identifier({"name": "blob"}, None, THIRD_PARTY) == "blob"

    def test_nothing_known(self):
        assert generate_unique_identifier({}, None, THIRD_PARTY) == NA


class TestComments:
    def test_all_notes(self):
        comments = build_comments({"description": "Utilities"}, {"totalVulns": 2}, {"stars": 150})
        assert comments == "Description: Utilities; 2 known vulnerabilities; Popular project (150 stars)"

    def test_no_notes(self):
        assert build_comments(None, None, {"stars": 100}) == NA

    def test_recommendation_from_fix(self):
        assert append_recommendation(NA, {"fixedVersions": ["4.17.21"]}, "Up to date") == (
            "Recommended version: 4.17.21"
        )

    def test_recommendation_unknown_version(self):
        result = append_recommendation("Description: x", None, "Update available (latest 2.0)")
        assert result == "Description: x; Recommended version: NA"

    def test_no_recommendation(self):
        assert append_recommendation("Description: x", None, "Up to date") == "Description: x"


class TestBuildPropertySet:
    def test_vulnerable_lodash(self, lodash):
        props = build_property_set(
            lodash,
            LODASH,
            {"releaseDate": "2020-08-13", "license": "MIT", "latestVersion": "4.17.21", "author": "jdalton"},
            {"hasVulnerabilities": True, "totalVulns": 1, "fixedVersions": ["4.17.21"], "maxCvssScore": 7.2},
            {"stars": 59000, "license": "NOASSERTION"},
            None,
            [],
        )
        assert set(props) == set(CERT_IN_PROPERTIES)
        assert props[PATCH_STATUS] == "Update available (>= 4.17.21)"
        assert "Recommended version: 4.17.21" in props[COMMENTS]
        assert props[RELEASE_DATE] == "2020-08-13"
        assert props[END_OF_LIFE_DATE] == NA
        assert props[CRITICALITY] == "High"
        assert props[EXECUTABLE_PROPERTY] == "Yes"
        assert props[UNIQUE_IDENTIFIER] == "pkg:supplier/Open-source/npm/lodash@4.17.20"

    def test_repository_release_date_fallback(self, requests_component):
        info = PackageInfo(ecosystem="pypi", name="requests", version="2.31.0")
        props = build_property_set(requests_component, info, None, None, {"releaseDate": "2023-05-22"}, "2026-10-01")
        assert props[RELEASE_DATE] == "2023-05-22"
        assert props[END_OF_LIFE_DATE] == "2026-10-01"
        assert props[EXECUTABLE_PROPERTY] == "No"

    def test_deterministic(self, lodash):
        args = (lodash, LODASH, {"latestVersion": "4.17.21"}, {"hasVulnerabilities": False}, None, None, [])
        assert build_property_set(*args) == build_property_set(*args)


class TestDegradedPropertySet:
    def test_placeholders(self, lodash):
        props = degraded_property_set(lodash)
        assert set(props) == set(CERT_IN_PROPERTIES)
        assert props[PATCH_STATUS] == "Error fetching data"
        assert props[CRITICALITY] == "Unknown"
        assert props[UNIQUE_IDENTIFIER] == lodash["purl"]

    def test_name_fallback(self):
        assert degraded_property_set({"name": "blob"})[UNIQUE_IDENTIFIER] == "blob"
