"""End-of-life data for language runtimes and frameworks.

Each entry matches package names (glob patterns), optionally restricted
to some ecosystems, and maps a release cycle ("3.12", "19") to its
lifecycle dates:

- release_date: first stable release of the cycle
- end_of_support: end of active/bugfix support
- end_of_life: end of security support

Data as of: 2026-01-18
"""

import fnmatch
from typing import Dict, List, Optional, TypedDict


class LifecycleDates(TypedDict, total=False):
    release_date: Optional[str]
    end_of_support: Optional[str]
    end_of_life: Optional[str]


class PackageLifecycleEntry(TypedDict, total=False):
    name_patterns: List[str]
    ecosystems: Optional[List[str]]  # None = any ecosystem
    version_extract: str  # "major" or "major.minor"
    cycles: Dict[str, LifecycleDates]


PACKAGE_LIFECYCLE: Dict[str, PackageLifecycleEntry] = {
    # Source: https://devguide.python.org/versions/
    "python": {
        "name_patterns": ["python", "python2", "python2.*", "python3", "python3.*", "cpython"],
        "ecosystems": None,
        "version_extract": "major.minor",
        "cycles": {
            "2.7": {"release_date": None, "end_of_support": "2020-01-01", "end_of_life": "2020-04-20"},
            "3.10": {"release_date": "2021-10-04", "end_of_support": "2023-04-04", "end_of_life": "2026-10-31"},
            "3.11": {"release_date": "2022-10-24", "end_of_support": "2024-04-24", "end_of_life": "2027-10-31"},
            "3.12": {"release_date": "2023-10-02", "end_of_support": "2025-04-02", "end_of_life": "2028-10-31"},
            "3.13": {"release_date": "2024-10-07", "end_of_support": "2026-10-07", "end_of_life": "2029-10-31"},
            "3.14": {"release_date": "2025-10-07", "end_of_support": "2027-10-07", "end_of_life": "2030-10-31"},
        },
    },
    # Source: https://www.djangoproject.com/download/
    "django": {
        "name_patterns": ["django"],
        "ecosystems": ["pypi"],
        "version_extract": "major.minor",
        "cycles": {
            "4.2": {"release_date": None, "end_of_support": "2023-12-04", "end_of_life": "2026-04-30"},
            "5.2": {"release_date": None, "end_of_support": "2025-12-03", "end_of_life": "2028-04-30"},
            "6.0": {"release_date": None, "end_of_support": "2026-08-31", "end_of_life": "2027-04-30"},
        },
    },
    # Source: https://react.dev/blog/ (no published EOL dates)
    "react": {
        "name_patterns": ["react", "react-dom"],
        "ecosystems": ["npm"],
        "version_extract": "major",
        "cycles": {
            "17": {"release_date": "2020-10-20", "end_of_support": None, "end_of_life": None},
            "18": {"release_date": "2022-03-29", "end_of_support": None, "end_of_life": None},
            "19": {"release_date": "2024-12-05", "end_of_support": None, "end_of_life": None},
        },
    },
    # Source: https://v2.vuejs.org/eol/
    "vue": {
        "name_patterns": ["vue", "@vue/runtime-core", "@vue/compiler-sfc", "@vue/reactivity", "@vue/shared"],
        "ecosystems": ["npm"],
        "version_extract": "major",
        "cycles": {
            "2": {"release_date": None, "end_of_support": "2023-12-31", "end_of_life": "2023-12-31"},
            "3": {"release_date": None, "end_of_support": None, "end_of_life": None},
        },
    },
}


def find_lifecycle_entry(name: str, ecosystem: Optional[str] = None) -> Optional[PackageLifecycleEntry]:
    """
    Find the entry whose name patterns match a package.

    Args:
        name: Package name (npm scope included, e.g. "@vue/shared")
        ecosystem: Ecosystem used to honor the entry's filter

    Returns:
        PackageLifecycleEntry or None
    """
    name_lower = name.lower()
    for entry in PACKAGE_LIFECYCLE.values():
        if not any(fnmatch.fnmatch(name_lower, p.lower()) for p in entry.get("name_patterns", [])):
            continue
        allowed = entry.get("ecosystems")
        if allowed is not None and (ecosystem or "").lower() not in allowed:
            continue
        return entry
    return None


def extract_version_cycle(version: Optional[str], version_extract: Optional[str] = None) -> Optional[str]:
    """
    Extract the release cycle from a full version string.

    Args:
        version: Full version (e.g. "3.12.7", "v19.0.1")
        version_extract: "major" or "major.minor" (default)

    Returns:
        Cycle string (e.g. "3.12", "19") or None
    """
    if not version:
        return None

    parts = version.lstrip("v").split(".")

    if version_extract == "major":
        major = parts[0].split("-")[0].split("+")[0]
        return major if major.isdigit() else None

    if len(parts) >= 2:
        major, minor = parts[0], parts[1].split("-")[0].split("+")[0]
        if major.isdigit() and minor.isdigit():
            return f"{major}.{minor}"
    elif len(parts) == 1 and parts[0].isdigit():
        return parts[0]

    return None


def get_lifecycle_dates(name: str, version: Optional[str], ecosystem: Optional[str] = None) -> Optional[LifecycleDates]:
    """Lifecycle dates for a package version, or None if not tracked."""
    entry = find_lifecycle_entry(name, ecosystem)
    if not entry:
        return None
    cycle = extract_version_cycle(version, entry.get("version_extract", "major.minor"))
    if not cycle:
        return None
    return entry.get("cycles", {}).get(cycle)
