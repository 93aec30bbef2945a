"""Data models for version resolution, classification and threat outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class ResolutionSource(Enum):
    """Where a resolved version came from, in priority order."""
    ROOT_LOCK = "root_lock"
    WORKSPACE_LOCK = "workspace_lock"
    ROOT_INSTALL = "root_install"
    WORKSPACE_INSTALL = "workspace_install"
    GLOBAL_CACHE = "global_cache"
    MANIFEST = "manifest"
    TOOL = "tool"
    NONE = "none"


class ClassificationStatus(Enum):
    """Outcome of applying a VersionRule to a resolved version."""
    VULNERABLE = "vulnerable"
    PATCHED = "patched"
    SAFE = "safe"
    NOT_FOUND = "not_found"


class SubjectKind(Enum):
    """Whether a classification concerns a package or a runtime tool."""
    PACKAGE = "package"
    TOOL = "tool"


@dataclass(frozen=True)
class VersionRange:
    """Inclusive [min, max] interval of vulnerable versions."""
    min: str
    max: str


@dataclass(frozen=True)
class VersionRule:
    """Vulnerability rule for one package or tool."""
    vulnerable_versions: FrozenSet[str] = frozenset()
    patched_versions: FrozenSet[str] = frozenset()
    min_vulnerable: Optional[str] = None
    vulnerable_ranges: Tuple[VersionRange, ...] = ()


@dataclass(frozen=True)
class ResolvedVersion:
    """Resolution outcome; ``version`` is None when nothing was found."""
    version: Optional[str] = None
    source: ResolutionSource = ResolutionSource.NONE

    @property
    def found(self) -> bool:
        return self.version is not None


NOT_RESOLVED = ResolvedVersion()


@dataclass(frozen=True)
class ClassificationResult:
    """Per-package (or per-tool) classification."""
    subject: str
    resolved: ResolvedVersion
    status: ClassificationStatus
    kind: SubjectKind = SubjectKind.PACKAGE


@dataclass(frozen=True)
class IndicatorFinding:
    """A hit reported by one of the file/directory/string/process checks."""
    check: str  # "file" | "directory" | "string" | "process"
    pattern: str
    location: str


@dataclass(frozen=True)
class ThreatDefinition:
    """Declarative threat record loaded from a definition file."""
    id: str
    name: str
    description: str
    cve: Optional[str] = None
    reference: Optional[str] = None
    check_global_cache: bool = False
    scan_home: bool = False
    remediation: Tuple[str, ...] = ()
    package_rules: Dict[str, VersionRule] = field(default_factory=dict)
    tool_rules: Dict[str, VersionRule] = field(default_factory=dict)
    file_patterns: Tuple[str, ...] = ()
    directory_patterns: Tuple[str, ...] = ()
    string_markers: Tuple[str, ...] = ()
    process_patterns: Tuple[str, ...] = ()
    source_path: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name.strip() or self.id


@dataclass
class ThreatOutcome:
    """Result of scanning one root for one threat."""
    threat: str
    name: str
    scan_root: str
    results: List[ClassificationResult] = field(default_factory=list)
    findings: List[IndicatorFinding] = field(default_factory=list)

    @property
    def vulnerable(self) -> List[ClassificationResult]:
        return [r for r in self.results if r.status == ClassificationStatus.VULNERABLE]

    @property
    def triggered(self) -> bool:
        return bool(self.vulnerable) or bool(self.findings)


@dataclass
class ScanSummary:
    """Aggregate of a whole run, folded from per-threat outcomes."""
    outcomes: List[ThreatOutcome] = field(default_factory=list)
    config_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def threats_scanned(self) -> int:
        return len(self.outcomes)

    @property
    def indicators_found(self) -> int:
        return sum(1 for o in self.outcomes if o.triggered)

    @property
    def triggered(self) -> bool:
        return self.indicators_found > 0
