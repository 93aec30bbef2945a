"""Console reporting (through logging) and JSON export of scan results."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from versioning.models import (
    ClassificationResult,
    ClassificationStatus,
    ScanSummary,
    SubjectKind,
    ThreatDefinition,
    ThreatOutcome,
)

logger = logging.getLogger(__name__)

_SOURCE_LABELS = {
    "root_lock": "lockfile",
    "workspace_lock": "workspace lockfile",
    "root_install": "node_modules",
    "workspace_install": "workspace node_modules",
    "global_cache": "global cache",
    "manifest": "package.json",
    "tool": "installed",
}


def _describe(result: ClassificationResult) -> str:
    label = _SOURCE_LABELS.get(result.resolved.source.value, result.resolved.source.value)
    return f"{result.subject}@{result.resolved.version} ({label})"


def log_threat_header(threat: ThreatDefinition, scan_root: str) -> None:
    logger.info("Checking for: %s [%s]", threat.display_name, scan_root)
    if threat.description:
        logger.info("  %s", threat.description)
    if threat.cve:
        logger.info("  CVE: %s", threat.cve)
    if threat.reference:
        logger.info("  Reference: %s", threat.reference)


def log_outcome(outcome: ThreatOutcome, threat: ThreatDefinition, verbose: bool = False) -> None:
    """Log the results of one threat scan.

    Vulnerable versions and indicator hits are warnings. Patched, safe and
    missing subjects are listed only in verbose mode.
    """
    log_threat_header(threat, outcome.scan_root)
    for result in outcome.results:
        noun = "Tool" if result.kind is SubjectKind.TOOL else "Package"
        if result.status is ClassificationStatus.VULNERABLE:
            logger.warning("  [VULNERABLE] %s %s", noun, _describe(result))
        elif not verbose:
            continue
        elif result.status is ClassificationStatus.PATCHED:
            logger.info("  [PATCHED] %s %s", noun, _describe(result))
        elif result.status is ClassificationStatus.SAFE:
            logger.info("  [OK] %s %s", noun, _describe(result))
        else:
            logger.info("  [NOT FOUND] %s %s", noun, result.subject)
    for finding in outcome.findings:
        logger.warning("  [INDICATOR] %s match '%s': %s", finding.check, finding.pattern, finding.location)

    if outcome.triggered:
        if threat.remediation:
            logger.warning("  Remediation:")
            for step in threat.remediation:
                logger.warning("    - %s", step)
    else:
        logger.info("  No indicators found.")


def log_summary(summary: ScanSummary) -> None:
    """Log the run totals and any definitions that failed to load."""
    for path, error in summary.config_errors.items():
        logger.error("Invalid threat definition %s: %s", path, error)
    logger.info("Threats scanned: %d", summary.threats_scanned)
    if summary.triggered:
        logger.warning("Indicators found: %d", summary.indicators_found)
    else:
        logger.info("Indicators found: 0")


def _result_to_dict(result: ClassificationResult) -> Dict[str, Any]:
    return {
        "subject": result.subject,
        "kind": result.kind.value,
        "status": result.status.value,
        "version": result.resolved.version,
        "source": result.resolved.source.value,
    }


def summary_to_dict(summary: ScanSummary) -> Dict[str, Any]:
    """Serializable view of a ScanSummary."""
    outcomes: List[Dict[str, Any]] = []
    for outcome in summary.outcomes:
        outcomes.append({
            "threat": outcome.threat,
            "name": outcome.name,
            "scanRoot": outcome.scan_root,
            "triggered": outcome.triggered,
            "results": [_result_to_dict(r) for r in outcome.results],
            "findings": [
                {"check": f.check, "pattern": f.pattern, "location": f.location}
                for f in outcome.findings
            ],
        })
    return {
        "threatsScanned": summary.threats_scanned,
        "indicatorsFound": summary.indicators_found,
        "configErrors": dict(summary.config_errors),
        "outcomes": outcomes,
    }


def export_json(summary: ScanSummary, path: str) -> bool:
    """Exports the scan summary to a JSON file.

    Args:
        summary (ScanSummary): Aggregated scan results.
        path (str): File path to export the JSON.

    Returns:
        bool: True when the file was written.
    """
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(summary_to_dict(summary), file, ensure_ascii=False, indent=4)
        logger.info("JSON file has been successfully exported at: %s", path)
        return True
    except OSError as e:
        logger.error("JSON file couldn't be written to disk: %s", e)
        return False
