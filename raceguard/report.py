"""Rendering of analysis results."""

from datetime import datetime
from typing import Any, Dict

from . import __version__
from .detector import AnalysisResult


def format_analysis_report(result: AnalysisResult, source: str = "") -> str:
    """Format analysis results as a plain text report"""
    source = source or result.source
    report = []
    report.append("=" * 80)
    report.append(f"RaceGuard Analysis Report - {source}")
    report.append("=" * 80)
    report.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    report.append(f"Analysis Time: {result.analysis_time:.3f} seconds")

    report.append("\nSUMMARY")
    report.append("-" * 40)
    report.append(f"Root Functions: {', '.join(map(str, result.roots)) or '(none)'}")
    report.append(f"Potential Data Races: {len(result.races)}")
    report.append(f"Shared Variables: {result.metrics.get('shared_variables', 0)}")
    report.append(f"Memory Accesses: {result.metrics.get('accesses_recorded', 0)}")
    report.append(f"Lock Operations: {result.metrics.get('lock_operations', 0)}")
    report.append(f"Concurrent Units: {result.metrics.get('concurrent_units', 0)}")

    if result.races:
        report.append("\nPOTENTIAL DATA RACES")
        report.append("-" * 40)
        for i, race in enumerate(result.races, 1):
            report.append(f"{i}. Var ID: {race.variable}")
            report.append(f"   Local Access Pos: {race.access.location}")
            report.append(f"   Local Access Instr: {race.access.instruction}")
            report.append(f"   Target Access Pos: {race.conflicting_access.location}")
            report.append(f"   Target Access Instr: {race.conflicting_access.instruction}")
            report.append("")
    else:
        report.append("\nNo potential data races detected.")

    if result.diagnostics:
        report.append("\nDIAGNOSTICS")
        report.append("-" * 40)
        for issue in result.diagnostics:
            report.append(f"- {issue}")

    report.append("=" * 80)
    return "\n".join(report)


def result_to_json(result: AnalysisResult, source: str = "") -> Dict[str, Any]:
    return {
        "analysis_summary": {
            "file": source or result.source,
            "roots": [str(ref) for ref in result.roots],
            "total_races": len(result.races),
            "metrics": result.metrics,
            "analysis_time": result.analysis_time,
            "analysis_timestamp": datetime.now().isoformat(),
            "raceguard_version": __version__,
        },
        "races": [race.as_dict() for race in result.races],
        "diagnostics": list(result.diagnostics),
    }
