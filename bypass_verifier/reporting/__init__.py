from .aggregator import ProfileScore, rank, rank_dpi, rank_standard, score_run
from .console_report import render_probe, render_summary
from .text_report import export_report, parse_report_sections, render_report

__all__ = [
    "ProfileScore",
    "rank",
    "rank_dpi",
    "rank_standard",
    "score_run",
    "render_probe",
    "render_summary",
    "export_report",
    "parse_report_sections",
    "render_report",
]
