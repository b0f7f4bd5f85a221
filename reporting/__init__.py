"""
Reporting module for Flip Radar.

Generates the shortlist PDF of a completed guided search.

Usage:
    from reporting import ShortlistPDFGenerator, build_shortlist

    entries = build_shortlist(run, listings, analyses)
    path = ShortlistPDFGenerator().generate(run, entries, Path("reports"))
"""

from .shortlist_pdf import ShortlistEntry, ShortlistPDFGenerator, build_shortlist

__all__ = [
    "ShortlistEntry",
    "ShortlistPDFGenerator",
    "build_shortlist",
]
