"""
Flip Radar - Search Shortlist PDF

Renders the ranked result list of a completed guided search as a one-table
PDF: rank, location, price, potential value, renovation estimate, net
opportunity and the 0-10 opportunity index.

Uses ReportLab for deterministic PDF generation.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.models import Listing, PropertyAnalysis, RunStatus, SearchRun
from core.repository import AnalysisRepository, ListingStore
from core.valuation import opportunity_index, opportunity_label
from utils.formatting import format_currency


# =============================================================================
# Shortlist Rows
# =============================================================================

@dataclass
class ShortlistEntry:
    """One ranked result of a search run."""
    rank: int
    listing: Listing
    analysis: Optional[PropertyAnalysis] = None

    @property
    def location(self) -> str:
        return f"{self.listing.neighborhood}, {self.listing.city}"

    @property
    def opportunity_index(self) -> Optional[float]:
        if self.analysis is None or self.analysis.adjusted_opportunity is None:
            return None
        return opportunity_index(self.analysis.adjusted_opportunity)

    @property
    def opportunity_label(self) -> Optional[str]:
        index = self.opportunity_index
        return opportunity_label(index) if index is not None else None


def build_shortlist(
    run: SearchRun,
    listings: ListingStore,
    analyses: AnalysisRepository,
) -> List[ShortlistEntry]:
    """
    Resolve a run's result ids into shortlist rows, in rank order.

    Ids whose listing no longer exists are skipped.
    """
    found = analyses.get_many(run.user_id, run.result_listing_ids)
    entries = []
    for listing_id in run.result_listing_ids:
        listing = listings.get(listing_id)
        if listing is None:
            continue
        entries.append(ShortlistEntry(
            rank=len(entries) + 1,
            listing=listing,
            analysis=found.get(listing_id),
        ))
    return entries


# =============================================================================
# Palette and Styles
# =============================================================================

class Palette:
    """Print-friendly colours."""
    CHARCOAL = colors.Color(0.2, 0.2, 0.22)
    GRAY = colors.Color(0.5, 0.5, 0.5)
    LIGHT_GRAY = colors.Color(0.85, 0.85, 0.85)
    PALE_GRAY = colors.Color(0.95, 0.95, 0.95)
    WHITE = colors.white
    POSITIVE = colors.Color(0.15, 0.4, 0.25)
    NEGATIVE = colors.Color(0.55, 0.15, 0.15)


def get_shortlist_styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='ShortlistTitle',
        parent=styles['Normal'],
        fontSize=16,
        leading=20,
        textColor=Palette.CHARCOAL,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name='ShortlistMeta',
        parent=styles['Normal'],
        fontSize=9,
        leading=12,
        textColor=Palette.GRAY,
        fontName='Helvetica',
    ))
    return styles


# =============================================================================
# Generator
# =============================================================================

class ShortlistPDFGenerator:
    """Builds the shortlist PDF of a completed search run."""

    PAGE_SIZE = landscape(A4)
    MARGIN = 15*mm

    HEADERS = [
        "#", "Location", "Type", "Price", "Potential value",
        "Renovation", "Net opportunity", "Index", "Condition",
    ]
    COL_WIDTHS = [10*mm, 55*mm, 28*mm, 28*mm, 32*mm, 28*mm, 32*mm, 20*mm, 34*mm]

    def __init__(self):
        self.styles = get_shortlist_styles()

    def generate(self, run: SearchRun, entries: List[ShortlistEntry], output_dir: Path) -> Path:
        """
        Write the shortlist PDF to output_dir.

        Raises:
            ValueError: If the run has not completed
        """
        pdf = self.generate_to_buffer(run, entries)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"shortlist-{run.id}.pdf"
        output_path.write_bytes(pdf)
        return output_path

    def generate_to_buffer(self, run: SearchRun, entries: List[ShortlistEntry]) -> bytes:
        """Generate the PDF and return it as bytes."""
        if run.status != RunStatus.COMPLETED:
            raise ValueError(f"Search run {run.id} is {run.status.value}, not completed")

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.PAGE_SIZE,
            leftMargin=self.MARGIN,
            rightMargin=self.MARGIN,
            topMargin=self.MARGIN,
            bottomMargin=self.MARGIN + 5*mm,
            title=f"Flip Radar shortlist - {run.id}",
            author="Flip Radar",
        )
        story = [
            Paragraph("Search shortlist", self.styles['ShortlistTitle']),
            Paragraph(self._summary_line(run), self.styles['ShortlistMeta']),
            Spacer(1, 10),
        ]
        if entries:
            story.append(self._build_table(entries))
        else:
            story.append(Paragraph("No listings matched this search.", self.styles['BodyText']))

        doc.build(story, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)
        return buffer.getvalue()

    def _summary_line(self, run: SearchRun) -> str:
        completed = run.completed_at.strftime("%Y-%m-%d %H:%M") if run.completed_at else "-"
        return (
            f"Run {run.id} &middot; completed {completed} UTC &middot; "
            f"{run.total_matched} matched, {run.candidates_count} candidates, "
            f"{run.analyzed_count} analyzed"
        )

    def _build_table(self, entries: List[ShortlistEntry]) -> Table:
        rows = [list(self.HEADERS)]
        styles = [
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 0), (-1, -1), 8.5),
            ('BACKGROUND', (0, 0), (-1, 0), Palette.CHARCOAL),
            ('TEXTCOLOR', (0, 0), (-1, 0), Palette.WHITE),
            ('TEXTCOLOR', (0, 1), (-1, -1), Palette.CHARCOAL),
            ('ALIGN', (3, 0), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.LIGHT_GRAY),
            ('TOPPADDING', (0, 0), (-1, -1), 2.5*mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2.5*mm),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [Palette.WHITE, Palette.PALE_GRAY]),
        ]

        for row_number, entry in enumerate(entries, start=1):
            rows.append(self._row(entry))
            net = entry.analysis.net_opportunity if entry.analysis else None
            if net is not None:
                colour = Palette.POSITIVE if net >= 0 else Palette.NEGATIVE
                styles.append(('TEXTCOLOR', (6, row_number), (6, row_number), colour))

        table = Table(rows, colWidths=self.COL_WIDTHS, repeatRows=1)
        table.setStyle(TableStyle(styles))
        return table

    @staticmethod
    def _row(entry: ShortlistEntry) -> list:
        listing = entry.listing
        analysis = entry.analysis
        index = entry.opportunity_index
        return [
            str(entry.rank),
            entry.location,
            listing.property_type or "-",
            format_currency(listing.price, listing.currency),
            format_currency(analysis.potential_value_total if analysis else None),
            format_currency(analysis.renovation_cost if analysis else None),
            format_currency(analysis.net_opportunity if analysis else None),
            f"{index:.1f} {entry.opportunity_label}" if index is not None else "-",
            analysis.assessment.condition_label if analysis else "Not analyzed",
        ]

    def _draw_footer(self, canvas_obj: canvas.Canvas, doc):
        canvas_obj.saveState()
        canvas_obj.setFont('Helvetica', 7)
        canvas_obj.setFillColor(Palette.GRAY)
        canvas_obj.drawString(self.MARGIN, self.MARGIN - 2*mm, "FLIP RADAR")
        canvas_obj.drawRightString(
            self.PAGE_SIZE[0] - self.MARGIN,
            self.MARGIN - 2*mm,
            f"{doc.page}",
        )
        canvas_obj.restoreState()
