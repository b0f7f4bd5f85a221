"""
Tests for the search shortlist PDF and the command-line tools.
"""

import asyncio

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.analysis import PropertyAnalyzer
from core.ingestion import parse_listings_csv
from core.models import RunStatus, SearchFilters, SearchRun
from core.repository import (
    InMemoryAnalysisRepository,
    InMemoryListingStore,
    InMemorySearchRunRepository,
)
from core.search import SearchFunnel
from reporting import ShortlistPDFGenerator, build_shortlist
from reporting.cli import main
from scraper.mock import MockScraper, MockValuationService
from utils.formatting import format_currency, format_percent


CSV_TEXT = "\n".join([
    "external_id;price;property_type;neighborhood;surface_total;price_per_m2_total;url",
    "A0;80000;Departamento;Palermo;100;800;https://example.com/a0",
    "A1;100000;Departamento;Palermo;100;1000;https://example.com/a1",
    "A2;120000;Departamento;Palermo;100;1200;https://example.com/a2",
    "A3;140000;Departamento;Palermo;100;1400;https://example.com/a3",
]) + "\n"


@pytest.fixture
def completed_run(make_listing):
    listings = InMemoryListingStore()
    listings.add_many([make_listing(f"l{i}", 900 + 100 * i) for i in range(5)])
    analyses = InMemoryAnalysisRepository()
    runs = InMemorySearchRunRepository()
    analyzer = PropertyAnalyzer(listings, analyses, MockValuationService(), MockScraper())
    funnel = SearchFunnel(listings, analyses, runs, analyzer)

    run = asyncio.run(funnel.run("run-1", "user-1", SearchFilters()))
    return run, listings, analyses


# =============================================================================
# Test: Shortlist
# =============================================================================

class TestShortlist:

    def test_entries_follow_run_order(self, completed_run):
        run, listings, analyses = completed_run

        entries = build_shortlist(run, listings, analyses)

        assert [e.listing.id for e in entries] == run.result_listing_ids
        assert [e.rank for e in entries] == [1, 2, 3, 4, 5]
        assert entries[0].location == "Palermo, Buenos Aires"
        assert entries[0].opportunity_label in ("Excellent", "Good", "Fair", "Low")

    def test_missing_listings_skipped(self, completed_run):
        run, listings, analyses = completed_run
        run.result_listing_ids = ["gone"] + run.result_listing_ids

        entries = build_shortlist(run, listings, analyses)

        assert len(entries) == 5
        assert entries[0].rank == 1

    def test_pdf_bytes(self, completed_run):
        run, listings, analyses = completed_run

        pdf = ShortlistPDFGenerator().generate_to_buffer(
            run, build_shortlist(run, listings, analyses)
        )

        assert pdf.startswith(b"%PDF")

    def test_pdf_written_to_directory(self, completed_run, tmp_path):
        run, listings, analyses = completed_run

        path = ShortlistPDFGenerator().generate(
            run, build_shortlist(run, listings, analyses), tmp_path / "out"
        )

        assert path.name == "shortlist-run-1.pdf"
        assert path.read_bytes().startswith(b"%PDF")

    def test_empty_shortlist_still_renders(self):
        run = SearchRun(id="run-2", user_id="user-1", status=RunStatus.COMPLETED)

        assert ShortlistPDFGenerator().generate_to_buffer(run, []).startswith(b"%PDF")

    def test_incomplete_run_rejected(self):
        run = SearchRun(id="run-3", user_id="user-1", status=RunStatus.ANALYZING)

        with pytest.raises(ValueError):
            ShortlistPDFGenerator().generate_to_buffer(run, [])


# =============================================================================
# Test: Formatting
# =============================================================================

class TestFormatting:

    def test_currency(self):
        assert format_currency(1234567.4) == "US$1,234,567"
        assert format_currency(-2500, "ARS") == "-$2,500"
        assert format_currency(10, "GBP") == "GBP 10"
        assert format_currency(None) == "-"

    def test_percent(self):
        assert format_percent(42.857) == "42.9%"


# =============================================================================
# Test: CLI
# =============================================================================

class TestCli:

    @pytest.fixture
    def csv_file(self, tmp_path):
        path = tmp_path / "listings.csv"
        path.write_text(CSV_TEXT, encoding="utf-8")
        return path

    def test_scores(self, csv_file, capsys):
        assert main(["scores", str(csv_file), "--deal-threshold", "25"]) == 0

        out = capsys.readouterr().out
        assert "Palermo" in out
        assert "prop-A0" in out
        assert "DEAL" in out

    def test_search_with_pdf(self, csv_file, tmp_path, capsys):
        pdf_dir = tmp_path / "reports"

        assert main(["search", str(csv_file), "--type", "Departamento", "--pdf-dir", str(pdf_dir)]) == 0

        out = capsys.readouterr().out
        assert "4 matched" in out
        assert len(list(pdf_dir.glob("shortlist-*.pdf"))) == 1

    def test_missing_file(self, tmp_path, capsys):
        assert main(["scores", str(tmp_path / "nope.csv")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_sample_csv_loads_cleanly(self, tmp_path):
        path = tmp_path / "sample.csv"

        assert main(["sample", str(path), "--count", "25", "--seed", "7"]) == 0

        result = parse_listings_csv(path.read_text(encoding="utf-8"))
        assert result.total_rows == 25
        assert result.skipped == 0
        assert all(l.url for l in result.listings)
