#!/usr/bin/env python3
"""
CLI for scoring listing exports and running guided searches offline.

Usage:
    python -m reporting.cli scores <csv>
    python -m reporting.cli search <csv> [--budget-max N] [--pdf-dir DIR]
    python -m reporting.cli sample <csv> [--count N] [--seed N]

Examples:
    # Top opportunities per neighborhood
    python -m reporting.cli scores data/listings.csv --top 3

    # Guided search with the mock valuation service, plus the shortlist PDF
    python -m reporting.cli search data/listings.csv --type Departamento --pdf-dir reports
"""

import argparse
import asyncio
import csv
import sys
import uuid
from itertools import groupby
from pathlib import Path

from core import (
    InMemoryAnalysisRepository,
    InMemoryListingStore,
    InMemorySearchRunRepository,
    OpportunityScorer,
    PropertyAnalyzer,
    SearchFilters,
    SearchFunnel,
    parse_listings_csv,
)
from scraper import MockListingGenerator, MockScraper, MockValuationService
from utils.config import Config, configure_logging
from utils.formatting import format_currency, format_percent

from .shortlist_pdf import ShortlistPDFGenerator, build_shortlist


def load_csv(path: Path, delimiter: str):
    """Parse a CSV file, reporting skipped rows on stderr."""
    result = parse_listings_csv(path.read_text(encoding="utf-8-sig"), delimiter=delimiter)
    if result.skipped:
        print(
            f"Skipped {result.skipped} of {result.total_rows} rows",
            file=sys.stderr,
        )
    return result


def cmd_scores(args):
    """Print the best-scoring listings of every neighborhood."""
    input_path = Path(args.csv_file)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    result = load_csv(input_path, args.delimiter)
    try:
        scorer = OpportunityScorer(deal_threshold=args.deal_threshold)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    scored = scorer.score_all(result.listings)
    scored.sort(key=lambda s: (s.listing.neighborhood, -s.opportunity.score, s.listing.id))

    for neighborhood, group in groupby(scored, key=lambda s: s.listing.neighborhood):
        group = list(group)
        print(f"\n{neighborhood} (median {format_currency(group[0].group_median)}/m²)")
        for s in group[:args.top]:
            flags = []
            if s.opportunity.is_top_opportunity:
                flags.append("TOP")
            if s.opportunity.is_neighborhood_deal:
                flags.append("DEAL")
            print(
                f"  {s.listing.id:<20} {format_currency(s.listing.price, s.listing.currency):>14}"
                f"  {format_percent(s.opportunity.score):>7} below  {' '.join(flags)}"
            )
    return 0


def cmd_search(args):
    """Run the guided search over a CSV export with mock AI analysis."""
    input_path = Path(args.csv_file)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    try:
        filters = SearchFilters(
            property_types=args.property_types or [],
            neighborhoods=args.neighborhoods or [],
            price_max=args.price_max,
            budget_max=args.budget_max,
        )
    except ValueError as e:
        print(f"Error: Invalid filters: {e}", file=sys.stderr)
        return 1

    listings = InMemoryListingStore()
    listings.add_many(load_csv(input_path, args.delimiter).listings)
    analyses = InMemoryAnalysisRepository()
    runs = InMemorySearchRunRepository()
    analyzer = PropertyAnalyzer(listings, analyses, MockValuationService(), MockScraper())
    funnel = SearchFunnel(listings, analyses, runs, analyzer, Config.load().funnel_config())

    run = asyncio.run(funnel.run(uuid.uuid4().hex, args.user, filters))
    print(
        f"Search {run.id}: {run.total_matched} matched, "
        f"{run.candidates_count} candidates, {run.analyzed_count} analyzed"
    )

    entries = build_shortlist(run, listings, analyses)
    for entry in entries:
        net = entry.analysis.net_opportunity if entry.analysis else None
        print(
            f"  {entry.rank:>2}. {entry.listing.id:<20} {entry.location:<30}"
            f" net {format_currency(net):>14}"
        )

    if args.pdf_dir:
        path = ShortlistPDFGenerator().generate(run, entries, Path(args.pdf_dir))
        print(f"Shortlist generated: {path}")
    return 0


SAMPLE_COLUMNS = [
    "external_id", "price", "currency", "property_type", "neighborhood", "city",
    "surface_total", "surface_covered", "rooms", "bedrooms", "bathrooms", "parking",
    "price_per_m2_total", "price_per_m2_covered", "url", "scraped_at",
]


def cmd_sample(args):
    """Write a CSV of generated listings for local development."""
    listings = MockListingGenerator(seed=args.seed).generate(args.count, city=args.city)

    output_path = Path(args.csv_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=args.delimiter)
        writer.writerow(SAMPLE_COLUMNS)
        for listing in listings:
            data = listing.to_dict()
            writer.writerow(["" if data[c] is None else data[c] for c in SAMPLE_COLUMNS])

    print(f"Wrote {len(listings)} listings to {output_path}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Flip Radar - listing scores and guided search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m reporting.cli scores data/listings.csv
    python -m reporting.cli search data/listings.csv --budget-max 150000 --pdf-dir reports
        """,
    )
    parser.add_argument("--delimiter", default=";", help="CSV field delimiter (default ';')")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    scores_parser = subparsers.add_parser(
        "scores",
        help="Print top opportunities per neighborhood",
    )
    scores_parser.add_argument("csv_file", help="Path to listings CSV")
    scores_parser.add_argument("--top", type=int, default=5, help="Listings per neighborhood")
    scores_parser.add_argument(
        "--deal-threshold", type=float, default=40.0,
        help="Minimum %% below median for a neighborhood deal",
    )
    scores_parser.set_defaults(func=cmd_scores)

    search_parser = subparsers.add_parser(
        "search",
        help="Run the guided search with mock AI analysis",
    )
    search_parser.add_argument("csv_file", help="Path to listings CSV")
    search_parser.add_argument("--user", default="cli", help="User id for the run")
    search_parser.add_argument(
        "--type", dest="property_types", action="append",
        help="Property type filter (repeatable)",
    )
    search_parser.add_argument(
        "--neighborhood", dest="neighborhoods", action="append",
        help="Neighborhood filter (repeatable)",
    )
    search_parser.add_argument("--price-max", type=float, help="Maximum asking price")
    search_parser.add_argument("--budget-max", type=float, help="Maximum price plus renovation")
    search_parser.add_argument("--pdf-dir", help="Write the shortlist PDF to this directory")
    search_parser.set_defaults(func=cmd_search)

    sample_parser = subparsers.add_parser(
        "sample",
        help="Write a CSV of generated listings",
    )
    sample_parser.add_argument("csv_file", help="Output CSV path")
    sample_parser.add_argument("--count", type=int, default=200, help="Number of listings")
    sample_parser.add_argument("--city", default="Buenos Aires", help="City to generate")
    sample_parser.add_argument("--seed", type=int, help="Random seed")
    sample_parser.set_defaults(func=cmd_sample)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
