#!/usr/bin/env python3
"""
Bulk Movie Importer
- Analyze a movie site before importing
- Discover movie links across a listing's pages
- Scrape a single movie page
- Import discovered movies into the sqlite catalog
- Ctrl+C pauses after the current movie
"""

import argparse
import json
import logging
import os
import signal
import sys
import time
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from analyze_site import analyze_site
from catalog_db import CatalogDatabase
from config import CATALOG_DB_PATH, LOG_FILE
from dedup import build_dedup_index, check_catalog_duplicate
from discover_movies import discover
from extract_movie import NotAMoviePage, scrape_movie_url
from http_client import FetchError
from import_queue import ImportSequencer
from models import DiscoveredCandidate, ExtractedMovie, ScrapingQueueItem
from tmdb_enrich import default_client

console = Console()
logger = logging.getLogger(__name__)

# Sequencer paused by the SIGINT handler
ACTIVE_SEQUENCER: Optional[ImportSequencer] = None


def setup_logging(verbose: bool = False):
    os.makedirs(os.path.dirname(LOG_FILE) or ".", exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler()
        ]
    )


def signal_handler(sig, frame):
    """Handle Ctrl+C gracefully"""
    if ACTIVE_SEQUENCER is None or ACTIVE_SEQUENCER.is_paused:
        raise KeyboardInterrupt
    console.print("\n[yellow]⚠ Interrupt received! Finishing current movie, press Ctrl+C again to quit...[/yellow]")
    ACTIVE_SEQUENCER.pause()


# --- Output ---

def print_candidates(candidates: List[DiscoveredCandidate], limit: int = 20):
    table = Table(title=f"Discovered {len(candidates)} movies")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Year", justify="center")
    table.add_column("URL", style="dim", overflow="fold")
    for idx, c in enumerate(candidates[:limit], 1):
        table.add_row(str(idx), c.title, c.year or "-", c.url)
    console.print(table)
    if len(candidates) > limit:
        console.print(f"[dim]... and {len(candidates) - limit} more[/dim]")


def print_movie(movie: ExtractedMovie):
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value", overflow="fold")
    table.add_row("Title", movie.title or "-")
    table.add_row("Year", movie.release_year or "-")
    table.add_row("Rating", movie.rating or "-")
    table.add_row("Runtime", f"{movie.runtime} min" if movie.runtime else "-")
    table.add_row("Genres", ", ".join(movie.genres) or "-")
    table.add_row("Director", movie.director or "-")
    table.add_row("Cast", ", ".join(movie.cast) or "-")
    table.add_row("Poster", movie.poster_url or "-")
    table.add_row("Backdrop", movie.backdrop_url or "-")
    table.add_row("Trailer", movie.trailer_url or "-")
    table.add_row("Screenshots", str(len(movie.screenshots)))
    table.add_row("Description", (movie.description[:300] + "...") if len(movie.description) > 300
                  else movie.description or "-")
    console.print(Panel(table, title=movie.url, border_style="green"))

    if movie.download_links:
        links = Table(title="Download links")
        links.add_column("Quality", style="green")
        links.add_column("Language")
        links.add_column("URL", style="dim", overflow="fold")
        for link in movie.download_links:
            links.add_row(link.quality, link.language, link.url)
        console.print(links)
    else:
        console.print("[yellow]No download links found[/yellow]")


def print_item(item: ScrapingQueueItem):
    if item.status == "scraping":
        console.print(f"[bold cyan]→ {item.title}[/bold cyan]")
    elif item.status == "success":
        note = f" ({item.error})" if item.error else ""
        console.print(f"[green]✓ Saved #{item.saved_id}{note}[/green]")
    elif item.status == "skipped":
        console.print(f"[yellow]- Skipped: {item.error}[/yellow]")
    elif item.status == "error":
        console.print(f"[red]✗ Error: {(item.error or '')[:100]}[/red]")


# --- Commands ---

def cmd_analyze(args) -> int:
    try:
        analysis = analyze_site(args.url)
    except FetchError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1

    table = Table(title=analysis.website_title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Movies on page", str(analysis.movies_on_page))
    table.add_row("Pages", str(analysis.total_pages or ("yes" if analysis.has_pages else "no")))
    table.add_row("Estimated total", f"{analysis.total_estimate} ({analysis.estimate_method})")
    console.print(table)
    if analysis.categories:
        console.print("[bold]Categories:[/bold] " + ", ".join(c.name for c in analysis.categories))
    if analysis.years:
        console.print("[bold]Years:[/bold] " + ", ".join(y.year for y in analysis.years))
    return 0


def cmd_discover(args) -> int:
    dedup_index = None
    if args.hide_duplicates:
        dedup_index = build_dedup_index(CatalogDatabase(args.db))

    try:
        result = discover(args.url, target_count=args.count, dedup_index=dedup_index,
                          hide_duplicates=args.hide_duplicates)
    except FetchError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1

    print_candidates(result.candidates)
    console.print(f"[dim]Stopped: {result.stop_reason} after {result.pages_fetched} pages[/dim]")
    if result.total_count:
        console.print(f"[dim]Site reports about {result.total_count} movies[/dim]")

    if args.output:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
        console.print(f"[green]✓ Saved {len(result.candidates)} movies to {args.output}[/green]")
    return 0


def cmd_scrape(args) -> int:
    try:
        movie = scrape_movie_url(args.url, tmdb=default_client())
    except (FetchError, NotAMoviePage) as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1
    print_movie(movie)
    return 0


def cmd_import(args) -> int:
    global ACTIVE_SEQUENCER

    catalog = CatalogDatabase(args.db)
    dedup_index = build_dedup_index(catalog)
    console.print(f"[bold blue]Catalog has {len(dedup_index)} movies[/bold blue]")

    try:
        result = discover(args.url, target_count=args.count, dedup_index=dedup_index, hide_duplicates=True)
    except FetchError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1

    if not result.candidates:
        console.print("[green]✓ Nothing new to import[/green]")
        return 0
    console.print(f"[bold blue]Found {len(result.candidates)} new movies ({result.stop_reason})[/bold blue]")

    tmdb = default_client()
    sequencer = ImportSequencer(
        result.candidates,
        scrape=lambda url: scrape_movie_url(url, tmdb=tmdb),
        catalog=catalog,
        dedup_check=(lambda title: check_catalog_duplicate(title, catalog)) if args.per_item_dedup else None,
        on_update=print_item,
    )
    ACTIVE_SEQUENCER = sequencer
    signal.signal(signal.SIGINT, signal_handler)

    start_time = time.time()
    counters = sequencer.run()
    elapsed = time.time() - start_time
    logger.info(f"Import finished in {elapsed:.0f}s: {counters}")

    console.print(f"\n[bold magenta]{'='*60}[/bold magenta]")
    console.print("[bold magenta]IMPORT SUMMARY[/bold magenta]")
    console.print(f"[bold magenta]{'='*60}[/bold magenta]")
    console.print(f"[green]✓ Imported: {counters['success']}[/green]")
    console.print(f"[yellow]- Skipped: {counters['skipped']}[/yellow]")
    console.print(f"[red]✗ Failed: {counters['error']}[/red]")
    if counters['pending']:
        console.print(f"[cyan]… Not started: {counters['pending']}[/cyan]")
    console.print(f"[cyan]⏱ Time: {elapsed/60:.1f} minutes[/cyan]")
    return 0


def cmd_stats(args) -> int:
    stats = CatalogDatabase(args.db).get_stats()
    table = Table(title="📊 Catalog Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Total movies", str(stats['total_movies']))
    table.add_row("  Drafts", str(stats['drafts']))
    table.add_row("  Published", str(stats['published']))
    table.add_row("Download links", str(stats['download_links']))
    table.add_row("Movies without links", str(stats['without_links']))
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Bulk movie importer')
    parser.add_argument('--db', default=CATALOG_DB_PATH, help='Catalog database path')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('analyze', help='Estimate site size and list categories')
    p.add_argument('url')
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser('discover', help='Discover movie links on a listing')
    p.add_argument('url')
    p.add_argument('--count', type=int, help='Stop after N movies')
    p.add_argument('--hide-duplicates', action='store_true', help='Leave out movies already in the catalog')
    p.add_argument('--output', help='Write discovered movies to a JSON file')
    p.set_defaults(func=cmd_discover)

    p = sub.add_parser('scrape', help='Scrape a single movie page')
    p.add_argument('url')
    p.set_defaults(func=cmd_scrape)

    p = sub.add_parser('import', help='Discover and import new movies')
    p.add_argument('url')
    p.add_argument('--count', type=int, help='Import at most N movies')
    p.add_argument('--per-item-dedup', action='store_true', help='Search the catalog before each import')
    p.set_defaults(func=cmd_import)

    p = sub.add_parser('stats', help='Show catalog statistics')
    p.set_defaults(func=cmd_stats)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, 'func', None):
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        console.print("\n[red]Interrupted[/red]")
        return 130


if __name__ == '__main__':
    sys.exit(main())
