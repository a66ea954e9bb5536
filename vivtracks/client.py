# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# Terminal client for the vivtracks server
#
# Fetches the whole catalog once, pages through it locally and renders
# it as a table. The loaded tracks can also be exported to a CSV file,
# and single tracks can be rated or renamed.

import argparse
import csv
import math
import os
import sys
from urllib.parse import urljoin

import requests
import rich.console
import rich.table

from .schema import COLUMNS, COLUMNS_BY_NAME, STICKY_COLUMNS
from .server import TRACKS_ENDPOINT

PAGE_SIZE = 10
DEFAULT_HOST = "http://localhost:3000"


def fetch_tracks(host, title=None):
    url = urljoin(host, TRACKS_ENDPOINT)

    params = {"title": title} if title else None
    r = requests.get(url, params=params)
    r.raise_for_status()

    return r.json()


def patch_track(host, idx, track_id, operations):
    url = urljoin(host, TRACKS_ENDPOINT)

    r = requests.patch(url, params={"idx": idx, "id": track_id}, json=operations)
    r.raise_for_status()

    return r.json()["data"]


def page_count(total, page_size=PAGE_SIZE):
    return math.ceil(total / page_size)


def paginate(tracks, page, page_size=PAGE_SIZE):
    """Get a 1-based page of tracks. Pages out of range are empty."""
    if page < 1:
        return []
    start = (page - 1) * page_size
    return tracks[start : start + page_size]


def select_columns(names=None):
    """Columns to show, always including the sticky ones"""
    if not names:
        return list(COLUMNS)

    unknown = [n for n in names if n not in COLUMNS_BY_NAME]
    if unknown:
        raise ValueError(f"Unknown columns: {', '.join(unknown)}")

    sticky = COLUMNS[:STICKY_COLUMNS]
    rest = [c for c in COLUMNS[STICKY_COLUMNS:] if c.name in names]
    return list(sticky) + rest


def format_value(value):
    if value is None:
        return ""
    return str(value)


def build_table(tracks, columns=None, page=1, pages=1):
    columns = columns or list(COLUMNS)

    table = rich.table.Table(caption=f"Page {page} of {max(pages, 1)}")
    for i, column in enumerate(columns):
        if i < STICKY_COLUMNS and column in COLUMNS[:STICKY_COLUMNS]:
            table.add_column(column.label, style="bold", no_wrap=True)
        else:
            table.add_column(
                column.label, justify="left" if column.kind is str else "right"
            )

    for track in tracks:
        table.add_row(*[format_value(track.get(c.name)) for c in columns])

    return table


def write_csv(tracks, fp):
    """Write every loaded track, using the column labels as the header"""
    writer = csv.writer(fp, lineterminator="\n")
    writer.writerow([c.label for c in COLUMNS])
    for track in tracks:
        writer.writerow([format_value(track.get(c.name)) for c in COLUMNS])


def do_list(args, console):
    tracks = fetch_tracks(args.host, args.title)
    pages = page_count(len(tracks))
    columns = select_columns(args.columns.split(",") if args.columns else None)

    console.print(build_table(paginate(tracks, args.page), columns, args.page, pages))


def do_export(args, console):
    tracks = fetch_tracks(args.host, args.title)
    if not tracks:
        console.print("No tracks to export")
        return

    with open(args.output, "w", newline="", encoding="utf-8") as f:
        write_csv(tracks, f)
    console.print(f"Wrote {len(tracks)} tracks to {args.output}")


def do_rate(args, console):
    ok = patch_track(
        args.host,
        args.idx,
        args.id,
        [{"op": "replace", "path": "/rating", "value": args.rating}],
    )
    console.print("Rated" if ok else "Track was not updated")


def do_rename(args, console):
    ok = patch_track(
        args.host,
        args.idx,
        args.id,
        [{"op": "replace", "path": "/title", "value": args.title}],
    )
    console.print("Renamed" if ok else "Track was not updated")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Browse the vivtracks catalog")
    parser.add_argument(
        "--host",
        default=os.getenv("VIVTRACKS_HOST", DEFAULT_HOST),
        dest="host",
        help="Host of the vivtracks server",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="Show a page of tracks")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--title", help="Only tracks whose title contains this")
    list_parser.add_argument(
        "--columns", help="Comma separated columns to show besides Index and Title"
    )
    list_parser.set_defaults(func=do_list)

    export_parser = subparsers.add_parser("export", help="Export tracks as CSV")
    export_parser.add_argument("-o", "--output", default="playlist.csv")
    export_parser.add_argument("--title", help="Only tracks whose title contains this")
    export_parser.set_defaults(func=do_export)

    rate_parser = subparsers.add_parser("rate", help="Rate a track")
    rate_parser.add_argument("idx", type=int)
    rate_parser.add_argument("id")
    rate_parser.add_argument("rating", type=int)
    rate_parser.set_defaults(func=do_rate)

    rename_parser = subparsers.add_parser("rename", help="Change a track's title")
    rename_parser.add_argument("idx", type=int)
    rename_parser.add_argument("id")
    rename_parser.add_argument("title")
    rename_parser.set_defaults(func=do_rename)

    args = parser.parse_args(argv)
    console = rich.console.Console()

    try:
        args.func(args, console)
    except (requests.RequestException, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
