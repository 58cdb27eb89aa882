import argparse
import json
import os
import sys
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

VERSION = "v0.1 (beta)"
CDX_BASE = "http://web.archive.org/cdx/search/cdx?url=*.{domain}/*&output=json&fl=original&collapse=urlkey"
ACCEPTED_FILTER_KEYS = frozenset({"statuscode", "mimetype", "!statuscode", "!mimetype"})


class WaybackError(Exception):
    """Base class for failures while fetching archived URLs."""


class NetworkError(WaybackError):
    def __init__(self, cause):
        super().__init__(str(cause))
        self.cause = cause


class UnexpectedStatusError(WaybackError):
    def __init__(self, status_code):
        super().__init__(f"unexpected status code: {status_code}")
        self.status_code = status_code


class DecodeError(WaybackError):
    pass


def parse_date_range(value):
    """Split "2012-2015" into ("2012", "2015") on the first hyphen."""
    if not value or "-" not in value:
        return None
    start, _, end = value.partition("-")
    return start, end


def parse_filters(value):
    if not value:
        return ()
    return tuple(value.split(","))


@dataclass(frozen=True)
class QueryOptions:
    date_range: Optional[Tuple[str, str]] = None
    filters: Tuple[str, ...] = ()
    match_type: Optional[str] = None

    @classmethod
    def from_args(cls, args):
        return cls(
            date_range=parse_date_range(args.fromto),
            filters=parse_filters(args.filter),
            match_type=args.match or None,
        )


def build_cdx_url(domain, options=None):
    """Build the CDX query URL for every capture under *.domain.

    Fragments are appended in a fixed order: date range, filters (input
    order), match type. Filter entries whose key is not one of
    ACCEPTED_FILTER_KEYS are dropped silently. Nothing is URL-escaped, and
    the domain is inserted literally rather than through %-formatting.
    """
    options = options or QueryOptions()
    url = CDX_BASE.format(domain=domain)

    if options.date_range:
        start, end = options.date_range
        url += f"&from={start}&to={end}"

    for entry in options.filters:
        key = entry.split(":", 1)[0]
        if key in ACCEPTED_FILTER_KEYS:
            url += f"&filter={entry}"

    if options.match_type:
        url += f"&matchType={options.match_type}"

    return url


def extract_urls(rows):
    """Return the first column of each decoded CDX row, skipping empty rows.

    JSON nulls decode the way a Go [][]string would: a null row is empty
    and a null field is "".
    """
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise DecodeError(f"expected a JSON array, got {type(rows).__name__}")

    urls = []
    for row in rows:
        if row is None:
            continue
        if not isinstance(row, list):
            raise DecodeError(f"expected an array row, got {type(row).__name__}")
        if not all(field is None or isinstance(field, str) for field in row):
            raise DecodeError("expected every row field to be a string")
        if row:
            urls.append(row[0] or "")
    return urls


def fetch_urls(url, session=None, timeout=None):
    """Issue a single GET against the CDX server and return the original URLs.

    Raises NetworkError, UnexpectedStatusError or DecodeError; nothing is
    retried and no partial result is returned.
    """
    own_session = session is None
    if own_session:
        session = requests.Session()

    try:
        try:
            with session.get(url, timeout=timeout, stream=True) as resp:
                if resp.status_code != 200:
                    raise UnexpectedStatusError(resp.status_code)
                body = resp.content
        except requests.exceptions.RequestException as e:
            raise NetworkError(e) from e
    finally:
        if own_session:
            session.close()

    try:
        rows = json.loads(body)
    except ValueError as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    return extract_urls(rows)


def read_domains(target, stdin=None):
    """Resolve the positional target into a list of domains.

    A path to an existing file is read line by line; otherwise the target is
    the domain itself. Without a target, domains come from stdin.
    """
    if target is None:
        lines = stdin or []
    elif os.path.isfile(target):
        with open(target) as f:
            lines = f.read().splitlines()
    else:
        return [target]

    domains = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            domains.append(line)
    return domains


def build_parser():
    parser = argparse.ArgumentParser(
        prog="wbk",
        description="Fetch archived URLs for a domain from the Wayback Machine CDX server.",
        epilog="Doc link: https://github.com/internetarchive/wayback/tree/master/wayback-cdx-server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("target", nargs="?", help="Domain, or a file with one domain per line (default: stdin)")
    parser.add_argument("-fromto", "--fromto", default="",
                        help='Filter by timestamp using from= and to= (e.g. "2012-2015")')
    parser.add_argument("-filter", "--filter", default="",
                        help='Comma-separated filters: statuscode, mimetype, !statuscode, !mimetype '
                             '(e.g. "statuscode:200,mimetype:application/json")')
    parser.add_argument("-match", "--match", default="",
                        help="URL match scope: exact, prefix, host or domain")
    parser.add_argument("-o", "--output", help="Also save results to file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print progress to stderr")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Request timeout in seconds (default: none)")
    parser.add_argument("-version", "--version", action="version",
                        version=f"WBK version: {VERSION}",
                        help="Show version and exit")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    stdin = None
    if args.target is None:
        if sys.stdin.isatty():
            parser.print_help()
            return 0
        stdin = sys.stdin

    try:
        domains = read_domains(args.target, stdin)
    except (OSError, UnicodeDecodeError) as e:
        print(f"[!] Could not read {args.target or 'stdin'}: {e}", file=sys.stderr)
        return 1

    options = QueryOptions.from_args(args)
    all_urls = []
    failed = False

    with requests.Session() as session:
        for domain in domains:
            if args.verbose:
                print(f"[*] Fetching URLs for {domain} from Wayback Machine...", file=sys.stderr)
            try:
                urls = fetch_urls(build_cdx_url(domain, options), session=session, timeout=args.timeout)
            except WaybackError as e:
                print(f"failed to fetch URLs for domain {domain}: {e}", file=sys.stderr)
                failed = True
                continue
            for url in urls:
                print(url)
            if args.verbose:
                print(f"[+] {domain}: {len(urls)} URLs", file=sys.stderr)
            all_urls.extend(urls)

    if args.output:
        try:
            with open(args.output, "w") as f:
                f.write("".join(u + "\n" for u in all_urls))
        except OSError as e:
            print(f"[!] Could not write {args.output}: {e}", file=sys.stderr)
            return 1
        print(f"[+] Saved {len(all_urls)} URLs to {args.output}", file=sys.stderr)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
