import argparse

from wbk import QueryOptions, build_cdx_url, parse_date_range, parse_filters

BASE = "http://web.archive.org/cdx/search/cdx?url=*.example.com/*&output=json&fl=original&collapse=urlkey"


def test_no_options_is_base_template():
    assert build_cdx_url("example.com") == BASE
    assert build_cdx_url("example.com", QueryOptions()) == BASE


def test_date_range_appended():
    opts = QueryOptions(date_range=parse_date_range("2012-2015"))
    assert build_cdx_url("example.com", opts) == BASE + "&from=2012&to=2015"


def test_date_range_splits_on_first_hyphen_only():
    assert parse_date_range("2012-2015-2020") == ("2012", "2015-2020")
    opts = QueryOptions(date_range=parse_date_range("2012-2015-2020"))
    assert build_cdx_url("example.com", opts) == BASE + "&from=2012&to=2015-2020"


def test_date_range_without_hyphen_is_ignored():
    assert parse_date_range("2012") is None
    assert parse_date_range("") is None
    assert parse_date_range(None) is None


def test_unknown_filter_keys_dropped_in_order():
    opts = QueryOptions(filters=parse_filters(
        "statuscode:200,foo:bar,!mimetype:text/html,mimetype:application/json,urlkey:x,!statuscode:404"
    ))
    url = build_cdx_url("example.com", opts)
    assert url == (
        BASE
        + "&filter=statuscode:200"
        + "&filter=!mimetype:text/html"
        + "&filter=mimetype:application/json"
        + "&filter=!statuscode:404"
    )
    assert "foo" not in url
    assert "urlkey:x" not in url


def test_filter_value_passed_verbatim():
    # only the first colon separates the key
    opts = QueryOptions(filters=("mimetype:a:b",))
    assert build_cdx_url("example.com", opts).endswith("&filter=mimetype:a:b")


def test_fragment_order():
    opts = QueryOptions(
        date_range=("2010", "2011"),
        filters=("statuscode:200",),
        match_type="host",
    )
    assert build_cdx_url("example.com", opts) == (
        BASE + "&from=2010&to=2011&filter=statuscode:200&matchType=host"
    )


def test_match_type_passed_through_unchecked():
    url = build_cdx_url("example.com", QueryOptions(match_type="whatever"))
    assert url == BASE + "&matchType=whatever"


def test_domain_with_percent_inserted_literally():
    url = build_cdx_url("ex%sample.com", QueryOptions(filters=("statuscode:200",)))
    assert url.startswith("http://web.archive.org/cdx/search/cdx?url=*.ex%sample.com/*")


def test_build_is_deterministic():
    opts = QueryOptions(date_range=("2012", "2015"), filters=("statuscode:200",), match_type="exact")
    assert build_cdx_url("example.com", opts) == build_cdx_url("example.com", opts)


def test_parse_filters():
    assert parse_filters("") == ()
    assert parse_filters(None) == ()
    assert parse_filters("a:1,b:2") == ("a:1", "b:2")


def test_options_from_args():
    args = argparse.Namespace(fromto="2012-2015", filter="statuscode:200", match="")
    opts = QueryOptions.from_args(args)
    assert opts == QueryOptions(date_range=("2012", "2015"), filters=("statuscode:200",), match_type=None)
