"""
Tests for raw header block parsing and request header rendering.
"""

from multifetch.headers import parse_headers, render_header_fields, render_header_lines


def test_empty_block():
    assert parse_headers("") == {}


def test_single_values_stay_scalar():
    raw = "Content-Type: text/html\nSet-Cookie: a=1\n"

    assert parse_headers(raw) == {"Content-Type": "text/html", "Set-Cookie": "a=1"}


def test_repeated_names_become_lists_in_order():
    raw = "Set-Cookie: a=1\nSet-Cookie: b=2\n"

    assert parse_headers(raw) == {"Set-Cookie": ["a=1", "b=2"]}


def test_third_occurrence_is_appended():
    raw = "Vary: A\nVary: B\nVary: C\n"

    assert parse_headers(raw) == {"Vary": ["A", "B", "C"]}


def test_tab_continuation_is_folded():
    raw = "X-Long: foo\n\tbar\n"

    assert parse_headers(raw) == {"X-Long": "foo\r\n\tbar"}


def test_space_continuation_is_folded_into_last_list_value():
    raw = "X-Multi: one\nX-Multi: two\n   three\n"

    assert parse_headers(raw) == {"X-Multi": ["one", "two\r\n\tthree"]}


def test_status_line_is_kept_under_index_zero():
    raw = "HTTP/1.1 200 OK\r\nContent-Length: 4\r\n\r\n"

    assert parse_headers(raw) == {0: "HTTP/1.1 200 OK", "Content-Length": "4"}


def test_lines_without_colon_after_a_header_are_dropped():
    raw = "Server: test\nHTTP/1.1 302 Found\n"

    assert parse_headers(raw) == {"Server": "test"}


def test_value_keeps_everything_after_first_colon():
    raw = "Location: http://example.org:8080/path\r\n"

    assert parse_headers(raw) == {"Location": "http://example.org:8080/path"}


def test_crlf_and_surrounding_whitespace_are_trimmed():
    raw = "Accept:   text/plain  \r\n"

    assert parse_headers(raw) == {"Accept": "text/plain"}


def test_parsing_is_stateless_across_calls():
    parse_headers("Set-Cookie: a=1\n")

    assert parse_headers("Set-Cookie: b=2\n") == {"Set-Cookie": "b=2"}


def test_render_header_fields_expands_lists():
    fields = render_header_fields({"Accept": "text/html", "X-Tag": ["a", "b"]})

    assert fields == [("Accept", "text/html"), ("X-Tag", "a"), ("X-Tag", "b")]


def test_render_header_lines():
    lines = render_header_lines({"Content-Type": "text/html", "Set-Cookie": "a=1"})

    assert lines == ["Content-Type: text/html", "Set-Cookie: a=1"]
    assert parse_headers("\n".join(lines) + "\n") == {
        "Content-Type": "text/html",
        "Set-Cookie": "a=1",
    }
