from __future__ import annotations

from mockup_server.matcher import PathPattern, get_pathname


def test_named_parameters_are_extracted_and_decoded() -> None:
    pattern = PathPattern("/api/users/:id/orders/:orderId")

    assert pattern.match("/api/users/42/orders/a%20b") == {"id": "42", "orderId": "a b"}
    assert pattern.match("/api/users/42/orders") is None


def test_brace_parameters_behave_like_colon_parameters() -> None:
    assert PathPattern("/payments/{paymentId}").match("/payments/111") == {"paymentId": "111"}


def test_trailing_slash_and_case_are_ignored() -> None:
    pattern = PathPattern("/Ping")

    assert pattern.match("/ping/") == {}
    assert pattern.match("/PING") == {}
    assert pattern.match("/ping/extra") is None


def test_optional_parameter_may_be_absent() -> None:
    pattern = PathPattern("/users/:id?")

    assert pattern.match("/users") == {}
    assert pattern.match("/users/7") == {"id": "7"}


def test_literal_characters_are_not_regex_syntax() -> None:
    pattern = PathPattern("/files/report.json")

    assert pattern.match("/files/report.json") == {}
    assert pattern.match("/files/reportxjson") is None


def test_query_string_and_fragment_are_stripped() -> None:
    assert get_pathname("/users/1?expand=true#top") == "/users/1"
    assert get_pathname("/users/1") == "/users/1"
