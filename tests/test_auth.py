import pytest

from rssagg.auth import AuthError, get_api_key


def test_returns_key_after_scheme():
    assert get_api_key({"Authorization": "ApiKey token"}) == "token"


def test_header_name_is_case_insensitive():
    assert get_api_key({"authorization": "ApiKey secret"}) == "secret"


def test_missing_header():
    with pytest.raises(AuthError, match="no authentication header found"):
        get_api_key({})


def test_empty_header_counts_as_missing():
    with pytest.raises(AuthError, match="no authentication header found"):
        get_api_key({"Authorization": ""})


@pytest.mark.parametrize(
    "value",
    ["ApiKey", "ApiKey token extra", "ApiKey  token", "token"],
)
def test_wrong_number_of_parts(value):
    with pytest.raises(AuthError, match="malformed Auth header"):
        get_api_key({"Authorization": value})


@pytest.mark.parametrize("value", ["Bearer token", "apikey token"])
def test_wrong_scheme(value):
    with pytest.raises(AuthError, match="malformed first part of auth header"):
        get_api_key({"Authorization": value})


def test_other_headers_are_ignored():
    headers = {"Content-Type": "application/json", "Authorization": "ApiKey placeholder"}
    assert get_api_key(headers) == "placeholder"