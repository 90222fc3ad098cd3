"""Tests for WWW-Authenticate Bearer challenge parsing."""

from multidict import CIMultiDict

from tokenrelay.auth.challenge import (
    challenge_from_headers,
    parse_challenges,
    parse_header_values,
    parse_www_authenticate,
    split_www_authenticate,
)
from tokenrelay.auth.models import ChallengeInfo


class TestParseWwwAuthenticate:
    def test_splits_scheme_and_parameters(self):
        assert parse_www_authenticate('Bearer realm="x"') == ("Bearer", 'realm="x"')

    def test_scheme_only(self):
        assert parse_www_authenticate("Basic") == ("Basic", "")

    def test_empty_value(self):
        assert parse_www_authenticate("   ") is None

    def test_first_of_several_challenges(self):
        assert parse_www_authenticate('Basic realm="api", Bearer realm="idp"') == (
            "Basic",
            'realm="api"',
        )


class TestSplitWwwAuthenticate:
    """Tests for header values carrying several challenges."""

    def test_splits_comma_separated_challenges(self):
        value = 'Basic realm="api", Bearer realm="tenant.auth0.com", scope="client_id=xyz"'
        assert split_www_authenticate(value) == [
            ("Basic", 'realm="api"'),
            ("Bearer", 'realm="tenant.auth0.com", scope="client_id=xyz"'),
        ]

    def test_commas_inside_quotes_kept(self):
        value = 'Bearer error_description="expired, renew", scope="client_id=xyz"'
        assert split_www_authenticate(value) == [
            ("Bearer", 'error_description="expired, renew", scope="client_id=xyz"'),
        ]

    def test_bare_schemes_and_token68(self):
        assert split_www_authenticate("Negotiate, Basic dXNlcjpwYXNz==, Bearer") == [
            ("Negotiate", ""),
            ("Basic", "dXNlcjpwYXNz=="),
            ("Bearer", ""),
        ]

    def test_spaced_parameter_is_not_a_scheme(self):
        assert split_www_authenticate('Bearer realm="idp",  scope = "client_id=xyz"') == [
            ("Bearer", 'realm="idp", scope = "client_id=xyz"'),
        ]

    def test_blank_value(self):
        assert split_www_authenticate(" , ") == []


class TestParseChallenges:
    """Tests for extracting server URL and client id from challenges."""

    def test_parses_realm_and_client_id(self):
        """Should read realm as server URL and client_id from the scope."""
        info = parse_challenges(
            [("Bearer", 'realm="example.auth0.com", scope="client_id=abc123 service=https://x"')]
        )
        assert info == ChallengeInfo(server_url="https://example.auth0.com", client_id="abc123")

    def test_realm_with_scheme_kept(self):
        info = parse_challenges([("Bearer", 'realm="http://idp.local"')])
        assert info.server_url == "http://idp.local"

    def test_scheme_is_case_insensitive(self):
        info = parse_challenges([("bEaReR", 'scope="client_id=abc"')])
        assert info.client_id == "abc"

    def test_non_bearer_challenges_ignored(self):
        """Should skip challenges that are not Bearer."""
        info = parse_challenges([("Basic", 'realm="example.auth0.com"')])
        assert info.is_empty

    def test_unquoted_parameters(self):
        info = parse_challenges([("Bearer", "realm=example.auth0.com")])
        assert info.server_url == "https://example.auth0.com"

    def test_whitespace_separated_parameters(self):
        info = parse_challenges(
            [("Bearer", 'realm="idp.example.com" scope="service=https://x client_id=xyz"')]
        )
        assert info.server_url == "https://idp.example.com"
        assert info.client_id == "xyz"

    def test_unknown_parameters_ignored(self):
        info = parse_challenges(
            [("Bearer", 'error="invalid_token", realm="idp", error_description="expired"')]
        )
        assert info == ChallengeInfo(server_url="https://idp", client_id=None)

    def test_scope_without_client_id(self):
        info = parse_challenges([("Bearer", 'scope="openid profile"')])
        assert info.client_id is None

    def test_first_values_win(self):
        """Should keep the first realm and client id across challenges."""
        info = parse_challenges(
            [
                ("Bearer", 'realm="first", scope="client_id=one"'),
                ("Bearer", 'realm="second", scope="client_id=two"'),
            ]
        )
        assert info == ChallengeInfo(server_url="https://first", client_id="one")

    def test_empty_or_garbage_input(self):
        """Should return an empty result rather than raise."""
        assert parse_challenges([]).is_empty
        assert parse_challenges([("Bearer", "")]).is_empty
        assert parse_challenges([("Bearer", "!!! ,,, ===")]).is_empty


class TestHeaderParsing:
    def test_parse_header_values(self):
        info = parse_header_values(
            ['Basic realm="legacy"', 'Bearer realm="idp", scope="client_id=abc"']
        )
        assert info == ChallengeInfo(server_url="https://idp", client_id="abc")

    def test_challenge_from_multidict_reads_every_header(self):
        headers = CIMultiDict()
        headers.add("WWW-Authenticate", 'Basic realm="legacy"')
        headers.add("www-authenticate", 'Bearer scope="client_id=abc"')

        assert challenge_from_headers(headers).client_id == "abc"

    def test_challenge_from_plain_dict(self):
        headers = {"WWW-Authenticate": 'Bearer realm="idp", scope="client_id=abc"'}
        assert challenge_from_headers(headers) == ChallengeInfo(
            server_url="https://idp", client_id="abc"
        )

    def test_bearer_after_other_scheme_in_one_header(self):
        headers = CIMultiDict()
        headers.add(
            "WWW-Authenticate",
            'Basic realm="api", Bearer realm="tenant.auth0.com", scope="client_id=xyz"',
        )

        assert challenge_from_headers(headers) == ChallengeInfo(
            server_url="https://tenant.auth0.com", client_id="xyz"
        )

    def test_missing_header(self):
        assert challenge_from_headers({}).is_empty
        assert challenge_from_headers(CIMultiDict()).is_empty
