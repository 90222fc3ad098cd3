"""
Parsing of HTTP ``WWW-Authenticate`` Bearer challenges.

A protected service answers an unauthenticated request with a challenge such as::

    WWW-Authenticate: Bearer realm="example.auth0.com", scope="client_id=abc123 service=https://x"

The realm names the identity provider and the scope carries the client id that
must be used to obtain a token for that service.
"""

import logging
import re
from collections.abc import Iterable, Mapping

from tokenrelay.auth.models import ChallengeInfo

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"

# key="quoted value" or key=token; whitespace and commas outside quotes separate pairs
_PARAM_PATTERN = re.compile(r'(\w+)\s*=\s*(?:"([^"]*)"|([^\s",]+))')

# a list element opening a new challenge: an auth scheme not followed by "="
_SCHEME_PATTERN = re.compile(r"([A-Za-z][\w!#$%&'*+.^`|~-]*)(?:\s+(?!=)(.*))?", re.DOTALL)

Challenge = tuple[str, str]


def _split_list(value: str) -> list[str]:
    elements = []
    current = []
    quoted = False
    for char in value:
        if char == '"':
            quoted = not quoted
        elif char == "," and not quoted:
            elements.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    elements.append("".join(current).strip())
    return [element for element in elements if element]


def split_www_authenticate(value: str) -> list[Challenge]:
    """
    Split a raw ``WWW-Authenticate`` header value into its challenges.

    One header value may carry several comma-separated challenges, e.g.
    ``Basic realm="api", Bearer realm="idp", scope="client_id=abc"``. A list
    element starting with a bare token opens a new challenge; ``key=value``
    elements belong to the challenge before them.

    Returns:
        List of (scheme, parameter string) pairs, empty for a blank value
    """
    challenges: list[list[str]] = []
    for element in _split_list(value):
        match = _SCHEME_PATTERN.fullmatch(element)
        if match is not None and not element[match.end(1):].lstrip().startswith("="):
            scheme, parameter = match.groups()
            challenges.append([scheme, (parameter or "").strip()])
        elif challenges:
            parameter = challenges[-1][1]
            challenges[-1][1] = f"{parameter}, {element}" if parameter else element
        else:
            logger.debug(f"Ignoring challenge parameter without a scheme: {element}")
    return [(scheme, parameter) for scheme, parameter in challenges]


def parse_www_authenticate(value: str) -> Challenge | None:
    """
    Split a raw ``WWW-Authenticate`` header value into (scheme, parameters).

    Only the first challenge of the value is returned; see
    ``split_www_authenticate`` for values carrying several.

    Returns:
        Tuple of scheme and parameter string, or None for an empty value
    """
    challenges = split_www_authenticate(value)
    return challenges[0] if challenges else None


def _tokenize(parameter: str) -> list[tuple[str, str]]:
    pairs = []
    for match in _PARAM_PATTERN.finditer(parameter):
        key, quoted, bare = match.groups()
        pairs.append((key.lower(), quoted if quoted is not None else bare))
    return pairs


def _normalize_realm(realm: str) -> str:
    realm = realm.replace('"', "").strip()
    if realm.lower().startswith("http"):
        return realm
    return f"https://{realm}"


def _client_id_from_scope(scope: str) -> str | None:
    for entry in scope.replace('"', "").split():
        key, sep, value = entry.partition("=")
        if not sep or not value:
            continue
        if key.lower() == "client_id":
            return value
    return None


def parse_challenges(challenges: Iterable[Challenge]) -> ChallengeInfo:
    """
    Extract the identity-provider URL and client id from Bearer challenges.

    Entries with a scheme other than ``bearer`` (case-insensitive) are skipped,
    as are unknown parameters. The first realm and the first client_id found
    win.

    Args:
        challenges: Iterable of (scheme, parameter string) pairs

    Returns:
        ChallengeInfo; empty when no Bearer challenge carried usable data
    """
    server_url = None
    client_id = None

    for scheme, parameter in challenges:
        if scheme.lower() != BEARER_SCHEME or not parameter:
            continue

        for key, value in _tokenize(parameter):
            if key == "realm" and server_url is None and value:
                server_url = _normalize_realm(value)
            elif key == "scope" and client_id is None:
                client_id = _client_id_from_scope(value)

    info = ChallengeInfo(server_url=server_url, client_id=client_id)
    if info.is_empty:
        logger.debug("No usable Bearer challenge found")
    return info


def parse_header_values(values: Iterable[str]) -> ChallengeInfo:
    """Parse raw ``WWW-Authenticate`` header values."""
    challenges = []
    for value in values:
        challenges.extend(split_www_authenticate(value))
    return parse_challenges(challenges)


def challenge_from_headers(headers: Mapping[str, str]) -> ChallengeInfo:
    """
    Parse every ``WWW-Authenticate`` header of a response.

    Accepts multi-dicts exposing ``getall`` (aiohttp / multidict) as well as
    plain mappings.
    """
    getall = getattr(headers, "getall", None)
    if getall is not None:
        values = getall("WWW-Authenticate", [])
    else:
        value = headers.get("WWW-Authenticate")
        values = [value] if value else []
    return parse_header_values(values)


__all__ = [
    "BEARER_SCHEME",
    "Challenge",
    "parse_www_authenticate",
    "split_www_authenticate",
    "parse_challenges",
    "parse_header_values",
    "challenge_from_headers",
]
