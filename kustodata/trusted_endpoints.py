"""Checks that a cluster host is trusted to receive authentication tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import urlsplit

from kustodata.errors import KustoError, Op


@dataclass(frozen=True)
class MatchRule:
    """A trusted host suffix, or a whole host name when exact."""

    suffix: str
    exact: bool = False


def _tail_lower(text: str, length: int) -> str:
    if length <= 0:
        return ""
    if length >= len(text):
        return text.lower()
    return text[-length:].lower()


class FastSuffixMatcher:
    """Matches host names against rules, bucketed by their shortest common tail."""

    def __init__(self, rules: Iterable[MatchRule]) -> None:
        rules = list(rules)
        min_length = min((len(rule.suffix) for rule in rules), default=0)
        if min_length == 0:
            raise KustoError(
                Op.UNKNOWN,
                KustoError.Kind.CLIENT_ARGS,
                "FastSuffixMatcher should have at least one rule with at least one character",
                permanent=True,
            )
        self.suffix_length = min_length
        self.rules: dict[str, list[MatchRule]] = {}
        for rule in rules:
            self.rules.setdefault(_tail_lower(rule.suffix, min_length), []).append(rule)

    def all_rules(self) -> list[MatchRule]:
        """Every rule held by the matcher."""
        return [rule for group in self.rules.values() for rule in group]

    def is_match(self, candidate: str) -> bool:
        """Whether the candidate host matches any rule."""
        if len(candidate) < self.suffix_length:
            return False
        lowered = candidate.lower()
        for rule in self.rules.get(_tail_lower(candidate, self.suffix_length), ()):
            if lowered.endswith(rule.suffix) and (
                not rule.exact or len(candidate) == len(rule.suffix)
            ):
                return True
        return False


def is_local_address(host: str) -> bool:
    """Whether the host is a loopback address."""
    if host in ("localhost", "127.0.0.1", "::1", "[::1]"):
        return True
    if host.startswith("127.") and 9 <= len(host) <= 15:
        return all(c == "." or c.isdigit() and c.isascii() for c in host)
    return False


class TrustedEndpoints:
    """Trusted host rules per login endpoint, plus user-added rules."""

    def __init__(self, allowed_endpoints_by_login: Mapping[str, Mapping[str, Any]]) -> None:
        self._matchers: dict[str, FastSuffixMatcher] = {}
        for login, allowed in allowed_endpoints_by_login.items():
            rules = [MatchRule(s, False) for s in allowed.get("AllowedKustoSuffixes") or ()]
            rules += [MatchRule(h, True) for h in allowed.get("AllowedKustoHostnames") or ()]
            self._matchers[login] = FastSuffixMatcher(rules)
        self._additional: FastSuffixMatcher | None = None
        self._override: Callable[[str], bool] | None = None

    def set_override_policy(self, matcher: Callable[[str], bool] | None) -> None:
        """Set a predicate that trusts a host ahead of all other rules."""
        self._override = matcher

    def add_trusted_hosts(self, rules: Iterable[MatchRule] | None, replace: bool) -> None:
        """Add extra trusted rules, or replace the extra rules when replace is set."""
        rules = list(rules or ())
        if replace:
            self._additional = None
        if not rules:
            return
        existing = self._additional
        if existing is not None and existing.rules:
            rules.extend(existing.all_rules())
        self._additional = None
        self._additional = FastSuffixMatcher(rules)

    def validate_trusted_endpoint(self, endpoint: str, login_endpoint: str) -> None:
        """Raise KustoError unless the endpoint's host is trusted for the login endpoint."""
        host = urlsplit(endpoint).netloc.rpartition("@")[2] or endpoint
        self._validate_hostname(host, login_endpoint or "")

    def _validate_hostname(self, host: str, login_endpoint: str) -> None:
        if is_local_address(host):
            return
        if self._override is not None and self._override(host):
            return
        matcher = self._matchers.get(login_endpoint.lower())
        if matcher is not None and matcher.is_match(host):
            return
        if self._additional is not None and self._additional.is_match(host):
            return
        raise KustoError(
            Op.UNKNOWN,
            KustoError.Kind.CLIENT_ARGS,
            f"Can't communicate with '{host}' as this hostname is currently not trusted.",
            permanent=True,
        )