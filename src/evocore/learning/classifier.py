"""Keyword-based classification of workflow failure messages.

Rules are plain data evaluated in order; the first rule that matches
decides the kind. Messages routinely match several rules ("API key not
found" mentions both a missing thing and an API key), so the order of
``DEFAULT_ERROR_RULES`` is part of the contract.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from evocore.core.logging import get_logger
from evocore.learning.models import ErrorKind

_logger = get_logger("classifier")


@dataclass(frozen=True)
class KeywordRule:
    """Match when every ``all_of`` term and at least one ``any_of`` term occur.

    Terms are compared against the lower-cased message as substrings. An
    empty ``any_of`` places no constraint.
    """

    kind: ErrorKind
    any_of: tuple[str, ...] = ()
    all_of: tuple[str, ...] = ()

    def matches(self, message: str) -> bool:
        if not all(term in message for term in self.all_of):
            return False
        return not self.any_of or any(term in message for term in self.any_of)


DEFAULT_ERROR_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(ErrorKind.PERMISSION, any_of=("permission", "access denied")),
    KeywordRule(ErrorKind.MISSING_DEPENDENCY, any_of=("not found", "missing")),
    KeywordRule(ErrorKind.TIMEOUT, any_of=("timeout", "timed out")),
    KeywordRule(ErrorKind.AUTHENTICATION, all_of=("api",), any_of=("key", "auth")),
    KeywordRule(ErrorKind.SYNTAX, any_of=("syntax", "parse")),
)


class ErrorClassifier:
    """Maps a free-text error message to an ErrorKind.

    Example:
        classifier = ErrorClassifier()
        classifier.classify("Request timed out after 30s")  # ErrorKind.TIMEOUT
    """

    def __init__(self, rules: Sequence[KeywordRule] = DEFAULT_ERROR_RULES) -> None:
        self.rules = tuple(rules)

    def classify(self, message: str | None) -> ErrorKind:
        """Return the kind of the first matching rule, or UNKNOWN."""
        if not message:
            return ErrorKind.UNKNOWN

        lowered = message.lower()
        for rule in self.rules:
            if rule.matches(lowered):
                return rule.kind

        _logger.debug("error_unclassified", message=message[:200])
        return ErrorKind.UNKNOWN
