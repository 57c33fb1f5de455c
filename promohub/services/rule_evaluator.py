"""
Commission rule condition evaluation.

Rule conditions are stored as opaque strings. No condition grammar is
defined yet, so the default evaluator refuses to evaluate anything rather
than guessing. A deployment that defines a grammar plugs in its own
``RuleConditionEvaluator`` implementation.
"""
from typing import Any, Mapping, Protocol, runtime_checkable


class RuleEvaluationNotConfigured(RuntimeError):
    """Raised when a rule condition is evaluated without a configured evaluator."""


@runtime_checkable
class RuleConditionEvaluator(Protocol):
    def evaluate(self, condition: str, context: Mapping[str, Any]) -> bool:
        """Return True when ``condition`` holds for ``context``."""
        ...


class UnconfiguredRuleEvaluator:
    """Default evaluator: every evaluation attempt fails loudly."""

    def evaluate(self, condition: str, context: Mapping[str, Any]) -> bool:
        raise RuleEvaluationNotConfigured(
            f"No rule condition evaluator configured; cannot evaluate {condition!r}"
        )
