"""State mapping: previous state blob + rules -> next state blob.

The caller owns persistence; this module only computes. Rules run in order and
each one overwrites a single key of the state object:

- `update` starting with `$`: the rest is a formula evaluated by
  `expressions.Evaluator`, which must yield a string.
- otherwise: the literal `update` string is stored under the rule's `from`
  key. The rule's `to` key is deliberately not consulted here; `to` is only
  used when previous state is merged into the actor input (see
  `merge_state_into_payload`).

Any failure is fatal for the whole run: no partially updated state is returned.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import structlog

from .errors import ExpressionError, ValidationError
from .expressions import Evaluator
from .models import StateMappingRule


logger = structlog.get_logger(__name__)

EXPRESSION_SIGIL = "$"
START_DATE_VAR = "start_date"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunContext:
    """Values exposed to state formulas for one run."""

    start: datetime = field(default_factory=_utcnow)

    def evaluator(self) -> Evaluator:
        return Evaluator({START_DATE_VAR: self.start})


def load_state(previous_state: str) -> Dict[str, Any]:
    """Decode the caller's state blob; it must be a JSON object."""
    try:
        state = json.loads(previous_state)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"previous state is not valid JSON: {exc}") from exc
    if not isinstance(state, dict):
        raise ValidationError("previous state must be a JSON object")
    return state


def dump_state(state: Dict[str, Any]) -> str:
    return json.dumps(state, ensure_ascii=False, separators=(",", ":"))


def compute_state(
    previous_state: str,
    rules: Sequence[StateMappingRule],
    context: Optional[RunContext] = None,
) -> str:
    """Apply `rules` to `previous_state` and return the re-serialized state.

    Raises:
        ValidationError: previous state is not a JSON object.
        ExpressionError: a formula failed to parse or evaluate.
    """
    state = load_state(previous_state)
    if not rules:
        return dump_state(state)

    evaluator = (context or RunContext()).evaluator()
    for rule in rules:
        if rule.update.startswith(EXPRESSION_SIGIL):
            source = rule.update[len(EXPRESSION_SIGIL):]
            try:
                value = evaluator.evaluate_string(source)
            except ExpressionError as exc:
                logger.warning("state_expression_failed", key=rule.from_, error=str(exc))
                raise ExpressionError(
                    f"failed to evaluate state mapping for '{rule.from_}': {exc}"
                ) from exc
        else:
            value = rule.update
        state[rule.from_] = value

    return dump_state(state)


def validate_state_rules(previous_state: str, rules: Sequence[StateMappingRule]) -> None:
    """Dry-run the rules so malformed formulas fail before a remote run is spent."""
    compute_state(previous_state, rules, RunContext())


def merge_state_into_payload(
    payload: Dict[str, Any],
    previous_state: str,
    rules: Sequence[StateMappingRule],
) -> Dict[str, Any]:
    """Return a copy of `payload` with state values copied in (`from` -> `to`).

    Keys missing from the state are left alone.
    """
    state = load_state(previous_state)
    body = dict(payload)
    for rule in rules:
        if rule.from_ in state:
            body[rule.to] = state[rule.from_]
    return body
