"""Decoder for policy-engine partial-evaluation residuals.

A compile response carries ``result.queries``: a disjunction (list) of
conjunctions (lists) of expressions.  Each expression looks like::

    {
      "index": 0,
      "negated": true,            # optional
      "terms": [
        {"type": "ref", "value": [{"type": "var", "value": "eq"}]},
        {"type": "ref", "value": [
            {"type": "var", "value": "input"},
            {"type": "string", "value": "cluster"},
            {"type": "string", "value": "metadata"},
            {"type": "string", "value": "name"}]},
        {"type": "string", "value": "cluster-a"}
      ]
    }

Terms are decoded into :class:`Term` values tagged by :class:`TermKind`; any
shape that does not fit raises :class:`ResidualParseError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Sequence, Tuple, Union

from hoh_gitops.exceptions import ResidualParseError

EXPRESSION_TERMS_COUNT = 3  # operator, first operand, second operand


class TermKind(Enum):
    REF = "ref"
    STRING = "string"
    VAR = "var"


@dataclass(frozen=True)
class Term:
    """A single typed term.

    ``value`` is a string for ``STRING`` and ``VAR`` terms and a tuple of
    nested terms (the reference path) for ``REF`` terms.
    """

    kind: TermKind
    value: Union[str, Tuple["Term", ...]]

    @property
    def path(self) -> Tuple["Term", ...]:
        if self.kind is not TermKind.REF:
            raise ResidualParseError(f"{self.kind.value} term has no path")
        return self.value  # type: ignore[return-value]

    def string_value(self, expected: TermKind) -> str:
        if self.kind is not expected:
            raise ResidualParseError(
                f"expected {expected.value} term, received {self.kind.value}"
            )
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True)
class Expression:
    operator: str
    operands: Tuple[Term, Term]
    negated: bool = False


def decode_term(raw: Any) -> Term:
    if not isinstance(raw, Mapping):
        raise ResidualParseError(f"expected term mapping, received {type(raw).__name__}")

    if "type" not in raw:
        raise ResidualParseError("term missing attribute 'type'")
    raw_kind = raw["type"]
    try:
        kind = TermKind(raw_kind)
    except ValueError:
        raise ResidualParseError(f"unexpected term type {raw_kind!r}") from None

    if "value" not in raw:
        raise ResidualParseError(f"{kind.value} term missing attribute 'value'")
    value = raw["value"]

    if kind is TermKind.REF:
        if not isinstance(value, list):
            raise ResidualParseError(
                f"ref term value must be an array, received {type(value).__name__}"
            )
        return Term(kind, tuple(decode_term(part) for part in value))

    if not isinstance(value, str):
        raise ResidualParseError(
            f"{kind.value} term value must be a string, received {type(value).__name__}"
        )
    return Term(kind, value)


def _decode_operator(raw: Any) -> str:
    term = decode_term(raw)
    path = term.path
    if len(path) != 1:
        raise ResidualParseError(
            f"operator reference must hold exactly 1 term, received {len(path)}"
        )
    return path[0].string_value(TermKind.VAR)


def decode_expression(raw: Any) -> Expression:
    """Decode one expression of a conjunction.

    Errors raised after the ``negated`` flag was read carry it on the
    exception so the caller can pick the matching fallback.
    """

    if not isinstance(raw, Mapping):
        raise ResidualParseError(
            f"expected expression mapping, received {type(raw).__name__}"
        )

    negated = raw.get("negated", False)
    if not isinstance(negated, bool):
        negated = False

    try:
        terms = raw["terms"]
        if not isinstance(terms, list):
            raise ResidualParseError(
                f"expression terms must be an array, received {type(terms).__name__}"
            )
        if len(terms) != EXPRESSION_TERMS_COUNT:
            raise ResidualParseError(
                f"expected {EXPRESSION_TERMS_COUNT} terms, received {len(terms)}"
            )
        operator = _decode_operator(terms[0])
        operands = (decode_term(terms[1]), decode_term(terms[2]))
    except KeyError:
        raise ResidualParseError(
            "expression missing attribute 'terms'", negated=negated
        ) from None
    except ResidualParseError as exc:
        raise ResidualParseError(str(exc), negated=negated) from exc

    return Expression(operator=operator, operands=operands, negated=negated)


def decode_queries(result: Any) -> List[Any]:
    """Return the raw conjunctions of a compile ``result``.

    A result without ``queries`` means the policy can never be satisfied and
    decodes to an empty disjunction.
    """

    if result is None:
        return []
    if not isinstance(result, Mapping):
        raise ResidualParseError(
            f"expected result mapping, received {type(result).__name__}"
        )

    queries = result.get("queries")
    if queries is None:
        return []
    if not isinstance(queries, list):
        raise ResidualParseError(
            f"queries must be an array, received {type(queries).__name__}"
        )
    return queries


def is_reference_to(path: Sequence[Term], *prefix: str) -> bool:
    """Return True when ``path`` starts with var ``prefix[0]`` then strings."""

    if len(path) < len(prefix):
        return False
    for index, (term, expected) in enumerate(zip(path, prefix)):
        kind = TermKind.VAR if index == 0 else TermKind.STRING
        if term.kind is not kind or term.value != expected:
            return False
    return True
