"""
Soft-delete concealment merge.

Rows whose status column holds the tombstone value stay in the table; every
read and bulk-mutation path narrows its criteria so they are never matched.
The merge runs on the typed :class:`Criteria` before compilation and always
returns a new object.
"""

from __future__ import annotations

import logging
from typing import Any

from ..criteria.ast import Condition, Criteria, OperatorSet, Scalar
from ..criteria.operators import CriteriaOperator

logger = logging.getLogger("tabular_crud.query")


def tombstone_exclusion(status_field: str, deleted_status: Any) -> Condition:
    """``status_field != deleted_status`` as a condition."""
    return Condition(
        status_field,
        OperatorSet(entries=((CriteriaOperator.NE, deleted_status),)),
    )


def conceal_tombstones(
    criteria: Criteria | None,
    *,
    status_field: str,
    deleted_status: Any,
) -> Criteria:
    """
    Merge the tombstone exclusion into *criteria*.

    * no criteria: a criteria holding only the exclusion;
    * status constrained by a scalar: the exclusion is placed right after it,
      so the pair reads ``status = X AND status != deleted``;
    * status constrained otherwise (sequence, operator object) or not at
      all: the exclusion is appended.
    """
    exclusion = tombstone_exclusion(status_field, deleted_status)
    if criteria is None or not criteria:
        return Criteria.of(exclusion)

    index = criteria.index_of(status_field)
    if index is not None and isinstance(criteria.conditions[index].constraint, Scalar):
        merged = criteria.inserted(index + 1, exclusion)
    else:
        merged = criteria.appended(exclusion)

    logger.debug("Concealment merged on %s: %s", status_field, merged.to_dict())
    return merged
