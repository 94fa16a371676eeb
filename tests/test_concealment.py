from tabular_crud.criteria import (
    Condition,
    Criteria,
    CriteriaOperator,
    Membership,
    OperatorSet,
    ParameterBinder,
    Scalar,
    compile_criteria,
)
from tabular_crud.query import conceal_tombstones, tombstone_exclusion

EXCLUSION = Condition(
    "status", OperatorSet(entries=((CriteriaOperator.NE, "dead"),))
)


def _merge(criteria):
    return conceal_tombstones(criteria, status_field="status", deleted_status="dead")


def test_absent_criteria_gets_only_the_exclusion():
    assert _merge(None) == Criteria.of(EXCLUSION)
    assert _merge(Criteria()) == Criteria.of(EXCLUSION)


def test_exclusion_condition_shape():
    assert tombstone_exclusion("status", "dead") == EXCLUSION


def test_no_status_constraint_appends_exclusion():
    merged = _merge(Criteria.parse({"username": "bob"}))
    assert merged.conditions == (Condition("username", Scalar("bob")), EXCLUSION)


def test_scalar_status_is_paired_with_exclusion():
    merged = _merge(Criteria.parse({"status": "active", "username": "bob"}))
    assert merged.conditions == (
        Condition("status", Scalar("active")),
        EXCLUSION,
        Condition("username", Scalar("bob")),
    )

    where: list[str] = []
    binder = ParameterBinder()
    compile_criteria(merged, where, binder)
    assert where == ['"status" = $1', '"status" != $2', '"username" = $3']
    assert binder.args == ["active", "dead", "bob"]


def test_scalar_status_equal_to_tombstone_still_excluded():
    where: list[str] = []
    binder = ParameterBinder()
    compile_criteria(_merge(Criteria.parse({"status": "dead"})), where, binder)
    assert where == ['"status" = $1', '"status" != $2']
    assert binder.args == ["dead", "dead"]


def test_sequence_status_keeps_constraint_and_appends_exclusion():
    merged = _merge(Criteria.parse({"status": ["active", "dead"], "id": "a"}))
    assert merged.conditions == (
        Condition("status", Membership(("active", "dead"))),
        Condition("id", Scalar("a")),
        EXCLUSION,
    )


def test_operator_status_keeps_constraint_and_appends_exclusion():
    merged = _merge(Criteria.parse({"status": {"$ne": "pending"}}))
    assert merged.conditions[0].constraint == OperatorSet.of(ne="pending")
    assert merged.conditions[1] == EXCLUSION


def test_caller_criteria_not_mutated():
    original = Criteria.parse({"status": "active"})
    _merge(original)
    assert original.conditions == (Condition("status", Scalar("active")),)
