from .ast import (
    Condition,
    Constraint,
    Criteria,
    Membership,
    OperatorSet,
    Scalar,
    constraint_for,
)
from .binder import ParameterBinder
from .compiler import CompilationDiagnostic, compile_criteria, quote_identifier
from .operators import CriteriaOperator, Polarity
from .sql_operators import DEFAULT_SQL_REGISTRY, build_default_sql_registry
from .strategy import SqlOperator, SqlOperatorRegistry

__all__ = [
    # Model
    "Condition",
    "Constraint",
    "Criteria",
    "Membership",
    "OperatorSet",
    "Scalar",
    "constraint_for",
    "CriteriaOperator",
    "Polarity",
    # Compilation
    "CompilationDiagnostic",
    "ParameterBinder",
    "compile_criteria",
    "quote_identifier",
    # Strategy
    "SqlOperator",
    "SqlOperatorRegistry",
    "DEFAULT_SQL_REGISTRY",
    "build_default_sql_registry",
]
