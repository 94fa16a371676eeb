"""tabular-crud: Mongo-style criteria and soft-delete CRUD over SQL tables."""

from .config import CrudConfig, ServiceSettings
from .criteria import (
    Condition,
    Criteria,
    CriteriaOperator,
    Membership,
    OperatorSet,
    ParameterBinder,
    Polarity,
    Scalar,
    compile_criteria,
)
from .crud import CrudService
from .exceptions import (
    ConfigurationError,
    CriteriaError,
    CriteriaValidationError,
    CrudError,
    MissingIdentifierError,
    OperatorNotFoundError,
    PersistenceError,
    SessionManagementError,
    UsageError,
)
from .query import QueryAssembler, QueryMode, QueryOptions, SqlDialect, Statement
from .reporting import CompositeReporter, LoggingReporter, Reporter
from .schema import (
    DefaultSchemaHooks,
    InitState,
    SchemaContext,
    SchemaHooks,
    SchemaInitializer,
)
from .service import QueryResult, SqlService

__version__ = "0.1.0"

__all__ = [
    # Services
    "CrudService",
    "SqlService",
    "QueryResult",
    # Configuration
    "CrudConfig",
    "ServiceSettings",
    # Criteria
    "Condition",
    "Criteria",
    "CriteriaOperator",
    "Membership",
    "OperatorSet",
    "ParameterBinder",
    "Polarity",
    "Scalar",
    "compile_criteria",
    # Query
    "QueryAssembler",
    "QueryMode",
    "QueryOptions",
    "SqlDialect",
    "Statement",
    # Schema
    "DefaultSchemaHooks",
    "InitState",
    "SchemaContext",
    "SchemaHooks",
    "SchemaInitializer",
    # Reporting
    "CompositeReporter",
    "LoggingReporter",
    "Reporter",
    # Errors
    "ConfigurationError",
    "CriteriaError",
    "CriteriaValidationError",
    "CrudError",
    "MissingIdentifierError",
    "OperatorNotFoundError",
    "PersistenceError",
    "SessionManagementError",
    "UsageError",
]
