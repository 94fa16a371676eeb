from .assembler import QueryAssembler, Statement
from .concealment import conceal_tombstones, tombstone_exclusion
from .dialect import POSTGRES_DIALECT, SqlDialect
from .options import QueryMode, QueryOptions

__all__ = [
    "POSTGRES_DIALECT",
    "QueryAssembler",
    "QueryMode",
    "QueryOptions",
    "SqlDialect",
    "Statement",
    "conceal_tombstones",
    "tombstone_exclusion",
]
