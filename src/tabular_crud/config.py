"""
Construction-time configuration.

``ServiceSettings`` describes how :class:`~tabular_crud.service.SqlService`
builds its SQLAlchemy engine; ``CrudConfig`` carries the recognized options
of one :class:`~tabular_crud.crud.CrudService`.  Both are frozen pydantic
models; validation failures surface as :class:`ConfigurationError`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .criteria.strategy import SqlOperatorRegistry
from .exceptions import ConfigurationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceSettings(BaseModel):
    """Engine settings for the pool collaborator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    echo: bool = False
    pool_size: int | None = None
    max_overflow: int | None = None
    pool_timeout: float | None = None
    pool_recycle: int | None = None
    pool_pre_ping: bool = True
    connect_args: dict[str, Any] = Field(default_factory=dict)
    default_schema: str | None = None

    def engine_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``create_async_engine``.

        Pool sizing options are only forwarded when set, so pool classes
        that reject them (``StaticPool`` for in-memory SQLite) still work.
        """
        kwargs: dict[str, Any] = {
            "echo": self.echo,
            "pool_pre_ping": self.pool_pre_ping,
        }
        for name in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
            value = getattr(self, name)
            if value is not None:
                kwargs[name] = value
        if self.connect_args:
            kwargs["connect_args"] = dict(self.connect_args)
        return kwargs


class CrudConfig(BaseModel):
    """Recognized options of a CRUD service bound to one table."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    service: Any
    schema_name: str | None = Field(default=None, alias="schema")
    table: str = Field(min_length=1)
    id_field: str = Field(default="id", min_length=1)
    status_field: str = Field(default="status", min_length=1)
    updated_field: str | None = "updated"
    modifiable_keys: tuple[str, ...] = ()
    deleted_status: str = "dead"
    conceal_dead_resources: bool = True
    strict_operators: bool = True
    clock: Callable[[], datetime] = utc_now
    reporter: Any = None
    operator_registry: SqlOperatorRegistry | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_schema_from_service(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        if data.get("schema") or data.get("schema_name"):
            return data
        settings = getattr(data.get("service"), "settings", None)
        default_schema = getattr(settings, "default_schema", None)
        if default_schema:
            return {**data, "schema": default_schema}
        return data

    @field_validator("service")
    @classmethod
    def _require_service(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("must be defined on initialization")
        if not callable(getattr(value, "execute", None)):
            raise ValueError("must provide an async execute(sql, args, ...) method")
        return value

    @field_validator("operator_registry")
    @classmethod
    def _require_complete_registry(
        cls, value: SqlOperatorRegistry | None
    ) -> SqlOperatorRegistry | None:
        if value is None:
            return value
        missing = value.missing()
        if missing:
            names = ", ".join(sorted(op.value for op in missing))
            raise ValueError(f"has no SQL strategy for {names}")
        return value

    @model_validator(mode="after")
    def _require_schema(self) -> CrudConfig:
        if not self.schema_name:
            raise ValueError(
                "`schema` must be defined on initialization or defaulted "
                "from the service settings"
            )
        return self

    @classmethod
    def load(
        cls, options: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CrudConfig:
        """Validate *options*, converting pydantic errors to
        :class:`ConfigurationError`.
        """
        data = {**(options or {}), **kwargs}
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc


def _describe(exc: PydanticValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()))
        msg = error.get("msg", "validation error")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        if error.get("type") == "missing":
            msg = "must be defined on initialization"
        messages.append(f"`{loc}` {msg}" if loc else msg)
    return "; ".join(messages)
