"""Stored-procedure invocation against tenant-scoped legacy databases.

Procedure names are never taken from request data. They are resolved from the
procedure-definition files shipped with a service (one ``.sql`` file per
logical name) and loaded once at startup into a ``ProcedureRegistry``.

Every argument is sent as a bound parameter; ``None`` binds as SQL NULL.

Usage:
    registry = ProcedureRegistry.load(Path("sql/procedures"))
    invoker = ProcedureInvoker(engines, registry)
    rows = await invoker.invoke("procNextMembershipId", "201")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from sqlalchemy import TextClause, text
from sqlalchemy.exc import SQLAlchemyError

from libs.common.logging import get_logger
from libs.db.config import TenantEngineRegistry

logger = get_logger(__name__)

_PROCEDURE_PATTERN = re.compile(r"execute\s+procedure\s+([^\s(]+)", re.IGNORECASE)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_MISSING = object()


class ProcedureError(Exception):
    """A remote procedure call failed."""

    def __init__(self, procedure: str, tenant_id: str, cause: BaseException):
        self.procedure = procedure
        self.tenant_id = tenant_id
        self.cause = cause
        super().__init__(f"{procedure} failed for tenant {tenant_id}: {cause}")


class UnknownProcedureError(LookupError):
    """The logical procedure name is not in the registry."""


# ---------------------------------------------------------------------------
# Result rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcedureRow:
    """One returned row, addressable by column name or by position.

    Drivers disagree on procedure result column names: some return the
    declared names, others number them ``"1"``, ``"2"``…
    """

    columns: tuple[str, ...]
    values: tuple[Any, ...]

    @classmethod
    def from_mapping(cls, mapping: Any) -> "ProcedureRow":
        items = list(dict(mapping).items())
        return cls(
            columns=tuple(str(k) for k, _ in items),
            values=tuple(v for _, v in items),
        )

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self.columns, self.values))

    def named(self, name: str, default: Any = None) -> Any:
        lowered = name.lower()
        for column, value in zip(self.columns, self.values):
            if column.lower() == lowered:
                return value
        return default

    def lookup(self, name: Optional[str], position: Optional[int]) -> Any:
        """Try ``name``, then the numbered key for ``position``, then the index.

        ``position`` is zero-based. Returns ``_MISSING`` when nothing matches.
        """
        if name:
            value = self.named(name, _MISSING)
            if value is not _MISSING:
                return value
        if position is not None:
            value = self.named(str(position + 1), _MISSING)
            if value is not _MISSING:
                return value
            if 0 <= position < len(self.values):
                return self.values[position]
        return _MISSING

    def first_value(self) -> Any:
        return self.values[0] if self.values else None


def is_missing(value: Any) -> bool:
    return value is _MISSING


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegisteredStatement:
    name: str
    target: str
    is_procedure: bool
    query: Optional[str] = None

    def render(self, arg_count: int) -> TextClause:
        placeholders = ", ".join(f":p{i}" for i in range(arg_count))
        if self.is_procedure:
            return text(f"EXECUTE PROCEDURE {self.target}({placeholders})")
        # Plain queries keep their own text with ``?`` markers
        if self.query is None:
            raise ValueError(f"{self.name} has no query text")
        counter = iter(range(arg_count))
        rendered = re.sub(r"\?", lambda _: f":p{next(counter)}", self.query)
        return text(rendered)


class ProcedureRegistry:
    """Allowlist of callable procedures and queries, keyed by logical name."""

    def __init__(self, statements: Optional[dict[str, RegisteredStatement]] = None):
        self._statements = dict(statements or {})

    @classmethod
    def load(cls, directory: Path) -> "ProcedureRegistry":
        statements: dict[str, RegisteredStatement] = {}
        for path in sorted(directory.glob("*.sql")):
            statement = parse_definition(path.stem, path.read_text(encoding="utf-8"))
            statements[statement.name] = statement
        logger.info(
            "Loaded procedure definitions",
            extra={"extra_fields": {"count": len(statements), "dir": str(directory)}},
        )
        return cls(statements)

    def __contains__(self, name: str) -> bool:
        return name in self._statements

    def names(self) -> list[str]:
        return sorted(self._statements)

    def get(self, name: str) -> RegisteredStatement:
        try:
            return self._statements[name]
        except KeyError:
            raise UnknownProcedureError(f"Procedure not registered: {name}") from None


def parse_definition(name: str, content: str) -> RegisteredStatement:
    """Build a registry entry from a procedure-definition file body."""
    match = _PROCEDURE_PATTERN.search(content)
    if match:
        target = match.group(1)
        if not _IDENTIFIER.match(target):
            raise ValueError(f"Invalid procedure name in {name}.sql: {target!r}")
        return RegisteredStatement(name=name, target=target, is_procedure=True)

    query = " ".join(
        line.strip()
        for line in content.splitlines()
        if line.strip() and not line.strip().startswith("--")
    ).rstrip(";")
    if not query.lower().startswith("select"):
        raise ValueError(f"Could not parse procedure name from file: {name}.sql")
    return RegisteredStatement(name=name, target=name, is_procedure=False, query=query)


# ---------------------------------------------------------------------------
# Invoker
# ---------------------------------------------------------------------------


def _preview(value: Any) -> Any:
    if isinstance(value, str):
        return value[:20]
    return value


class ProcedureInvoker:
    """Runs one registered statement per call on a fresh tenant connection."""

    def __init__(self, engines: TenantEngineRegistry, registry: ProcedureRegistry):
        self.engines = engines
        self.registry = registry

    async def invoke(
        self,
        procedure: str,
        tenant_id: str,
        params: Sequence[Any] = (),
    ) -> list[ProcedureRow]:
        statement = self.registry.get(procedure)
        clause = statement.render(len(params))
        bind = {f"p{i}": value for i, value in enumerate(params)}

        logger.info(
            "Executing SQL procedure: %s",
            statement.target,
            extra={
                "extra_fields": {
                    "tenant_id": tenant_id,
                    "params": [_preview(p) for p in params],
                }
            },
        )

        try:
            engine = self.engines.get(tenant_id)
            async with engine.connect() as conn:
                result = await conn.execute(clause, bind)
                rows = (
                    [ProcedureRow.from_mapping(m) for m in result.mappings()]
                    if result.returns_rows
                    else []
                )
                await conn.commit()
        except (SQLAlchemyError, LookupError, OSError) as exc:
            logger.error(
                "Error executing SQL procedure: %s",
                statement.target,
                extra={"extra_fields": {"tenant_id": tenant_id, "error": str(exc)}},
            )
            raise ProcedureError(procedure, tenant_id, exc) from exc

        return rows
