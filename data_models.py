import re
from enum import Enum
from typing import Annotated, Any, Callable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from sqlalchemy import Select, func, select
from sqlalchemy.sql.expression import CTE, TableClause

from errors import CompositionError, QueryReferenceError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ColumnSummary(BaseModel):
    name: str
    data_type: str
    examples: List[Any] = []


class TableSummary(BaseModel):
    name: str
    columns: List[ColumnSummary]


class SchemaSummary(BaseModel):
    """Tables, column types and sample values of the connected database."""
    database: str
    tables: List[TableSummary]
    notes: List[str] = []

    def table(self, name: str) -> TableSummary:
        return next(t for t in self.tables if t.name.lower() == name.lower())

    def as_text(self) -> str:
        lines = []
        for table in self.tables:
            lines.append(table.name)
            for column in table.columns:
                sample = f"  e.g. {', '.join(map(str, column.examples))}" if column.examples else ""
                lines.append(f"  {column.name} {column.data_type}{sample}")
            lines.append("")
        if self.notes:
            lines.append("Notes:")
            lines.extend(f"- {note}" for note in self.notes)
        return "\n".join(lines)


class Strategy(str, Enum):
    INLINE = "inline"
    NAMED = "named"
    MATERIALIZED = "materialized"


class DivisionMode(str, Enum):
    FLOAT = "float"
    INTEGER = "integer"


def check_identifier(name: Optional[str]) -> Optional[str]:
    if name is not None and not _IDENTIFIER.match(name):
        raise ValueError(f"'{name}' is not a valid SQL identifier")
    return name


class _Intermediate(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("name", check_fields=False)
    @classmethod
    def check_name(cls, value):
        return check_identifier(value)

    def relation(self):
        raise NotImplementedError

    def scalar(self):
        """Single-row, single-column result usable as a value expression."""
        rel = self.relation()
        if len(rel.c) != 1:
            raise CompositionError(
                f"{self.kind} result has {len(rel.c)} columns; a scalar needs exactly one"
            )
        return select(*rel.c).correlate(None).scalar_subquery()

    def values(self, column: Optional[str] = None):
        """Column of the result as a set for IN predicates."""
        rel = self.relation()
        return select(rel.c[column] if column else rel.c[0]).correlate(None)

    def row_count(self):
        return select(func.count()).select_from(self.relation()).correlate(None).scalar_subquery()


class Inline(_Intermediate):
    kind: Literal["inline"] = "inline"
    definition: Select
    name: Optional[str] = None

    def relation(self):
        # A fresh alias per reference site: each one is evaluated on its own.
        return self.definition.subquery(self.name)

    def scalar(self):
        if len(self.definition.selected_columns) != 1:
            raise CompositionError("inline scalar subquery must select exactly one column")
        # Self-contained: never correlate to tables of the enclosing query.
        return self.definition.correlate(None).scalar_subquery()


class Named(_Intermediate):
    kind: Literal["named"] = "named"
    name: str
    definition: Select
    _cte: Optional[CTE] = PrivateAttr(default=None)
    _sealed: bool = PrivateAttr(default=False)

    def relation(self) -> CTE:
        if self._sealed:
            raise QueryReferenceError(
                f"'{self.name}' is only visible in the statement that defined it"
            )
        # Every reference must share one CTE object, otherwise the compiler
        # sees two unrelated CTEs with the same name.
        if self._cte is None:
            self._cte = self.definition.cte(self.name)
        return self._cte

    def seal(self) -> None:
        """Close the binding once its statement is built."""
        self._sealed = True


class Materialized(_Intermediate):
    kind: Literal["materialized"] = "materialized"
    name: str
    definition: Union[Select, str]
    table: TableClause

    def relation(self) -> TableClause:
        return self.table


IntermediateResult = Annotated[Union[Inline, Named, Materialized], Field(discriminator="kind")]


class Step(BaseModel):
    """One named intermediate of a multi-step question."""
    name: str
    build: Callable[..., Select]

    @field_validator("name")
    @classmethod
    def check_name(cls, value):
        return check_identifier(value)


class Exercise(BaseModel):
    id: int
    slug: str
    question: str
    steps: List[Step]
    final: Callable[..., Select]
    preferred: Strategy
    notes: Optional[str] = None
