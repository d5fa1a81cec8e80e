"""Session-scoped temporary tables on a single SQLAlchemy connection.

A :class:`QuerySession` owns one connection and the namespace of temporary
tables created on it. Leaving the ``with`` block drops every live table and
releases the connection, whether or not the block raised.
"""

from typing import Callable, Dict, List, Optional, Union

from loguru import logger as default_logger
from sqlalchemy import Engine, Select, column, table, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.schema import ExecutableDDLElement
from sqlalchemy.sql.expression import TableClause

from data_models import Materialized, check_identifier
from errors import (
    CompositionError,
    NameConflictError,
    QueryReferenceError,
    SessionClosedError,
    translate_engine_error,
)
from utils import measure_time, render_sql


class CreateTemporaryTableAs(ExecutableDDLElement):
    inherit_cache = False

    def __init__(self, name: str, selectable: Union[Select, str]):
        self.name = name
        self.selectable = selectable


class DropTemporaryTable(ExecutableDDLElement):
    inherit_cache = False

    def __init__(self, name: str):
        self.name = name


@compiles(CreateTemporaryTableAs)
def _create_temporary_table_as(element, compiler, **kw):
    body = text(element.selectable) if isinstance(element.selectable, str) else element.selectable
    return "CREATE TEMPORARY TABLE %s AS %s" % (
        compiler.preparer.quote(element.name),
        compiler.sql_compiler.process(body, literal_binds=True),
    )


@compiles(DropTemporaryTable)
def _drop_temporary_table(element, compiler, **kw):
    return "DROP TABLE IF EXISTS %s" % compiler.preparer.quote(element.name)


@compiles(DropTemporaryTable, "mysql")
def _drop_temporary_table_mysql(element, compiler, **kw):
    return "DROP TEMPORARY TABLE IF EXISTS %s" % compiler.preparer.quote(element.name)


class QuerySession:

    def __init__(self, engine: Engine, logger=default_logger) -> None:
        self.engine = engine
        self.logger = logger
        self.history: List[str] = []
        self._conn = None
        self._closed = False
        self._artifacts: Dict[str, Materialized] = {}

    def __enter__(self) -> "QuerySession":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connection(self):
        return self._require_open()

    @property
    def artifacts(self) -> List[str]:
        return [artifact.name for artifact in self._artifacts.values()]

    def open(self) -> "QuerySession":
        self._require_open()
        return self

    def _require_open(self):
        if self._closed:
            raise SessionClosedError("Session has ended; its temporary tables have expired.")
        if self._conn is None:
            self._conn = self.engine.connect()
            self.logger.debug("[open] Session connection acquired.")
        return self._conn

    def render(self, statement) -> str:
        return render_sql(statement, self.engine.dialect)

    def _run(self, fn_name: str, statement):
        conn = self._require_open()
        self.history.append(self.render(statement))
        try:
            return conn.execute(statement)
        except DBAPIError as e:
            # Leave the connection usable (postgres aborts the whole transaction).
            conn.rollback()
            error = translate_engine_error(e)
            self.logger.error(f"[{fn_name}] {type(error).__name__}: {error}")
            raise error from e

    @measure_time
    def query(self, statement: Union[Select, str]) -> List[dict]:
        """Execute a read and return its rows as dicts."""
        stmt = text(statement) if isinstance(statement, str) else statement
        rows = [dict(row._mapping) for row in self._run("query", stmt)]
        self.logger.debug(f"[query] Retrieved {len(rows)} rows.")
        return rows

    @measure_time
    def materialize(self, name: str, definition: Union[Select, str]) -> Materialized:
        """Run ``definition`` once and keep its rows as temporary table ``name``."""
        check_identifier(name)
        conn = self._require_open()
        if name.lower() in self._artifacts:
            self.logger.warning(f"[materialize] '{name}' is already live in this session.")
            raise NameConflictError(f"Temporary table '{name}' already exists in this session")

        self._run("materialize", CreateTemporaryTableAs(name, definition))
        conn.commit()
        quoted = self.engine.dialect.identifier_preparer.quote(name)
        keys = conn.execute(text(f"SELECT * FROM {quoted} WHERE 1 = 0")).keys()

        artifact = Materialized(
            name=name,
            definition=definition,
            table=table(name, *[column(key) for key in keys]),
        )
        self._artifacts[name.lower()] = artifact
        self.logger.debug(f"[materialize] Created temporary table {name} ({', '.join(keys)}).")
        return artifact

    def artifact(self, name: str) -> Materialized:
        if self._closed:
            raise SessionClosedError(f"Temporary table '{name}' expired with its session")
        try:
            return self._artifacts[name.lower()]
        except KeyError:
            raise QueryReferenceError(f"No temporary table '{name}' in this session") from None

    def table(self, name: str) -> TableClause:
        return self.artifact(name).table

    def query_materialized(
            self,
            name: str,
            follow_up: Optional[Callable[[TableClause], Select]] = None,
            ) -> List[dict]:
        """Query a live temporary table; ``follow_up`` builds the statement from it."""
        artifact = self.artifact(name)
        if follow_up is None:
            return self.query(artifact.table.select())
        return self.query(follow_up(artifact.table))

    @measure_time
    def drop(self, name: str) -> None:
        artifact = self.artifact(name)
        self._run("drop", DropTemporaryTable(artifact.name))
        self._conn.commit()
        del self._artifacts[name.lower()]
        self.logger.debug(f"[drop] Dropped temporary table {artifact.name}.")

    def close(self) -> None:
        if self._closed:
            return
        if self._conn is not None:
            for name in list(self._artifacts):
                try:
                    self.drop(name)
                except CompositionError as e:
                    self.logger.warning(f"[close] Could not drop {name}: {e}")
            self._conn.close()
            self.logger.debug("[close] Session connection released.")
        self._artifacts.clear()
        self._conn = None
        self._closed = True
