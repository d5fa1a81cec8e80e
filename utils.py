import json
import time
import functools
from typing import Any, Dict, Iterable, List

import sqlparse
from sqlalchemy import inspect, text
from sqlalchemy.exc import CompileError, DBAPIError
from sqlalchemy.schema import ExecutableDDLElement

from data_models import ColumnSummary, SchemaSummary, TableSummary
from errors import QueryReferenceError


def measure_time(fn):
    """
    Decorator to log execution time of session/runner methods using logger.debug().
    """
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        start = time.time()
        try:
            return fn(self, *args, **kwargs)
        finally:
            elapsed = time.time() - start
            self.logger.debug(f"[{fn.__name__}] executed in {elapsed:.3f} seconds.")
    return wrapper


def render_sql(statement, dialect=None, pretty: bool = True) -> str:
    """
    Compile a Core construct (or pass through a string) into the SQL the
    engine will see, with literal values inlined where they can be.
    """
    if isinstance(statement, str):
        sql = statement
    else:
        try:
            sql = str(statement.compile(dialect=dialect, compile_kwargs={"literal_binds": True}))
        except CompileError:
            sql = str(statement.compile(dialect=dialect))
    # sqlparse breaks CREATE TEMPORARY TABLE over lines; DDL stays on one line.
    if pretty and not isinstance(statement, ExecutableDDLElement):
        sql = sqlparse.format(sql, reindent=True, keyword_case="upper")
    return sql.strip()


def format_rows(rows: List[Dict[str, Any]], max_rows: int) -> str:
    truncated_rows = rows[:max_rows]
    formatted = json.dumps(truncated_rows, indent=2, default=str)
    if len(rows) > max_rows:
        formatted += f"\n... [truncated: showing first {max_rows} of {len(rows)} rows]"
    return formatted


def get_clean_examples(col_type, ex_values) -> List[Any]:
    """
    Try to coerce to int, float, or str, depending on SQL type.
    """
    base_type = str(col_type).lower()
    if "int" in base_type:
        convert = int
    elif any(t in base_type for t in ("float", "double", "real", "numeric", "decimal")):
        convert = float
    else:
        convert = str
    clean_values = []
    for v in ex_values:
        if v is None:
            continue
        try:
            clean_values.append(convert(v))
        except (TypeError, ValueError):
            continue
    return clean_values


def summarize_schema(engine, database="Database", sample_rows=3, notes=None, logger=None) -> SchemaSummary:
    inspector = inspect(engine)
    tables = []
    with engine.connect() as conn:
        for table_name in inspector.get_table_names():
            quoted = engine.dialect.identifier_preparer.quote(table_name)
            try:
                sample = conn.execute(
                    text(f"SELECT * FROM {quoted} LIMIT {int(sample_rows)}")
                ).mappings().all()
            except DBAPIError as e:
                if logger is not None:
                    logger.warning(f"[summarize_schema] No samples for {table_name}: {e}")
                conn.rollback()
                sample = []
            columns = [
                ColumnSummary(
                    name=col["name"],
                    data_type=str(col["type"]),
                    examples=get_clean_examples(col["type"], [row.get(col["name"]) for row in sample]),
                )
                for col in inspector.get_columns(table_name)
            ]
            tables.append(TableSummary(name=table_name, columns=columns))
    return SchemaSummary(database=database, tables=tables, notes=list(notes or []))


def check_schema(engine, required: Iterable[str]) -> None:
    """Raise QueryReferenceError naming every required table the database lacks."""
    present = {name.lower() for name in inspect(engine).get_table_names()}
    missing = [name for name in required if name.lower() not in present]
    if missing:
        raise QueryReferenceError(f"Missing tables: {', '.join(missing)}")
