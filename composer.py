"""Three ways of feeding an intermediate result into a query.

``compose_inline`` embeds it as an unnamed subquery, ``compose_named`` binds
it as a CTE for one statement, and ``compose_materialized`` stores it as a
temporary table for the rest of the session. :func:`compose` runs a whole
multi-step question under any one of them.
"""

from collections.abc import Mapping
from typing import Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Float, Integer, Select, cast, func
from sqlalchemy.sql.expression import TableClause

from data_models import (
    DivisionMode,
    Inline,
    IntermediateResult,
    Materialized,
    Named,
    Step,
    Strategy,
)
from errors import CompositionError, NameConflictError, QueryReferenceError


class Bindings(Mapping):
    """Intermediates visible to the step being built, in definition order."""

    def __init__(self, division_mode: DivisionMode = DivisionMode.FLOAT) -> None:
        self.division_mode = DivisionMode(division_mode)
        self._results: Dict[str, IntermediateResult] = {}

    def __getitem__(self, name: str) -> IntermediateResult:
        try:
            return self._results[name]
        except KeyError:
            raise QueryReferenceError(
                f"'{name}' is not bound at this point of the statement"
            ) from None

    def __contains__(self, name) -> bool:
        return name in self._results

    def __iter__(self):
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def bind(self, result: IntermediateResult) -> IntermediateResult:
        if result.name in self._results:
            raise NameConflictError(f"'{result.name}' is already bound in this statement")
        self._results[result.name] = result
        return result

    def ratio(self, numerator, denominator, mode: Optional[DivisionMode] = None):
        """
        numerator / denominator, truncating or not depending on the division mode.
        A zero denominator yields NULL on every engine.
        """
        denominator = func.nullif(denominator, 0)
        mode = DivisionMode(mode or self.division_mode)
        if mode is DivisionMode.INTEGER:
            # Integer operands compile to the engine's truncating division.
            return cast(numerator, Integer) // cast(denominator, Integer)
        return cast(numerator, Float) / denominator


class Composition(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    strategy: Strategy
    statement: Select
    intermediates: List[Union[Inline, Named, Materialized]]
    # Temporary-table DDL issued while composing, in order.
    preparation: List[str] = []


def select_strategy(
        uses_per_statement: int,
        reused_across_statements: bool = False,
        expensive: bool = False,
        ) -> Strategy:
    if reused_across_statements or expensive:
        return Strategy.MATERIALIZED
    if uses_per_statement > 1:
        return Strategy.NAMED
    return Strategy.INLINE


def compose_inline(
        main: Callable[[Inline], Select],
        subexpression: Select,
        name: Optional[str] = None,
        ) -> Select:
    return main(Inline(definition=subexpression, name=name))


def compose_named(name: str, definition: Select, main: Callable[[Named], Select]) -> Select:
    named = Named(name=name, definition=definition)
    statement = main(named)
    named.seal()
    return statement


def compose_materialized(session, name: str, definition: Union[Select, str]) -> Materialized:
    return session.materialize(name, definition)


def query_materialized(session, name: str, follow_up: Callable[[TableClause], Select]) -> List[dict]:
    return session.query_materialized(name, follow_up)


def compose(
        steps: Sequence[Step],
        final: Callable[[Bindings], Select],
        strategy: Strategy,
        session=None,
        division_mode: DivisionMode = DivisionMode.FLOAT,
        ) -> Composition:
    """
    Build every step in order, wrapping each one according to ``strategy``,
    then build the final statement from the resulting bindings.
    The materialized strategy creates its tables through ``session``.
    """
    strategy = Strategy(strategy)
    if strategy is Strategy.MATERIALIZED and session is None:
        raise CompositionError("materialized composition needs an open QuerySession")

    bindings = Bindings(division_mode)
    preparation = []
    for step in steps:
        if step.name in bindings:
            raise NameConflictError(f"'{step.name}' is already bound in this statement")
        # Builders only see bindings made before them, so no forward references.
        definition = step.build(bindings)
        if strategy is Strategy.INLINE:
            bindings.bind(Inline(name=step.name, definition=definition))
        elif strategy is Strategy.NAMED:
            bindings.bind(Named(name=step.name, definition=definition))
        else:
            bindings.bind(session.materialize(step.name, definition))
            preparation.append(session.history[-1])

    statement = final(bindings)
    # Named bindings are scoped to this one statement.
    for result in bindings.values():
        if isinstance(result, Named):
            result.seal()

    return Composition(
        strategy=strategy,
        statement=statement,
        intermediates=list(bindings.values()),
        preparation=preparation,
    )
