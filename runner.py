import functools
import traceback
from typing import Any, Dict, Optional, Union

from sqlalchemy import Engine

from composer import compose
from data_models import DivisionMode, Strategy
from evaluator import results_equivalent
from exercises import get_exercise
from session import QuerySession
from utils import format_rows, measure_time


def handle_run_errors(fn):
    """
    Decorator for standardizing error responses from runner methods.
    Captures function name, exception details and the partial result.
    """
    @functools.wraps(fn)
    def wrapper(self, exercise_key, *args, **kwargs):
        try:
            return fn(self, exercise_key, *args, **kwargs)
        except Exception as e:
            fn_name = fn.__name__
            tb = traceback.format_exc()
            self.logger.error(f"[{fn_name}] Error: {e}\n{tb}")
            return {
                "exercise": exercise_key,
                "query_result": [],
                "query_result_str": "",
                "is_error": True,
                "error_type": type(e).__name__,
                "error_message": str(e),
                "traceback": tb,
            }
    return wrapper


class ExerciseRunner:

    def __init__(
            self,
            engine: Engine,
            max_rows: int,
            logger,
            division_mode: Union[DivisionMode, str] = DivisionMode.FLOAT,
            ) -> None:

        self.engine = engine
        self.max_rows = max_rows
        self.logger = logger
        self.division_mode = DivisionMode(division_mode)

    @measure_time
    @handle_run_errors
    def run(self, exercise_key, strategy: Optional[Union[Strategy, str]] = None) -> Dict[str, Any]:
        exercise = get_exercise(exercise_key)
        strategy = Strategy(strategy) if strategy else exercise.preferred
        self.logger.info(f"[run] Exercise {exercise.id} ({exercise.slug}) as {strategy.value}.")

        # A fresh session per run: temporary tables never outlive it.
        with QuerySession(self.engine, logger=self.logger) as session:
            composition = compose(
                exercise.steps,
                exercise.final,
                strategy,
                session=session,
                division_mode=self.division_mode,
            )
            rows = session.query(composition.statement)
        # Read after the block so the teardown DROPs are listed too.
        statements = list(session.history)

        return {
            "exercise": exercise.id,
            "question": exercise.question,
            "strategy": strategy.value,
            "statements": statements,
            "query_result": rows,
            "query_result_str": format_rows(rows, self.max_rows),
            "is_error": False,
            "error_type": None,
            "error_message": None,
            "traceback": None,
        }

    @measure_time
    def compare(self, exercise_key) -> Dict[str, Any]:
        """Run the exercise under all three strategies and check they agree."""
        results = {strategy.value: self.run(exercise_key, strategy) for strategy in Strategy}
        failed = [name for name, result in results.items() if result["is_error"]]
        if failed:
            equivalent = False
        else:
            rows = [result["query_result"] for result in results.values()]
            equivalent = all(results_equivalent(rows[0], other) for other in rows[1:])
        self.logger.debug(
            f"[compare] Exercise {exercise_key}: equivalent={equivalent}, failed={failed}"
        )
        return {
            "exercise": exercise_key,
            "equivalent": equivalent,
            "failed": failed,
            "results": results,
        }
