import sys
import streamlit as st
import pandas as pd
from loguru import logger
from sqlalchemy import create_engine

import config
from data_models import Strategy
from db_knowledge import chinook_notes, strategy_notes
from errors import CompositionError
from exercises import EXERCISES, get_exercise
from runner import ExerciseRunner
from schema import REQUIRED_TABLES
from utils import check_schema, summarize_schema

# --- Streamlit & App Title ---
st.set_page_config(page_title="Breaking Down Complex Queries", page_icon=":cd:")
st.title("Breaking Down Complex Queries")

logger.remove()
logger.add(sys.stderr, level=config.LOG_LEVEL)

# --- Build SQLAlchemy engine and check the Chinook tables ---
try:
    engine = create_engine(config.DB_URI)
    check_schema(engine, REQUIRED_TABLES)
    schema = summarize_schema(
        engine, database=config.DB_LABEL, notes=chinook_notes, logger=logger
    )
except CompositionError as e:
    st.error(f"Database is not a Chinook database: {e}")
    st.stop()
except Exception as e:
    st.error(f"Database connection failed: {e}")
    st.stop()

runner = ExerciseRunner(
    engine=engine,
    max_rows=config.MAX_ROWS,
    logger=logger,
    division_mode=config.DIVISION_MODE,
)

# --- Sidebar: schema ---
with st.sidebar:
    st.subheader(schema.database)
    st.text(schema.as_text())

# --- Exercise picker ---
labels = {exercise.id: f"{exercise.id}. {exercise.question}" for exercise in EXERCISES}
exercise_id = st.selectbox("Exercise", options=list(labels), format_func=labels.get)
exercise = get_exercise(exercise_id)
if exercise.notes:
    st.caption(exercise.notes)

strategies = [strategy.value for strategy in Strategy]
strategy = st.radio(
    "Composition strategy",
    options=strategies,
    index=strategies.index(exercise.preferred.value),
    horizontal=True,
    key=f"strategy_{exercise.id}",
)
st.caption(strategy_notes[strategy])

# --- Run ---
if st.button("Run"):
    result = runner.run(exercise.id, strategy)
    if result["is_error"]:
        st.error(f"{result['error_type']}: {result['error_message']}")
    else:
        for statement in result["statements"]:
            st.code(statement, language="sql")
        st.dataframe(pd.DataFrame(result["query_result"][:config.MAX_ROWS]))
        if len(result["query_result"]) > config.MAX_ROWS:
            st.caption(f"Showing first {config.MAX_ROWS} of {len(result['query_result'])} rows.")

if st.button("Compare strategies"):
    comparison = runner.compare(exercise.id)
    if comparison["failed"]:
        st.error(f"Failed strategies: {', '.join(comparison['failed'])}")
    elif comparison["equivalent"]:
        st.success("All three strategies return the same rows.")
    else:
        st.warning("The strategies disagree.")
    for name, result in comparison["results"].items():
        with st.expander(f"{name} ({len(result['query_result'])} rows)"):
            for statement in result.get("statements", []):
                st.code(statement, language="sql")
            st.dataframe(pd.DataFrame(result["query_result"][:config.MAX_ROWS]))
