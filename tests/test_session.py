import pytest
from sqlalchemy import func, insert, select

from errors import (
    EngineError,
    NameConflictError,
    QueryReferenceError,
    SessionClosedError,
)
from schema import Genre, Track
from session import CreateTemporaryTableAs, DropTemporaryTable, QuerySession


def _rock_tracks():
    return (
        select(Track.c.TrackId, Track.c.Milliseconds)
        .select_from(Track.join(Genre, Track.c.GenreId == Genre.c.GenreId))
        .where(Genre.c.Name == "Rock")
    )


def test_materialized_rows_are_a_snapshot(engine, store):
    with QuerySession(engine) as session:
        session.materialize("RockTracks", _rock_tracks())
        first_read = session.query_materialized("RockTracks")

        session.connection.execute(
            insert(Track).values(TrackId=99, GenreId=1, Milliseconds=1000)
        )
        session.connection.commit()

        second_read = session.query_materialized("RockTracks")
        live = session.query(_rock_tracks())

    assert len(first_read) == 3
    assert second_read == first_read
    assert len(live) == 4


def test_follow_up_queries_read_the_same_artifact(engine, store):
    with QuerySession(engine) as session:
        session.materialize("RockTracks", _rock_tracks())
        count = session.query_materialized(
            "RockTracks", lambda t: select(func.count().label("Tracks")).select_from(t)
        )
        longest = session.query_materialized(
            "RockTracks", lambda t: select(func.max(t.c.Milliseconds).label("Longest"))
        )

    assert count == [{"Tracks": 3}]
    assert longest == [{"Longest": 400000}]


def test_duplicate_artifact_name_keeps_the_first(engine, store):
    with QuerySession(engine) as session:
        session.materialize("Picked", _rock_tracks())
        before = session.query_materialized("Picked")

        with pytest.raises(NameConflictError):
            session.materialize("Picked", select(Track.c.TrackId))
        with pytest.raises(NameConflictError):
            session.materialize("PICKED", select(Track.c.TrackId))

        assert session.artifacts == ["Picked"]
        assert session.query_materialized("Picked") == before


def test_artifact_expires_with_its_session(engine, store):
    with QuerySession(engine) as session:
        artifact = session.materialize("RockTracks", _rock_tracks())

    assert session.closed
    with pytest.raises(SessionClosedError):
        session.query_materialized("RockTracks")
    with pytest.raises(QueryReferenceError):
        session.table("RockTracks")

    with QuerySession(engine) as other:
        with pytest.raises(QueryReferenceError):
            other.query(select(artifact.table))
        with pytest.raises(QueryReferenceError):
            other.query_materialized("RockTracks")


def test_artifacts_are_dropped_when_the_block_raises(engine, store):
    with pytest.raises(RuntimeError):
        with QuerySession(engine) as session:
            artifact = session.materialize("RockTracks", _rock_tracks())
            raise RuntimeError("boom")

    assert session.closed
    assert session.artifacts == []
    with QuerySession(engine) as other:
        with pytest.raises(QueryReferenceError):
            other.query(select(artifact.table))


def test_early_drop(engine, store):
    with QuerySession(engine) as session:
        artifact = session.materialize("RockTracks", _rock_tracks())
        session.drop("RockTracks")

        assert session.artifacts == []
        with pytest.raises(QueryReferenceError):
            session.query_materialized("RockTracks")
        with pytest.raises(QueryReferenceError):
            session.query(select(artifact.table))

        # The name is free again.
        session.materialize("RockTracks", _rock_tracks())
        assert len(session.query_materialized("RockTracks")) == 3


def test_materialize_from_plain_sql(engine, store):
    with QuerySession(engine) as session:
        artifact = session.materialize(
            "PricyTracks", 'SELECT "TrackId", "UnitPrice" FROM "Track" WHERE "UnitPrice" > 1'
        )
        rows = session.query_materialized("PricyTracks")

    assert [c.name for c in artifact.table.c] == ["TrackId", "UnitPrice"]
    assert [row["TrackId"] for row in rows] == [6]


def test_engine_errors_surface_and_session_stays_usable(engine, store):
    with QuerySession(engine) as session:
        with pytest.raises(EngineError) as excinfo:
            session.query("SELEC nothing")
        assert "syntax error" in str(excinfo.value)
        assert excinfo.value.__cause__ is not None

        assert session.query(select(func.count().label("Tracks")).select_from(Track)) == [{"Tracks": 6}]


def test_failed_materialization_registers_nothing(engine, store):
    with QuerySession(engine) as session:
        with pytest.raises(QueryReferenceError):
            session.materialize("Broken", 'SELECT * FROM "NoSuchTable"')
        assert session.artifacts == []


def test_invalid_artifact_name(engine):
    with QuerySession(engine) as session:
        with pytest.raises(ValueError):
            session.materialize("Rock Tracks", select(Track.c.TrackId))


def test_closed_session_cannot_reopen(engine):
    session = QuerySession(engine)
    session.close()

    with pytest.raises(SessionClosedError):
        session.query(select(Track.c.TrackId))
    with pytest.raises(SessionClosedError):
        session.open()


def test_history_records_every_statement(engine, store):
    with QuerySession(engine) as session:
        session.materialize("RockTracks", _rock_tracks())
        session.query_materialized("RockTracks")

    assert session.history[0].startswith('CREATE TEMPORARY TABLE "RockTracks" AS')
    assert "'Rock'" in session.history[0]
    assert session.history[1].startswith("SELECT")
    assert session.history[-1].startswith("DROP TABLE")


def test_ddl_compiles_per_dialect():
    from sqlalchemy.dialects import mysql, sqlite

    create = CreateTemporaryTableAs("Totals", select(Track.c.TrackId).where(Track.c.GenreId == 1))
    assert str(create.compile(dialect=sqlite.dialect())).startswith('CREATE TEMPORARY TABLE "Totals" AS SELECT')
    assert "= 1" in str(create.compile(dialect=sqlite.dialect()))

    assert str(DropTemporaryTable("Totals").compile(dialect=sqlite.dialect())) == 'DROP TABLE IF EXISTS "Totals"'
    assert str(DropTemporaryTable("Totals").compile(dialect=mysql.dialect())) == (
        "DROP TEMPORARY TABLE IF EXISTS `Totals`"
    )
