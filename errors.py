import re

from sqlalchemy.exc import DBAPIError


# Driver messages for a relation that is not there (sqlite, postgres, mysql).
_MISSING_RELATION = re.compile(
    r"no such table|does not exist|doesn't exist|unknown table", re.IGNORECASE
)
_EXISTING_RELATION = re.compile(r"already exists", re.IGNORECASE)


class CompositionError(Exception):
    """Base class for every error raised by the composition layer."""


class QueryReferenceError(CompositionError):
    """A name was referenced that is undefined, out of scope or expired."""


class SessionClosedError(QueryReferenceError):
    """The session scope already ended; its artifacts are gone."""


class NameConflictError(CompositionError):
    """A name is already bound in the statement or live in the session."""


class EngineError(CompositionError):
    """Any other error reported by the database engine, message kept verbatim."""


def translate_engine_error(exc: DBAPIError) -> CompositionError:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if _MISSING_RELATION.search(message):
        return QueryReferenceError(message)
    if _EXISTING_RELATION.search(message):
        return NameConflictError(message)
    return EngineError(message)
