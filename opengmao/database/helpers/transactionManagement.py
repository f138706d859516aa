"""
Database Transaction Management
===============================

Manages SQLAlchemy sessions through a context variable and a decorator-based
transaction wrapper. Service functions decorated with ``@transactional``
receive a ``session`` keyword argument; nested decorated calls reuse the
session of the outermost call so a whole operation commits or rolls back as
one unit.
"""

from functools import wraps
from sqlalchemy.orm import sessionmaker
import contextvars
from opengmao.database.config import connection_engine as engine_module

db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy session."""


def get_engine():
    """Return the engine sessions are bound to (swapped by the test suite)."""
    return engine_module.connection_engine


def transactional(func):
    """
    Decorator to wrap functions in a managed SQLAlchemy transaction.

    - If a session already exists in context, it is reused.
    - Otherwise a new session is created, committed, and closed.
    - On errors, the session is rolled back and the error propagates.

    Parameters
    ----------
    func : callable
        The function to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    callable
        The wrapped function, executed within a database transaction.
    """
    @wraps(func)
    def wrap_func(*args, **kwargs):
        session = db_session_context.get()
        if session:
            return func(*args, session=session, **kwargs)

        session = sessionmaker(bind=get_engine(), expire_on_commit=False)()
        token = db_session_context.set(session)

        try:
            result = func(*args, session=session, **kwargs)
            session.flush()
            session.commit()
        except Exception as e:
            session.rollback()
            raise e
        finally:
            session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
