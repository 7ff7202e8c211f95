import os, logging
from contextlib import contextmanager
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlmodel import SQLModel, create_engine, Session
from billsplit.errors import Conflict, SplitError, StoreUnavailable

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DB_FILE = os.path.join(BASE_DIR, "db.sqlite")
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DB_FILE}")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

log = logging.getLogger(__name__)


def init_db(bind=None):
    # Import models so SQLModel.metadata includes them
    import billsplit.models.user, billsplit.models.split, billsplit.models.item, billsplit.models.payment
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def store_call(session: Session, what: str):
    """Roll back on any failure; driver errors become StoreUnavailable."""
    try:
        yield
    except SplitError:
        session.rollback()
        raise
    except IntegrityError as e:
        # a concurrent writer got there first (unique key or vanished row)
        log.warning("conflicting write during %s: %s", what, e.orig)
        session.rollback()
        raise Conflict(f"conflicting write during {what}, re-read and retry") from e
    except DBAPIError as e:
        log.exception("store failure during %s", what)
        session.rollback()
        raise StoreUnavailable(f"store unavailable during {what}") from e


def execute_write(session: Session, stmt) -> int:
    """Run a Core UPDATE/DELETE inside the session's transaction, return matched rows."""
    return session.connection().execute(stmt).rowcount
