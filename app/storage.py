import logging
import threading
from contextlib import contextmanager
from typing import Generator, Iterator, List

from sqlalchemy import create_engine, inspect, text, update
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.config import settings
from app.utils import hash_password, utc_timestamp

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # check_same_thread=False is required for SQLite to work with FastAPI's threadpool
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

TABLE_NAMES = ("contacts", "content", "page_views", "users")

DEFAULT_CONTENT = (
    ("hero", "title", "Softy Software"),
    ("hero", "subtitle", "Digital transformation for your business"),
    ("hero", "description", "We help companies adopt new technology and streamline their business processes"),
    ("about", "title", "About us"),
    ("about", "description", "Softy Software is a team of software engineers with more than ten years in the IT industry"),
    ("services", "title", "Our services"),
    ("services", "subtitle", "What we offer"),
)


class StoreError(Exception):
    """Raised when the record store fails; mapped to HTTP 500 by the API layer."""


def init_db() -> None:
    """
    Initialize the database by creating all tables and seeding first-run data.
    Called during application startup.
    """
    logger.debug("Initializing database")
    try:
        # Import models to register them with Base.metadata
        from app import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    with SessionLocal() as db:
        seed_db(db)


def seed_db(db: Session) -> None:
    """
    Insert the admin account and default content if they are missing.
    Safe to call on every startup.
    """
    from app.models import ContentEntry

    if settings.ADMIN_USERNAME and settings.ADMIN_PASSWORD:
        if get_user_by_username(db, settings.ADMIN_USERNAME) is None:
            create_user(db, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)
            logger.info(f"Seeded admin user: {settings.ADMIN_USERNAME}")

    if settings.SEED_CONTENT and db.query(ContentEntry).first() is None:
        now = utc_timestamp()
        for section, key, value in DEFAULT_CONTENT:
            db.add(ContentEntry(section=section, key=key, value=value, updated_at=now))
        db.commit()
        logger.info(f"Seeded {len(DEFAULT_CONTENT)} content entries")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and every table exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            existing = set(inspect(conn).get_table_names())
        missing = [name for name in TABLE_NAMES if name not in existing]
        if missing:
            logger.error(f"Database schema not applied, missing tables: {missing}")
            return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


@contextmanager
def _store_call(db: Session, operation: str) -> Iterator[None]:
    """Roll back and re-raise driver errors as StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store operation {operation} failed: {e}")
        raise StoreError(operation) from e


# =============================================================================
# Contact Repository Functions
# =============================================================================

def create_contact(db: Session, name: str, email: str, message: str):
    """
    Store a new contact form submission.

    Returns:
        The created ContactMessage (is_read=False, created_at=now)
    """
    from app.models import ContactMessage

    logger.info(f"Creating contact message from {email}")

    with _store_call(db, "create_contact"):
        contact = ContactMessage(
            name=name,
            email=email,
            message=message,
            is_read=False,
            created_at=utc_timestamp(),
        )
        db.add(contact)
        db.commit()
        db.refresh(contact)

    logger.info(f"Contact message created: id={contact.id}")
    return contact


def get_contacts(db: Session) -> List:
    """All contact messages, newest first."""
    from app.models import ContactMessage

    with _store_call(db, "get_contacts"):
        contacts = (
            db.query(ContactMessage)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .all()
        )
    logger.debug(f"Retrieved {len(contacts)} contact messages")
    return contacts


def get_contact_by_id(db: Session, contact_id: int):
    from app.models import ContactMessage

    with _store_call(db, "get_contact_by_id"):
        return db.get(ContactMessage, contact_id)


def mark_contact_read(db: Session, contact_id: int):
    """
    Flag a contact message as read. Marking an already-read message is a no-op.

    Returns:
        The updated ContactMessage, or None if no such message exists
    """
    contact = get_contact_by_id(db, contact_id)
    if contact is None:
        logger.info(f"Contact not found: id={contact_id}")
        return None

    if not contact.is_read:
        with _store_call(db, "mark_contact_read"):
            contact.is_read = True
            db.commit()
            db.refresh(contact)
        logger.info(f"Contact marked as read: id={contact_id}")

    return contact


def delete_contact(db: Session, contact_id: int) -> bool:
    """
    Permanently remove a contact message.

    Returns:
        True if a message was deleted, False if it did not exist
    """
    contact = get_contact_by_id(db, contact_id)
    if contact is None:
        logger.info(f"Contact not found: id={contact_id}")
        return False

    with _store_call(db, "delete_contact"):
        db.delete(contact)
        db.commit()

    logger.info(f"Contact deleted: id={contact_id}")
    return True


# =============================================================================
# Content Repository Functions
# =============================================================================

def get_content(db: Session) -> List:
    """All content entries ordered by section, then key."""
    from app.models import ContentEntry

    with _store_call(db, "get_content"):
        return (
            db.query(ContentEntry)
            .order_by(ContentEntry.section.asc(), ContentEntry.key.asc())
            .all()
        )


def update_content(db: Session, content_id: int, value: str):
    """
    Overwrite the value of a content entry and refresh updated_at.

    Returns:
        The updated ContentEntry, or None if no such entry exists
    """
    from app.models import ContentEntry

    with _store_call(db, "update_content"):
        entry = db.get(ContentEntry, content_id)
        if entry is None:
            logger.info(f"Content entry not found: id={content_id}")
            return None

        entry.value = value
        entry.updated_at = utc_timestamp()
        db.commit()
        db.refresh(entry)

    logger.info(f"Content updated: {entry.section}.{entry.key}")
    return entry


# =============================================================================
# Page View Repository Functions
# =============================================================================

# path -> [lock, number of callers holding or waiting on it]
_path_locks: dict = {}
_path_locks_guard = threading.Lock()


@contextmanager
def _path_lock(path: str) -> Iterator[None]:
    """
    Serialize page view writes for one path within this process.

    Entries live only while some caller holds or waits on them, so the
    table stays bounded by the number of in-flight requests.
    """
    with _path_locks_guard:
        entry = _path_locks.setdefault(path, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _path_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _path_locks[path]


def _increment_existing(db: Session, path: str):
    from app.models import PageViewCounter

    result = db.execute(
        update(PageViewCounter)
        .where(PageViewCounter.path == path)
        .values(count=PageViewCounter.count + 1, updated_at=utc_timestamp())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        return None
    db.commit()
    return db.query(PageViewCounter).filter(PageViewCounter.path == path).one()


def record_page_view(db: Session, path: str):
    """
    Count one view of path.

    The increment is a single UPDATE ... SET count = count + 1, so concurrent
    writers (even across processes) never lose an update. The first view of
    a path inserts count=1; if another writer inserted the row first, the
    unique constraint on path fires and we fall back to the increment.

    Returns:
        The PageViewCounter after the increment
    """
    from app.models import PageViewCounter

    with _path_lock(path), _store_call(db, "record_page_view"):
        counter = _increment_existing(db, path)
        if counter is not None:
            logger.debug(f"Page view incremented: {path} -> {counter.count}")
            return counter

        try:
            counter = PageViewCounter(path=path, count=1, updated_at=utc_timestamp())
            db.add(counter)
            db.commit()
            db.refresh(counter)
            logger.info(f"Page view counter created: {path}")
            return counter
        except IntegrityError:
            db.rollback()
            logger.info(f"Page view counter for {path} created concurrently, incrementing")

        counter = _increment_existing(db, path)
        if counter is None:
            raise StoreError("record_page_view")
        return counter


def get_page_views(db: Session) -> List:
    """All page view counters, most viewed first."""
    from app.models import PageViewCounter

    with _store_call(db, "get_page_views"):
        return (
            db.query(PageViewCounter)
            .order_by(PageViewCounter.count.desc(), PageViewCounter.path.asc())
            .all()
        )


# =============================================================================
# User Repository Functions
# =============================================================================

def get_user_by_username(db: Session, username: str):
    """Case-sensitive exact lookup."""
    from app.models import UserAccount

    with _store_call(db, "get_user_by_username"):
        return db.query(UserAccount).filter(UserAccount.username == username).first()


def create_user(db: Session, username: str, password: str):
    """
    Create an admin account. Only used for seeding; the HTTP API never
    creates users.

    Raises:
        StoreError: username already taken or store failure
    """
    from app.models import UserAccount

    with _store_call(db, "create_user"):
        user = UserAccount(
            username=username,
            password=hash_password(password),
            created_at=utc_timestamp(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    return user

