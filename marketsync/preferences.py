"""
Preference storage.

A small persistent key/value table for user preferences (last opened
tab, session persistence choice). Cached data never goes here.
"""
import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger("preferences")

Base = declarative_base()

LAST_TAB = "last_tab"
PERSIST_SESSION = "persist_session"


class Preference(Base):
    """One preference, stored as JSON text."""
    __tablename__ = "preferences"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<Preference(key='{self.key}')>"


class PreferenceStore:
    """
    SQLAlchemy-backed preference table.

    Safe to construct repeatedly against the same database; the table is
    created if missing.
    """

    def __init__(self, database_url: str = "sqlite:///./marketsync_prefs.db"):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, connect_args=connect_args, echo=False)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        with self._session_factory() as session:
            row = session.get(Preference, key)
            if row is None:
                return default
            return json.loads(row.value)

    def set(self, key: str, value: Any) -> None:
        with self._session_factory() as session:
            row = session.get(Preference, key)
            if row is None:
                row = Preference(key=key)
                session.add(row)
            row.value = json.dumps(value)
            row.updated_at = datetime.utcnow()
            session.commit()
        logger.debug(f"Saved preference {key}")

    def remove(self, key: str) -> bool:
        """
        Remove a preference.

        Returns:
            True if it existed
        """
        with self._session_factory() as session:
            row = session.get(Preference, key)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def clear(self) -> int:
        with self._session_factory() as session:
            count = session.query(Preference).delete()
            session.commit()
        logger.info(f"Cleared {count} preferences")
        return count

    def close(self) -> None:
        self.engine.dispose()
