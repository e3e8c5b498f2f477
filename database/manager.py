# database/manager.py

from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy import create_engine, Column, inspect

from .models import tables, PROGRESS_TABLE
from config import DB_PATH
from storage import Checkpoint
from utils.errors import CheckpointError
from utils.log import logger


Base = declarative_base()


def create_model(table_name: str, columns: dict) -> type:
    attrs = {"__tablename__": table_name, "__table_args__": {"extend_existing": True}}
    for name, options in columns.items():
        col_type = options["type"]
        col_kwargs = options.get("kwargs", {})
        attrs[name] = Column(col_type, **col_kwargs)
    return type(table_name.capitalize(), (Base,), attrs)


MODELS = {name: create_model(name, columns) for name, columns in tables.items()}


def handle_db_errors(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self.Session() as session:
            try:
                return fn(self, session, *args, **kwargs)
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"[DB][{fn.__name__}] Error: {e}")
                raise CheckpointError(f"[DB][{fn.__name__}] {e}") from e

    return wrapper


class SqlProgressStore:
    """Checkpoints in a sqlite `progress` table, one row per contract."""

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.db_path.as_posix()}", echo=False, future=True)
        self.Session = sessionmaker(bind=self.engine)
        self.model = MODELS[PROGRESS_TABLE]
        self._create_missing_tables()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.engine.dispose()

    def _create_missing_tables(self) -> None:
        inspector = inspect(self.engine)
        if not inspector.has_table(PROGRESS_TABLE):
            Base.metadata.create_all(self.engine, tables=[self.model.__table__])

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=64),
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    def _safe_commit(self, session) -> None:
        session.commit()

    @handle_db_errors
    def load(self, session, contract: str) -> Optional[Checkpoint]:
        row = session.get(self.model, contract.lower())
        if row is None:
            logger.info(f"[DB] No previous progress for {contract}")
            return None
        return Checkpoint.from_addresses(
            row.addresses or [], row.last_processed_page, row.last_processed_block
        )

    @handle_db_errors
    def save(self, session, contract: str, checkpoint: Checkpoint) -> str:
        key = contract.lower()
        values = {
            "total_buyers": checkpoint.total_buyers,
            "addresses": list(checkpoint.addresses),
            "last_processed_page": checkpoint.last_processed_page,
            "last_processed_block": checkpoint.last_processed_block,
            "updated_at": datetime.now(timezone.utc).replace(tzinfo=None),
        }
        row = session.get(self.model, key)
        if row is None:
            session.add(self.model(contract=key, **values))
            status = "created"
        else:
            for k, v in values.items():
                setattr(row, k, v)
            status = "updated"
        self._safe_commit(session)
        logger.info(
            f"[DB] Saved {checkpoint.total_buyers} unique buyer addresses for {key} "
            f"(page {checkpoint.last_processed_page}, block {checkpoint.last_processed_block})"
        )
        return status

    @handle_db_errors
    def delete(self, session, contract: str) -> int:
        count = (
            session.query(self.model)
            .filter_by(contract=contract.lower())
            .delete(synchronize_session=False)
        )
        self._safe_commit(session)
        return count
