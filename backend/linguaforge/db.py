from __future__ import annotations
import logging
from datetime import datetime, timezone
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./app.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
	# Stored timestamps are naive UTC so SQLite round-trips compare cleanly
	return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


def _literal(value) -> str:
	if isinstance(value, bool):
		return "1" if value else "0"
	if isinstance(value, (int, float)):
		return str(value)
	return "'" + str(value).replace("'", "''") + "'"


def _add_column_ddl(table, column, dialect) -> str:
	quote = dialect.identifier_preparer.quote
	ddl = f"ALTER TABLE {quote(table.name)} ADD COLUMN {quote(column.name)} {column.type.compile(dialect=dialect)}"
	default = column.default
	if default is not None and default.is_scalar:
		ddl += f" DEFAULT {_literal(default.arg)}"
		if not column.nullable:
			ddl += " NOT NULL"
	return ddl


# Best-effort lightweight migrations for development (SQLite-friendly).
# Columns added to a model after its table was created are appended to the
# existing table; scalar defaults backfill old rows, callable defaults only
# apply to new writes so those columns are added nullable.
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except SQLAlchemyError:
		logger.warning("Could not inspect database schema", exc_info=True)
		return
	for table in Base.metadata.sorted_tables:
		if table.name not in tables:
			continue
		existing = {c["name"] for c in inspector.get_columns(table.name)}
		missing = [c for c in table.columns if c.name not in existing and not c.primary_key]
		if not missing:
			continue
		with bind.begin() as conn:
			for column in missing:
				conn.exec_driver_sql(_add_column_ddl(table, column, bind.dialect))
				logger.info("Added column %s.%s", table.name, column.name)
