from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./spark.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Columns added after the first release; (table, column, DDL type)
_ADDED_COLUMNS = (
	("auth_users", "email", "VARCHAR(256)"),
	("auth_users", "phone", "VARCHAR(32)"),
	("auth_users", "requests_used", "INTEGER DEFAULT 0 NOT NULL"),
	("auth_users", "requests_limit", "INTEGER DEFAULT 1000 NOT NULL"),
	("projects", "input_source", "TEXT"),
	("projects", "completed_at", "DATETIME"),
)


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	columns = {t: {c["name"] for c in inspector.get_columns(t)} for t in tables}
	with bind.begin() as conn:
		for table, column, ddl in _ADDED_COLUMNS:
			if table in columns and column not in columns[table]:
				conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
