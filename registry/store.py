"""
registry/store.py -- SQLAlchemy-backed persistence for the program registry.

Uses SQLAlchemy Core (not ORM) so the dataclasses in registry/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. RegistryStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL. LIKE
wildcards in search queries are escaped (icontains autoescape).

The registry is independent of auth. Public routes read it; only requests
that pass session verification may write to it.

Usage:
    store = RegistryStore()                                # sqlite:///data/registry.db
    store = RegistryStore("postgresql://user:pw@host/db")
    store.load_from_json_file("docs/schema_program.json")
    store.upsert_program(Program(name="openssl", version="3.0.13"))
    programs = store.search_programs("ssl")
    store.close()
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine, make_url

from registry.models import Program, Vulnerability

logger = logging.getLogger("registry.store")

_DEFAULT_DB_URL = "sqlite:///data/registry.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_programs = Table(
    "programs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True, index=True),
    Column("version", Text),
    Column("site", Text),
    Column("updates_available", Integer, nullable=False, server_default="0"),
    Column("updates_url", Text),
)

_vulnerabilities = Table(
    "vulnerabilities",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("program_id", Integer, ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("description", Text),
    Column("cve", Text),
    Column("url", Text),
)


# ---------------------------------------------------------------------------
# Connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes the
    vulnerabilities ON DELETE CASCADE effective.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _ensure_sqlite_dir(db_url: str) -> None:
    database = make_url(db_url).database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).parent.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _row_to_vulnerability(row) -> Vulnerability:
    return Vulnerability(name=row.name, description=row.description, cve=row.cve, url=row.url)


def _row_to_program(row, vulnerabilities: list[Vulnerability]) -> Program:
    return Program(
        id=row.id,
        name=row.name,
        version=row.version,
        site=row.site,
        updates_available=bool(row.updates_available),
        updates_url=row.updates_url,
        vulnerabilities=vulnerabilities,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RegistryStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # Route handlers run in FastAPI's thread pool.
            connect_args["check_same_thread"] = False
            _ensure_sqlite_dir(db_url)
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)
        logger.info("Registry database initialized (%s)", make_url(db_url).render_as_string(hide_password=True))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_program(self, program: Program) -> int:
        """Insert or update a program by name and replace its vulnerability list.

        Returns the program's database ID. Raises ValueError if the name is empty.
        """
        name = (program.name or "").strip()
        if not name:
            raise ValueError("Program name is required")

        values = {
            "version": program.version,
            "site": program.site,
            "updates_available": 1 if program.updates_available else 0,
            "updates_url": program.updates_url,
        }
        with self.engine.connect() as conn:
            program_id = conn.execute(select(_programs.c.id).where(_programs.c.name == name)).scalar()
            if program_id is None:
                result = conn.execute(_programs.insert().values(name=name, **values))
                program_id = result.inserted_primary_key[0]
            else:
                conn.execute(_programs.update().where(_programs.c.id == program_id).values(**values))

            conn.execute(_vulnerabilities.delete().where(_vulnerabilities.c.program_id == program_id))
            if program.vulnerabilities:
                conn.execute(
                    _vulnerabilities.insert(),
                    [
                        {
                            "program_id": program_id,
                            "name": v.name or "",
                            "description": v.description,
                            "cve": v.cve,
                            "url": v.url,
                        }
                        for v in program.vulnerabilities
                    ],
                )
            conn.commit()

        logger.info("Upserted program %s (%d vulnerabilities)", name, len(program.vulnerabilities))
        return program_id

    def write_programs(self, programs: Iterable[Program]) -> int:
        """Upsert every program with a name; returns how many were written."""
        written = 0
        for program in programs:
            if not (program.name or "").strip():
                logger.warning("Skipping program without a name")
                continue
            self.upsert_program(program)
            written += 1
        logger.info("Wrote %d programs to registry", written)
        return written

    def write_search(self, names: Iterable[str]) -> int:
        """Insert bare program names, ignoring ones already present. Returns rows inserted."""
        inserted = 0
        with self.engine.connect() as conn:
            for raw in names:
                if not isinstance(raw, str) or not raw.strip():
                    continue
                name = raw.strip()
                exists = conn.execute(select(_programs.c.id).where(_programs.c.name == name)).first()
                if exists is None:
                    conn.execute(_programs.insert().values(name=name))
                    inserted += 1
            conn.commit()
        logger.info("Wrote %d program names to registry", inserted)
        return inserted

    def load_from_json_file(self, path: str | Path) -> int:
        """Load a seed file, detecting the schema by shape. Returns rows written.

        {"programs": {"program": [names]}}  -> search list (write_search)
        {"programs": [program objects]}     -> full programs (write_programs)
        """
        file_path = Path(path)
        logger.info("Loading data from %s", file_path)
        if not file_path.is_file():
            logger.error("File not found: %s", file_path)
            return 0

        data = json.loads(file_path.read_text(encoding="utf-8"))
        programs = data.get("programs") if isinstance(data, dict) else None
        if isinstance(programs, dict):
            names = programs.get("program")
            if not isinstance(names, list):
                logger.warning("No program list found in search data: %s", file_path)
                return 0
            return self.write_search(names)
        if isinstance(programs, list):
            return self.write_programs(Program.from_dict(p) for p in programs if isinstance(p, dict))
        logger.warning("Unknown schema format in %s", file_path)
        return 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search_programs(self, query: str) -> list[Program]:
        """Case-insensitive substring match on program name, ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_programs)
                .where(_programs.c.name.icontains(query, autoescape=True))
                .order_by(_programs.c.name)
            ).fetchall()
            vulns = self._vulnerabilities_for(conn, [row.id for row in rows])
        return [_row_to_program(row, vulns.get(row.id, [])) for row in rows]

    def get_program(self, name: str) -> Optional[Program]:
        """Case-insensitive exact lookup by name."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_programs).where(func.lower(_programs.c.name) == name.strip().lower()).limit(1)
            ).first()
            if row is None:
                return None
            vulns = self._vulnerabilities_for(conn, [row.id])
        return _row_to_program(row, vulns.get(row.id, []))

    def count_programs(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_programs)).scalar() or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Registry database ping failed")
            return False

    def _vulnerabilities_for(self, conn, program_ids: list[int]) -> dict[int, list[Vulnerability]]:
        if not program_ids:
            return {}
        rows = conn.execute(
            select(_vulnerabilities)
            .where(_vulnerabilities.c.program_id.in_(program_ids))
            .order_by(_vulnerabilities.c.id)
        ).fetchall()
        grouped: dict[int, list[Vulnerability]] = {}
        for row in rows:
            grouped.setdefault(row.program_id, []).append(_row_to_vulnerability(row))
        return grouped

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Registry database closed")
