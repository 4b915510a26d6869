"""
registry/models.py -- Domain dataclasses for the program/vulnerability registry.

Pure data containers. registry/store.py maps them to and from rows;
api/models.py owns the HTTP contract. from_dict()/to_dict() speak the seed
JSON shape used by docs/schema_program.json:

    {"name": ..., "version": ..., "site": ...,
     "vulnerabilities": [{"name", "description", "cve", "url"}],
     "updates": {"available": bool | "true" | "false", "url": ...}}
"""

from dataclasses import dataclass, field
from typing import Optional


def parse_available(value) -> bool:
    """Seed files carry updates.available as a bool or as a "true"/"false" string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


@dataclass
class Vulnerability:
    name: str
    description: Optional[str] = None
    cve: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Vulnerability":
        return cls(
            name=data.get("name") or "",
            description=data.get("description"),
            cve=data.get("cve"),
            url=data.get("url"),
        )


@dataclass
class Program:
    """A tracked program and its known vulnerabilities.

    id is None before the record is written to the database.
    """

    name: str
    version: Optional[str] = None
    site: Optional[str] = None
    updates_available: bool = False
    updates_url: Optional[str] = None
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Program":
        updates = data.get("updates") or {}
        return cls(
            name=(data.get("name") or "").strip(),
            version=data.get("version"),
            site=data.get("site"),
            updates_available=parse_available(updates.get("available")),
            updates_url=updates.get("url"),
            vulnerabilities=[Vulnerability.from_dict(v) for v in data.get("vulnerabilities") or []],
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "site": self.site,
            "vulnerabilities": [
                {"name": v.name, "description": v.description, "cve": v.cve, "url": v.url}
                for v in self.vulnerabilities
            ],
            "updates": {"available": self.updates_available, "url": self.updates_url},
        }
