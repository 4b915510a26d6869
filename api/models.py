"""
API request and response models for the registry REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in registry/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from registry.models import Program, Vulnerability, parse_available

# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


class SetupRequest(BaseModel):
    """Request body for POST /admin/setup.

    Length policy is NOT validated here: AuthManager owns it and returns
    weak_password, which the route maps to the documented error message.
    max_length only bounds request size.
    """

    password: str = Field(default="", max_length=1024)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /admin/api/password."""

    old_password: str = Field(max_length=1024)
    new_password: str = Field(max_length=1024)


# ---------------------------------------------------------------------------
# Registry models
# ---------------------------------------------------------------------------


class VulnerabilityModel(BaseModel):
    name: str = ""
    description: Optional[str] = None
    cve: Optional[str] = None
    url: Optional[str] = None


class UpdatesModel(BaseModel):
    available: bool = False
    url: Optional[str] = None

    @field_validator("available", mode="before")
    @classmethod
    def coerce_available(cls, value) -> bool:
        """Accept the "true"/"false" strings found in older seed files."""
        return parse_available(value)


class ProgramModel(BaseModel):
    """Program shape shared by POST /admin/api/programs and the read endpoints."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    version: Optional[str] = None
    site: Optional[str] = None
    vulnerabilities: list[VulnerabilityModel] = Field(default_factory=list)
    updates: UpdatesModel = Field(default_factory=UpdatesModel)

    def to_domain(self) -> Program:
        return Program(
            name=self.name,
            version=self.version,
            site=self.site,
            updates_available=self.updates.available,
            updates_url=self.updates.url,
            vulnerabilities=[Vulnerability(**v.model_dump()) for v in self.vulnerabilities],
        )

    @classmethod
    def from_domain(cls, program: Program) -> "ProgramModel":
        return cls.model_validate(program.to_dict())


class ProgramSearchResponse(BaseModel):
    programs: list[ProgramModel]


# ---------------------------------------------------------------------------
# Generic responses
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
