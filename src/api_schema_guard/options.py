"""Document-level configuration for OpenAPI generation."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class OpenApiServer(BaseModel):
    """One ``servers`` entry."""

    url: str
    description: str | None = None


class OpenApiOptions(BaseModel):
    """Metadata and filters applied while assembling the document."""

    title: str = "API"
    version: str = "1.0.0"
    description: str | None = None
    servers: list[OpenApiServer] = []
    security: list[dict[str, list[str]]] | None = None
    security_schemes: dict[str, dict[str, Any]] | None = Field(default=None, alias="securitySchemes")
    base_path: str | None = Field(default=None, alias="basePath")
    base_dir: str = Field(default="/src/routes", alias="baseDir")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_yaml(cls, file_path: Path) -> "OpenApiOptions":
        """Load options from a YAML (or JSON) file. An empty file gives the defaults."""
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(data)
