"""Runtime configuration for the analyzer, the CLI and the web server."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from sqlscope.core.schema import (
    InMemorySchemaProvider,
    JsonFileSchemaProvider,
    SchemaProvider,
)

ENV_PREFIX = "SQLSCOPE_"


class LineageConfig(BaseModel):
    """Analyzer settings.

    Attributes:
        broadcast_unqualified: Attribute an unqualified column to every table
            of its scope. When False such columns are left unattributed.
        schema_lookup_workers: Concurrent schema provider lookups per call.
        schema_file: JSON catalog used as schema provider, if set.
        environment: ``"local"`` falls back to the sample in-memory catalog
            when no schema file is configured; any other value disables
            schema lookups.
        log_level: Logging level name for the CLI.
    """

    broadcast_unqualified: bool = True
    schema_lookup_workers: int = Field(default=4, ge=1)
    schema_file: Optional[Path] = None
    environment: str = "local"
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> LineageConfig:
        """Build a config from ``SQLSCOPE_*`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)

    def build_provider(self) -> Optional[SchemaProvider]:
        """The schema provider these settings select, if any."""
        if self.schema_file is not None:
            return JsonFileSchemaProvider(self.schema_file)
        if self.environment == "local":
            return InMemorySchemaProvider.with_sample_data()
        return None
