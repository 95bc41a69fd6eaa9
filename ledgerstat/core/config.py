# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Configuration loading with Pydantic validation and env var substitution."""

import logging
import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URI = "mysql+pymysql://root@localhost:3306/bank_data_analysis"

# Environment variables consulted by Config.load()
CONFIG_PATH_ENV = "LEDGERSTAT_CONFIG"
DB_URI_ENV = "LEDGERSTAT_DB_URI"
DB_USER_ENV = "LEDGERSTAT_DB_USER"
DB_PASSWORD_ENV = "LEDGERSTAT_DB_PASSWORD"


class DatabaseConfig(BaseModel):
    """Database connection configuration."""
    uri: str = DEFAULT_DATABASE_URI  # SQLAlchemy URI (env vars already substituted)

    # Optional credentials (alternative to embedding in URI)
    username: Optional[str] = None
    password: Optional[str] = None

    # Upper bound for establishing a connection and for the liveness probe
    probe_timeout_seconds: int = Field(default=5, ge=1)

    # Log every statement through SQLAlchemy's engine logger
    echo: bool = False

    def get_connection_uri(self) -> str:
        """
        Get the connection URI with credentials applied.

        Config-level credentials replace anything embedded in the URI. When no
        username is configured the URI is returned as-is.

        Returns:
            Connection URI with credentials applied
        """
        if not self.username:
            return self.uri
        url = make_url(self.uri).set(username=self.username, password=self.password or None)
        return url.render_as_string(hide_password=False)

    def display_uri(self) -> str:
        """Connection URI with the password masked, safe for logs and messages."""
        try:
            return make_url(self.get_connection_uri()).render_as_string(hide_password=True)
        except ArgumentError:
            # Unparseable URIs are reported verbatim minus anything after '@'
            return re.sub(r"//[^@/]*@", "//***@", self.uri)


class ImportConfig(BaseModel):
    """Settings for delimited file ingestion."""
    extension: str = ".csv"
    encoding: str = "utf-8"
    chunk_size: int = Field(default=1000, ge=1)

    @property
    def label(self) -> str:
        """Upper-cased extension without the dot, e.g. 'CSV'."""
        return self.extension.lstrip(".").upper()


class Config(BaseModel):
    """Root configuration model."""
    model_config = {"extra": "ignore"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    imports: ImportConfig = Field(default_factory=ImportConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load config from YAML file with env var substitution."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            raw_content = f.read()

        # Substitute environment variables: ${VAR_NAME}
        substituted = _substitute_env_vars(raw_content)

        data = yaml.safe_load(substituted) or {}
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "Config":
        """
        Resolve configuration from a file, the environment, or defaults.

        Resolution order:
        1. Explicit path argument
        2. LEDGERSTAT_CONFIG environment variable
        3. Built-in defaults

        LEDGERSTAT_DB_URI / LEDGERSTAT_DB_USER / LEDGERSTAT_DB_PASSWORD are
        applied on top of whichever source was used.
        """
        path = path or os.environ.get(CONFIG_PATH_ENV)
        if path:
            config = cls.from_yaml(path)
            logger.info(f"Loaded configuration from {path}")
        else:
            config = cls()
            logger.debug("No config file given, using defaults")

        overrides = {}
        if os.environ.get(DB_URI_ENV):
            overrides["uri"] = os.environ[DB_URI_ENV]
        if os.environ.get(DB_USER_ENV):
            overrides["username"] = os.environ[DB_USER_ENV]
        if os.environ.get(DB_PASSWORD_ENV) is not None:
            overrides["password"] = os.environ[DB_PASSWORD_ENV]

        if overrides:
            config = config.model_copy(update={
                "database": config.database.model_copy(update=overrides),
            })
        return config


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _substitute_env_vars(content: str) -> str:
    """Expand ${NAME} references from the environment.

    Raises:
        ValueError: Naming every referenced variable that is not set
    """
    missing = sorted({name for name in _ENV_VAR_PATTERN.findall(content) if name not in os.environ})
    if missing:
        raise ValueError(f"Environment variable(s) not set: {', '.join(missing)}")
    return _ENV_VAR_PATTERN.sub(lambda m: os.environ[m.group(1)], content)
