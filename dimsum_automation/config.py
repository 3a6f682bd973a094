"""
Configuration for DiMSum automation.

Settings come from DIMSUM_AUTOMATION_* environment variables or a YAML file
with the same keys in lower case, minus the prefix. The variables may also
be set in a .env file, but real environment variables take precedence.

Example YAML:

    spreadsheet_id: 1AbC...
    credentials_file: /path/to/service-account.json  # optional, for private sheets
    sheets_dir: /path/to/exported/tabs   # optional, read TSVs instead of Google
    sql_user: reader
    sql_pass: secret
    sql_host: mlwh.example.org
    sql_port: 3306
    sql_db: mlwarehouse
    sql_url: sqlite:////tmp/mlwh.db       # optional, overrides the sql_* parts
    sponsors: [Ben Lehner]
    cache_lifetime: 600
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml
from dotenv import dotenv_values
from sqlalchemy.engine import URL

ENV_PREFIX = "DIMSUM_AUTOMATION_"

DEFAULT_CACHE_LIFETIME = 600
DEFAULT_SQL_DRIVER = "mysql+pymysql"

SQL_PARTS = ["sql_user", "sql_pass", "sql_host", "sql_port", "sql_db"]


class ConfigError(ValueError):
    """Missing or invalid configuration."""


@dataclass
class AutomationConfig:
    """Everything needed to build a metadata Client."""
    sheet_id: str
    sheets_dir: Optional[Path] = None
    credentials_file: Optional[Path] = None
    user: str = ""
    password: str = ""
    host: str = ""
    port: int = 0
    database: str = ""
    sql_url: str = ""
    sponsors: List[str] = field(default_factory=list)
    cache_lifetime: float = DEFAULT_CACHE_LIFETIME

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        directory: Optional[Path] = None,
    ) -> 'AutomationConfig':
        """
        Load configuration from DIMSUM_AUTOMATION_* environment variables.

        Variables defined in <directory>/.env (default: the current
        directory) are used where the environment does not set them.
        SPONSORS is a comma-separated list.

        Args:
            environ: Environment to read instead of os.environ
            directory: Where to look for the .env file

        Raises:
            ConfigError: if required variables are missing or malformed
        """
        environ = os.environ if environ is None else environ

        dotenv_path = Path(directory if directory is not None else ".") / ".env"
        merged = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        merged.update(environ)

        data = {}
        for name, value in merged.items():
            if name.startswith(ENV_PREFIX) and value != "":
                data[name[len(ENV_PREFIX):].lower()] = value

        if 'sponsors' in data:
            data['sponsors'] = [s.strip() for s in data['sponsors'].split(',') if s.strip()]

        return cls.from_dict(data)

    @classmethod
    def from_yaml(cls, path: Path) -> 'AutomationConfig':
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"{path} does not contain a mapping of settings")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict) -> 'AutomationConfig':
        sheet_id = _text(data.get('spreadsheet_id'))
        sql_url = _text(data.get('sql_url'))

        missing = [] if sheet_id else ['spreadsheet_id']
        if not sql_url:
            missing += [part for part in SQL_PARTS if not _text(data.get(part))]

        if missing:
            names = ", ".join(ENV_PREFIX + m.upper() for m in missing)
            raise ConfigError(f"missing required settings: {names}")

        sponsors = data.get('sponsors') or []
        if isinstance(sponsors, str):
            sponsors = [sponsors]

        sheets_dir = _text(data.get('sheets_dir'))
        credentials_file = _text(data.get('credentials_file'))

        return cls(
            sheet_id=sheet_id,
            sheets_dir=Path(sheets_dir) if sheets_dir else None,
            credentials_file=Path(credentials_file) if credentials_file else None,
            user=_text(data.get('sql_user')),
            password=_text(data.get('sql_pass')),
            host=_text(data.get('sql_host')),
            port=_number(data, 'sql_port', int, 0),
            database=_text(data.get('sql_db')),
            sql_url=sql_url,
            sponsors=[str(s) for s in sponsors],
            cache_lifetime=_number(data, 'cache_lifetime', float, DEFAULT_CACHE_LIFETIME),
        )

    def registry_url(self) -> Union[str, URL]:
        """SQLAlchemy URL of the MLWH database."""
        if self.sql_url:
            return self.sql_url

        return URL.create(
            DEFAULT_SQL_DRIVER,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _number(data: Dict, key: str, kind, default):
    value = data.get(key)
    if value is None or _text(value) == "":
        return default

    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid {key}: {value!r}") from None
