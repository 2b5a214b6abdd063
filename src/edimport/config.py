"""Configuration management for the EDI importer."""

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from edimport.codes import Language
from edimport.exceptions import InvalidLanguage

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"


class SellerConfig(BaseModel):
    """Supplier known to the importer."""

    id: str = Field(..., description="Seller party id as it appears in EDI headers")
    name: str = Field(..., description="Display name, unique across sellers")

    model_config = {"extra": "ignore"}


class ImporterConfig(BaseSettings):
    """Configuration for EDI catalog imports."""

    model_config = SettingsConfigDict(
        env_prefix="EDIMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Field(
        default=Path.cwd(),
        description="Root of downloads, uploads, staged files and party homes",
    )

    lang_codes: str = Field(
        default="fin",
        description="Comma-separated catalog languages to import (fin, swe, eng, nor)",
    )

    vat_percent: float = Field(
        default=24.0,
        ge=0.0,
        le=100.0,
        description="VAT percent stored on new buyer accounts",
    )

    import_json: bool = Field(
        default=True,
        description="Write per-category JSON snapshots",
    )

    import_sqlite: bool = Field(
        default=True,
        description="Write records to the relational store",
    )

    sellers_database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL of the sellers store (default: data_dir/sellers.db)",
    )

    buyers_database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL of the buyers store (default: data_dir/buyers.db)",
    )

    sellers: list[SellerConfig] = Field(
        default_factory=list,
        description="Known sellers; files from others are imported without a seller row",
    )

    log_file_name: str = Field(
        default="import.log",
        description="Operator diagnostics log, written under data_dir",
    )

    max_upload_size_mb: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum EDI upload size in megabytes for the API",
    )

    api_host: str = Field(
        default="0.0.0.0",
        description="API host address",
    )

    api_port: int = Field(
        default=8000,
        description="API port",
    )

    api_keys: str = Field(
        default="",
        description="Comma-separated API keys for authentication",
    )

    dev_bypass_api_key: bool = Field(
        default=False,
        description="Bypass API key verification for local development only",
    )

    @field_validator("lang_codes")
    @classmethod
    def validate_lang_codes_format(cls, v: str) -> str:
        """Validate every configured language is a known catalog language."""
        codes = [c.strip() for c in v.split(",") if c.strip()]
        if not codes:
            raise ValueError("LANG_CODES cannot be empty")

        for code in codes:
            try:
                Language.from_name(code)
            except InvalidLanguage as exc:
                raise ValueError(exc.message) from exc

        return v

    def get_languages(self) -> list[Language]:
        """Parse configured languages, keeping order and dropping repeats."""
        languages: list[Language] = []
        for code in self.lang_codes.split(","):
            if not code.strip():
                continue
            language = Language.from_name(code)
            if language not in languages:
                languages.append(language)
        return languages

    def get_api_keys(self) -> set[str]:
        return {k.strip() for k in self.api_keys.split(",") if k.strip()}

    def find_seller(self, seller_id: str) -> Optional[SellerConfig]:
        for seller in self.sellers:
            if seller.id == seller_id:
                return seller
        return None

    def sellers_dsn(self) -> str:
        return self.sellers_database_url or f"sqlite:///{self.data_dir / 'sellers.db'}"

    def buyers_dsn(self) -> str:
        return self.buyers_database_url or f"sqlite:///{self.data_dir / 'buyers.db'}"

    def create_data_dirs(self) -> Path:
        """Ensure the working directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "downloads").mkdir(exist_ok=True)
        (self.data_dir / "uploads").mkdir(exist_ok=True)
        (self.data_dir / "edi").mkdir(exist_ok=True)
        return self.data_dir

    def validate_config(self) -> None:
        """Validate configuration at startup. Raises ValueError if invalid."""
        errors = []

        if not self.import_json and not self.import_sqlite:
            errors.append("At least one of IMPORT_JSON and IMPORT_SQLITE must be enabled")

        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for seller in self.sellers:
            if not seller.id.strip():
                errors.append("Seller id cannot be empty")
            if seller.id in seen_ids:
                errors.append(f"Duplicate seller id '{seller.id}'")
            if seller.name in seen_names:
                errors.append(f"Duplicate seller name '{seller.name}'")
            seen_ids.add(seller.id)
            seen_names.add(seller.name)

        if not self.log_file_name or Path(self.log_file_name).name != self.log_file_name:
            errors.append("LOG_FILE_NAME must be a plain file name")

        if self.data_dir.exists() and not self.data_dir.is_dir():
            errors.append(f"DATA_DIR {self.data_dir} is not a directory")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


def _flatten_toml(data: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    values = {k: v for k, v in data.items() if k not in {"import", "seller"}}

    targets = data.get("import", {})
    if "json" in targets:
        values["import_json"] = targets["json"]
    if "sqlite" in targets:
        values["import_sqlite"] = targets["sqlite"]

    if "seller" in data:
        values["sellers"] = data["seller"]

    lang_codes = values.get("lang_codes")
    if isinstance(lang_codes, list):
        values["lang_codes"] = ",".join(lang_codes)

    values.setdefault("data_dir", base_dir)
    return values


def load_config(path: Path) -> ImporterConfig:
    """Load configuration from a TOML file.

    `data_dir` defaults to the directory holding the file. Environment
    variables still apply to keys the file does not set.
    """
    with path.open("rb") as handle:
        data = tomllib.load(handle)

    config = ImporterConfig(**_flatten_toml(data, path.resolve().parent))
    config.validate_config()
    logger.info("Configuration loaded from %s", path)
    return config


_config_instance = None


def get_config() -> ImporterConfig:
    """Get or create global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = ImporterConfig()
        _config_instance.validate_config()
        logger.info("Configuration validated successfully")
    return _config_instance


def set_config(config: ImporterConfig) -> ImporterConfig:
    """Install an explicitly loaded configuration as the global instance."""
    global _config_instance
    _config_instance = config
    return _config_instance


def reload_config() -> ImporterConfig:
    """Reload configuration (useful for testing)."""
    global _config_instance
    _config_instance = ImporterConfig()
    return _config_instance
