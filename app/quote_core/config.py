"""Application configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from quote_core.paths import AppPaths, app_paths


DEFAULT_COMPANY_NAME = "Noga Engineering & Technology Ltd."
DEFAULT_COMPANY_ADDRESS = "Hakryia 1, Dora Industrial Area, 2283201, Shlomi, Israel"
DEFAULT_COMPANY_WEBSITE = "www.nogamt.com"
DEFAULT_BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


@dataclass(frozen=True)
class CompanyProfile:
    """Fixed company details printed on every quotation."""

    name: str = DEFAULT_COMPANY_NAME
    address: str = DEFAULT_COMPANY_ADDRESS
    website: str = DEFAULT_COMPANY_WEBSITE


@dataclass(frozen=True)
class AppConfig:
    """Hold runtime configuration options for the application."""

    data_dir: Path
    db_url: str
    primary_logo: Path
    secondary_logo: Path
    company: CompanyProfile = field(default_factory=CompanyProfile)
    brevo_api_key: Optional[str] = None
    brevo_api_url: str = DEFAULT_BREVO_API_URL
    sender_email: str = "quotes@noga-mt.com"
    sender_name: str = "Noga Quote System"
    default_validity_days: int = 30
    default_currency: str = "USD"
    catalog_source: Optional[str] = None
    # Link template for the email footer; {email} is replaced by the recipient
    unsubscribe_url: Optional[str] = None
    admin_mode: bool = False
    log_level: int = logging.INFO

    @property
    def db_is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite:")

    @property
    def email_enabled(self) -> bool:
        return bool(self.brevo_api_key)


def load_config(paths: Optional[AppPaths] = None) -> AppConfig:
    """Load settings from environment variables with sane defaults."""
    paths = paths or app_paths
    data_dir = paths.data_dir

    db_url = os.environ.get("QUOTE_VAULT_DB_URL")
    if not db_url:
        db_url = f"sqlite:///{paths.database_path.as_posix()}"

    primary_logo = Path(os.environ.get(
        "QUOTE_VAULT_PRIMARY_LOGO", paths.asset_path("logo.png")
    )).expanduser()
    secondary_logo = Path(os.environ.get(
        "QUOTE_VAULT_SECONDARY_LOGO", paths.asset_path("thinking-inside.png")
    )).expanduser()

    company = CompanyProfile(
        name=os.environ.get("QUOTE_VAULT_COMPANY_NAME", DEFAULT_COMPANY_NAME),
        address=os.environ.get("QUOTE_VAULT_COMPANY_ADDRESS", DEFAULT_COMPANY_ADDRESS),
        website=os.environ.get("QUOTE_VAULT_COMPANY_WEBSITE", DEFAULT_COMPANY_WEBSITE),
    )

    level_name = os.environ.get("QUOTE_VAULT_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)

    return AppConfig(
        data_dir=data_dir,
        db_url=db_url,
        primary_logo=primary_logo,
        secondary_logo=secondary_logo,
        company=company,
        brevo_api_key=os.environ.get("BREVO_API_KEY") or None,
        brevo_api_url=os.environ.get("QUOTE_VAULT_BREVO_API_URL", DEFAULT_BREVO_API_URL),
        sender_email=os.environ.get("QUOTE_VAULT_SENDER_EMAIL", "quotes@noga-mt.com"),
        sender_name=os.environ.get("QUOTE_VAULT_SENDER_NAME", "Noga Quote System"),
        default_validity_days=int(os.environ.get("QUOTE_VAULT_VALIDITY_DAYS", "30")),
        default_currency=os.environ.get("QUOTE_VAULT_DEFAULT_CURRENCY", "USD").upper(),
        catalog_source=os.environ.get("QUOTE_VAULT_CATALOG_SOURCE") or None,
        unsubscribe_url=os.environ.get("QUOTE_VAULT_UNSUBSCRIBE_URL") or None,
        admin_mode=os.environ.get("QUOTE_VAULT_ADMIN", "").lower() in ("1", "true", "yes"),
        log_level=log_level,
    )
