"""
Tests for config.py, paths.py and logging_config.py.
"""

import logging

from quote_core.config import DEFAULT_COMPANY_NAME, load_config
from quote_core.logging_config import (
    ColoredFormatter, log_business_operation, log_performance, setup_logging
)
from quote_core.paths import AppPaths


class TestLoadConfig:

    def test_defaults(self, tmp_path, monkeypatch):
        for name in ("QUOTE_VAULT_DB_URL", "BREVO_API_KEY", "QUOTE_VAULT_ADMIN",
                     "QUOTE_VAULT_CATALOG_SOURCE", "QUOTE_VAULT_COMPANY_NAME"):
            monkeypatch.delenv(name, raising=False)

        config = load_config(AppPaths(data_root=tmp_path))
        assert config.db_url == f"sqlite:///{(tmp_path / 'data' / 'quotations.db').as_posix()}"
        assert config.db_is_sqlite
        assert not config.email_enabled
        assert not config.admin_mode
        assert config.catalog_source is None
        assert config.company.name == DEFAULT_COMPANY_NAME
        assert config.default_validity_days == 30

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BREVO_API_KEY", "xkeysib-123")
        monkeypatch.setenv("QUOTE_VAULT_ADMIN", "yes")
        monkeypatch.setenv("QUOTE_VAULT_DEFAULT_CURRENCY", "eur")
        monkeypatch.setenv("QUOTE_VAULT_LOG_LEVEL", "debug")
        monkeypatch.setenv("QUOTE_VAULT_CATALOG_SOURCE", "https://example.test/catalog.json")

        config = load_config(AppPaths(data_root=tmp_path))
        assert config.email_enabled
        assert config.admin_mode
        assert config.default_currency == "EUR"
        assert config.log_level == logging.DEBUG
        assert config.catalog_source == "https://example.test/catalog.json"


class TestPaths:

    def test_directories_created_under_root(self, tmp_path):
        paths = AppPaths(data_root=tmp_path / "vault")
        assert paths.exports_dir.is_dir()
        assert paths.logs_dir.is_dir()
        assert paths.database_path.parent.is_dir()
        assert paths.asset_path("logo.png").name == "logo.png"


class TestLogging:

    def test_file_logs_written(self, tmp_path):
        root = setup_logging(logging.INFO, enable_file_logging=True, logs_dir=tmp_path)
        try:
            logging.getLogger("quote_core.test").debug("debug line")
            for handler in root.handlers:
                handler.flush()
            assert (tmp_path / "debug.log").exists()
            assert "debug line" in (tmp_path / "debug.log").read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                handler.close()
            root.handlers.clear()

    def test_business_and_performance_messages(self, caplog):
        with caplog.at_level(logging.INFO):
            log_business_operation("quotation_created", "MT050324-7K2Q", user_id="maya")
            log_performance("generate_quotation_pdf", 12.5, "2 pages")

        messages = [r.getMessage() for r in caplog.records]
        assert "BUSINESS QUOTATION_CREATED (User: maya) - MT050324-7K2Q" in messages
        assert "PERFORMANCE: generate_quotation_pdf took 12.50ms | 2 pages" in messages

    def test_colored_formatter_leaves_record_untouched(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)
        text = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[33mWARNING\033[0m careful" == text
        assert record.levelname == "WARNING"
