"""
Tests for the start-up helpers in main.py (no window is created).
"""

from pathlib import Path

import pytest

from quote_core.config import load_config
from quote_core.paths import AppPaths
from quote_core.services import CompanyService

main = pytest.importorskip("main")


class TestApplyCompanySettings:

    def test_blank_row_keeps_configuration(self, db, tmp_path, monkeypatch):
        monkeypatch.setenv("QUOTE_VAULT_COMPANY_NAME", "Env Works")
        config = load_config(AppPaths(data_root=tmp_path))

        effective = main.apply_company_settings(config)
        assert effective.company.name == "Env Works"
        assert effective.primary_logo == config.primary_logo
        assert effective.default_validity_days == 30

    def test_stored_values_win(self, db, tmp_path):
        CompanyService.update_company_settings(company_name="Stored Co",
                                               primary_logo_path=str(tmp_path / "logo.png"),
                                               default_validity_days=14)
        effective = main.apply_company_settings(load_config(AppPaths(data_root=tmp_path)))

        assert effective.company.name == "Stored Co"
        assert effective.primary_logo == Path(tmp_path / "logo.png")
        assert effective.default_validity_days == 14
