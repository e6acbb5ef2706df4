"""
Main entry point for the Quote Vault desktop app.
Handles logging, configuration and database initialization.
"""

import sys
from dataclasses import replace
from pathlib import Path

from PySide6.QtWidgets import QApplication, QMessageBox
from PySide6.QtGui import QFont

# Add the app directory to Python path
app_dir = Path(__file__).parent
sys.path.insert(0, str(app_dir))

from quote_core import __version__
from quote_core.catalog_cache import CatalogCache, catalog_fetcher
from quote_core.config import CompanyProfile, load_config
from quote_core.database import init_db, get_db_info
from quote_core.logging_config import setup_logging, get_logger
from quote_core.paths import app_paths
from quote_core.services import CompanyService
from quote_gui.main_window import MainWindow


def setup_application(config):
    """Set up the QApplication with proper configuration."""
    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("Quote Vault")
    app.setApplicationVersion(__version__)
    app.setOrganizationName(config.company.name)
    app.setOrganizationDomain(config.company.website)

    logger = get_logger(__name__)
    for font_family in ["Segoe UI", "Arial", "Helvetica", "sans-serif"]:
        font = QFont(font_family, 9)
        if font.family() == font_family:  # Font is available
            app.setFont(font)
            logger.debug(f"Font set to: {font_family}")
            break

    return app


def initialize_database(config):
    logger = get_logger(__name__)
    try:
        init_db(config.db_url)

        db_info = get_db_info()
        logger.info("Database Information:")
        for key, value in db_info.items():
            logger.info(f"  {key}: {value}")
    except Exception as e:
        logger.error(f"Database initialization error: {e}", exc_info=True)
        raise


def apply_company_settings(config):
    """
    Overlay the stored company profile on the environment config.

    Blank columns in the company_settings row keep the configured value.
    """
    settings = CompanyService.get_company_settings()
    company = CompanyProfile(
        name=settings.company_name or config.company.name,
        address=settings.address or config.company.address,
        website=settings.website or config.company.website,
    )
    return replace(
        config,
        company=company,
        primary_logo=Path(settings.primary_logo_path) if settings.primary_logo_path else config.primary_logo,
        secondary_logo=Path(settings.secondary_logo_path) if settings.secondary_logo_path else config.secondary_logo,
        default_validity_days=settings.default_validity_days or config.default_validity_days,
    )


def main():
    """Main application entry point."""
    config = load_config()
    logger = setup_logging(log_level=config.log_level, enable_file_logging=True)
    logger.info(f"Quote Vault {__version__} starting up...")
    logger.info(f"Application data directory: {app_paths.data_dir}")

    try:
        initialize_database(config)
        config = apply_company_settings(config)
        app = setup_application(config)

        catalog = CatalogCache(catalog_fetcher(config.catalog_source)) if config.catalog_source else None

        window = MainWindow(config, catalog)
        window.show()
        logger.info("Application ready!")

        sys.exit(app.exec())

    except Exception as e:
        logger.error(f"Application startup error: {e}", exc_info=True)

        app = QApplication.instance() or QApplication(sys.argv)
        QMessageBox.critical(
            None,
            "Startup Error",
            f"Failed to start application:\n\n{str(e)}\n\nCheck the log files for details."
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
