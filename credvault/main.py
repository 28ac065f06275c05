"""
Main entry point for the CredVault Credential Manager.
"""

import sys
import signal
import logging
from functools import partial
from typing import Optional

from PyQt5.QtWidgets import QApplication, QMessageBox
from PyQt5.QtCore import Qt

from .accounts import LoginController, SignupController
from .auth import AuthClient
from .backend import BackendClient
from .context import SessionContext, ThemeContext
from .dashboard import DashboardController
from .preferences import Preferences
from .storage import CredentialStore
from .ui import LoginDialog, MainWindow, SignupDialog, apply_theme
from . import config

logger = logging.getLogger(__name__)


class CredVaultApp:
    """Main application class for the credential manager."""

    def __init__(self, backend: BackendClient):
        """Initialize the application."""
        self.app = QApplication(sys.argv)
        self.app.setApplicationName(config.APP_NAME)
        self.app.setOrganizationName(config.APP_NAME)
        self.app.setStyle(config.APP_STYLE)

        self.backend = backend
        self.auth = AuthClient(backend)
        self.session = SessionContext(self.auth)
        self.store = CredentialStore(backend, self.session)
        self.preferences = Preferences()
        self.theme = ThemeContext(self.preferences)
        self.theme.subscribe(apply_theme)
        apply_theme(self.theme.is_dark)

        self.main_window: Optional[MainWindow] = None
        self.logged_out = False

        # Handle Ctrl+C gracefully
        signal.signal(signal.SIGINT, signal.SIG_DFL)

    def _auth_controller(self, controller_class, **ui_bindings):
        return controller_class(self.auth, self.session, preferences=self.preferences, **ui_bindings)

    def _dashboard_controller(self, **ui_bindings) -> DashboardController:
        return DashboardController(self.store, self.session, **ui_bindings)

    def _handle_logged_out(self):
        self.logged_out = True

    def run(self) -> int:
        """Run the application."""
        current_state = config.STATE_STARTUP

        while current_state != config.STATE_EXIT:
            if current_state == config.STATE_STARTUP:
                current_state = config.STATE_MAIN_WINDOW if self.session.restore() else config.STATE_LOGIN

            elif current_state == config.STATE_LOGIN:
                dialog = LoginDialog(partial(self._auth_controller, LoginController),
                                     last_email=self.preferences.get("last_email"))
                dialog.exec_()
                current_state = dialog.next_state

            elif current_state == config.STATE_SIGNUP:
                dialog = SignupDialog(partial(self._auth_controller, SignupController))
                dialog.exec_()
                current_state = dialog.next_state

            elif current_state == config.STATE_MAIN_WINDOW:
                self.logged_out = False
                self.main_window = MainWindow(self._dashboard_controller, self.theme)
                self.main_window.logged_out.connect(self._handle_logged_out)
                self.main_window.show()
                self.app.exec_()  # Start event loop for MainWindow

                # After app.exec_() returns (MainWindow closed)
                self.main_window = None
                current_state = config.STATE_LOGIN if self.logged_out else config.STATE_EXIT

        return 0

    def cleanup(self):
        """Clean up resources."""
        self.backend.close()


def main():
    """Main entry point."""
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    # Enable high DPI scaling
    if hasattr(Qt, 'AA_EnableHighDpiScaling'):
        QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    if hasattr(Qt, 'AA_UseHighDpiPixmaps'):
        QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    try:
        backend = BackendClient()
    except ValueError as e:
        logger.error(str(e))
        QApplication(sys.argv)
        QMessageBox.critical(None, config.APP_NAME, str(e))
        return 1

    app = CredVaultApp(backend)
    try:
        return app.run()
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())
