"""
User interface for the CredVault Credential Manager.

Widgets render controller state and forward user input; every decision
about what to save, delete or show lives in the controllers.
"""

import datetime
import logging
from typing import Any, Callable, Dict, Optional

from PyQt5.QtWidgets import (
    QMainWindow, QDialog, QWidget, QVBoxLayout, QHBoxLayout, QFormLayout,
    QLabel, QLineEdit, QPushButton, QTableWidget, QTableWidgetItem,
    QMessageBox, QTextEdit, QDialogButtonBox, QApplication, QStackedWidget
)
from PyQt5.QtCore import Qt, QTimer, QThread, QObject, QUrl, pyqtSignal, pyqtSlot
from PyQt5.QtGui import QDesktopServices, QFont

from .accounts import AuthScreenController, LoginController, SignupController
from .context import ThemeContext
from .crypto import check_password_strength
from .dashboard import CredentialForm, DashboardController, Notifier, ViewState
from .storage import Credential
from . import config

logger = logging.getLogger(__name__)

LIGHT_STYLESHEET = """
QWidget { background-color: #f5f7ff; color: #111827; }
QLineEdit, QTextEdit, QTableWidget { background-color: #ffffff; border: 1px solid #d1d5db; border-radius: 4px; }
QPushButton { background-color: #3b82f6; color: #ffffff; border-radius: 4px; padding: 4px 10px; }
QPushButton:disabled { background-color: #93c5fd; }
QHeaderView::section { background-color: #e5e7eb; color: #111827; }
"""

DARK_STYLESHEET = """
QWidget { background-color: #1f2937; color: #f9fafb; }
QLineEdit, QTextEdit, QTableWidget { background-color: #374151; border: 1px solid #4b5563; border-radius: 4px; color: #f9fafb; }
QPushButton { background-color: #3b82f6; color: #ffffff; border-radius: 4px; padding: 4px 10px; }
QPushButton:disabled { background-color: #1e3a8a; }
QHeaderView::section { background-color: #111827; color: #f9fafb; }
"""


def apply_theme(is_dark: bool) -> None:
    """Apply the light or dark stylesheet to the whole application."""
    app = QApplication.instance()
    if app is not None:
        app.setStyleSheet(DARK_STYLESHEET if is_dark else LIGHT_STYLESHEET)


class RequestWorker(QThread):
    """Worker thread running one backend request."""

    succeeded = pyqtSignal(object)
    failed = pyqtSignal(object)

    def __init__(self, task: Callable[[], Any]):
        super().__init__()
        self.task = task

    def run(self):
        try:
            result = self.task()
        except Exception as e:
            self.failed.emit(e)
            return
        self.succeeded.emit(result)


class QtExecutor(QObject):
    """
    Runs controller requests on worker threads and delivers the result
    back on the UI thread.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        self._callbacks: Dict[RequestWorker, tuple] = {}

    def __call__(self, task, on_success, on_error) -> None:
        worker = RequestWorker(task)
        self._callbacks[worker] = (on_success, on_error)
        worker.succeeded.connect(self._on_succeeded)
        worker.failed.connect(self._on_failed)
        worker.finished.connect(self._on_finished)
        worker.start()

    @pyqtSlot(object)
    def _on_succeeded(self, result):
        on_success, _ = self._callbacks.get(self.sender(), (None, None))
        if on_success:
            on_success(result)

    @pyqtSlot(object)
    def _on_failed(self, error):
        _, on_error = self._callbacks.get(self.sender(), (None, None))
        if on_error:
            on_error(error)

    @pyqtSlot()
    def _on_finished(self):
        worker = self.sender()
        self._callbacks.pop(worker, None)
        worker.deleteLater()

    def wait_for_all(self) -> None:
        """Block until every running worker has returned; call before the owner goes away."""
        for worker in list(self._callbacks):
            worker.wait()


class StatusNotifier(Notifier):
    """Shows successes in a status line and errors in a warning box."""

    def __init__(self, parent: QWidget, show_status: Callable[[str], None]):
        self.parent = parent
        self.show_status = show_status

    def success(self, message: str) -> None:
        super().success(message)
        self.show_status(message)

    def error(self, message: str) -> None:
        super().error(message)
        QMessageBox.warning(self.parent, "Error", message)


def confirm_dialog(parent: QWidget) -> Callable[[str], bool]:
    def confirm(message: str) -> bool:
        reply = QMessageBox.question(parent, "Confirm Delete", message,
                                     QMessageBox.Yes | QMessageBox.No, QMessageBox.No)
        return reply == QMessageBox.Yes
    return confirm


def open_in_browser(url: str) -> bool:
    return QDesktopServices.openUrl(QUrl(url))


class _AuthDialog(QDialog):
    """Common frame of the login and sign-up dialogs."""

    def __init__(self, title: str, parent=None):
        super().__init__(parent)
        self.next_state = config.STATE_EXIT
        self.setWindowTitle(f"{config.APP_TITLE_PREFIX} - {title}")
        self.setMinimumWidth(380)
        self.setModal(True)

        self.status_label = QLabel("")
        self.status_label.setWordWrap(True)

    def _heading(self, text: str) -> QLabel:
        title = QLabel(text)
        title.setAlignment(Qt.AlignCenter)
        font = title.font()
        font.setPointSize(16)
        font.setBold(True)
        title.setFont(font)
        return title

    def _bind(self, controller_factory: Callable[..., AuthScreenController]) -> None:
        self.executor = QtExecutor(self)
        self.controller = controller_factory(
            notifier=StatusNotifier(self, self.show_status),
            navigate=self.go_to,
            open_url=open_in_browser,
            executor=self.executor
        )

    def show_status(self, message: str) -> None:
        self.status_label.setStyleSheet("color: green")
        self.status_label.setText(message)

    def _set_busy(self, busy: bool, button: QPushButton, busy_text: str, idle_text: str):
        button.setEnabled(not busy)
        button.setText(busy_text if busy else idle_text)

    def _poll_loading(self, button: QPushButton, idle_text: str):
        if self.controller.loading:
            QTimer.singleShot(100, lambda: self._poll_loading(button, idle_text))
        else:
            self._set_busy(False, button, "", idle_text)

    def google_login(self):
        """Start the Google sign-in flow in the system browser."""
        idle_text = self.google_button.text()
        self._set_busy(True, self.google_button, "Waiting for browser...", idle_text)
        self.controller.sign_in_with_google()
        self._poll_loading(self.google_button, idle_text)

    def done(self, result):
        # Release the redirect port and let running requests return before
        # the executor is destroyed with the dialog.
        self.controller.cancel()
        self.executor.wait_for_all()
        super().done(result)

    def go_to(self, state: str) -> None:
        """Leave the dialog towards another screen."""
        self.next_state = state
        if state == config.STATE_EXIT:
            self.reject()
        else:
            self.accept()


class LoginDialog(_AuthDialog):
    """Email/password login with password reset and Google sign-in."""

    def __init__(self, controller_factory: Callable[..., LoginController], last_email: str = "", parent=None):
        super().__init__("Login", parent)
        self._bind(controller_factory)
        self.init_ui(last_email)

    def init_ui(self, last_email: str):
        """Initialize the user interface."""
        layout = QVBoxLayout()
        layout.addWidget(self._heading(config.APP_NAME))

        self.stack = QStackedWidget()

        # Login page
        login_page = QWidget()
        login_layout = QFormLayout()
        self.email_input = QLineEdit(last_email)
        self.email_input.setPlaceholderText("you@example.com")
        login_layout.addRow("Email:", self.email_input)
        self.password_input = QLineEdit()
        self.password_input.setEchoMode(QLineEdit.Password)
        self.password_input.returnPressed.connect(self.login)
        login_layout.addRow("Password:", self.password_input)

        self.login_button = QPushButton("Login")
        self.login_button.clicked.connect(self.login)
        login_layout.addRow(self.login_button)

        forgot_button = QPushButton("Forgot Password?")
        forgot_button.setFlat(True)
        forgot_button.clicked.connect(lambda: self.stack.setCurrentIndex(1))
        login_layout.addRow(forgot_button)

        self.google_button = QPushButton("Continue with Google")
        self.google_button.clicked.connect(self.google_login)
        login_layout.addRow(self.google_button)

        signup_button = QPushButton("Don't have an account? Sign up")
        signup_button.setFlat(True)
        signup_button.clicked.connect(lambda: self.go_to(config.STATE_SIGNUP))
        login_layout.addRow(signup_button)
        login_page.setLayout(login_layout)
        self.stack.addWidget(login_page)

        # Reset page
        reset_page = QWidget()
        reset_layout = QFormLayout()
        reset_layout.addRow(QLabel("Enter your email to receive a reset link:"))
        self.reset_email_input = QLineEdit(last_email)
        reset_layout.addRow("Email:", self.reset_email_input)
        self.reset_button = QPushButton("Send Reset Link")
        self.reset_button.clicked.connect(self.reset_password)
        reset_layout.addRow(self.reset_button)
        back_button = QPushButton("Back to Login")
        back_button.setFlat(True)
        back_button.clicked.connect(lambda: self.stack.setCurrentIndex(0))
        reset_layout.addRow(back_button)
        reset_page.setLayout(reset_layout)
        self.stack.addWidget(reset_page)

        layout.addWidget(self.stack)
        layout.addWidget(self.status_label)
        self.setLayout(layout)

        if last_email:
            self.password_input.setFocus()
        else:
            self.email_input.setFocus()

    def login(self):
        """Attempt to login with email and password."""
        if not self.email_input.text().strip() or not self.password_input.text():
            QMessageBox.warning(self, "Validation Error", "Email and password are required")
            return
        self._set_busy(True, self.login_button, "Logging in...", "Login")
        self.controller.login(self.email_input.text(), self.password_input.text())
        self._poll_loading(self.login_button, "Login")

    def reset_password(self):
        """Request a password reset email."""
        if not self.reset_email_input.text().strip():
            QMessageBox.warning(self, "Validation Error", "Email is required")
            return
        self._set_busy(True, self.reset_button, "Sending...", "Send Reset Link")
        self.controller.reset_password(self.reset_email_input.text())
        self._poll_loading(self.reset_button, "Send Reset Link")
        self.stack.setCurrentIndex(0)


class SignupDialog(_AuthDialog):
    """Account registration."""

    def __init__(self, controller_factory: Callable[..., SignupController], parent=None):
        super().__init__("Sign Up", parent)
        self._bind(controller_factory)
        self.init_ui()

    def init_ui(self):
        """Initialize the user interface."""
        layout = QVBoxLayout()
        layout.addWidget(self._heading("Create Account"))

        form = QFormLayout()
        self.email_input = QLineEdit()
        form.addRow("Email:", self.email_input)
        self.password_input = QLineEdit()
        self.password_input.setEchoMode(QLineEdit.Password)
        self.password_input.textChanged.connect(self.check_password_strength)
        form.addRow("Password:", self.password_input)
        self.confirm_input = QLineEdit()
        self.confirm_input.setEchoMode(QLineEdit.Password)
        self.confirm_input.returnPressed.connect(self.sign_up)
        form.addRow("Confirm password:", self.confirm_input)
        self.strength_label = QLabel("")
        form.addRow(self.strength_label)
        layout.addLayout(form)

        self.signup_button = QPushButton("Sign Up")
        self.signup_button.clicked.connect(self.sign_up)
        layout.addWidget(self.signup_button)

        self.google_button = QPushButton("Sign up with Google")
        self.google_button.clicked.connect(self.google_login)
        layout.addWidget(self.google_button)

        login_button = QPushButton("Already have an account? Log in")
        login_button.setFlat(True)
        login_button.clicked.connect(lambda: self.go_to(config.STATE_LOGIN))
        layout.addWidget(login_button)

        layout.addWidget(self.status_label)
        self.setLayout(layout)

    def check_password_strength(self):
        """Check and display password strength."""
        strength = check_password_strength(self.password_input.text())
        self.strength_label.setStyleSheet("color: green" if strength.is_acceptable else "color: red")
        self.strength_label.setText(", ".join(strength.feedback))

    def sign_up(self):
        """Register the account."""
        if not self.email_input.text().strip():
            QMessageBox.warning(self, "Validation Error", "Email is required")
            return
        self.controller.sign_up(self.email_input.text(), self.password_input.text(),
                                self.confirm_input.text())


class CredentialDialog(QDialog):
    """Dialog for adding/editing a credential."""

    def __init__(self, controller: DashboardController, parent=None):
        super().__init__(parent)
        self.controller = controller
        self.entry: Optional[Credential] = controller.editing
        self.init_ui()
        self.controller.subscribe(self.on_state_changed)

    def init_ui(self):
        """Initialize the user interface."""
        self.setWindowTitle("Edit Credential" if self.entry else "Add New Credential")
        self.setModal(True)
        self.setMinimumWidth(500)

        form = CredentialForm.from_credential(self.entry) if self.entry else CredentialForm("", "", "")
        layout = QFormLayout()

        self.platform_input = QLineEdit(form.platform)
        layout.addRow("Platform:", self.platform_input)

        self.username_input = QLineEdit(form.username)
        layout.addRow("Username:", self.username_input)

        # Password
        password_layout = QHBoxLayout()
        self.password_input = QLineEdit(form.password)
        self.password_input.setEchoMode(QLineEdit.Password)
        self.password_input.textChanged.connect(self.check_password_strength)
        password_layout.addWidget(self.password_input)

        self.show_password_button = QPushButton("Show")
        self.show_password_button.setCheckable(True)
        self.show_password_button.toggled.connect(self.toggle_password_visibility)
        password_layout.addWidget(self.show_password_button)

        self.generate_button = QPushButton("Generate")
        self.generate_button.clicked.connect(self.generate_password)
        password_layout.addWidget(self.generate_button)
        layout.addRow("Password:", password_layout)

        self.strength_label = QLabel("")
        layout.addRow("", self.strength_label)

        self.url_input = QLineEdit(form.url)
        layout.addRow("URL:", self.url_input)

        self.notes_input = QTextEdit()
        self.notes_input.setMaximumHeight(100)
        self.notes_input.setPlainText(form.notes)
        layout.addRow("Notes:", self.notes_input)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel)
        self.buttons.accepted.connect(self.submit)
        self.buttons.rejected.connect(self.reject)
        layout.addRow(self.buttons)

        self.setLayout(layout)
        if self.entry:
            self.check_password_strength()

    def toggle_password_visibility(self, checked: bool):
        """Toggle password visibility."""
        if checked:
            self.password_input.setEchoMode(QLineEdit.Normal)
            self.show_password_button.setText("Hide")
        else:
            self.password_input.setEchoMode(QLineEdit.Password)
            self.show_password_button.setText("Show")

    def generate_password(self):
        """Fill the password field with a generated password."""
        self.password_input.setText(self.controller.generate_password())
        self.strength_label.setText("Strong password generated!")

    def check_password_strength(self):
        """Check and display password strength."""
        strength = check_password_strength(self.password_input.text())
        self.strength_label.setStyleSheet("color: green" if strength.is_acceptable else "color: red")
        self.strength_label.setText(", ".join(strength.feedback))

    def submit(self):
        """Hand the form to the controller; the dialog closes once saved."""
        self.controller.submit(CredentialForm(
            platform=self.platform_input.text(),
            username=self.username_input.text(),
            password=self.password_input.text(),
            url=self.url_input.text(),
            notes=self.notes_input.toPlainText()
        ))

    def on_state_changed(self):
        state = self.controller.state
        self.buttons.setEnabled(state is not ViewState.PENDING)
        if state is ViewState.LIST:
            self.controller.unsubscribe(self.on_state_changed)
            self.accept()

    def reject(self):
        if self.controller.is_pending:
            return
        self.controller.unsubscribe(self.on_state_changed)
        self.controller.cancel_form()
        super().reject()


class MainWindow(QMainWindow):
    """Dashboard window listing the user's credentials."""

    logged_out = pyqtSignal()

    COLUMNS = ["Platform", "Username", "Password", "URL", "Notes", "Updated", "Actions"]

    def __init__(self, controller_factory: Callable[..., DashboardController], theme: ThemeContext):
        super().__init__()
        self.theme = theme
        self.executor = QtExecutor(self)
        self._signed_out = False
        self.controller = controller_factory(
            notifier=StatusNotifier(self, lambda message: self.statusBar().showMessage(
                message, config.STATUS_MESSAGE_TIMEOUT)),
            confirm=confirm_dialog(self),
            executor=self.executor,
            on_signed_out=self._handle_logged_out
        )
        self.clipboard_timer = QTimer()
        self.clipboard_timer.setSingleShot(True)
        self.clipboard_timer.timeout.connect(self.clear_clipboard)
        self.init_ui()
        self.controller.subscribe(self.render)
        self.controller.refresh()

    def init_ui(self):
        """Initialize the user interface."""
        session = self.controller.session.session
        email = session.email if session else ""
        self.setWindowTitle(f"{config.APP_TITLE_PREFIX} - {email}")
        self.setGeometry(100, 100, 1100, 600)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout()
        central_widget.setLayout(layout)

        # Header
        header_layout = QHBoxLayout()
        title = QLabel("Credential Manager")
        font = title.font()
        font.setPointSize(16)
        font.setBold(True)
        title.setFont(font)
        header_layout.addWidget(title)
        header_layout.addStretch()

        self.theme_button = QPushButton()
        self.theme_button.clicked.connect(self.toggle_theme)
        header_layout.addWidget(self.theme_button)

        self.add_button = QPushButton("Add New")
        self.add_button.clicked.connect(self.add_entry)
        header_layout.addWidget(self.add_button)

        self.logout_button = QPushButton("Logout")
        self.logout_button.clicked.connect(self.logout)
        header_layout.addWidget(self.logout_button)
        layout.addLayout(header_layout)

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search credentials...")
        self.search_input.textChanged.connect(self.controller.set_filter)
        layout.addWidget(self.search_input)

        # Credential table
        self.table = QTableWidget()
        self.table.setColumnCount(len(self.COLUMNS))
        self.table.setHorizontalHeaderLabels(self.COLUMNS)
        self.table.setAlternatingRowColors(True)
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.horizontalHeader().setStretchLastSection(True)
        for column, width in enumerate([160, 180, 150, 180, 180, 130]):
            self.table.setColumnWidth(column, width)
        layout.addWidget(self.table)

        self.count_label = QLabel("Total Credentials: 0")
        self.count_label.setStyleSheet("padding-right: 10px;")
        self.statusBar().addPermanentWidget(self.count_label)

        self._update_theme_button()

    def render(self):
        """Rebuild the table from the controller's state."""
        credentials = self.controller.visible_credentials
        self.table.setRowCount(0)
        for entry in credentials:
            self.add_entry_to_table(entry)
        self.count_label.setText(f"Total Credentials: {len(self.controller.credentials)}")
        busy = self.controller.is_pending
        self.add_button.setEnabled(not busy)
        self.logout_button.setEnabled(not busy)

    def add_entry_to_table(self, entry: Credential):
        """Add a credential to the table."""
        row = self.table.rowCount()
        self.table.insertRow(row)
        visible = self.controller.is_password_visible(entry.id)

        platform_item = QTableWidgetItem(entry.platform)
        platform_item.setData(Qt.UserRole, entry.id)
        self.table.setItem(row, 0, platform_item)
        self.table.setItem(row, 1, QTableWidgetItem(entry.username))
        password_item = QTableWidgetItem(entry.password if visible else config.TABLE_PASSWORD_HIDDEN_TEXT)
        password_item.setFont(QFont("Consolas"))
        self.table.setItem(row, 2, password_item)
        self.table.setItem(row, 3, QTableWidgetItem(entry.url or ""))
        notes = entry.notes or ""
        self.table.setItem(row, 4, QTableWidgetItem(notes[:50] + "..." if len(notes) > 50 else notes))
        self.table.setItem(row, 5, QTableWidgetItem(self._format_date(entry.updated_at or entry.created_at)))

        actions_widget = QWidget()
        actions_layout = QHBoxLayout()
        actions_layout.setContentsMargins(0, 0, 0, 0)

        buttons = [
            ("🙈" if visible else "👁", "Hide password" if visible else "Show password",
             lambda: self.controller.toggle_password_visibility(entry.id)),
            ("📋", "Copy username", lambda: self.copy_text(entry.username, "Username")),
            ("🔑", "Copy password", lambda: self.copy_text(entry.password, "Password", clear=True)),
            ("✏️", "Edit", lambda: self.edit_entry(entry.id)),
            ("🗑️", "Delete", lambda: self.controller.delete(entry.id)),
        ]
        for text, tooltip, handler in buttons:
            button = QPushButton(text)
            button.setToolTip(tooltip)
            button.setMaximumWidth(34)
            button.setEnabled(not self.controller.is_pending)
            button.clicked.connect(handler)
            actions_layout.addWidget(button)

        actions_widget.setLayout(actions_layout)
        self.table.setCellWidget(row, 6, actions_widget)

    @staticmethod
    def _format_date(value: Optional[str]) -> str:
        if not value:
            return ""
        try:
            return datetime.datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
        except ValueError:
            return value

    def add_entry(self):
        """Open the add form."""
        self.controller.open_add()
        CredentialDialog(self.controller, self).exec_()

    def edit_entry(self, entry_id: str):
        """Open the edit form for an existing credential."""
        if self.controller.open_edit(entry_id):
            CredentialDialog(self.controller, self).exec_()

    def copy_text(self, text: str, label: str, clear: bool = False):
        """Copy to clipboard; passwords are cleared again after a timeout."""
        QApplication.clipboard().setText(text)
        if clear:
            self.clipboard_timer.start(config.CLIPBOARD_CLEAR_TIMEOUT_DEFAULT)
            self.statusBar().showMessage(
                f"{label} copied to clipboard (auto-clear in {config.CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS}s)",
                config.STATUS_MESSAGE_TIMEOUT)
        else:
            self.statusBar().showMessage(f"{label} copied to clipboard", config.STATUS_MESSAGE_TIMEOUT)

    def clear_clipboard(self):
        """Clear the clipboard."""
        QApplication.clipboard().clear()
        self.statusBar().showMessage("Clipboard cleared", config.STATUS_MESSAGE_TIMEOUT)

    def toggle_theme(self):
        self.theme.toggle()
        self._update_theme_button()

    def _update_theme_button(self):
        self.theme_button.setText("☀ Light" if self.theme.is_dark else "🌙 Dark")

    def logout(self):
        """Sign out and return to the login screen."""
        self.controller.logout()

    def _handle_logged_out(self):
        """Called by the controller after logout or when the session expired."""
        if self._signed_out:
            return
        self._signed_out = True
        self.logged_out.emit()
        self.close()

    def closeEvent(self, event):
        """Handle window close event."""
        self.controller.unsubscribe(self.render)
        self.executor.wait_for_all()
        self.clipboard_timer.stop()
        clipboard = QApplication.clipboard()
        if clipboard.text():
            clipboard.clear()
        event.accept()
