"""
Configuration constants for the CredVault application.
"""

import os

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "CredVault Credential Manager"  # Use: Full name of the application. Type: str. Range: Any valid string.
APP_TITLE_PREFIX = f"{APP_NAME} v{APP_VERSION}"  # Use: Prefix for the application window titles, combining name and version. Type: str (f-string). Range: Derived from APP_NAME and APP_VERSION.

# Backend Settings
SUPABASE_URL = os.environ.get("CREDVAULT_SUPABASE_URL", "").rstrip("/")  # Use: Base URL of the hosted Supabase project. Type: str. Range: https URL without trailing slash.
SUPABASE_ANON_KEY = os.environ.get("CREDVAULT_SUPABASE_ANON_KEY", "")  # Use: Public anon key sent as `apikey` on every request. Type: str. Range: JWT issued by the project.
CREDENTIALS_TABLE = "credentials"  # Use: Name of the remote table holding credentials. Type: str. Range: Must match supabase/migrations.
REDIRECT_URL = os.environ.get("CREDVAULT_REDIRECT_URL", "")  # Use: Redirect target for sign-up confirmation and password reset emails. Type: str. Range: URL or "" for the project default.
_timeout = os.environ.get("CREDVAULT_HTTP_TIMEOUT", "")
HTTP_TIMEOUT_SECONDS = float(_timeout) if _timeout else None  # Use: Local request timeout. Type: float or None. Range: None disables local timeouts; failures then surface only from the network layer.

# OAuth Settings
OAUTH_PROVIDER_GOOGLE = "google"  # Use: Provider name passed to the auth provider's authorize endpoint. Type: str.
OAUTH_QUERY_PARAMS = {"access_type": "offline", "prompt": "consent"}  # Use: Extra query parameters forwarded to Google. Type: dict[str, str].
OAUTH_CALLBACK_HOST = "127.0.0.1"  # Use: Host of the loopback listener receiving the OAuth redirect. Type: str.
OAUTH_CALLBACK_PORT = int(os.environ.get("CREDVAULT_OAUTH_PORT", "54321"))  # Use: Port of the loopback listener. Type: int. Range: 1024-65535, must be allowed as a redirect URL in the project.
OAUTH_CALLBACK_PATH = "/callback"  # Use: Path of the loopback redirect. Type: str.
OAUTH_CALLBACK_TIMEOUT_SECONDS = 300  # Use: How long the loopback listener waits for the browser redirect. Type: int. Range: Positive integer.
OAUTH_CALLBACK_POLL_SECONDS = 0.5  # Use: Slice the loopback listener waits before checking for cancellation. Type: float. Range: Positive number.

# Password Generator Settings
PASSWORD_GENERATOR_DEFAULT_LENGTH = 16  # Use: Default length for generated passwords. Type: int. Range: Non-negative integer.
PASSWORD_ALPHABET = (  # Use: The 88 characters generated passwords are drawn from. Type: str. Range: Fixed.
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "!@#$%^&*()_+-=[]{}|;:,.<>?"
)

# Password Strength Settings
STRENGTH_MIN_LENGTH = 8  # Use: Length awarding the first length point and below which a length suggestion is given. Type: int.
STRENGTH_LONG_LENGTH = 12  # Use: Length awarding the second length point. Type: int.
STRENGTH_WEAK_BELOW = 3  # Use: Scores below this are labelled weak and block saving. Type: int. Range: 0-6.
STRENGTH_MODERATE_BELOW = 5  # Use: Scores below this (and not weak) are labelled moderate. Type: int. Range: 0-6.

# Hashing Settings
ARGON2_TIME_COST = 3  # Use: Argon2id time cost (iterations) for the password hashing helper. Type: int. Range: Typically 1 to 10.
ARGON2_MEMORY_COST = 65536  # Use: Argon2id memory cost in KiB. Type: int. Range: At least 65536 (64 MB) recommended.
ARGON2_PARALLELISM = 4  # Use: Argon2id lanes. Type: int. Range: Typically 1 to 8.

# Session Settings
KEYRING_SERVICE = "credvault"  # Use: Service name under which the session is stored in the OS keyring. Type: str.
KEYRING_SESSION_KEY = "session"  # Use: Keyring username slot holding the serialized session. Type: str.
SESSION_EXPIRY_MARGIN_SECONDS = 60  # Use: Refresh the access token this long before it expires. Type: int. Range: Non-negative integer.

# UI Settings
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS = 30  # Use: Timeout in seconds after which copied passwords are cleared from the clipboard. Type: int.
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT = CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS * 1000  # Use: Clipboard clear timeout in milliseconds. Derived value.
STATUS_MESSAGE_TIMEOUT = 3000  # Use: How long transient notifications stay in the status bar, in milliseconds. Type: int.
TABLE_PASSWORD_HIDDEN_TEXT = "••••••••"  # Use: Placeholder text displayed in the table for hidden passwords. Type: str.
APP_STYLE = 'Fusion'  # Use: PyQt5 application style. Type: str. Range: Valid PyQt5 style names.
THEME_LIGHT = "light"  # Use: Preference value for the light theme. Type: str.
THEME_DARK = "dark"  # Use: Preference value for the dark theme. Type: str.

# Messages
MSG_DELETE_CONFIRM = "Are you sure you want to delete this credential?"  # Use: Prompt shown before deleting a credential. Type: str.
MSG_NOT_LOGGED_IN = "You must be logged in to save credentials"  # Use: Error shown when saving without a session. Type: str.
MSG_SESSION_EXPIRED = "Your session has expired. Please log in again."  # Use: Shown when a stored session can no longer be refreshed. Type: str.

# Application State Machine States
STATE_STARTUP = "STARTUP"  # Use: Represents the application's initial state. Type: str.
STATE_LOGIN = "LOGIN"  # Use: Represents the login screen. Type: str.
STATE_SIGNUP = "SIGNUP"  # Use: Represents the sign-up screen. Type: str.
STATE_MAIN_WINDOW = "MAIN_WINDOW"  # Use: Represents the dashboard window. Type: str.
STATE_EXIT = "EXIT"  # Use: Represents the application's exit state. Type: str.

# File and Directory Names
CONFIG_DIR_NAME = ".credvault"  # Use: Hidden directory within the user's home directory for preferences and logs. Type: str.
PREFERENCES_FILE = "preferences.json"  # Use: Filename for persisted user preferences. Type: str.
AUDIT_LOG_FILE = "audit.log"  # Use: Filename for the application's security audit log. Type: str.
LOG_LEVEL = os.environ.get("CREDVAULT_LOG_LEVEL", "INFO").upper()  # Use: Root log level. Type: str. Range: DEBUG, INFO, WARNING, ERROR.
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'  # Use: Format of console log lines. Type: str.
