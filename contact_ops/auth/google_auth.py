"""
OAuth2 authentication module for the Google People store.

Provides OAuth 2.0 authentication with support for:
- Mapping stored credentials onto an AuthorizationStatus
- Automatic token refresh
- Secure credential storage in the configuration directory
- Running the interactive consent flow when access is requested
"""

import json
import logging
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from contact_ops.store.base import AuthorizationStatus
from contact_ops.utils.paths import resolve_config_dir

# OAuth2 scope required for reading and modifying contacts and groups
CONTACTS_SCOPE = "https://www.googleapis.com/auth/contacts"

SCOPES = [
    CONTACTS_SCOPE,
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",  # Required by Google when requesting userinfo.email
]

# File names inside the configuration directory
CREDENTIALS_FILE = "credentials.json"
TOKEN_FILE = "token.json"

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails or credentials are invalid."""

    pass


class GoogleAuth:
    """
    OAuth2 authentication manager for one Google account.

    Attributes:
        config_dir: Directory for storing credentials and tokens
        credentials_path: Path to OAuth client credentials file
        token_path: Path to the stored user token

    Usage:
        auth = GoogleAuth()

        # Current authorization state, without user interaction
        status = auth.authorization_status()

        # Run the consent flow (opens a browser)
        creds = auth.authenticate()
    """

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize the authentication manager.

        Args:
            config_dir: Directory for storing credentials and tokens.
                       Defaults to ~/.contact-ops/ or $CONTACT_OPS_CONFIG_DIR
        """
        self.config_dir = (
            Path(config_dir) if config_dir is not None else resolve_config_dir()
        )
        self.credentials_path = self.config_dir / CREDENTIALS_FILE
        self.token_path = self.config_dir / TOKEN_FILE

    def _ensure_config_dir(self) -> None:
        """Create the configuration directory with permissions 700 if missing."""
        if not self.config_dir.exists():
            self.config_dir.mkdir(parents=True, mode=0o700)
            logger.debug(f"Created config directory: {self.config_dir}")

    def _load_credentials(self) -> Credentials | None:
        if not self.token_path.exists():
            logger.debug("No token file found")
            return None

        try:
            # Keep the scopes recorded in the token
            creds: Credentials = Credentials.from_authorized_user_file(
                str(self.token_path)
            )
            logger.debug("Loaded stored credentials")
            return creds
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Invalid token file {self.token_path}: {e}")
            return None

    def _save_credentials(self, creds: Credentials) -> None:
        self._ensure_config_dir()
        self.token_path.write_text(creds.to_json())
        self.token_path.chmod(0o600)
        logger.debug(f"Saved credentials to {self.token_path}")

    def _refresh_credentials(self, creds: Credentials) -> bool:
        """
        Attempt to refresh expired credentials.

        Returns:
            True if refresh succeeded, False otherwise
        """
        if not creds.refresh_token:
            logger.debug("No refresh token available")
            return False

        try:
            creds.refresh(Request())
            logger.debug("Successfully refreshed credentials")
            return True
        except RefreshError as e:
            logger.warning(f"Failed to refresh credentials: {e}")
            return False

    def get_credentials(self) -> Credentials | None:
        """
        Get valid credentials if available, refreshing them when expired.

        Returns:
            Valid Credentials object, or None if not available
        """
        creds = self._load_credentials()
        if creds is None:
            return None

        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token and self._refresh_credentials(creds):
            self._save_credentials(creds)
            return creds

        return None

    def authorization_status(self) -> AuthorizationStatus:
        """
        Map the stored credentials onto an authorization status.

        - RESTRICTED: no OAuth client credentials file, so access can never
          be requested from this installation
        - AUTHORIZED: valid credentials granting the contacts scope
        - DENIED: valid credentials whose grant excludes the contacts scope
        - NOT_DETERMINED: no usable credentials yet
        """
        creds = self.get_credentials()
        if creds is not None:
            granted = creds.granted_scopes or creds.scopes or []
            if CONTACTS_SCOPE in granted:
                return AuthorizationStatus.AUTHORIZED
            return AuthorizationStatus.DENIED

        if not self.credentials_path.exists():
            return AuthorizationStatus.RESTRICTED

        return AuthorizationStatus.NOT_DETERMINED

    def authenticate(self, force_reauth: bool = False) -> Credentials:
        """
        Authenticate the Google account.

        If valid credentials exist and force_reauth is False, returns existing
        credentials. Otherwise, runs the OAuth flow to obtain new credentials.

        Raises:
            AuthenticationError: If authentication fails
            FileNotFoundError: If credentials.json is not found
        """
        if not force_reauth:
            creds = self.get_credentials()
            if creds is not None:
                logger.info("Using existing credentials")
                return creds

        if not self.credentials_path.exists():
            raise FileNotFoundError(
                f"OAuth credentials file not found: {self.credentials_path}\n"
                "Please download your OAuth client credentials from "
                "Google Cloud Console and save them to this location."
            )

        logger.info("Starting OAuth flow")

        try:
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.credentials_path), SCOPES
            )
            new_creds: Credentials = flow.run_local_server(port=0)
            self._save_credentials(new_creds)
            logger.info("Successfully authenticated")
            return new_creds

        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            raise AuthenticationError(f"Failed to authenticate: {e}") from e

    def is_authenticated(self) -> bool:
        return self.get_credentials() is not None

    def clear_credentials(self) -> bool:
        """
        Remove stored credentials.

        Returns:
            True if credentials were removed, False if they didn't exist
        """
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info("Cleared stored credentials")
            return True
        return False

    def get_auth_status(self) -> dict[str, object]:
        """
        Get authentication status details for display.

        Returns:
            Dictionary with authorization status and file locations
        """
        return {
            "authorization_status": self.authorization_status().value,
            "token_path": str(self.token_path),
            "token_exists": self.token_path.exists(),
            "credentials_path": str(self.credentials_path),
            "credentials_exist": self.credentials_path.exists(),
            "config_dir": str(self.config_dir),
        }
