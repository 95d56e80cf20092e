"""
Authentication Sessions.

The persistence collaborators obtain their HTTP client from an auth
session. Two sessions are provided:

    GoogleAuthSession: OAuth bearer token for the Sheets and Drive APIs,
        exposed as an authorized requests.Session.
    LocalAuthSession: offline backends (Excel workbook, local folder);
        always signed in, no client.
"""

import threading
from typing import Optional

import requests

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import env_or_default
from invoice_intake.utils.exceptions import AuthenticationError

logger = get_logger(__name__)


class LocalAuthSession:
    """Session for backends that need no credentials."""

    provider = "local"

    def __init__(self) -> None:
        self._initialized = False

    def initialize(self) -> None:
        self._initialized = True

    def sign_in(self) -> None:
        self.initialize()

    def is_signed_in(self) -> bool:
        return True

    def get_client(self) -> None:
        return None


class GoogleAuthSession:
    """
    Bearer-token session for Google APIs.

    The token comes from the constructor or from the environment
    variable named in ``output.google.access_token_env``. Obtaining the
    token (OAuth consent, refresh) is left to the caller's tooling, e.g.
    ``gcloud auth print-access-token``.

    Example:
        >>> auth = GoogleAuthSession()
        >>> auth.sign_in()
        >>> auth.get_client().get(url)
    """

    provider = "Google"
    SCOPES = (
        "https://www.googleapis.com/auth/spreadsheets",
        "https://www.googleapis.com/auth/drive.file",
    )

    def __init__(
        self,
        access_token: Optional[str] = None,
        token_env: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.access_token = access_token
        self.token_env = token_env or get_config("output.google.access_token_env", "GOOGLE_ACCESS_TOKEN")
        self.timeout = timeout or get_config("output.google.timeout_seconds", 30)
        self._session: Optional[requests.Session] = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Create the HTTP session. Calling it again does nothing."""
        with self._lock:
            if self._session is not None:
                return
            self._session = requests.Session()
            self._session.headers['Accept'] = 'application/json'
            logger.debug("Google API session created")

    def sign_in(self) -> None:
        """
        Attach the bearer token to the session.

        Raises:
            AuthenticationError: If no access token is available.
        """
        self.initialize()
        if self.is_signed_in():
            return

        token = self.access_token or env_or_default(self.token_env)
        if not token:
            raise AuthenticationError(
                self.provider,
                f"No access token: set the {self.token_env} environment variable "
                f"to a token granted {', '.join(self.SCOPES)}"
            )

        self._session.headers['Authorization'] = f"Bearer {token}"
        logger.info("Signed in to Google APIs")

    def is_signed_in(self) -> bool:
        return self._session is not None and 'Authorization' in self._session.headers

    def get_client(self) -> Optional[requests.Session]:
        return self._session

    def close(self) -> None:
        with self._lock:
            if self._session is not None:
                self._session.close()
            self._session = None
