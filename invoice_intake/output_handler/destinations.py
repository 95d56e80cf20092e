"""
Destination id resolution.

A spreadsheet id or storage folder id comes from, in order:
    1. the user override saved in LocalSettings
    2. the environment variable named in settings.yaml
    3. the static default in settings.yaml
"""

from typing import Callable, Optional

from invoice_intake.utils.helpers import env_or_default
from invoice_intake.utils.exceptions import PersistenceDestinationNotConfiguredError


class DestinationResolver:
    """
    Resolves one destination id on every call, so overrides saved while
    the process runs are picked up by the next document.

    Example:
        >>> resolver = DestinationResolver("spreadsheet", settings.load_sheet_id, "INVOICE_SHEET_ID")
        >>> resolver.resolve()
        '1AbC...'
    """

    def __init__(
        self,
        destination: str,
        load_override: Optional[Callable[[], Optional[str]]] = None,
        env_name: Optional[str] = None,
        default: Optional[str] = None
    ) -> None:
        self.destination = destination
        self.load_override = load_override
        self.env_name = env_name
        self.default = default

    def resolve(self) -> str:
        """
        Raises:
            PersistenceDestinationNotConfiguredError: If no source has a value.
        """
        if self.load_override is not None:
            override = self.load_override()
            if override:
                return override

        value = env_or_default(self.env_name, self.default)
        if not value:
            raise PersistenceDestinationNotConfiguredError(self.destination, self.env_name)
        return value
