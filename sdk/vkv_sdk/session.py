"""
Session for the VKV SDK.

A Session owns the long-lived transport shared by every command run
through it. Commands themselves are single-use values and hold no
connection.

Example:
    >>> with Session(InMemoryTransport()) as session:
    ...     session.bucket("users").set_json({"name": "Bob"}).key("u1").run(session)
"""

from __future__ import annotations

import logging
from typing import Any

from .command import Command
from .config import ClientSettings
from .errors import ConnectionError
from .transport.base import StorageTransport
from .transport.http import HttpTransport

logger = logging.getLogger(__name__)


class Session:
    """Connection to a storage cluster.

    Attributes:
        transport: Transport every command runs through
        settings: Client settings
    """

    def __init__(
        self,
        transport: StorageTransport | None = None,
        *,
        settings: ClientSettings | None = None,
    ) -> None:
        """Initialize a session.

        Args:
            transport: Transport to use; defaults to HttpTransport(settings)
            settings: Client settings (loaded from environment if omitted)
        """
        self.settings = settings or ClientSettings()
        self.transport: StorageTransport = transport or HttpTransport(self.settings)

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    def bucket(self, name: str, bucket_type: str | None = None) -> Command:
        """Start a command, defaulting to the configured bucket type."""
        return Command(name, bucket_type or self.settings.default_bucket_type)

    def connect(self) -> None:
        """Connect the transport."""
        if self.transport.is_connected:
            return

        try:
            self.transport.connect()
        except ConnectionError:
            raise
        except OSError as e:
            raise ConnectionError(f"Failed to connect: {e}") from e
        logger.debug("Session connected via %s", type(self.transport).__name__)

    def close(self) -> None:
        """Close the transport."""
        if self.transport.is_connected:
            self.transport.close()

    def __enter__(self) -> Session:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
