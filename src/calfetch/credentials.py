"""Credential acquisition shared by all fetch jobs."""

import asyncio
import logging

from google.oauth2.credentials import Credentials

from .exceptions import TokenPersistError
from .ports import Authorizer, CredentialStore

logger = logging.getLogger(__name__)


class CredentialProvider:
    """
    Hands out the process-wide credential.

    Uses the stored credential when there is one, otherwise runs the
    interactive flow and persists the result. Acquisition is serialized: the
    callback listener owns a fixed port, and a job that waited on the lock
    picks up the credential the previous holder just stored.
    """

    def __init__(self, store: CredentialStore, authorizer: Authorizer):
        self.store = store
        self.authorizer = authorizer
        self._lock = asyncio.Lock()

    async def acquire(self) -> Credentials:
        """Return a credential. Raises AuthorizationError (or ConfigLoadError)."""
        async with self._lock:
            creds = self.store.load()
            if creds is not None:
                return creds

            logger.info("No stored credential - starting interactive authorization")
            creds = await asyncio.to_thread(self.authorizer.authorize)

            try:
                self.store.save(creds)
            except TokenPersistError as e:
                logger.error(f"{e} - using the in-memory credential for this cycle")

            return creds
