"""Storage for Wix OAuth credentials and pending install states."""

import datetime
import logging
import secrets
import string

from sqlalchemy.orm import Session, sessionmaker

from ordersync.core.errors import InvalidState, NoCredential
from ordersync.core.models import Credential, InstallState, WixGrant, utcnow

logger = logging.getLogger("credentials")

STATE_LENGTH = 64
STATE_ALPHABET = string.ascii_letters + string.digits


class CredentialStore:
    """Reads and upserts the token pair of each instance."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get(self, instance_id: str) -> Credential:
        """
        Get the stored credentials of an instance.

        Raises:
            NoCredential: If the instance has no stored credentials.
        """
        with self.session_factory() as db:
            grant = db.get(WixGrant, instance_id)
            if grant is None:
                raise NoCredential(instance_id)
            return Credential.model_validate(grant)

    def put(self, instance_id: str, refresh_token: str, access_token: str) -> Credential:
        """Insert or overwrite the token pair of an instance. Last writer wins."""
        with self.session_factory.begin() as db:
            grant = db.get(WixGrant, instance_id)
            if grant:
                logger.info("Updating credentials for instance %s", instance_id)
                grant.refresh_token = refresh_token
                grant.access_token = access_token
                grant.updated_at = utcnow()
            else:
                logger.info("Storing new credentials for instance %s", instance_id)
                grant = WixGrant(
                    instance_id=instance_id,
                    refresh_token=refresh_token,
                    access_token=access_token,
                    updated_at=utcnow(),
                )
                db.add(grant)
            db.flush()
            return Credential.model_validate(grant)


class InstallStateStore:
    """Single-use anti-CSRF states for the install flow."""

    def __init__(self, session_factory: sessionmaker[Session], ttl_minutes: int = 10) -> None:
        self.session_factory = session_factory
        self.ttl = datetime.timedelta(minutes=ttl_minutes)

    def create(self) -> str:
        state = "".join(secrets.choice(STATE_ALPHABET) for _ in range(STATE_LENGTH))
        with self.session_factory.begin() as db:
            db.add(InstallState(state=state, created_at=utcnow()))
        return state

    def consume(self, state: str) -> None:
        """
        Check a state and delete it so it cannot be presented again.

        Raises:
            InvalidState: If the state is unknown or has expired.
        """
        with self.session_factory.begin() as db:
            row = db.get(InstallState, state)
            if row is None:
                raise InvalidState("Parameter 'state' is invalid")
            db.delete(row)
            expired = utcnow() - row.created_at > self.ttl

        if expired:
            raise InvalidState("Parameter 'state' has expired")
