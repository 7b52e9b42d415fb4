"""
Authorization headers for the TFS REST client.

Personal access tokens go out as HTTP Basic with an empty user name. OAuth2
uses the Azure AD client credential flow through one msal application per
client, so token refreshes reuse msal's token cache.
"""

import base64
import logging
from datetime import UTC, datetime, timedelta

import msal

from tfs_admin.errors import TfsAuthenticationError

from .constants import OAUTH2_SCOPES

logger = logging.getLogger(__name__)

# Refresh this long before the reported expiry
TOKEN_EXPIRY_MARGIN = timedelta(minutes=1)
DEFAULT_TOKEN_LIFETIME = timedelta(minutes=50)


class TfsAuthMixin:
    """Adds _get_auth_headers() to the client.

    The client sets use_oauth2 and either pat or the client_id /
    client_secret / tenant_id triple.
    """

    use_oauth2: bool = False
    pat: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    tenant_id: str | None = None

    _msal_app: msal.ConfidentialClientApplication | None = None
    _access_token: str | None = None
    _token_expires_at: datetime | None = None

    async def _get_auth_headers(self) -> dict[str, str]:
        if self.use_oauth2:
            return {"Authorization": f"Bearer {self._valid_access_token()}"}
        return {"Authorization": f"Basic {self._basic_credentials()}"}

    def _basic_credentials(self) -> str:
        if not self.pat:
            raise ValueError("PAT is required when not using OAuth2")
        return base64.b64encode(f":{self.pat}".encode()).decode()

    def _valid_access_token(self) -> str:
        if self._access_token and self._token_expires_at and datetime.now(UTC) < self._token_expires_at:
            return self._access_token

        result = self._oauth_app().acquire_token_for_client(scopes=OAUTH2_SCOPES)
        if "access_token" not in result:
            error = result.get("error_description", "Unknown OAuth error")
            raise TfsAuthenticationError(401, self._authority, f"OAuth token request failed: {error}")

        lifetime = timedelta(seconds=result["expires_in"]) if "expires_in" in result else DEFAULT_TOKEN_LIFETIME
        self._access_token = result["access_token"]
        self._token_expires_at = datetime.now(UTC) + lifetime - TOKEN_EXPIRY_MARGIN
        logger.debug(f"Acquired OAuth2 token valid until {self._token_expires_at:%H:%M:%S} UTC")
        return self._access_token

    @property
    def _authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    def _oauth_app(self) -> msal.ConfidentialClientApplication:
        if self._msal_app is None:
            if not all([self.client_id, self.client_secret, self.tenant_id]):
                raise ValueError("OAuth2 requires client_id, client_secret, and tenant_id")
            self._msal_app = msal.ConfidentialClientApplication(
                self.client_id,
                authority=self._authority,
                client_credential=self.client_secret
            )
        return self._msal_app
