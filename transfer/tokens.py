"""Session token acquisition and freshness checks."""

from datetime import timedelta
from typing import Optional

import jwt

from common.constants import DEFAULT_TOKEN_MARGIN_MINUTES
from common.exceptions import TokenError, TransportError
from common.logging_config import get_logger
from common.types import UntrustedClaims
from transfer.client import LegaClient
from transfer.trusted_time import TrustedTimeSource

logger = get_logger(__name__)


def decode_untrusted_claims(token: str) -> UntrustedClaims:
    """
    Read the payload of a session token without checking its signature.

    The issuing proxy is trusted, the token itself is not verified here.

    Raises:
        TokenError: If the token is not a decodable JWT or lacks user/exp
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise TokenError(f"Malformed session token: {e}") from e

    try:
        return UntrustedClaims(user=str(payload['user']), exp=int(payload['exp']), raw=payload)
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError(f"Session token payload lacks user/exp: {e}") from e


class TokenLifecycleManager:
    """Acquires short-lived session tokens and decides when to replace them."""

    def __init__(
        self,
        client: LegaClient,
        time_source: TrustedTimeSource,
        margin_minutes: int = DEFAULT_TOKEN_MARGIN_MINUTES,
    ):
        self.client = client
        self.time_source = time_source
        self.margin_minutes = margin_minutes
        self.token: Optional[str] = None
        self.claims: Optional[UntrustedClaims] = None

    def acquire(self) -> tuple[str, UntrustedClaims]:
        """
        Request a new session token from the proxy.

        Returns:
            Tuple of (bearer token, unverified claims)

        Raises:
            TokenError: On any failure; no retry is attempted
        """
        url = f"{self.client.config.get_instance_url()}/gettoken"
        try:
            response = self.client.do_request(
                'GET',
                url,
                headers=self.client.proxy_headers(),
                auth=self.client.basic_auth(),
            )
            self.client.check_status(response)
            data = self.client.parse_json(response)
        except TransportError as e:
            raise TokenError(f"Cannot acquire session token: {e}") from e

        token = data.get('token')
        if not isinstance(token, str) or not token:
            raise TokenError("Cannot acquire session token: response has no 'token' field")

        claims = decode_untrusted_claims(token)
        self.token, self.claims = token, claims
        logger.info(f"Acquired session token [user={claims.user}, exp={claims.expires_at.isoformat()}]")
        return token, claims

    def refresh(self) -> tuple[str, UntrustedClaims]:
        """There is no refresh endpoint: refreshing means acquiring again."""
        return self.acquire()

    def is_expired(
        self,
        claims: UntrustedClaims,
        margin_minutes: Optional[int] = None,
        time_source: Optional[TrustedTimeSource] = None,
    ) -> bool:
        """
        True iff trusted now + margin >= exp.

        Raises:
            TokenError: If no trusted time server answered
        """
        if margin_minutes is None:
            margin_minutes = self.margin_minutes
        time_source = time_source or self.time_source
        deadline = time_source.now() + timedelta(minutes=margin_minutes)
        return deadline.timestamp() >= claims.exp

    def ensure_fresh(self) -> tuple[str, UntrustedClaims]:
        """
        Return a usable token, acquiring or refreshing it as needed.

        A newly issued token is checked too.

        Raises:
            TokenError: If the proxy issues a token that is already inside the
                expiry margin
        """
        if self.token is None or self.claims is None:
            token, claims = self.acquire()
        elif self.is_expired(self.claims):
            logger.info("Session token expired or about to expire, refreshing")
            token, claims = self.refresh()
        else:
            return self.token, self.claims

        if self.is_expired(claims):
            raise TokenError(
                f"Session token issued already expired or within {self.margin_minutes} minutes "
                f"of expiry [exp={claims.expires_at.isoformat()}]"
            )
        return token, claims
