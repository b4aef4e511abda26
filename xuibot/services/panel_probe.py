"""Authenticated reachability check against x-ui panels."""

import logging

from xuibot.core.constants import Constants
from xuibot.core.errors import PanelError
from xuibot.core.types import ProbeOutcome
from xuibot.xui.client import XUIClient

logger = logging.getLogger(__name__)


class PanelProbe:
    """
    Verify that a panel accepts the credentials and serves an authenticated read.
    
    A login that returns 200 is not enough: the probe only reports the panel
    reachable when the account list can be fetched with the new session.
    No retries; the caller owns retry policy.
    """
    
    def __init__(self, secrets_manager=None, timeout: float = Constants.PANEL_TIMEOUT_SECONDS):
        """
        Args:
            secrets_manager: SecretsManager used to decrypt stored host credentials
            timeout: Per-request timeout in seconds
        """
        self.secrets_manager = secrets_manager
        self.timeout = timeout
    
    async def probe(self, url: str, username: str, password: str,
                    two_factor_code: str = "") -> ProbeOutcome:
        """
        Probe a panel with plaintext credentials.
        
        Returns:
            ProbeOutcome; `error` carries the panel's reason verbatim on failure
        """
        try:
            async with XUIClient(url, username, password, two_factor_code,
                                 timeout=self.timeout) as client:
                accounts = await client.check_status()
        except PanelError as e:
            return ProbeOutcome(reachable=False, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected probe error for {url}: {e}")
            return ProbeOutcome(reachable=False, error=f"Probe error: {str(e)[:200]}")
        
        return ProbeOutcome(reachable=True, accounts=accounts)
    
    async def probe_host(self, host) -> ProbeOutcome:
        """Probe a stored XUIHost row, decrypting its credentials."""
        try:
            password = self.secrets_manager.decrypt(host.password_encrypted)
            secret = ""
            if host.secret_key_encrypted:
                secret = self.secrets_manager.decrypt(host.secret_key_encrypted)
        except ValueError as e:
            logger.error(f"Cannot decrypt credentials of host {host.id}: {e}")
            return ProbeOutcome(reachable=False, error="Cannot decrypt stored credentials")
        
        return await self.probe(host.url, host.username, password, secret)
