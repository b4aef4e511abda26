"""HTTP client for the x-ui (3x-ui) panel API."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from xuibot.core.constants import Constants
from xuibot.core.errors import PanelError

logger = logging.getLogger(__name__)


class XUIClient:
    """
    Session-cookie client for one x-ui panel.
    
    Use as an async context manager; the underlying aiohttp session is
    closed on exit. Every failure is raised as PanelError with the
    panel's reason kept verbatim.
    
    Examples:
        >>> async with XUIClient("https://panel:2053", "admin", "pw") as client:
        ...     await client.login()
        ...     users = await client.list_users()
    """
    
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        two_factor_code: str = "",
        timeout: float = Constants.PANEL_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.two_factor_code = two_factor_code
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.token: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None
    
    async def __aenter__(self) -> "XUIClient":
        # The session cookie is sent explicitly, so no jar is kept
        self._session = aiohttp.ClientSession(
            timeout=self.timeout,
            cookie_jar=aiohttp.DummyCookieJar(),
        )
        return self
    
    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
    
    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
    
    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise PanelError("Client session is not open")
        return self._session
    
    def _auth_headers(self) -> Dict[str, str]:
        if not self.token:
            raise PanelError("Not logged in")
        return {"Cookie": f"{Constants.SESSION_COOKIE_NAME}={self.token}"}
    
    async def _request(self, method: str, path: str, **kwargs):
        """Run one request; returns the released response and its body text."""
        url = f"{self.base_url}{path}"
        try:
            async with self.session.request(method, url, **kwargs) as resp:
                body = await resp.text()
                return resp, body
        except asyncio.TimeoutError:
            raise PanelError(f"Timeout requesting {path}")
        except aiohttp.ClientError as e:
            raise PanelError(f"Network error: {str(e)[:200]}")
    
    @staticmethod
    def _decode(path: str, resp, body: str) -> Dict[str, Any]:
        if resp.status != 200:
            raise PanelError(f"bad status: {resp.status} {resp.reason}")
        if not body.strip():
            raise PanelError(f"empty response from {path}")
        try:
            data = json.loads(body)
        except ValueError as e:
            raise PanelError(f"JSON decode error: {e}")
        if not isinstance(data, dict):
            raise PanelError("unexpected response format")
        if not data.get("success"):
            msg = data.get("msg") or ""
            raise PanelError(f"request not successful: {msg}".rstrip(": "))
        return data
    
    async def login(self) -> str:
        """
        Authenticate and store the session token.
        
        Returns:
            Session token from the `3x-ui` cookie
        
        Raises:
            PanelError: On a non-200 status, `success: false`, or a
                response without a session cookie
        """
        form = {
            "username": self.username,
            "password": self.password,
            "twoFactorCode": self.two_factor_code,
        }
        self.token = None
        resp, body = await self._request("POST", "/login", data=form)
        
        if resp.status != 200:
            raise PanelError(f"bad status: {resp.status} {resp.reason}")
        
        # Older panels answer with an empty body; the cookie is then the only signal
        try:
            data = json.loads(body) if body.strip() else {}
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("success") is False:
            msg = data.get("msg") or ""
            raise PanelError(f"request not successful: {msg}".rstrip(": "))
        
        cookie = resp.cookies.get(Constants.SESSION_COOKIE_NAME)
        if cookie is not None and cookie.value:
            self.token = cookie.value
        
        if not self.token:
            logger.warning(f"Login to {self.base_url} failed: HTTP {resp.status}, no session cookie")
            raise PanelError("session token not found in cookies")
        
        logger.debug(f"Logged in to {self.base_url}")
        return self.token
    
    async def list_users(self) -> List[Dict[str, Any]]:
        """Authenticated read of the panel's accounts."""
        path = "/api/user/list"
        resp, body = await self._request("GET", path, headers=self._auth_headers())
        data = self._decode(path, resp, body)
        return data.get("data") or []
    
    async def check_status(self) -> int:
        """
        Login followed by one authenticated read.
        
        Returns:
            Number of accounts on the panel
        """
        try:
            await self.login()
        except PanelError as e:
            raise PanelError(f"login failed: {e.message}")
        
        try:
            users = await self.list_users()
        except PanelError as e:
            raise PanelError(f"get users failed: {e.message}")
        
        logger.debug(f"Panel {self.base_url} OK, {len(users)} accounts")
        return len(users)
