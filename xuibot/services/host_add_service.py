"""Host registration dialog: AddingHost state, input parsing and live probe."""

import logging
from typing import Optional

from xuibot.core.constants import Constants
from xuibot.core.errors import (
    DuplicateHostError,
    HostConnectionError,
    NotInAddHostStateError,
    PermissionDeniedError,
)
from xuibot.core.types import UserState, ExpectedAction
from xuibot.services.host_input import (
    parse_host_data,
    extract_ip_from_host,
    extract_port_from_host,
)
from xuibot.utils.time_helpers import utcnow, expires_in, is_expired

logger = logging.getLogger(__name__)


ADD_HOST_INSTRUCTIONS = (
    "📝 *Adding an x-ui host*\n\n"
    "Send the panel data in one message:\n"
    "`host login password [secret_key]`\n\n"
    "Examples:\n"
    "• `https://example.com admin password123`\n"
    "• `http://192.168.1.100:54321 user pass 2fa_secret`\n\n"
    "Fields:\n"
    "• host - panel URL with http:// or https:// (required)\n"
    "• login - panel username (required)\n"
    "• password - panel password (required)\n"
    "• `secret_key` - 2FA code (optional)\n\n"
    "⏳ You have 10 minutes. Send /cancel to abort."
)


class HostAddService:
    """
    Drive the host registration dialog.
    
    The dialog is the user's AddingHost state with a 10 minute expiry. Input
    errors and probe failures leave the state unchanged so the admin can
    retry; only a successful probe commits the host and returns the user to
    Active.
    """
    
    def __init__(self, user_state_service, host_repo, probe, policy,
                 secrets_manager, audit_logger=None,
                 ttl_seconds: int = Constants.ADD_HOST_TTL_SECONDS):
        """
        Args:
            user_state_service: UserStateService
            host_repo: HostRepository (get_by_url, create)
            probe: PanelProbe (probe)
            policy: AuthorizationPolicy deciding who may register hosts
            secrets_manager: SecretsManager for credentials at rest
            audit_logger: AuditLogger, optional
            ttl_seconds: Dialog lifetime
        """
        self.user_state = user_state_service
        self.host_repo = host_repo
        self.probe = probe
        self.policy = policy
        self.secrets_manager = secrets_manager
        self.audit_logger = audit_logger
        self.ttl_seconds = ttl_seconds
    
    async def start_add_host_process(self, user_id: int, username: Optional[str]) -> None:
        """
        Put an admin into AddingHost.
        
        Raises:
            PermissionDeniedError: If user is not a global admin
        """
        if not self.policy.is_privileged(user_id, username):
            logger.warning(f"User {user_id} (@{username}) denied host registration")
            raise PermissionDeniedError("Only global administrators can add x-ui hosts")
        
        await self.user_state.set_state(
            user_id,
            UserState.ADDING_HOST,
            ExpectedAction.INPUT_HOST_DATA,
            "host add process started",
            user_id,
            username or "",
            expires_at=expires_in(self.ttl_seconds),
            metadata={
                "process_started_at": utcnow().isoformat(),
                "process_type": "xui_host_add",
            },
        )
    
    async def process_host_data(self, user_id: int, text: str, username: Optional[str]):
        """
        Parse, probe and commit one host.
        
        Returns:
            Created XUIHost
        
        Raises:
            NotInAddHostStateError: No dialog in progress (or it expired)
            HostInputError: Malformed input, possibly with a suggestion
            DuplicateHostError: URL already registered
            HostConnectionError: Probe failed
        """
        user = await self.user_state.get_user_state(user_id)
        if user.state != UserState.ADDING_HOST:
            raise NotInAddHostStateError()
        
        data = parse_host_data(text)
        
        if await self.host_repo.get_by_url(data.host):
            raise DuplicateHostError(f"Host {data.host} is already registered")
        
        outcome = await self.probe.probe(data.host, data.login, data.password, data.secret_key)
        if not outcome.reachable:
            logger.warning(f"Host add probe failed for {data.host}: {outcome.error}")
            raise HostConnectionError(f"Could not connect to the panel: {outcome.error}")
        
        host = await self.host_repo.create(
            url=data.host,
            name=f"XUI Server - {data.host}",
            ip=extract_ip_from_host(data.host),
            port=extract_port_from_host(data.host),
            username=data.login,
            password_encrypted=self.secrets_manager.encrypt(data.password),
            secret_key_encrypted=(
                self.secrets_manager.encrypt(data.secret_key) if data.secret_key else None
            ),
            added_by_id=user_id,
            added_by_username=username,
            is_active=True,
        )
        logger.info(f"Host {host.id} ({data.host}) added by {user_id}")
        
        await self.user_state.activate_user(
            user_id, user_id, username or "",
            reason="host added",
            metadata={"host_added": data.host, "added_at": utcnow().isoformat()},
        )
        
        if self.audit_logger:
            await self.audit_logger.log(
                user_id=user_id,
                action="host.added",
                resource_type="host",
                resource_id=host.id,
                details={"url": data.host, "accounts": outcome.accounts},
            )
        
        return host
    
    async def cancel_add_host_process(self, user_id: int, username: Optional[str]) -> None:
        """
        Leave AddingHost.
        
        Raises:
            NotInAddHostStateError: No dialog in progress
        """
        user = await self.user_state.get_user_state(user_id)
        if user.state != UserState.ADDING_HOST:
            raise NotInAddHostStateError()
        
        await self.user_state.activate_user(
            user_id, user_id, username or "",
            reason="host add process cancelled",
            metadata={"process_cancelled_at": utcnow().isoformat()},
        )
    
    async def is_in_add_host_state(self, user_id: int) -> bool:
        """Pure read; an expired dialog counts as not in progress."""
        user = await self.user_state.get_user(user_id)
        if not user:
            return False
        return user.state == UserState.ADDING_HOST and not is_expired(user.state_expires_at)
    
    def get_add_host_instructions(self) -> str:
        return ADD_HOST_INSTRUCTIONS
