"""Free-text grammar for host registration input.

Expected shape: ``host login password [secret_key]``. Inputs that look like
a near miss are answered with a corrected suggestion instead of being
accepted, so a password is never guessed.
"""

from typing import List, Tuple

from xuibot.core.errors import HostInputError
from xuibot.core.types import HostData

FORMAT_HINT = "Format: host login password [secret_key]"
PASSWORD_PLACEHOLDER = "<password>"
SCHEMES = ("http://", "https://")


def has_scheme(host: str) -> bool:
    return host.startswith(SCHEMES)


def normalize_host_input(parts: List[str]) -> Tuple[str, bool]:
    """
    Rewrite near-miss input.
    
    Args:
        parts: Whitespace-separated tokens
    
    Returns:
        (text, changed) where changed means text is a suggestion
    
    Examples:
        >>> normalize_host_input(["https://x.com,admin,pw"])
        ('https://x.com admin pw', True)
        >>> normalize_host_input(["x.com:2053", "admin", "pw"])
        ('http://x.com:2053 admin pw', True)
    """
    if len(parts) == 1:
        text = parts[0].replace(",", " ").replace(";", " ")
        # ":" separates fields except inside the scheme marker
        text = "://".join(chunk.replace(":", " ") for chunk in text.split("://"))
        return " ".join(text.split()), True
    
    if len(parts) == 2:
        return f"{parts[0]} {parts[1]} {PASSWORD_PLACEHOLDER}", True
    
    if len(parts) in (3, 4):
        host = parts[0]
        if not has_scheme(host) and ":" in host:
            return " ".join([f"http://{host}"] + parts[1:]), True
    
    return " ".join(parts), False


def validate_host_data(data: HostData) -> None:
    """Raise HostInputError when a required field is empty or the scheme is missing."""
    if not data.host:
        raise HostInputError("Host must not be empty")
    if not data.login:
        raise HostInputError("Login must not be empty")
    if not data.password:
        raise HostInputError("Password must not be empty")
    if not has_scheme(data.host):
        raise HostInputError("Host must start with http:// or https://")


def parse_host_data(text: str) -> HostData:
    """
    Parse host registration input.
    
    Raises:
        HostInputError: Malformed input; `suggestion` is set when a corrected
            line can be offered for resubmission
    """
    parts = (text or "").split()
    if not parts:
        raise HostInputError(f"Empty input. {FORMAT_HINT}")
    
    normalized, changed = normalize_host_input(parts)
    if changed:
        if normalized == " ".join(parts):
            raise HostInputError(f"Not enough data. {FORMAT_HINT}")
        raise HostInputError(
            f"Did you mean: {normalized}\n\n"
            f"If this is correct, send it again. Otherwise fix the input. {FORMAT_HINT}",
            suggestion=normalized,
        )
    
    if len(parts) < 3:
        raise HostInputError(f"Not enough data. {FORMAT_HINT}")
    if len(parts) > 4:
        raise HostInputError(f"Too much data. {FORMAT_HINT}")
    
    data = HostData(host=parts[0], login=parts[1], password=parts[2])
    if len(parts) == 4:
        data.secret_key = parts[3]
    
    validate_host_data(data)
    return data


def _authority(host: str) -> str:
    for scheme in SCHEMES:
        if host.startswith(scheme):
            host = host[len(scheme):]
            break
    return host.split("/", 1)[0]


def _split_host_port(host: str) -> Tuple[str, str]:
    authority = _authority(host)
    if authority.startswith("["):
        # [v6addr]:port
        addr, _, rest = authority[1:].partition("]")
        return addr, rest[1:] if rest.startswith(":") else ""
    if ":" in authority:
        addr, _, port = authority.rpartition(":")
        return addr, port
    return authority, ""


def extract_ip_from_host(host: str) -> str:
    """
    Examples:
        >>> extract_ip_from_host("http://192.168.1.100:54321/panel")
        '192.168.1.100'
    """
    return _split_host_port(host)[0]


def extract_port_from_host(host: str) -> int:
    """
    Explicit port, else 443 for https and 80 otherwise.
    
    Examples:
        >>> extract_port_from_host("https://x.com:2053")
        2053
        >>> extract_port_from_host("https://x.com")
        443
    """
    port = _split_host_port(host)[1]
    if port.isdigit() and 0 < int(port) < 65536:
        return int(port)
    return 443 if host.startswith("https://") else 80
