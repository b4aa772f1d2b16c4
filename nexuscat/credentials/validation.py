"""Format-only validation of provider secrets.

No network call is made; a key that passes here may still be rejected by the
provider.
"""

import re

MIN_SECRET_LENGTH = 8

PROVIDER_PATTERNS: dict[str, re.Pattern[str]] = {
    "openai": re.compile(r"^sk-[A-Za-z0-9_\-]{20,}$"),
    "groq": re.compile(r"^gsk_[A-Za-z0-9]{16,}$"),
    "openrouter": re.compile(r"^sk-or-[A-Za-z0-9\-]{20,}$"),
    "anthropic": re.compile(r"^sk-ant-[A-Za-z0-9_\-]{20,}$"),
}

GENERIC_PATTERN = re.compile(r"^[A-Za-z0-9_\-.]{16,}$")


def is_valid_secret_format(secret: str | None, provider_name: str | None = None) -> bool:
    """Check ``secret`` looks like an API key for ``provider_name``.

    Args:
        secret: Candidate secret.
        provider_name: Provider the key is for. Known providers are checked
            against their own key pattern, all others against a permissive
            generic pattern.

    Returns:
        True if the secret passes the length and pattern checks.
    """
    if not secret or not secret.strip():
        return False
    if len(secret) < MIN_SECRET_LENGTH:
        return False

    pattern = None
    if provider_name:
        pattern = PROVIDER_PATTERNS.get(provider_name.strip().casefold())
    if pattern is None:
        pattern = GENERIC_PATTERN
    return bool(pattern.match(secret))
