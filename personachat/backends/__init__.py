"""
Completion backends.

Usage:
    from personachat.backends import make_backend
    backend = make_backend(cfg)

provider.type in config.yaml selects the implementation.
"""

import logging

from personachat.backends.base import BaseBackend, BackendResponse, NO_RESPONSE
from personachat.backends.echo import EchoBackend
from personachat.backends.openai_compat import OpenAICompatibleBackend

logger = logging.getLogger(__name__)

# Provider name → backend class
PROVIDERS: dict[str, type[BaseBackend]] = {
    "openai": OpenAICompatibleBackend,
    "echo": EchoBackend,
}


def make_backend(cfg: dict) -> BaseBackend:
    """
    Instantiate the configured completion backend.

    Raises:
        ValueError: If provider.type is not registered.
    """
    p_cfg = cfg.get("provider", {})
    provider = p_cfg.get("type", "openai")
    cls = PROVIDERS.get(provider)
    if cls is None:
        available = ", ".join(PROVIDERS)
        raise ValueError(
            f"Unknown completion provider: '{provider}'. Available: {available}"
        )

    if cls is EchoBackend:
        return EchoBackend(delay=float(p_cfg.get("delay", 0.0)))

    api_key = p_cfg.get("api_key", "")
    if not api_key:
        logger.warning("provider.api_key is empty; upstream calls will be rejected")

    return OpenAICompatibleBackend(
        name=p_cfg.get("name", provider),
        url=p_cfg.get("url", "https://api.openai.com"),
        model=p_cfg.get("model", "gpt-4o-mini"),
        api_key=api_key,
        timeout=float(p_cfg.get("timeout", 60)),
        temperature=float(p_cfg.get("temperature", 0.7)),
    )


__all__ = [
    "BaseBackend",
    "BackendResponse",
    "EchoBackend",
    "NO_RESPONSE",
    "OpenAICompatibleBackend",
    "make_backend",
]
