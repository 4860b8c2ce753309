"""
Global Langfuse configuration.

How it works:
1. config/settings.py loads .env into os.environ via load_dotenv()
2. Langfuse SDK auto-discovers credentials from os.environ
3. CallbackHandler() can be attached to any LangChain call without passing credentials

Usage:
    from utils.langfuse_config import get_langfuse_handler

    handler = get_langfuse_handler()
    callbacks = [handler] if handler else []
"""

import logging
from typing import Optional

from langfuse.langchain import CallbackHandler

from config.settings import settings

logger = logging.getLogger(__name__)


def is_langfuse_enabled() -> bool:
    """
    Check if Langfuse observability is enabled.

    Returns:
        bool: True if enabled and configured, False otherwise
    """
    if not settings.LANGFUSE_ENABLED:
        return False

    if not settings.LANGFUSE_PUBLIC_KEY or not settings.LANGFUSE_SECRET_KEY:
        logger.warning("LANGFUSE_ENABLED=true but credentials missing in .env")
        return False

    return True


def get_langfuse_handler() -> Optional[CallbackHandler]:
    """Get Langfuse callback handler if observability is enabled."""
    if not is_langfuse_enabled():
        return None

    try:
        return CallbackHandler()
    except Exception as e:
        logger.warning("Failed to create Langfuse handler: %s", e)
        return None
