# src/providers/continuity.py
"""Stateful text generation with a single stateless fallback.

Every text handler that continues a story conversation goes through
``complete_with_continuity`` so the recovery policy lives in one place.
"""

from __future__ import annotations

import logging

from storyloom.context.manager import ContextManager
from storyloom.context.models import ConversationContext
from storyloom.core.errors import ProviderContinuityDegenerateError
from storyloom.logging.context import set_provider_context
from storyloom.providers.base_client import BaseTextClient
from storyloom.providers.models import GenerationOptions, TextCompletion

logger = logging.getLogger(__name__)


async def complete_with_continuity(
    client: BaseTextClient,
    contexts: ContextManager,
    context: ConversationContext,
    prompt: str,
    options: GenerationOptions | None = None,
) -> TextCompletion:
    """Continue ``context`` with ``prompt`` on ``client``.

    On a non-empty reply the provider's new slot is stored. On an empty
    reply one stateless call (system prompt + this turn only) is made and
    the stored slot is left as it was.

    Raises:
        ProviderContinuityDegenerateError: If the fallback is empty too.
    """
    key = client.provider_key
    set_provider_context(key)

    completion = await client.complete(
        prompt,
        options,
        system=context.system_prompt,
        slot=context.providers.get(key),
    )
    if not completion.is_empty:
        if completion.slot is not None:
            await contexts.update_provider_data(context.context_id, key, completion.slot)
        return completion

    logger.warning(
        "Empty stateful response from %s for context %s; retrying stateless",
        key, context.context_id,
    )
    fallback = await client.complete_stateless(
        prompt, system=context.system_prompt, options=options,
    )
    if fallback.is_empty:
        raise ProviderContinuityDegenerateError(key, context.context_id)
    return fallback
