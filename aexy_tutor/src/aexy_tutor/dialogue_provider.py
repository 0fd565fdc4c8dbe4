"""
Dialogue Provider

Thin wrapper over the OpenAI chat completions API that gives the tutor a
stateful conversation: `start_dialogue` opens a context around a system
prompt, `send` returns one full reply, and `stream` yields a reply as it is
generated.

Chat completions are stateless, so the DialogueHandle carries the message
history that is replayed on every call.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from aexy_tutor.errors import DialogueProviderError

logger = logging.getLogger(__name__)

# Sent as the first user turn so the persona speaks first
OPENING_SENTINEL = "START_CONVERSATION"


@dataclass
class DialogueHandle:
    """Conversation context held on behalf of one session."""
    system_prompt: str
    dialogue_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    history: List[Dict[str, str]] = field(default_factory=list)
    closed: bool = False

    def messages_for(self, text: str) -> List[Dict[str, str]]:
        return (
            [{"role": "system", "content": self.system_prompt}]
            + self.history
            + [{"role": "user", "content": text}]
        )

    def append_exchange(self, user_text: str, reply: str):
        self.history.append({"role": "user", "content": user_text})
        self.history.append({"role": "assistant", "content": reply})


class DialogueProvider:
    """Opens and continues tutor dialogues against an OpenAI chat model."""

    def __init__(
        self,
        llm_client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        max_output_tokens: int = 500,
        temperature: float = 0.7
    ):
        if llm_client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment variables")
            llm_client = AsyncOpenAI(api_key=api_key)
        self.llm_client = llm_client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    async def start_dialogue(self, system_prompt: str) -> DialogueHandle:
        """Open a new dialogue context with an empty history."""
        return DialogueHandle(system_prompt=system_prompt)

    async def send(self, handle: DialogueHandle, text: str) -> str:
        """Send one user turn and return the complete reply."""
        self._ensure_open(handle)
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=handle.messages_for(text),
                max_tokens=self.max_output_tokens,
                temperature=self.temperature
            )
        except Exception as e:
            raise DialogueProviderError(f"LLM request failed: {e}") from e

        reply = response.choices[0].message.content or ""
        handle.append_exchange(text, reply)
        return reply

    async def stream(self, handle: DialogueHandle, text: str) -> AsyncIterator[str]:
        """
        Send one user turn and yield the reply as text fragments.

        The exchange is added to the dialogue history only when the stream
        runs to completion.
        """
        self._ensure_open(handle)
        try:
            stream = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=handle.messages_for(text),
                stream=True,
                max_tokens=self.max_output_tokens,
                temperature=self.temperature
            )
        except Exception as e:
            raise DialogueProviderError(f"LLM request failed: {e}") from e

        full_response = ""
        try:
            async for chunk in stream:
                if chunk.choices and len(chunk.choices) > 0:
                    delta = chunk.choices[0].delta
                    if delta and delta.content:
                        full_response += delta.content
                        yield delta.content
        except Exception as e:
            raise DialogueProviderError(f"LLM stream failed: {e}") from e
        finally:
            # Releases the HTTP response, also when the consumer stops early
            await stream.close()

        handle.append_exchange(text, full_response)

    async def close_dialogue(self, handle: DialogueHandle):
        """Release a dialogue context; later calls on the handle fail."""
        handle.closed = True
        handle.history.clear()
        logger.debug(f"[DialogueProvider] Closed dialogue {handle.dialogue_id}")

    def _ensure_open(self, handle: DialogueHandle):
        if handle.closed:
            raise DialogueProviderError(f"Dialogue {handle.dialogue_id} is closed")
