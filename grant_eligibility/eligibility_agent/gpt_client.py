import logging
from openai import AsyncOpenAI

from grant_eligibility.config import Settings
from .prompts import (
    ASSISTANT_NAME,
    ASSISTANT_DESCRIPTION,
    ASSISTANT_INSTRUCTIONS,
    USER_MESSAGE,
    assistant_tools,
)

logger = logging.getLogger(__name__)


class ProviderClient:
    """Thin wrapper around the OpenAI Assistants primitives the pipeline needs."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o"):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderClient":
        # Each step is a single attempt; the SDK must not retry on its own
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            max_retries=0,
            timeout=settings.openai_timeout_seconds,
        )
        return cls(client, model=settings.openai_model)

    async def upload_file(self, path: str, filename: str):
        with open(path, "rb") as f:
            return await self.client.files.create(file=(filename, f), purpose="assistants")

    async def delete_file(self, file_id: str):
        await self.client.files.delete(file_id)

    async def create_assistant(self, file_id: str):
        return await self.client.beta.assistants.create(
            name=ASSISTANT_NAME,
            description=ASSISTANT_DESCRIPTION,
            instructions=ASSISTANT_INSTRUCTIONS,
            model=self.model,
            tools=assistant_tools(),
            tool_resources={"file_search": {"vector_stores": [{"file_ids": [file_id]}]}},
        )

    async def delete_assistant(self, assistant):
        # The vector store created for the file outlives the assistant otherwise
        vector_store_ids = []
        tool_resources = getattr(assistant, "tool_resources", None)
        file_search = getattr(tool_resources, "file_search", None)
        if file_search and file_search.vector_store_ids:
            vector_store_ids = list(file_search.vector_store_ids)

        try:
            await self.client.beta.assistants.delete(assistant.id)
        finally:
            for vector_store_id in vector_store_ids:
                try:
                    await self.client.vector_stores.delete(vector_store_id)
                except Exception as e:
                    logger.warning(f"Failed to delete vector store {vector_store_id}: {e}")

    async def create_thread(self, filename: str):
        return await self.client.beta.threads.create(
            messages=[
                {
                    "role": "user",
                    "content": f"{USER_MESSAGE}\nThe grant document is the attached file {filename}.",
                },
            ],
        )

    async def create_run(self, thread_id: str, assistant_id: str):
        return await self.client.beta.threads.runs.create(thread_id=thread_id, assistant_id=assistant_id)

    async def get_run(self, thread_id: str, run_id: str):
        return await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)

    async def cancel_run(self, thread_id: str, run_id: str):
        return await self.client.beta.threads.runs.cancel(run_id, thread_id=thread_id)

    async def close(self):
        await self.client.close()
