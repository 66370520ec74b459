from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.errors.pipeline_errors import CompletionFailure
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=self._get_default_chat_model())
        self.system_prompt = helper_config.get_string_val(
            f"{self.get_client_type().upper()}_SYSTEM_PROMPT",
            default=self._get_default_system_prompt(),
        )

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def has_credentials(self) -> bool:
        """
        Returns whether the client has everything it needs to authenticate.
        Backends without authentication always return True.
        """
        return True

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        """Returns the model used when LLM_CHAT_MODEL is not set."""
        pass

    def _get_default_system_prompt(self) -> str:
        """Returns the system prompt used when LLM_SYSTEM_PROMPT is not set. Empty sends none."""
        return "You are a helpful assistant that provides information based on the given context."

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    def get_prompt_messages(self, prompt: str) -> list[dict]:
        """Wrap a single prompt into OpenAI-format messages, led by the system prompt."""
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ValueError: If the response does not contain a reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            str: The assistant reply text.

        Raises:
            CompletionFailure: On missing credentials, transport errors, non-2xx
                responses and responses without a reply.
        """
        if not self.has_credentials():
            raise CompletionFailure(f"{self.get_engine_name()} API key not provided", stage="complete")

        body = self.get_chat_payload(messages)
        try:
            response = await self.do_request(
                method="POST",
                endpoint=self._get_endpoint_chat(),
                json=body,
                raise_on_error=True,
            )
        except httpx.HTTPError as exc:
            raise CompletionFailure(f"Completion request to {self.get_engine_name()} failed: {exc}", stage="complete") from exc

        try:
            return self.extract_chat_response(response.json())
        except ValueError as exc:
            raise CompletionFailure(str(exc), stage="complete") from exc

    async def do_complete(self, prompt: str) -> str:
        """Complete a single prompt.

        Args:
            prompt (str): The full prompt text.

        Returns:
            str: The completion text, unmodified.

        Raises:
            CompletionFailure: See do_chat().
        """
        return await self.do_chat(self.get_prompt_messages(prompt))
