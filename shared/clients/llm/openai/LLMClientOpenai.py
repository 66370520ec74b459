from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    """Completion client for the OpenAI chat completions API and compatible servers."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self.temperature = self.get_config_val("TEMPERATURE", default=0.7, val_type="number")
        self.max_tokens = int(self.get_config_val("MAX_TOKENS", default=1000, val_type="number"))

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def has_credentials(self) -> bool:
        return bool(self._api_key)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_chat_model(self) -> str:
        return "gpt-3.5-turbo"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="TEMPERATURE", val_type="number", default=0.7),
            EnvConfig(env_key="MAX_TOKENS", val_type="number", default=1000),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the first choice's message content.

        Raises:
            ValueError: If the response carries no choices or no content.
        """
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError("No completion data received from OpenAI API.")
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI completion choice does not contain message content.")
        return content
