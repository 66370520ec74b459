from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientGemini(LLMClientInterface):
    """Completion client for the Google Gemini generateContent API."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://generativelanguage.googleapis.com/v1beta", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

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
        return "Gemini"

    def _get_default_chat_model(self) -> str:
        return "gemini-1.5-pro-latest"

    def _get_default_system_prompt(self) -> str:
        # generateContent is sent the user prompt only unless LLM_SYSTEM_PROMPT is set
        return ""

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://generativelanguage.googleapis.com/v1beta"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"x-goog-api-key": self._api_key}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return f"/models/{self.chat_model}:generateContent"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Translate OpenAI-format messages into a Gemini generateContent body.

        System messages become the systemInstruction, assistant turns use the
        "model" role.
        """
        system_parts = [{"text": m["content"]} for m in messages if m["role"] == "system"]
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]
        payload: dict = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the text of the first candidate.

        Raises:
            ValueError: If no candidate or no text part was generated.
        """
        candidates = response_data.get("candidates") or []
        if not candidates:
            raise ValueError("No response generated by Gemini.")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts or parts[0].get("text") is None:
            raise ValueError("No response generated by Gemini.")
        return parts[0]["text"]
