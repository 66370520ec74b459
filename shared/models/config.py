from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single configuration parameter a client needs from the environment.

    The key is relative to the client namespace, e.g. "API_KEY" on the OpenAI
    embed client resolves to EMBED_OPENAI_API_KEY.

    Attributes:
        env_key (str): Key relative to the client's "<TYPE>_<ENGINE>_" prefix.
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback if unset. None marks the key as required.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | list | None = None
