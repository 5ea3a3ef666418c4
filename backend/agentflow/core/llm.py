"""
Chat model for ToolCallingLLMAgent, picked by settings.litellm_mode.

  proxy   → ChatOpenAI against the LiteLLM proxy (needs litellm_base_url)
  library → ChatLiteLLM in-process (needs the `litellm` extra installed)

The agent only relies on bind_tools() and ainvoke(), so tests pass a fake
chat model instead of calling this.
"""

from langchain_core.language_models.chat_models import BaseChatModel

from agentflow.core.config import get_settings


def get_chat_model(
    *,
    model: str | None = None,
    temperature: float = 0.0,
) -> BaseChatModel:
    """
    Return a configured chat model.

    Args:
        model:       Override the model name. Defaults to settings.primary_model.
        temperature: Sampling temperature. 0 keeps tool calls reproducible.
    """
    settings = get_settings()
    model_name = model or settings.primary_model

    if settings.litellm_mode == "library":
        from langchain_community.chat_models import ChatLiteLLM

        return ChatLiteLLM(
            model=model_name,
            temperature=temperature,
        )
    else:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            base_url=settings.litellm_base_url,
            api_key=settings.litellm_master_key,
            model=model_name,
            temperature=temperature,
        )
