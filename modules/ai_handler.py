# --- API DOCUMENTATION for modules/ai_handler.py ---
#
# **Purpose:** The two language-model oracles used by the shell, built as
# LangChain chains over a local Ollama model, plus an Ollama availability check.
#
# **Public Functions:**
#
# async def classify_command_with_ai(command: str, active_categories: list[str], config_param: dict) -> dict | None:
#     """
#     Asks the classifier model for {'category': ..., 'reasoning': ...}.
#     Returns None if the model is not configured, fails, or answers with
#     something that is not a JSON object. Never raises.
#     """
#
# async def generate_text_with_ai(input_text: str, config_param: dict, tool_context: str = "") -> str:
#     """
#     Asks the text-generation model for an answer.
#     Raises TextGenerationError on any failure or empty answer.
#     """
#
# async def is_ollama_server_running() -> bool
#
# --- END API DOCUMENTATION ---

# modules/ai_handler.py

import re
import json
import asyncio
import logging
from typing import List, Optional

import ollama
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import StrOutputParser
from langchain_ollama import ChatOllama

from modules.category_manager import CATEGORY_DESCRIPTIONS

# --- Logging Setup ---
logger = logging.getLogger(__name__)

_JSON_OBJECT_PATTERN = re.compile(r'\{.*\}', re.DOTALL)
_THINK_BLOCK_PATTERN = re.compile(r'<think>.*?</think>', re.DOTALL | re.IGNORECASE)


class TextGenerationError(Exception):
    """The text-generation oracle could not produce an answer."""
    pass


def _build_chain(config_param: dict, role: str):
    """
    Builds `prompt | ChatOllama | StrOutputParser` for a configured role
    ('classifier' or 'text_generator'). Returns (chain, model_name) or (None, None).
    """
    model_config = config_param.get('ai_models', {}).get(role, {})
    if isinstance(model_config, dict):
        model_name = model_config.get('model')
        model_options = model_config.get('options')
    else:
        model_name = model_config
        model_options = None

    role_prompts = config_param.get('prompts', {}).get(role)
    if not model_name or not role_prompts:
        logger.error(f"AI model or prompts for '{role}' not configured.")
        return None, None

    prompt = ChatPromptTemplate.from_messages([
        ("system", role_prompts['system']),
        ("user", role_prompts['user_template'])
    ])

    chat_model_args = {"model": model_name}
    if model_options:
        chat_model_args.update(model_options)
    model = ChatOllama(**chat_model_args)

    return prompt | model | StrOutputParser(), model_name


def _category_definitions_text() -> str:
    return "\n".join(f"- {name}: {CATEGORY_DESCRIPTIONS[name]}" for name in CATEGORY_DESCRIPTIONS)


def parse_classification_response(raw_response: str) -> Optional[dict]:
    """Extracts the first JSON object from a model response (ignoring <think> blocks)."""
    if not raw_response:
        return None
    cleaned = _THINK_BLOCK_PATTERN.sub('', raw_response).strip()
    match = _JSON_OBJECT_PATTERN.search(cleaned)
    if not match:
        logger.warning(f"Classifier response contained no JSON object: {cleaned[:200]}")
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Classifier response was not valid JSON ({e}): {match.group(0)[:200]}")
        return None
    if not isinstance(parsed, dict):
        return None
    return {"category": parsed.get("category"), "reasoning": parsed.get("reasoning")}


async def classify_command_with_ai(command: str, active_categories: List[str], config_param: dict) -> Optional[dict]:
    logger.info(f"Requesting AI classification for: '{command}' (active: {active_categories})")
    try:
        chain, model_name = _build_chain(config_param, 'classifier')
        if chain is None:
            return None

        logger.info(f"Invoking LangChain classifier (model: {model_name})")
        raw_response = await chain.ainvoke({
            "command": command,
            "active_categories": ", ".join(f"'{c}'" for c in active_categories),
            "category_definitions": _category_definitions_text(),
        })
        logger.debug(f"LangChain classifier response: {raw_response}")
        return parse_classification_response(raw_response)

    except Exception as e:
        logger.error(f"Error in LangChain classifier for '{command}': {e}", exc_info=True)
        return None


async def generate_text_with_ai(input_text: str, config_param: dict, tool_context: str = "") -> str:
    logger.info(f"Requesting AI text generation for: '{input_text}'")
    chain, model_name = _build_chain(config_param, 'text_generator')
    if chain is None:
        raise TextGenerationError("AI text generation model/prompts not configured.")

    try:
        answer = await chain.ainvoke({
            "input_text": input_text,
            "tool_context": tool_context or "No AI tools are currently active.",
        })
    except Exception as e:
        logger.error(f"Error in LangChain text generation (model: {model_name}): {e}", exc_info=True)
        raise TextGenerationError(str(e)) from e

    answer = _THINK_BLOCK_PATTERN.sub('', answer or '').strip()
    if not answer:
        raise TextGenerationError("AI returned an empty response.")
    logger.debug(f"LangChain text generation response: {answer}")
    return answer


async def is_ollama_server_running() -> bool:
    """Checks that the Ollama server answers `ollama.list()`."""
    try:
        await asyncio.to_thread(ollama.list)
        logger.info("Ollama server is running and responsive (ollama.list() successful).")
        return True
    except Exception as e:
        logger.warning(f"Ollama server is not reachable: {e}")
        return False
