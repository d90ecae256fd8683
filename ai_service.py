"""
Centralized AI Service Manager
Handles all LLM calls with retry logic, error handling, and configuration management
"""
import json
import time
import logging
from typing import Optional, Dict, Any, List
from functools import wraps

import anthropic
import openai

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Base exception for AI service errors"""
    pass


class AIServiceUnavailable(AIServiceError):
    """Raised when AI service is not configured or unavailable"""
    pass


class AIServiceTimeout(AIServiceError):
    """Raised when AI service times out"""
    pass


def retry_on_failure(max_attempts=3, delay=2, backoff=2, retry_on=(Exception,), give_up_on=()):
    """
    Decorator to retry function on failure with exponential backoff

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries (seconds)
        backoff: Multiplier for delay on each retry
        retry_on: Exception types that trigger a retry; anything else propagates
        give_up_on: Exception types that propagate immediately even if matched by retry_on
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except give_up_on:
                    raise
                except retry_on as e:
                    last_exception = e
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}"
                    )

                    if attempt < max_attempts - 1:
                        logger.info(f"Retrying in {current_delay} seconds...")
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}")

            raise last_exception

        return wrapper
    return decorator


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse a JSON object out of model output.
    Tolerates markdown code fences around the object.
    """
    if not content or not content.strip():
        raise AIServiceError("Empty response from model")

    text = content.strip()
    if text.startswith('```'):
        text = text.strip('`')
        if text.lower().startswith('json'):
            text = text[4:]
    start, end = text.find('{'), text.rfind('}')
    if start == -1 or end == -1:
        raise AIServiceError("Model response did not contain a JSON object")

    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Model returned invalid JSON: {e}")

    if not isinstance(parsed, dict):
        raise AIServiceError("Model returned JSON that is not an object")
    return parsed


class AIService:
    """
    Centralized AI service manager with retry logic and error handling.
    OpenAI is the primary provider; Claude is used when only Anthropic is configured.
    """

    def __init__(self, config):
        """
        Initialize AI service with configuration

        Args:
            config: Flask app configuration object (or any mapping)
        """
        self.config = config
        self.openai_client = None
        self.anthropic_client = None

        self._initialize_clients()

    def _initialize_clients(self):
        """Initialize AI API clients"""
        timeout = self.config.get('AI_TIMEOUT', 60)

        if self.config.get('OPENAI_API_KEY'):
            try:
                self.openai_client = openai.OpenAI(
                    api_key=self.config['OPENAI_API_KEY'],
                    timeout=timeout,
                )
                logger.info("OpenAI client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI client: {e}")

        if self.config.get('ANTHROPIC_API_KEY'):
            try:
                self.anthropic_client = anthropic.Anthropic(
                    api_key=self.config['ANTHROPIC_API_KEY'],
                    timeout=timeout,
                )
                logger.info("Anthropic Claude client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Anthropic client: {e}")

    def _model_config(self, provider: str) -> Dict[str, Any]:
        return self.config.get('AI_MODELS', {}).get(provider, {})

    @retry_on_failure(max_attempts=3, delay=2, backoff=2, retry_on=(AIServiceError,), give_up_on=(AIServiceUnavailable,))
    def call_openai(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False
    ) -> str:
        """
        Call the OpenAI chat completions API with retry logic

        Returns:
            Text content of the first choice

        Raises:
            AIServiceUnavailable: If OpenAI is not configured
            AIServiceError: On API errors
        """
        if not self.openai_client:
            raise AIServiceUnavailable("OpenAI is not configured")

        model_config = self._model_config('openai')
        params = {
            'model': model or model_config.get('model', 'gpt-4o-mini'),
            'max_tokens': max_tokens or model_config.get('max_tokens', 1200),
            'temperature': model_config.get('temperature', 0.3) if temperature is None else temperature,
            'messages': messages,
        }
        if json_mode:
            params['response_format'] = {'type': 'json_object'}

        try:
            logger.info(f"Calling OpenAI API: model={params['model']}, max_tokens={params['max_tokens']}")
            response = self.openai_client.chat.completions.create(**params)
            logger.info("OpenAI API call successful")
            return response.choices[0].message.content if response.choices else None

        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise AIServiceTimeout(f"OpenAI API timed out: {e}")
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise AIServiceError(f"OpenAI API error: {e}")

    @retry_on_failure(max_attempts=3, delay=2, backoff=2, retry_on=(AIServiceError,), give_up_on=(AIServiceUnavailable,))
    def call_claude(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Call Claude API with retry logic

        Returns:
            Concatenated text blocks of the response

        Raises:
            AIServiceUnavailable: If Claude is not configured
            AIServiceError: On API errors
        """
        if not self.anthropic_client:
            raise AIServiceUnavailable("Anthropic Claude is not configured")

        model_config = self._model_config('claude')
        params = {
            'model': model or model_config.get('model', 'claude-sonnet-4-20250514'),
            'max_tokens': max_tokens or model_config.get('max_tokens', 1200),
            'temperature': model_config.get('temperature', 0.3) if temperature is None else temperature,
            'messages': messages,
        }
        if system:
            params['system'] = system

        try:
            logger.info(f"Calling Claude API: model={params['model']}, max_tokens={params['max_tokens']}")
            response = self.anthropic_client.messages.create(**params)
            logger.info(f"Claude API call successful: stop_reason={response.stop_reason}")
            return ''.join(
                block.text for block in response.content if getattr(block, 'type', None) == 'text'
            )

        except anthropic.APITimeoutError as e:
            logger.error(f"Claude API timeout: {e}")
            raise AIServiceTimeout(f"Claude API timed out: {e}")
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise AIServiceError(f"Claude API error: {e}")

    def complete_json(self, system: str, prompt: str, temperature: float = 0.3) -> Dict[str, Any]:
        """
        Single JSON-returning completion on whichever provider is configured.

        Raises:
            AIServiceUnavailable: If no provider is configured
            AIServiceError: On API errors or unparseable output
        """
        if self.openai_client:
            content = self.call_openai(
                messages=[
                    {'role': 'system', 'content': system},
                    {'role': 'user', 'content': prompt},
                ],
                temperature=temperature,
                json_mode=True,
            )
        elif self.anthropic_client:
            content = self.call_claude(
                messages=[{'role': 'user', 'content': prompt}],
                system=system,
                temperature=temperature,
            )
        else:
            raise AIServiceUnavailable("No AI provider is configured")

        return parse_json_content(content)

    def is_available(self, service: str = 'any') -> bool:
        """
        Check if a specific AI service is available

        Args:
            service: Service name ('openai', 'claude', 'any')
        """
        if service == 'openai':
            return self.openai_client is not None
        elif service == 'claude':
            return self.anthropic_client is not None
        elif service == 'any':
            return self.openai_client is not None or self.anthropic_client is not None
        else:
            return False
