"""Azure Translator client."""

from __future__ import annotations

import logging

import httpx

from lexitree_core.config.settings import Settings
from lexitree_core.ports.translation import (
    TranslationError,
    TranslationErrorCode,
    TranslationErrorDetails,
    TranslationErrorInfo,
    TranslatorProtocol,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "azure"
API_VERSION = "3.0"
DEFAULT_TIMEOUT_S = 30.0


class AzureTranslator(TranslatorProtocol):
    """Translates single strings with the Azure Translator text API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the translator.

        Args:
            settings: Settings carrying the Azure key, endpoint and region.
            http_client: Optional pre-configured HTTP client for dependency
                injection. If None, a client is created per request.
        """
        self._endpoint = settings.azure_translator_endpoint.rstrip("/")
        self._region = settings.azure_translator_region
        self._key = (
            settings.azure_translator_key.get_secret_value()
            if settings.azure_translator_key is not None
            else ""
        )
        self._http_client = http_client

    @property
    def url(self) -> str:
        """Translate endpoint URL without query parameters."""
        return f"{self._endpoint}/translate"

    async def translate(
        self, text: str, source_language: str, target_language: str
    ) -> str:
        """Translate text from the source to the target language.

        Args:
            text: Text to translate.
            source_language: Source language code.
            target_language: Target language code.

        Returns:
            str: Translated text; empty for blank input.

        Raises:
            TranslationError: ``not_configured`` without a key,
                ``invalid_request`` without languages, ``auth_failed`` on
                401/403 and ``service_error`` for other failures.
        """
        if not self._key:
            raise self._error(
                TranslationErrorCode.NOT_CONFIGURED,
                "Azure Translator API key not configured",
                source_language,
                target_language,
            )
        if not source_language or not target_language:
            raise self._error(
                TranslationErrorCode.INVALID_REQUEST,
                "Both source and target languages are required",
                source_language,
                target_language,
            )
        if not text.strip():
            return ""

        if self._http_client is not None:
            response = await self._post(
                self._http_client, text, source_language, target_language
            )
        else:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_S) as client:
                response = await self._post(
                    client, text, source_language, target_language
                )
        return self._parse(response, source_language, target_language)

    async def _post(
        self,
        client: httpx.AsyncClient,
        text: str,
        source_language: str,
        target_language: str,
    ) -> httpx.Response:
        try:
            return await client.post(
                self.url,
                params={
                    "api-version": API_VERSION,
                    "from": source_language,
                    "to": target_language,
                },
                headers={
                    "Ocp-Apim-Subscription-Key": self._key,
                    "Ocp-Apim-Subscription-Region": self._region,
                },
                json=[{"text": text}],
            )
        except httpx.HTTPError as exc:
            logger.warning("Azure Translator request failed: %s", exc)
            raise self._error(
                TranslationErrorCode.SERVICE_ERROR,
                "Translation service could not be reached",
                source_language,
                target_language,
            ) from exc

    def _parse(
        self, response: httpx.Response, source_language: str, target_language: str
    ) -> str:
        if response.status_code in (401, 403):
            raise self._error(
                TranslationErrorCode.AUTH_FAILED,
                "Invalid Azure Translator API key"
                if response.status_code == 401
                else "Azure Translator API access denied",
                source_language,
                target_language,
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                "Azure Translator error %s: %s", response.status_code, response.text
            )
            raise self._error(
                TranslationErrorCode.SERVICE_ERROR,
                "Translation service error",
                source_language,
                target_language,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
            translations = payload[0]["translations"] if payload else []
            return str(translations[0]["text"]) if translations else ""
        except (ValueError, LookupError, TypeError) as exc:
            raise self._error(
                TranslationErrorCode.SERVICE_ERROR,
                "Translation service returned an unexpected response",
                source_language,
                target_language,
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _error(
        code: TranslationErrorCode,
        message: str,
        source_language: str,
        target_language: str,
        *,
        status_code: int | None = None,
    ) -> TranslationError:
        return TranslationError(
            TranslationErrorInfo(
                code=code,
                message=message,
                details=TranslationErrorDetails(
                    provider=PROVIDER_NAME,
                    status_code=status_code,
                    source_language=source_language or None,
                    target_language=target_language or None,
                ),
            )
        )
