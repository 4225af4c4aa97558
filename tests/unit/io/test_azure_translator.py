"""Unit tests for the Azure Translator client with mocked HTTP."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from lexitree_core.config.settings import Settings
from lexitree_core.ports.translation import (
    TranslationError,
    TranslationErrorCode,
    TranslatorProtocol,
)
from lexitree_io.translation import AzureTranslator

TRANSLATE_URL = "https://api.cognitive.microsofttranslator.com/translate"
AUTH_FAILED = TranslationErrorCode.AUTH_FAILED
SERVICE_ERROR = TranslationErrorCode.SERVICE_ERROR


@pytest.fixture
def settings() -> Settings:
    """Settings with a translator key.

    Returns:
        Settings: Configured settings.
    """
    return Settings(
        azure_translator_key="test-key",
        azure_translator_region="westeurope",
        _env_file=None,
    )


class TestAzureTranslator:
    """Tests for AzureTranslator.translate."""

    def test_satisfies_protocol(self, settings: Settings) -> None:
        """The client is a translator."""
        translator = AzureTranslator(settings)
        assert isinstance(translator, TranslatorProtocol)
        assert translator.url == TRANSLATE_URL

    @pytest.mark.anyio
    async def test_translates(self, settings: Settings) -> None:
        """A successful response yields the first translation."""
        with respx.mock:
            route = respx.post(
                TRANSLATE_URL, params={"api-version": "3.0", "from": "en", "to": "de"}
            ).mock(
                return_value=httpx.Response(
                    200, json=[{"translations": [{"text": "Öffnen", "to": "de"}]}]
                )
            )

            result = await AzureTranslator(settings).translate("Open", "en", "de")

        assert result == "Öffnen"
        request = route.calls.last.request
        assert request.headers["Ocp-Apim-Subscription-Key"] == "test-key"
        assert request.headers["Ocp-Apim-Subscription-Region"] == "westeurope"
        assert json.loads(request.content) == [{"text": "Open"}]

    @pytest.mark.anyio
    async def test_uses_injected_client(self, settings: Settings) -> None:
        """An injected HTTP client is used as-is."""
        with respx.mock:
            respx.post(TRANSLATE_URL).mock(
                return_value=httpx.Response(
                    200, json=[{"translations": [{"text": "Ouvrir"}]}]
                )
            )
            async with httpx.AsyncClient() as client:
                translator = AzureTranslator(settings, http_client=client)
                result = await translator.translate("Open", "en", "fr")

        assert result == "Ouvrir"

    @pytest.mark.anyio
    async def test_empty_translation_list(self, settings: Settings) -> None:
        """A response without translations yields an empty string."""
        with respx.mock:
            respx.post(TRANSLATE_URL).mock(
                return_value=httpx.Response(200, json=[{"translations": []}])
            )

            result = await AzureTranslator(settings).translate("Open", "en", "de")

        assert result == ""

    @pytest.mark.anyio
    async def test_blank_text_skips_request(self, settings: Settings) -> None:
        """Blank input never reaches the service."""
        with respx.mock:
            route = respx.post(TRANSLATE_URL)

            result = await AzureTranslator(settings).translate("   ", "en", "de")

        assert result == ""
        assert not route.called

    @pytest.mark.anyio
    async def test_not_configured(self) -> None:
        """A missing key is reported before any request."""
        translator = AzureTranslator(
            Settings(azure_translator_key=None, _env_file=None)
        )

        with pytest.raises(TranslationError) as exc_info:
            await translator.translate("Open", "en", "de")

        assert exc_info.value.info.code == TranslationErrorCode.NOT_CONFIGURED

    @pytest.mark.anyio
    async def test_missing_language(self, settings: Settings) -> None:
        """Both languages are required."""
        with pytest.raises(TranslationError) as exc_info:
            await AzureTranslator(settings).translate("Open", "", "de")

        assert exc_info.value.info.code == TranslationErrorCode.INVALID_REQUEST

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("status", "code", "message"),
        [
            (401, AUTH_FAILED, "Invalid Azure Translator API key"),
            (403, AUTH_FAILED, "Azure Translator API access denied"),
            (500, SERVICE_ERROR, "Translation service error"),
            (429, SERVICE_ERROR, "Translation service error"),
        ],
    )
    async def test_error_statuses(
        self,
        settings: Settings,
        status: int,
        code: TranslationErrorCode,
        message: str,
    ) -> None:
        """HTTP failures map onto translation error codes."""
        with respx.mock:
            respx.post(TRANSLATE_URL).mock(
                return_value=httpx.Response(status, json={"error": {"code": status}})
            )

            with pytest.raises(TranslationError) as exc_info:
                await AzureTranslator(settings).translate("Open", "en", "de")

        info = exc_info.value.info
        assert info.code == code
        assert info.message == message
        assert info.details is not None
        assert info.details.status_code == status
        assert info.to_error_response().details is not None

    @pytest.mark.anyio
    async def test_malformed_payload(self, settings: Settings) -> None:
        """Unexpected payloads are service errors."""
        with respx.mock:
            respx.post(TRANSLATE_URL).mock(
                return_value=httpx.Response(200, json={"unexpected": True})
            )

            with pytest.raises(TranslationError) as exc_info:
                await AzureTranslator(settings).translate("Open", "en", "de")

        assert exc_info.value.info.code == TranslationErrorCode.SERVICE_ERROR

    @pytest.mark.anyio
    async def test_connection_failure(self, settings: Settings) -> None:
        """Transport errors are service errors."""
        with respx.mock:
            respx.post(TRANSLATE_URL).mock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(TranslationError) as exc_info:
                await AzureTranslator(settings).translate("Open", "en", "de")

        assert exc_info.value.info.code == TranslationErrorCode.SERVICE_ERROR
        assert exc_info.value.info.details is not None
        assert exc_info.value.info.details.provider == "azure"
