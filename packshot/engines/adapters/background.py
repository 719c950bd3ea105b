"""
Background Removal Adapters

Vendor clients implement `BackgroundRemover.remove(image) -> RasterImage`
and raise ServiceError on failure. `BackgroundRemovalAdapter` wraps one of
them with the shared retry policy and the local fallback: when the
service stays unavailable the input is returned on a transparent canvas
and the stage is reported as degraded.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from packshot.core.config import BackgroundVendor, PipelineConfig
from packshot.core.exceptions import UnsupportedFormatError, ServiceError
from packshot.core.logging import get_logger
from packshot.core.metrics import record_external_call
from packshot.engines.adapters.retry import (
    CancellationToken,
    RetryExhausted,
    RetryPolicy,
    call_with_retries,
)
from packshot.engines.raster import CanvasSpec, RasterImage, TRANSPARENT, contain_on_canvas
from packshot.pipeline.schemas import StageResult

logger = get_logger(__name__)


class BackgroundRemover(ABC):
    """A vendor capable of cutting the subject out of a photo."""

    name: str = "background_remover"

    @abstractmethod
    def remove(self, image: RasterImage) -> RasterImage:
        """Return the image with its background made transparent."""


class HttpBackgroundRemover(BackgroundRemover):
    """
    Multipart upload to a segmentation API that answers with image bytes.

    remove.bg and Poof share this wire shape: API key header, the raw image
    as `image_file`, the cut-out image in the 200 body.
    """

    api_key_header = "X-Api-Key"

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def form_fields(self) -> Dict[str, str]:
        return {}

    def _post(self, client: httpx.Client, payload: bytes) -> httpx.Response:
        return client.post(
            self.api_url,
            headers={self.api_key_header: self.api_key},
            data=self.form_fields(),
            files={"image_file": ("image.png", payload, "image/png")},
            timeout=self.timeout,
        )

    def remove(self, image: RasterImage) -> RasterImage:
        if not self.api_key:
            raise ServiceError(
                f"{self.name} API key is not configured",
                service=self.name,
                retryable=False
            )

        payload = image.encode_png()
        try:
            if self._client is not None:
                response = self._post(self._client, payload)
            else:
                with httpx.Client() as client:
                    response = self._post(client, payload)
        except httpx.TimeoutException:
            record_external_call(self.name, "timeout")
            raise ServiceError(f"{self.name} API timeout", service=self.name)
        except httpx.HTTPError as e:
            record_external_call(self.name, "transport_error")
            raise ServiceError(f"{self.name} API request failed: {e}", service=self.name)

        if response.status_code != 200:
            record_external_call(self.name, "error", response.status_code)
            raise ServiceError(
                f"{self.name} API error: {response.status_code} - {response.text[:200]}",
                service=self.name,
                http_status=response.status_code
            )

        try:
            result = RasterImage.decode(response.content)
        except UnsupportedFormatError:
            record_external_call(self.name, "malformed", response.status_code)
            raise ServiceError(
                f"{self.name} API returned non-image data ({len(response.content)} bytes)",
                service=self.name,
                http_status=response.status_code
            )

        record_external_call(self.name, "success", response.status_code)
        return result


class RemoveBgRemover(HttpBackgroundRemover):
    """remove.bg"""

    name = "removebg"

    def form_fields(self) -> Dict[str, str]:
        return {"size": "auto"}


class PoofRemover(HttpBackgroundRemover):
    """poof.bg"""

    name = "poof"


def build_remover(config: PipelineConfig, client: Optional[httpx.Client] = None) -> BackgroundRemover:
    """Pick the vendor named by the configuration."""
    if config.background_vendor == BackgroundVendor.POOF:
        return PoofRemover(config.poof_api_url, config.poof_api_key, client,
                           timeout=config.http_timeout_seconds)
    return RemoveBgRemover(config.removebg_api_url, config.removebg_api_key, client,
                           timeout=config.http_timeout_seconds)


class BackgroundRemovalAdapter:
    """Retries and the transparent-canvas fallback."""

    def __init__(
        self,
        remover: BackgroundRemover,
        config: PipelineConfig,
        token: Optional[CancellationToken] = None,
    ):
        self.remover = remover
        self.config = config
        self.token = token or CancellationToken()
        self.policy = RetryPolicy(config.retry_max_attempts, config.retry_base_delay_seconds)
        self.canvas = CanvasSpec.square(config.canvas_size, TRANSPARENT)

    def _to_canvas(self, image: RasterImage) -> RasterImage:
        return contain_on_canvas(image.ensure_alpha(), self.canvas)

    def fallback(self, image: RasterImage) -> RasterImage:
        """Background removal as a no-op: the input on a transparent canvas."""
        return self._to_canvas(image)

    def remove(self, image: RasterImage) -> StageResult:
        try:
            result = call_with_retries(
                lambda: self.remover.remove(image),
                self.policy,
                service=self.remover.name,
                token=self.token,
            )
        except RetryExhausted as exhausted:
            reason = (
                f"{self.remover.name} unavailable after {exhausted.attempts} attempt(s): "
                f"{exhausted.last_error.message}"
            )
            logger.warning(
                "background_removal_fallback",
                vendor=self.remover.name,
                attempts=exhausted.attempts,
                error=exhausted.last_error.message
            )
            return StageResult.degraded(
                self.fallback(image),
                reason,
                error=exhausted.last_error,
                vendor=self.remover.name,
                attempts=exhausted.attempts,
            )

        logger.info("background_removed", vendor=self.remover.name, size=result.size)
        return StageResult.success(self._to_canvas(result), vendor=self.remover.name)
