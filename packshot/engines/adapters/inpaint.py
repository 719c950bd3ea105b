"""
Generative Inpainting Adapter (OpenAI image edits API)

Sends image + mask + prompt, downloads the URL from `data[0].url` and
brings the result back onto the canvas. There is no local substitute for
a generative edit, so exhausted retries are fatal for the stage.
"""

from typing import Optional, Tuple

import httpx

from packshot.core.config import PipelineConfig
from packshot.core.exceptions import (
    InpaintError,
    PackshotError,
    PayloadTooLargeError,
    ServiceError,
    UnsupportedFormatError,
    ValidationError,
)
from packshot.core.logging import get_logger
from packshot.core.metrics import record_external_call
from packshot.engines.adapters.retry import (
    CancellationToken,
    RetryExhausted,
    RetryPolicy,
    call_with_retries,
)
from packshot.engines.raster import CanvasSpec, RasterImage, TRANSPARENT, contain_on_canvas, is_png
from packshot.pipeline.schemas import StageResult

logger = get_logger(__name__)

SERVICE = "openai_edit"


class InpaintAdapter:
    """Typed wrapper around the image edits endpoint."""

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[httpx.Client] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.token = token or CancellationToken()
        self.policy = RetryPolicy(config.retry_max_attempts, config.retry_base_delay_seconds)
        self.canvas = CanvasSpec.square(config.canvas_size, TRANSPARENT)
        self._client = client

    # ------------------------------------------------------------ pre-flight
    def validate(self, image_png: bytes, mask_png: bytes) -> Tuple[RasterImage, RasterImage]:
        """
        Check both payloads before any network traffic.

        Raises ValidationError for wrong size/format/channel count and
        PayloadTooLargeError when the combined size exceeds the ceiling.
        """
        expected = self.config.canvas_dimensions
        decoded = []
        for name, data in (("image", image_png), ("mask", mask_png)):
            if not is_png(data):
                raise ValidationError(f"{name} must be PNG-encoded", stage="inpaint")
            try:
                raster = RasterImage.decode(data)
            except UnsupportedFormatError as e:
                raise ValidationError(f"{name} is not a readable PNG: {e.message}", stage="inpaint")
            if raster.size != expected:
                raise ValidationError(
                    f"{name} dimensions must be {expected[0]}x{expected[1]}, "
                    f"got {raster.width}x{raster.height}",
                    stage="inpaint"
                )
            if raster.channels != 4:
                raise ValidationError(
                    f"{name} must have an alpha channel, got {raster.channels} channels",
                    stage="inpaint"
                )
            decoded.append(raster)

        total = len(image_png) + len(mask_png)
        if total > self.config.inpaint_max_payload_bytes:
            raise PayloadTooLargeError(
                f"Inpaint payload is {total} bytes, limit is {self.config.inpaint_max_payload_bytes}",
                size_bytes=total,
                limit_bytes=self.config.inpaint_max_payload_bytes,
                stage="inpaint"
            )
        return decoded[0], decoded[1]

    # ----------------------------------------------------------------- wire
    def _request_edit(self, client: httpx.Client, image_png: bytes, mask_png: bytes, prompt: str) -> str:
        size = f"{self.config.canvas_size}x{self.config.canvas_size}"
        try:
            response = client.post(
                self.config.openai_api_url,
                headers={"Authorization": f"Bearer {self.config.openai_api_key}"},
                data={
                    "prompt": prompt,
                    "n": "1",
                    "size": size,
                    "model": self.config.inpaint_model,
                    "response_format": "url",
                },
                files={
                    "image": ("image.png", image_png, "image/png"),
                    "mask": ("mask.png", mask_png, "image/png"),
                },
                timeout=self.config.http_timeout_seconds,
            )
        except httpx.TimeoutException:
            record_external_call(SERVICE, "timeout")
            raise ServiceError("Image edit API timeout", service=SERVICE)
        except httpx.HTTPError as e:
            record_external_call(SERVICE, "transport_error")
            raise ServiceError(f"Image edit API request failed: {e}", service=SERVICE)

        if response.status_code < 200 or response.status_code >= 300:
            record_external_call(SERVICE, "error", response.status_code)
            raise ServiceError(
                f"Image edit API error: {response.status_code} - {response.text[:200]}",
                service=SERVICE,
                http_status=response.status_code
            )

        try:
            url = response.json()["data"][0]["url"]
        except (ValueError, KeyError, IndexError, TypeError):
            url = None
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            record_external_call(SERVICE, "malformed", response.status_code)
            raise ServiceError(
                "Invalid response format from image edit API",
                service=SERVICE,
                http_status=response.status_code
            )

        record_external_call(SERVICE, "success", response.status_code)
        return url

    def _download(self, client: httpx.Client, url: str) -> RasterImage:
        try:
            response = client.get(url, timeout=self.config.http_timeout_seconds)
        except httpx.HTTPError as e:
            raise ServiceError(f"Result download failed: {e}", service=SERVICE)
        if response.status_code != 200:
            raise ServiceError(
                f"Result download failed with HTTP {response.status_code}",
                service=SERVICE,
                http_status=response.status_code
            )
        try:
            return RasterImage.decode(response.content)
        except UnsupportedFormatError:
            raise ServiceError("Downloaded result is not an image", service=SERVICE)

    def _attempt(self, image_png: bytes, mask_png: bytes, prompt: str) -> RasterImage:
        if self._client is not None:
            url = self._request_edit(self._client, image_png, mask_png, prompt)
            result = self._download(self._client, url)
        else:
            with httpx.Client() as client:
                url = self._request_edit(client, image_png, mask_png, prompt)
                result = self._download(client, url)
        logger.info("inpaint_result_downloaded", url=url, size=result.size)
        return result

    # ------------------------------------------------------------------ api
    def edit(self, image: RasterImage, mask: RasterImage, prompt: Optional[str] = None) -> StageResult:
        """Run the edit; SUCCESS with the canvas-sized result or FATAL."""
        prompt = prompt or self.config.inpaint_prompt
        image_png = image.encode_png()
        mask_png = mask.encode_png()

        try:
            self.validate(image_png, mask_png)
        except PackshotError as e:
            logger.error("inpaint_validation_failed", error=e.message)
            return StageResult.fatal(e)

        if not self.config.openai_api_key:
            return StageResult.fatal(
                InpaintError("Image edit API key is not configured", stage="inpaint")
            )

        logger.info("inpaint_starting", prompt=prompt, payload_bytes=len(image_png) + len(mask_png))

        try:
            result = call_with_retries(
                lambda: self._attempt(image_png, mask_png, prompt),
                self.policy,
                service=SERVICE,
                token=self.token,
            )
        except RetryExhausted as exhausted:
            error = InpaintError(
                f"Image edit failed after {exhausted.attempts} attempt(s): "
                f"{exhausted.last_error.message}",
                attempts=exhausted.attempts,
                stage="inpaint",
                details={"cause": exhausted.last_error.to_dict()},
            )
            return StageResult.fatal(error, attempts=exhausted.attempts)

        if result.size != self.config.canvas_dimensions or not result.has_alpha:
            result = contain_on_canvas(result.ensure_alpha(), self.canvas)
        return StageResult.success(result)
