"""Client for the external generation service."""
import time
import logging
from typing import Any, Dict, Optional

import httpx

from config import BALDR_URL, BALDR_SDXL_URL, GENERATION_TIMEOUT_SECONDS
from models.turn import GenerationRequest, GenerationResponse, InpaintJob, InpaintResult
from services.errors import GenerationUnavailable, GenerationTimeout, GenerationResponseInvalid

logger = logging.getLogger(__name__)


class GenerationClient:
    """Synchronous request/response client for chat replies and image edits."""

    def __init__(
        self,
        base_url: Optional[str] = BALDR_URL,
        image_base_url: Optional[str] = BALDR_SDXL_URL,
        timeout: float = GENERATION_TIMEOUT_SECONDS
    ):
        """
        Initialize the generation client.

        Args:
            base_url: Base URL of the chat generation service
            image_base_url: Base URL of the image (inpainting) service
            timeout: Deadline in seconds for a single call; there is no retry
        """
        if not base_url:
            raise ValueError("BALDR_URL must be provided or set in environment")

        self.base_url = base_url.rstrip("/")
        self.image_base_url = (image_base_url or base_url).rstrip("/")
        self.timeout = timeout
        logger.info(f"Initialized GenerationClient for {self.base_url}")

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Ask the generation service for a reply.

        Args:
            request: Composed prompt and resolved context

        Returns:
            GenerationResponse with reply text and optional image

        Raises:
            GenerationUnavailable: Transport failure or non-2xx status
            GenerationTimeout: The call exceeded the deadline
            GenerationResponseInvalid: Body is not a JSON object with a "message" string
        """
        if request.image:
            logger.info("Including image in LLM payload")
        logger.info(
            "Sending request to external LLM",
            extra={"fields": {"chat_id": request.chat_id, "object": request.object, "prompt_chars": len(request.prompt)}}
        )

        body = self._post(f"{self.base_url}/chat", request.to_payload())

        message = body.get("message")
        if not isinstance(message, str):
            raise GenerationResponseInvalid(
                "LLM response error: missing reply text",
                {"keys": sorted(body.keys())}
            )

        return GenerationResponse(
            message=message,
            image=_optional_str(body, "img"),
            image_name=_optional_str(body, "img_name"),
        )

    def inpaint(self, job: InpaintJob) -> InpaintResult:
        """
        Ask the image service to edit an image.

        Raises:
            GenerationUnavailable: Transport failure or non-2xx status
            GenerationTimeout: The call exceeded the deadline
            GenerationResponseInvalid: Body is not a JSON object with an "img" string
        """
        logger.info(
            "Sending request to inpaint model",
            extra={"fields": {"chat_id": job.chat_id, "image_name": job.image_name}}
        )

        body = self._post(f"{self.image_base_url}/inpaint", job.to_payload())

        image = body.get("img")
        if not isinstance(image, str) or not image:
            raise GenerationResponseInvalid(
                "Invalid response from model: missing image",
                {"keys": sorted(body.keys())}
            )

        return InpaintResult(image=image, image_name=job.image_name)

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        start_time = time.time()

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload)
        except httpx.TimeoutException as e:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Timeout calling {url} after {latency_ms}ms: {e}")
            raise GenerationTimeout(
                f"Generation service timed out after {self.timeout}s",
                {"url": url, "latency_ms": latency_ms}
            )
        except httpx.HTTPError as e:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Network error calling {url}: {e}")
            raise GenerationUnavailable(
                f"Generation service unreachable: {str(e)}",
                {"url": url, "latency_ms": latency_ms}
            )

        latency_ms = int((time.time() - start_time) * 1000)

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"Generation service returned {response.status_code}: {response.text[:200]}")
            raise GenerationUnavailable(
                f"Generation service returned status {response.status_code}",
                {"url": url, "status": response.status_code, "latency_ms": latency_ms}
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Error decoding response from LLM: {e}")
            raise GenerationResponseInvalid(
                "LLM response error: body is not JSON",
                {"url": url, "latency_ms": latency_ms}
            )

        if not isinstance(body, dict):
            logger.error(f"Unexpected response shape from {url}: {type(body).__name__}")
            raise GenerationResponseInvalid(
                "LLM response error: body is not a JSON object",
                {"url": url, "latency_ms": latency_ms}
            )

        logger.info(f"Generation service answered in {latency_ms}ms", extra={"fields": {"latency_ms": latency_ms}})
        return body


def _optional_str(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise GenerationResponseInvalid(f"LLM response error: {key} is not a string", {"key": key})
    return value
