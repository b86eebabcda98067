"""Health verifier: smoke-test a published endpoint and classify the answer.

The result is advisory. It is logged and returned, and never decides the
exit code on its own.
"""

import enum
import json
import logging
import time
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TARGET = "https://example.com"


class Classification(enum.Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"


@dataclass(frozen=True)
class SmokeTestOutcome:
    """One classified probe response."""

    classification: Classification
    status_code: int | None = None
    success: bool | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.classification is Classification.SUCCESS


def _is_2xx(status_code) -> bool:
    return 200 <= status_code < 300


def classify_json(status_code, body) -> SmokeTestOutcome:
    """Classify a response that should carry a JSON ``success`` flag."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        payload = None
    if not isinstance(payload, dict):
        payload = None

    if not _is_2xx(status_code):
        detail = payload.get("error", f"HTTP {status_code}") if payload else f"HTTP {status_code}"
        return SmokeTestOutcome(Classification.FAILURE, status_code, detail=str(detail))
    if payload is None:
        return SmokeTestOutcome(Classification.PENDING, status_code, detail="non-JSON response")
    if payload.get("error"):
        return SmokeTestOutcome(Classification.FAILURE, status_code, detail=str(payload["error"]))

    success = payload.get("success")
    if success is True:
        return SmokeTestOutcome(Classification.SUCCESS, status_code, success=True, detail="success=true")
    return SmokeTestOutcome(
        Classification.PENDING,
        status_code,
        success=success if isinstance(success, bool) else None,
        detail=f"success={json.dumps(success)}",
    )


def classify_status(status_code) -> SmokeTestOutcome:
    """Classify on the HTTP status code alone."""
    if _is_2xx(status_code):
        return SmokeTestOutcome(Classification.SUCCESS, status_code, detail=f"HTTP {status_code}")
    return SmokeTestOutcome(Classification.FAILURE, status_code, detail=f"HTTP {status_code}")


def classify(variant, status_code, body) -> SmokeTestOutcome:
    if variant == "json":
        return classify_json(status_code, body)
    if variant == "status":
        return classify_status(status_code)
    raise ValueError(f"Unknown verify variant '{variant}'")


def probe(client, url, probe_target=DEFAULT_PROBE_TARGET, variant="json", api_key=None) -> SmokeTestOutcome:
    """Issue one GET ``{url}?url={probe_target}`` and classify the response.

    Transport errors (refused connection, timeouts) count as pending: a
    fresh Function URL commonly needs a moment before it answers.
    """
    headers = {"x-api-key": api_key} if api_key else {}
    try:
        resp = client.get(url, params={"url": probe_target}, headers=headers)
    except httpx.HTTPError as e:
        return SmokeTestOutcome(Classification.PENDING, detail=f"{type(e).__name__}: {e}")
    return classify(variant, resp.status_code, resp.text)


def _run_probes(client, url, probe_target, variant, attempts, interval, api_key, sleep):
    outcome = None
    for attempt in range(1, attempts + 1):
        outcome = probe(client, url, probe_target=probe_target, variant=variant, api_key=api_key)
        logger.info(f"Probe {attempt}/{attempts}: {outcome.classification.value} ({outcome.detail})")
        if outcome.ok:
            break
        if attempt < attempts:
            sleep(interval)
    return outcome


def verify(
    url,
    probe_target=DEFAULT_PROBE_TARGET,
    variant="json",
    warmup=5,
    attempts=1,
    interval=5,
    timeout=60,
    api_key=None,
    client=None,
    sleep=time.sleep,
) -> SmokeTestOutcome:
    """Sleep *warmup* seconds, then probe up to *attempts* times.

    Args:
        url: the Function URL to test
        probe_target: page the deployed function is asked to capture
        variant: "json" (parse the success flag) or "status" (HTTP code only)
        api_key: sent as x-api-key when the function enforces a key
        client: optional httpx.Client (a new one is created otherwise)
        sleep: injectable sleep for the warm-up and between attempts

    Returns:
        The last SmokeTestOutcome.
    """
    logger.info(f"Testing {url} with {probe_target}...")
    if warmup:
        logger.info(f"Waiting {warmup}s for the endpoint to warm up...")
        sleep(warmup)

    if client is None:
        with httpx.Client(timeout=timeout) as own_client:
            outcome = _run_probes(own_client, url, probe_target, variant, attempts, interval, api_key, sleep)
    else:
        outcome = _run_probes(client, url, probe_target, variant, attempts, interval, api_key, sleep)

    if outcome.classification is Classification.SUCCESS:
        logger.info("Deployment test successful!")
    elif outcome.classification is Classification.PENDING:
        logger.warning(f"Test returned: {outcome.detail}")
        logger.warning("Function might still be warming up. Try again in a few moments.")
    else:
        logger.warning(f"Deployment test failed: {outcome.detail}")
    return outcome
