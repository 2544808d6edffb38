"""Storefront checkout load testing - Locust entry point.

Usage:
    # All scenarios (web UI):
    LOADTEST_CART_IDS=cart_1,cart_2 locust -f loadtests/locustfile.py

    # Mixed workload only:
    locust -f loadtests/locustfile.py MixedWorkloadUser

    # Polling storm:
    locust -f loadtests/locustfile.py PollingStormUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py MixedWorkloadUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

from locust import events

# Import all user classes so Locust discovers them
from loadtests.data_generators import cart_ids
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.mixed import MixedWorkloadUser  # noqa: F401
from loadtests.scenarios.stress import PollingStormUser, WebhookNoiseUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 500:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    seeded = cart_ids()
    if seeded:
        print(f"[LOADTEST] Seeded carts: {len(seeded)}")
    else:
        print("[LOADTEST] LOADTEST_CART_IDS is empty; checkout journeys will stop before address sync")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Print a short summary when the test ends."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    total = environment.stats.total
    print(f"[LOADTEST] Requests: {total.num_requests}, failures: {total.num_failures}")
    print(f"[LOADTEST] Median response time: {total.median_response_time} ms\n")
