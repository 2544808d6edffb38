"""Mixed checkout workload scenario.

Combines the checkout journeys with weights that model storefront traffic.
This is the recommended scenario for load baseline testing.
"""

from locust import HttpUser, between

from loadtests.scenarios.checkout import AddressCorrectionJourney, CheckoutJourney, OrderPollingTasks


class MixedWorkloadUser(HttpUser):
    """Realistic mixed checkout workload.

    - Full checkout journey: the main path, hitting all three upstreams
    - Address correction: validation rejections plus a successful quote
    - Order polling: post-redirect existence checks, ledger reads only
    """

    wait_time = between(0.5, 3.0)
    tasks = {
        CheckoutJourney: 5,
        AddressCorrectionJourney: 3,
        OrderPollingTasks: 2,
    }
