from locust import HttpUser, task, between
import random

# Synthetic identities: the first 100 match the fallback seeds, the rest are never configured
CONFIGURED = [f"property_{i};tenant_0;type_error;interface_api" for i in range(1, 101)]
UNCONFIGURED = [f"property_{i};tenant_{i % 50};type_error;interface_web" for i in range(1, 10001)]


class EagleEyeUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Seed thresholds so configured keys resolve without a config feed
        self.client.post("/api/test-mode")

    @task(9)
    def untracked_observation(self):
        # dominant path: membership filter says no
        self.client.post(
            "/api/alert",
            json={"key": random.choice(UNCONFIGURED), "errorCount": str(random.randint(0, 200))},
        )

    @task(1)
    def tracked_observation(self):
        self.client.post(
            "/api/alert",
            json={"key": random.choice(CONFIGURED), "errorCount": str(random.randint(0, 120))},
        )
