import unittest

from fastapi.testclient import TestClient

from bazaar_track.app import create_app
from bazaar_track.config import Settings
from bazaar_track.identity import StaticIdentityVerifier
from bazaar_track.payments import InMemoryPaymentGateway
from bazaar_track.store import InMemoryDocumentStore

ADMIN_EMAIL = "admin@bazaar.test"
VENDOR_EMAIL = "vendor@bazaar.test"
USER_EMAIL = "user@bazaar.test"
GUEST_EMAIL = "newcomer@bazaar.test"

TOKENS = {
    "admin-token": ADMIN_EMAIL,
    "vendor-token": VENDOR_EMAIL,
    "user-token": USER_EMAIL,
    "guest-token": GUEST_EMAIL,
}


class StubChatModel:
    def __init__(self, reply="Tomatoes are cheapest at the central market."):
        self.messages = []
        self._reply = reply

    def reply(self, message):
        self.messages.append(message)
        return self._reply


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class ApiTestCase(unittest.TestCase):
    """Builds an app over in-memory backends with one user per role."""

    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.payments = InMemoryPaymentGateway()
        self.chat_model = StubChatModel()
        settings = Settings(_env_file=None, use_in_memory_backends=True)
        self.app = create_app(
            settings,
            store=self.store,
            identity_verifier=StaticIdentityVerifier(dict(TOKENS)),
            payment_gateway=self.payments,
            chat_model=self.chat_model,
        )
        self.client = TestClient(self.app)
        for email, role in (
            (ADMIN_EMAIL, "admin"),
            (VENDOR_EMAIL, "vendor"),
            (USER_EMAIL, "user"),
        ):
            self.store.insert_one("users", {"email": email, "name": role.title(), "role": role})

    def product_payload(self, **overrides):
        payload = {
            "vendorEmail": VENDOR_EMAIL,
            "vendorName": "Vendor",
            "marketName": "Karwan Bazar",
            "date": "2026-10-01",
            "itemName": "Onion",
            "pricePerUnit": 42.5,
        }
        payload.update(overrides)
        return payload

    def create_product(self, **overrides):
        response = self.client.post(
            "/products", json=self.product_payload(**overrides), headers=bearer("vendor-token")
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["insertedId"]

    def approve(self, product_id):
        response = self.client.patch(
            f"/admin/products/{product_id}/approve", headers=bearer("admin-token")
        )
        self.assertEqual(response.status_code, 200, response.text)
