"""
Unit tests for external system gateways.
"""

import json

import httpx
import pytest
from firebase_admin import auth, exceptions

from telemed.core.enums import BillingCycle, BillingSubscriptionStatus
from telemed.gateways.base import (
    DuplicateAccountError,
    GatewayConfig,
    InvalidTokenError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    error_message,
)
from telemed.gateways.billing_gateway import AsaasBillingGateway
from telemed.gateways.identity_gateway import FirebaseIdentityGateway
from telemed.gateways.registry_gateway import RapidocRegistryGateway
from telemed.models.beneficiary import BeneficiaryProfile
from tests.fixtures.constants import HOLDER_TAX_ID

ASAAS_URL = "https://asaas.test/api/v3"
RAPIDOC_URL = "https://rapidoc.test"


def _billing(handler, attempts: int = 1) -> AsaasBillingGateway:
    client = httpx.AsyncClient(base_url=ASAAS_URL, transport=httpx.MockTransport(handler))
    return AsaasBillingGateway(
        GatewayConfig(base_url=ASAAS_URL, retry_attempts=attempts), api_key="key-123", client=client
    )


def _registry(handler) -> RapidocRegistryGateway:
    client = httpx.AsyncClient(base_url=RAPIDOC_URL, transport=httpx.MockTransport(handler))
    return RapidocRegistryGateway(
        GatewayConfig(base_url=RAPIDOC_URL, retry_attempts=1),
        token="tok",
        client_id="client-1",
        client=client,
    )


@pytest.mark.unit
class TestErrorMessage:
    """Tests for extracting provider error messages."""

    def test_asaas_errors_list(self):
        response = httpx.Response(
            400, json={"errors": [{"code": "invalid_cpf", "description": "CPF inválido"}]}
        )
        assert error_message(response) == "CPF inválido"

    def test_message_key(self):
        assert error_message(httpx.Response(400, json={"message": "Nope"})) == "Nope"

    def test_plain_text(self):
        assert error_message(httpx.Response(400, text="bad")) == "bad"


@pytest.mark.unit
class TestAsaasBillingGateway:
    """Tests for the billing gateway wire format."""

    @pytest.mark.asyncio
    async def test_find_customer_sends_token_and_tax_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["token"] = request.headers.get("access_token")
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200,
                json={
                    "hasMore": False,
                    "data": [
                        {"id": "cus_old", "cpfCnpj": HOLDER_TAX_ID, "deleted": True},
                        {
                            "id": "cus_1",
                            "name": "Maria",
                            "cpfCnpj": "111.222.333-44",
                            "mobilePhone": "11987654321",
                        },
                    ],
                },
            )

        gateway = _billing(handler)
        customer = await gateway.find_customer_by_tax_id(HOLDER_TAX_ID)

        assert seen["token"] == "key-123"
        assert seen["params"]["cpfCnpj"] == HOLDER_TAX_ID
        assert customer.id == "cus_1"
        assert customer.tax_id == HOLDER_TAX_ID
        assert customer.contact_phone == "11987654321"

    @pytest.mark.asyncio
    async def test_list_subscriptions_follows_pages(self):
        def handler(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            if offset == 0:
                return httpx.Response(
                    200,
                    json={
                        "hasMore": True,
                        "data": [
                            {
                                "id": "sub_1",
                                "customer": "cus_1",
                                "status": "ACTIVE",
                                "cycle": "MONTHLY",
                                "value": 49.9,
                                "dateCreated": "2026-01-10",
                            }
                        ],
                    },
                )
            return httpx.Response(
                200,
                json={
                    "hasMore": False,
                    "data": [{"id": "sub_2", "customer": "cus_1", "status": "inactive"}],
                },
            )

        subscriptions = await _billing(handler).list_subscriptions("cus_1")

        assert [s.id for s in subscriptions] == ["sub_1", "sub_2"]
        assert subscriptions[0].cycle == BillingCycle.MONTHLY
        assert subscriptions[1].status == BillingSubscriptionStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_list_payments(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["subscription"] == "sub_1"
            return httpx.Response(
                200,
                json={
                    "hasMore": False,
                    "data": [{"id": "pay_1", "status": "RECEIVED", "dueDate": "2026-10-05"}],
                },
            )

        payments = await _billing(handler).list_payments("sub_1")

        assert payments[0].is_confirmed

    @pytest.mark.asyncio
    async def test_get_customer_not_found(self):
        gateway = _billing(lambda request: httpx.Response(404, json={}))
        assert await gateway.get_customer("cus_x") is None

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        gateway = _billing(lambda request: httpx.Response(503, text="maintenance"))
        with pytest.raises(UpstreamUnavailableError):
            await gateway.find_customer_by_tax_id(HOLDER_TAX_ID)

    @pytest.mark.asyncio
    async def test_html_body_is_unavailable(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="<html>Gateway</html>")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await _billing(handler, attempts=2).get_customer("cus_1")

        assert exc_info.value.provider == "asaas"
        assert isinstance(exc_info.value.original_error, ValueError)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailableError):
            await _billing(handler).list_payments("sub_1")

    @pytest.mark.asyncio
    async def test_reads_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502)
            return httpx.Response(200, json={"hasMore": False, "data": []})

        assert await _billing(handler, attempts=2).list_payments("sub_1") == []
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_create_customer_rejection(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["personType"] == "FISICA"
            return httpx.Response(
                400, json={"errors": [{"description": "O CPF informado é inválido."}]}
            )

        with pytest.raises(UpstreamRejectedError) as exc_info:
            await _billing(handler).create_customer("Maria", "m@example.com", "123")

        assert exc_info.value.message == "O CPF informado é inválido."
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_create_subscription(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"id": "sub_9", "customer": "cus_1", "status": "ACTIVE", "cycle": "YEARLY"},
            )

        subscription = await _billing(handler).create_subscription(
            "cus_1", "499.00", "YEARLY", "Familia Anual"
        )

        assert subscription.id == "sub_9"
        assert sent["body"]["billingType"] == "UNDEFINED"
        assert sent["body"]["cycle"] == "YEARLY"


@pytest.mark.unit
class TestRapidocRegistryGateway:
    """Tests for the registry gateway wire format."""

    @pytest.mark.asyncio
    async def test_find_by_tax_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/tema/api/beneficiaries/{HOLDER_TAX_ID}"
            assert request.headers["Authorization"] == "Bearer tok"
            assert request.headers["clientId"] == "client-1"
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "beneficiary": {
                        "uuid": "ben-1",
                        "cpf": HOLDER_TAX_ID,
                        "isActive": False,
                        "plans": [{"plan": {"uuid": "p1"}, "paymentType": "S"}],
                    },
                },
            )

        record = await _registry(handler).find_by_tax_id(HOLDER_TAX_ID)

        assert record.uuid == "ben-1"
        assert record.is_active is False
        assert record.plans[0].plan_uuid == "p1"

    @pytest.mark.asyncio
    async def test_find_by_tax_id_absent(self):
        gateway = _registry(
            lambda request: httpx.Response(200, json={"success": False, "message": "not found"})
        )
        assert await gateway.find_by_tax_id(HOLDER_TAX_ID) is None

        gateway = _registry(lambda request: httpx.Response(404, json={}))
        assert await gateway.find_by_tax_id(HOLDER_TAX_ID) is None

    @pytest.mark.asyncio
    async def test_create_posts_list_and_reads_uuid(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "beneficiaries": [{"uuid": "ben-9"}]})

        record = await _registry(handler).create(
            BeneficiaryProfile(name="Maria", tax_id=HOLDER_TAX_ID, birthday="01/02/1990")
        )

        assert record.uuid == "ben-9"
        assert sent["body"] == [
            {"name": "Maria", "cpf": HOLDER_TAX_ID, "birthday": "1990-02-01"}
        ]

    @pytest.mark.asyncio
    async def test_create_rejection_with_http_200(self):
        gateway = _registry(
            lambda request: httpx.Response(
                200, json={"success": False, "message": "Beneficiário já cadastrado"}
            )
        )

        with pytest.raises(UpstreamRejectedError) as exc_info:
            await gateway.create(BeneficiaryProfile(name="Maria", tax_id=HOLDER_TAX_ID))

        assert exc_info.value.message == "Beneficiário já cadastrado"

    @pytest.mark.asyncio
    async def test_non_json_body_is_unavailable(self):
        gateway = _registry(lambda request: httpx.Response(200, text="Service Unavailable"))

        with pytest.raises(UpstreamUnavailableError):
            await gateway.find_by_tax_id(HOLDER_TAX_ID)
        with pytest.raises(UpstreamUnavailableError):
            await gateway.create(BeneficiaryProfile(name="Maria", tax_id=HOLDER_TAX_ID))
        with pytest.raises(UpstreamUnavailableError):
            await gateway.list_by_holder(HOLDER_TAX_ID)

    @pytest.mark.asyncio
    async def test_plan_details_are_cached(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                200, json={"plan": {"uuid": "p1", "specialties": [{"id": "s1", "name": "Clinico"}]}}
            )

        gateway = _registry(handler)
        first = await gateway.get_plan_details("p1")
        second = await gateway.get_plan_details("p1")

        assert first.specialties[0].uuid == "s1"
        assert second is first
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_deactivate_uses_delete(self):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append((request.method, request.url.path))
            return httpx.Response(200, json={"success": True})

        await _registry(handler).deactivate("ben-1")

        assert methods == [("DELETE", "/tema/api/beneficiaries/ben-1")]

    @pytest.mark.asyncio
    async def test_list_by_holder_filters_locally(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "beneficiaries": [
                        {"uuid": "d1", "cpf": "55566677788", "holder": "111.222.333-44"},
                        {"uuid": "x1", "cpf": "99988877766", "holder": "00000000000"},
                    ]
                },
            )

        records = await _registry(handler).list_by_holder(HOLDER_TAX_ID)

        assert [r.uuid for r in records] == ["d1"]


@pytest.mark.unit
class TestFirebaseIdentityGateway:
    """Tests for identity error translation."""

    @pytest.mark.asyncio
    async def test_verify_token(self, monkeypatch):
        def verify(token, app=None):
            return {"uid": HOLDER_TAX_ID, "email": "maria@example.com"}

        monkeypatch.setattr(auth, "verify_id_token", verify)

        verified = await FirebaseIdentityGateway(app=object()).verify_token("t")

        assert verified.subject_id == HOLDER_TAX_ID
        assert verified.email == "maria@example.com"

    @pytest.mark.asyncio
    async def test_invalid_token(self, monkeypatch):
        def verify(token, app=None):
            raise ValueError("malformed")

        monkeypatch.setattr(auth, "verify_id_token", verify)

        with pytest.raises(InvalidTokenError):
            await FirebaseIdentityGateway(app=object()).verify_token("t")

    @pytest.mark.asyncio
    async def test_duplicate_account(self, monkeypatch):
        def create_user(**kwargs):
            raise auth.UidAlreadyExistsError("exists", None, None)

        monkeypatch.setattr(auth, "create_user", create_user)

        with pytest.raises(DuplicateAccountError):
            await FirebaseIdentityGateway(app=object()).create_account(
                HOLDER_TAX_ID, "maria@example.com", "Pw1!abcd"
            )

    @pytest.mark.asyncio
    async def test_transient_identity_error(self, monkeypatch):
        def create_user(**kwargs):
            raise exceptions.UnavailableError("try later")

        monkeypatch.setattr(auth, "create_user", create_user)

        with pytest.raises(UpstreamUnavailableError):
            await FirebaseIdentityGateway(app=object()).create_account(
                HOLDER_TAX_ID, "maria@example.com", "Pw1!abcd"
            )
