from decimal import Decimal

import pytest
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from modules.core.actors import ActorRole
from modules.products.models import Product, ProductStatus


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Marketplace users (role = Django group membership)
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_user(django_user_model):
    def _make(username, role=None):
        user = django_user_model.objects.create_user(username=username, password="testpass123")
        if role is not None:
            group, _ = Group.objects.get_or_create(name=str(role))
            user.groups.add(group)
        return user

    return _make


@pytest.fixture()
def retailer_user(make_user):
    return make_user("retailer", ActorRole.RETAILER)


@pytest.fixture()
def wholesaler_user(make_user):
    return make_user("wholesaler", ActorRole.WHOLESALER)


@pytest.fixture()
def transporter_user(make_user):
    return make_user("transporter", ActorRole.TRANSPORTER)


@pytest.fixture()
def client_for():
    """Build an APIClient force-authenticated as ``user``."""

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


@pytest.fixture()
def retailer_client(client_for, retailer_user):
    return client_for(retailer_user)


@pytest.fixture()
def wholesaler_client(client_for, wholesaler_user):
    return client_for(wholesaler_user)


@pytest.fixture()
def transporter_client(client_for, transporter_user):
    return client_for(transporter_user)


@pytest.fixture()
def product(wholesaler_user):
    return Product.objects.create(
        wholesaler_id=str(wholesaler_user.pk),
        sku="FLOUR-25",
        name="Wheat flour 25kg",
        measurement_unit="bag",
        price=Decimal("1000.00"),
        stock_quantity=20,
        min_order_quantity=2,
        status=ProductStatus.ACTIVE,
    )
