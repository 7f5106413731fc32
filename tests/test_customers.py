"""Tests for POST /checkout (customer information)."""

from storefront.models.customer import CustomerInformation


def _customer(**overrides):
    data = {
        "email": "jane@example.com",
        "fullName": "Jane Doe",
        "country": "US",
        "address": "1 Main St",
        "apartment": "Apt 2",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
    }
    data.update(overrides)
    return data


class TestSaveCustomer:

    def test_creates_customer(self, client):
        resp = client.post("/checkout", json=_customer())

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["email"] == "jane@example.com"
        assert data["message"] == "Customer information processed successfully"

        customer = CustomerInformation.query.one()
        assert customer.customer_id == data["customerId"]
        assert customer.full_name == "Jane Doe"
        assert customer.zip_code == "62701"
        assert customer.apartment == "Apt 2"

    def test_updates_existing_customer_by_email(self, client):
        first = client.post("/checkout", json=_customer()).get_json()
        second = client.post(
            "/checkout", json=_customer(city="Shelbyville", apartment="")
        ).get_json()

        assert second["customerId"] == first["customerId"]
        assert CustomerInformation.query.count() == 1
        customer = CustomerInformation.query.one()
        assert customer.city == "Shelbyville"
        assert customer.apartment is None

    def test_missing_fields_return_422(self, client):
        resp = client.post("/checkout", json=_customer(fullName="", zipCode=None))

        assert resp.status_code == 422
        data = resp.get_json()
        assert data["error"] == "Failed to process customer information"
        assert "fullName is required." in data["message"]
        assert "zipCode is required." in data["message"]
        assert CustomerInformation.query.count() == 0

    def test_invalid_email_returns_422(self, client):
        resp = client.post("/checkout", json=_customer(email="not-an-email"))
        assert resp.status_code == 422
        assert "A valid email is required." in resp.get_json()["message"]

    def test_non_json_body_returns_400(self, client):
        resp = client.post("/checkout", data="x", content_type="text/plain")
        assert resp.status_code == 400

    def test_html_is_stripped(self, client):
        client.post("/checkout", json=_customer(fullName="<b>Jane</b> Doe", address="<script>x</script>1 Main St"))

        customer = CustomerInformation.query.one()
        assert customer.full_name == "Jane Doe"
        assert "<" not in customer.address
