import pytest

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    def test_email_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "contact": "buyer@shop.example.com"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "buyer@shop.example.com" not in result["contact"]
        assert "***MASKED***" in result["contact"]

    def test_phone_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "phone": "call +5511987654321 now"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "+5511987654321" not in result["phone"]
        assert "***MASKED***" in result["phone"]

    def test_password_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    def test_non_sensitive_data_unchanged(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "order.transitioned", "order_id": "0190f1c2-7d4e-7a10-9a1b-3c4d5e6f7a8b"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["order_id"] == "0190f1c2-7d4e-7a10-9a1b-3c4d5e6f7a8b"
        assert result["event"] == "order.transitioned"
