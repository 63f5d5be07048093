from types import SimpleNamespace

import notifications


ORDER = {
    "_id": "65f0c0ffee0000000000abcd",
    "status": "out_for_delivery",
    "delivery_address": {"address_line1": "Road 5", "city": "Dhaka", "phone": "+8801700000000"},
}


def test_format_status_sms():
    text = notifications.format_status_sms(ORDER)
    assert text.startswith("Order #00abcd is out for delivery.")
    assert len(text) <= 160


def test_preview_only_without_credentials(monkeypatch):
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
        monkeypatch.delenv(name, raising=False)
    result = notifications.notify_status_change(ORDER)
    assert result.sent is False
    assert result.to == "+8801700000000"


def test_sends_through_twilio(monkeypatch):
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15550000000")
    sent = []

    class FakeClient:
        def __init__(self, sid, token):
            self.messages = SimpleNamespace(create=self.create)

        def create(self, body, from_, to):
            sent.append((body, from_, to))
            return SimpleNamespace(sid="SM1")

    monkeypatch.setattr(notifications, "Client", FakeClient)
    result = notifications.notify_status_change(ORDER)

    assert result.sent is True
    assert result.message_sid == "SM1"
    assert sent[0][2] == "+8801700000000"


def test_transport_error_is_reported_not_raised(monkeypatch):
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15550000000")

    class TimingOutClient:
        def __init__(self, sid, token):
            self.messages = SimpleNamespace(create=self.create)

        def create(self, body, from_, to):
            raise TimeoutError("read timed out")

    monkeypatch.setattr(notifications, "Client", TimingOutClient)
    result = notifications.notify_status_change(ORDER)

    assert result.sent is False
    assert result.preview.startswith("Order #00abcd")
