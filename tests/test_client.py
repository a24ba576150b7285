"""Tests for DiscordClient response classification."""

import json
import unittest

from discord_export.client import DiscordClient
from discord_export.models import OutcomeKind
from discord_export.transport import BaseTransport, HttpResponse


class RecordingTransport(BaseTransport):
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=20):
        self.requests.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        return self.responses.pop(0)


def _response(status, body=None, headers=None, text=None):
    if text is None:
        text = json.dumps(body) if body is not None else ""
    return HttpResponse(status_code=status, text=text, headers=headers or {})


class TestRequests(unittest.TestCase):
    def test_first_page_has_no_before(self):
        transport = RecordingTransport([_response(200, [])])
        client = DiscordClient("secret-token", transport=transport, api_base="https://api.test/v9/")
        client.get_messages("555")

        sent = transport.requests[0]
        self.assertEqual(sent["url"], "https://api.test/v9/channels/555/messages")
        self.assertEqual(sent["params"], {"limit": 100})
        self.assertEqual(sent["headers"]["Authorization"], "secret-token")

    def test_before_and_limit_clamp(self):
        transport = RecordingTransport([_response(200, [])])
        DiscordClient("t", transport=transport).get_messages("555", limit=500, before="123")
        self.assertEqual(transport.requests[0]["params"], {"limit": 100, "before": "123"})

    def test_metadata_endpoints(self):
        transport = RecordingTransport([_response(200, {"id": "1"})] * 3)
        client = DiscordClient("t", transport=transport, api_base="https://api.test")
        client.get_current_user()
        client.get_guild("777")
        client.get_channel("555")
        self.assertEqual(
            [r["url"] for r in transport.requests],
            ["https://api.test/users/@me", "https://api.test/guilds/777", "https://api.test/channels/555"],
        )


class TestOutcomes(unittest.TestCase):
    def _fetch_outcome(self, response, call="messages"):
        client = DiscordClient("t", transport=RecordingTransport([response]))
        if call == "messages":
            return client.get_messages("555")
        return client.get_current_user()

    def test_success(self):
        outcome = self._fetch_outcome(_response(200, [{"id": "1"}]))
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.data, [{"id": "1"}])
        self.assertEqual(outcome.status_code, 200)

    def test_rate_limited_reads_json_hint(self):
        outcome = self._fetch_outcome(_response(429, {"message": "You are being rate limited.", "retry_after": 1.5}))
        self.assertTrue(outcome.rate_limited)
        self.assertEqual(outcome.retry_after, 1.5)
        self.assertEqual(outcome.error, "You are being rate limited.")

    def test_rate_limited_reads_header_hint(self):
        outcome = self._fetch_outcome(_response(429, text="", headers={"retry-after": "3"}))
        self.assertEqual(outcome.kind, OutcomeKind.RATE_LIMITED)
        self.assertEqual(outcome.retry_after, 3.0)

    def test_status_kinds(self):
        cases = {
            401: OutcomeKind.UNAUTHORIZED,
            403: OutcomeKind.FORBIDDEN,
            404: OutcomeKind.NOT_FOUND,
            500: OutcomeKind.HTTP_ERROR,
            502: OutcomeKind.HTTP_ERROR,
        }
        for status, kind in cases.items():
            outcome = self._fetch_outcome(_response(status, {"message": "nope"}), call="user")
            self.assertEqual(outcome.kind, kind, status)
            self.assertIsNone(outcome.retry_after)

    def test_invalid_json_on_success(self):
        outcome = self._fetch_outcome(_response(200, text="<html>cloudflare</html>"))
        self.assertEqual(outcome.kind, OutcomeKind.INVALID_PAYLOAD)
        self.assertIn("invalid_json", outcome.error)

    def test_messages_must_be_a_list(self):
        outcome = self._fetch_outcome(_response(200, {"messages": []}))
        self.assertEqual(outcome.kind, OutcomeKind.INVALID_PAYLOAD)

    def test_transport_errors_propagate(self):
        class Broken(BaseTransport):
            def get(self, url, params=None, headers=None, timeout=20):
                raise ConnectionError("network down")

        with self.assertRaises(ConnectionError):
            DiscordClient("t", transport=Broken()).get_messages("555")


if __name__ == "__main__":
    unittest.main()
