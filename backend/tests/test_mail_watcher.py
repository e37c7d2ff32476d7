"""
Unit tests for the mail watcher.

The IMAP side is a scripted fake transport; webhook forwarding goes through
httpx.MockTransport. Nothing touches the network.
"""

import json
from email.message import EmailMessage
from typing import Optional
from unittest.mock import MagicMock, patch

import httpx
import pytest

from jobhook.models.claim import DispositionKind, OfferDisposition
from jobhook.models.job_offer import JobOffer
from jobhook.models.mail_payload import MailPayload
from jobhook.services.imap_config import ImapListenConfig
from jobhook.services.mail_transport import FetchedMessage
from jobhook.services.mail_watcher import (
    ConnectionState,
    MailWatcher,
    WebhookForwarder,
    build_handler,
    connect_with_retry,
    message_key,
    run_offer_pipeline,
    sender_matches,
    subject_matches,
)
from jobhook.services.seen_set import SeenSet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _raw_email(
    subject: str = "New Job Offer",
    sender: str = "dispatch@example.com",
    message_id: Optional[str] = "<Offer-1@Example.com>",
    html: str = "<p>offer</p>",
    text: str = "offer text",
) -> bytes:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"Dispatch <{sender}>"
    msg["To"] = "tech@example.com"
    if message_id:
        msg["Message-ID"] = message_id
    msg.set_content(text)
    msg.add_alternative(html, subtype="html")
    return msg.as_bytes()


def _config(**overrides) -> ImapListenConfig:
    values = dict(
        host="imap.example.com",
        user="tech@example.com",
        password="secret",
        retry_max=3,
        retry_delay_seconds=0.5,
        poll_seconds=0,
    )
    values.update(overrides)
    return ImapListenConfig(**values)


class FakeTransport:
    """Scripted stand-in for ImapMailbox that records every call."""

    def __init__(self, exists=0, polls=(), messages=None, connect_errors=0, open_errors=0):
        self.uid_validity = "42"
        self.exists = exists
        self.polls = list(polls)
        self.messages = messages or {}
        self.connect_errors = connect_errors
        self.open_errors = open_errors
        self.calls = []

    def connect(self):
        self.calls.append("connect")
        if self.connect_errors:
            self.connect_errors -= 1
            raise OSError("connection refused")

    def open_mailbox(self, mailbox):
        self.calls.append(f"open:{mailbox}")
        if self.open_errors:
            self.open_errors -= 1
            raise OSError("select failed")
        return self.exists

    def poll(self):
        self.calls.append("poll")
        if not self.polls:
            raise OSError("connection closed")
        return self.polls.pop(0)

    def fetch(self, start, end):
        self.calls.append(f"fetch:{start}:{end}")
        return [self.messages[seq] for seq in range(start, end + 1) if seq in self.messages]

    def release_mailbox(self):
        self.calls.append("release")

    def logout(self):
        self.calls.append("logout")


def _message(seq: int, **kwargs) -> FetchedMessage:
    return FetchedMessage(seq=seq, uid=100 + seq, raw=_raw_email(**kwargs))


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

class TestMessageKey:
    """Test dedupe key derivation."""

    def test_message_id_is_trimmed_and_lowercased(self):
        assert message_key("  <ABC@X.com> ", 5, "9") == "<abc@x.com>"

    def test_falls_back_to_uid_and_uidvalidity(self):
        assert message_key(None, 5, "9") == "uid:5:9"
        assert message_key("   ", 5, "9") == "uid:5:9"


class TestSubjectMatches:
    """Test subject keyword filter."""

    def test_no_keywords_matches_everything(self):
        assert subject_matches("anything", []) is True
        assert subject_matches(None, []) is True

    def test_case_insensitive_substring(self):
        assert subject_matches("NEW JOB OFFER near you", ["job offer"]) is True
        assert subject_matches("Invoice", ["job offer", "dispatch"]) is False


class TestSenderMatches:
    """Test sender allow-list filter."""

    def test_no_allow_list_matches_everyone(self):
        assert sender_matches(["x@y.com"], []) is True

    def test_exact_address(self):
        assert sender_matches(["Dispatch@Example.com"], ["dispatch@example.com"]) is True

    def test_domain_suffix(self):
        assert sender_matches(["jobs@example.com"], ["example.com"]) is True

    def test_lookalike_domain_rejected(self):
        assert sender_matches(["jobs@badexample.com"], ["example.com"]) is False

    def test_no_sender(self):
        assert sender_matches([], ["example.com"]) is False


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

class TestConnectWithRetry:
    """Test the bounded retry state machine."""

    def test_success_after_failures(self):
        attempts = iter([OSError("a"), OSError("b"), "ok"])

        def step():
            value = next(attempts)
            if isinstance(value, Exception):
                raise value
            return value

        sleep = MagicMock()
        state, result = connect_with_retry(step, what="Connect", retry_max=5, retry_delay_seconds=2, sleep=sleep)

        assert state == ConnectionState.CONNECTED
        assert result == "ok"
        assert sleep.call_count == 2
        sleep.assert_called_with(2)

    def test_gives_up_after_retry_max(self):
        step = MagicMock(side_effect=OSError("down"))
        sleep = MagicMock()

        state, result = connect_with_retry(step, what="Connect", retry_max=3, retry_delay_seconds=1, sleep=sleep)

        assert state == ConnectionState.FAILED
        assert result is None
        assert step.call_count == 3
        assert sleep.call_count == 2

    def test_other_errors_propagate(self):
        with pytest.raises(ValueError):
            connect_with_retry(MagicMock(side_effect=ValueError("bug")), what="x", retry_max=3, retry_delay_seconds=0)


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------

class TestMailWatcherRun:
    """Test connection lifecycle."""

    def test_connect_exhaustion_exits_with_status_1(self):
        transport = FakeTransport(connect_errors=10)
        sleep = MagicMock()
        watcher = MailWatcher(_config(), transport, SeenSet(), MagicMock(), sleep=sleep)

        with pytest.raises(SystemExit) as exc_info:
            watcher.run()

        assert exc_info.value.code == 1
        assert transport.calls == ["connect"] * 3
        assert sleep.call_count == 2

    def test_mailbox_open_exhaustion_logs_out_and_exits(self):
        transport = FakeTransport(open_errors=10)
        watcher = MailWatcher(_config(), transport, SeenSet(), MagicMock(), sleep=MagicMock())

        with pytest.raises(SystemExit):
            watcher.run()

        assert transport.calls[-1] == "logout"
        assert "release" not in transport.calls

    def test_recovers_from_transient_connect_failure(self):
        transport = FakeTransport(connect_errors=1, polls=[])
        watcher = MailWatcher(_config(), transport, SeenSet(), MagicMock(), sleep=MagicMock())

        watcher.run()

        assert transport.calls[:2] == ["connect", "connect"]

    def test_cleanup_releases_then_logs_out(self):
        transport = FakeTransport(exists=2, polls=[2])
        watcher = MailWatcher(_config(), transport, SeenSet(), MagicMock(), sleep=MagicMock())

        watcher.run()

        assert transport.calls[-2:] == ["release", "logout"]

    def test_cleanup_runs_when_handler_stops_watcher(self):
        transport = FakeTransport(exists=0, polls=[1, 1, 1], messages={1: _message(1)})
        watcher = MailWatcher(_config(), transport, SeenSet(), MagicMock(), sleep=MagicMock())
        watcher.handler.side_effect = lambda payload: watcher.stop()

        watcher.run()

        assert transport.calls.count("poll") == 1
        assert transport.calls[-2:] == ["release", "logout"]

    def test_existing_mail_is_not_reprocessed(self):
        transport = FakeTransport(exists=3, polls=[3, 4], messages={4: _message(4)})
        handler = MagicMock()
        watcher = MailWatcher(_config(), transport, SeenSet(), handler, sleep=MagicMock())

        watcher.run()

        assert "fetch:4:4" in transport.calls
        assert not any(c.startswith("fetch:1") for c in transport.calls)
        handler.assert_called_once()

    def test_burst_is_one_coalesced_batch(self):
        messages = {seq: _message(seq, message_id=f"<m{seq}@x>") for seq in (1, 2, 3)}
        transport = FakeTransport(exists=0, polls=[3], messages=messages)
        handler = MagicMock()
        watcher = MailWatcher(_config(), transport, SeenSet(), handler, sleep=MagicMock())

        watcher.run()

        assert [c for c in transport.calls if c.startswith("fetch")] == ["fetch:1:3"]
        assert handler.call_count == 3

    def test_count_drop_resets_last_count(self):
        transport = FakeTransport(
            exists=5,
            polls=[3, 4],
            messages={4: _message(4, message_id="<new@x>")},
        )
        handler = MagicMock()
        watcher = MailWatcher(_config(), transport, SeenSet(), handler, sleep=MagicMock())

        watcher.run()

        assert "fetch:4:4" in transport.calls
        handler.assert_called_once()


class TestProcessNewMessages:
    """Test dedupe, filtering, and handler isolation."""

    def _watcher(self, transport, handler=None, **config):
        return MailWatcher(_config(**config), transport, SeenSet(), handler or MagicMock(), sleep=MagicMock())

    def test_same_message_id_handled_once(self):
        transport = FakeTransport(messages={1: _message(1), 2: _message(2)})
        watcher = self._watcher(transport)

        watcher.process_new_messages(1, 2)

        watcher.handler.assert_called_once()

    def test_handler_receives_subject_text_and_html(self):
        transport = FakeTransport(messages={1: _message(1, html="<a>Accept</a>", text="hello")})
        watcher = self._watcher(transport)

        watcher.process_new_messages(1, 1)

        payload = watcher.handler.call_args[0][0]
        assert isinstance(payload, MailPayload)
        assert payload.subject == "New Job Offer"
        assert "<a>Accept</a>" in payload.html
        assert payload.text.strip() == "hello"

    def test_subject_filter(self):
        transport = FakeTransport(messages={1: _message(1, subject="Invoice #1")})
        watcher = self._watcher(transport, subject_keywords=["job offer"])

        watcher.process_new_messages(1, 1)

        watcher.handler.assert_not_called()

    def test_sender_filter(self):
        transport = FakeTransport(messages={1: _message(1, sender="spam@other.com")})
        watcher = self._watcher(transport, allowed_senders=["example.com"])

        watcher.process_new_messages(1, 1)

        watcher.handler.assert_not_called()

    def test_filtered_message_still_recorded_as_seen(self):
        transport = FakeTransport(messages={1: _message(1, subject="Invoice")})
        watcher = self._watcher(transport, subject_keywords=["job"])

        watcher.process_new_messages(1, 1)

        assert watcher.seen.has("<offer-1@example.com>")

    def test_missing_message_id_uses_uid_key(self):
        transport = FakeTransport(messages={1: _message(1, message_id=None)})
        watcher = self._watcher(transport)

        watcher.process_new_messages(1, 1)

        assert watcher.seen.has("uid:101:42")

    def test_handler_failure_does_not_stop_batch(self):
        messages = {1: _message(1, message_id="<a@x>"), 2: _message(2, message_id="<b@x>")}
        handler = MagicMock(side_effect=[RuntimeError("boom"), None])
        watcher = self._watcher(FakeTransport(messages=messages), handler=handler)

        watcher.process_new_messages(1, 2)

        assert handler.call_count == 2
        assert watcher.seen.has("<a@x>")

    def test_fetch_failure_is_logged_not_raised(self):
        transport = FakeTransport()
        transport.fetch = MagicMock(side_effect=OSError("fetch failed"))
        watcher = self._watcher(transport)

        watcher.process_new_messages(1, 1)

        watcher.handler.assert_not_called()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

class TestWebhookForwarder:
    """Test forwarding matched mail to a webhook."""

    def test_posts_both_key_conventions(self):
        received = {}

        def handler(request):
            received["url"] = str(request.url)
            received["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": "skipped"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        forwarder = WebhookForwarder("http://hook.local/api/webhook", client=client)

        forwarder(MailPayload(subject="S", text="T", html="<p>H</p>"))

        assert received["url"] == "http://hook.local/api/webhook"
        assert received["body"] == {
            "subject": "S", "Subject": "S",
            "text": "T", "TextBody": "T",
            "html": "<p>H</p>", "HtmlBody": "<p>H</p>",
        }

    def test_network_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        forwarder = WebhookForwarder("http://hook.local/api/webhook", client=client)

        forwarder(MailPayload(subject="S", html="<p>H</p>"))

    def test_build_handler_picks_forwarder_when_url_set(self):
        handler = build_handler(_config(webhook_url="http://hook.local/api/webhook"))

        assert isinstance(handler, WebhookForwarder)
        assert build_handler(_config()) is run_offer_pipeline


class TestRunOfferPipeline:
    """Test in-process handling."""

    def test_runs_pipeline_on_html(self):
        disposition = OfferDisposition(kind=DispositionKind.NO_LINK, offer=JobOffer())
        with patch("jobhook.services.offer_pipeline.handle_offer", return_value=disposition) as handle:
            run_offer_pipeline(MailPayload(subject="S", html="<p>x</p>"))

        handle.assert_called_once_with("<p>x</p>")

    def test_skips_when_no_html(self):
        with patch("jobhook.services.offer_pipeline.handle_offer") as handle:
            run_offer_pipeline(MailPayload(subject="S", text="plain only"))

        handle.assert_not_called()
