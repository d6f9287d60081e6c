"""
Tests for the triage cycle, run against in-memory fakes.
"""
import asyncio
import base64
import threading
from email import message_from_bytes
from email.policy import default as default_policy

from mailtriage.errors import AuthError, ClassificationError, TransportError
from mailtriage.gmail.labels import LabelManager
from mailtriage.models import Category
from mailtriage.pipeline import TriageOrchestrator

from conftest import FakeAuthenticator, FakeTransport, KeywordClassifier, make_message


def build(transport, authenticator=None, classifier=None, batch_size=10):
    return TriageOrchestrator(
        authenticator=authenticator or FakeAuthenticator(),
        transport=transport,
        classifier=classifier or KeywordClassifier(),
        labels=LabelManager(transport),
        batch_size=batch_size,
    )


def run(orchestrator):
    return asyncio.run(orchestrator.run_cycle())


def label_id(transport, name):
    return next(l.id for l in transport.labels if l.name == name)


def sent_body(raw):
    data = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    return message_from_bytes(data, policy=default_policy).get_content().strip()


class TestHappyPath:

    def test_interested_example(self):
        transport = FakeTransport([make_message(1, body="Looking forward to next steps")])

        result = run(build(transport))

        assert len(result) == 1
        assert result[0].category == Category.INTERESTED
        assert result[0].reply.ok and result[0].label.ok and result[0].marked_read.ok

        (raw, thread_id), = transport.sent
        assert thread_id == "t1"
        assert sent_body(raw) == "Thank you for the opportunity. What are the next steps?"

        interested = label_id(transport, "Interested")
        assert ("m1", [interested], ["INBOX"]) in transport.modified
        assert ("m1", [], ["UNREAD"]) in transport.modified
        assert transport.messages["m1"].unread is False

    def test_mark_read_happens_after_labeling(self):
        transport = FakeTransport([make_message(1), make_message(2, body="no thanks")])

        run(build(transport))

        read_positions = [i for i, (_, _, rm) in enumerate(transport.modified) if rm == ["UNREAD"]]
        label_positions = [i for i, (_, add, _) in enumerate(transport.modified) if add]
        assert max(label_positions) < min(read_positions)

    def test_batch_size_bounds_listing(self):
        transport = FakeTransport([make_message(i) for i in range(5)])

        result = run(build(transport, batch_size=2))

        assert len(result) == 2
        assert sum(m.unread for m in transport.messages.values()) == 3

    def test_empty_body_is_other(self):
        transport = FakeTransport([make_message(1, body="")])

        result = run(build(transport))

        assert result[0].category == Category.OTHER
        assert label_id(transport, "Other")


class TestNoMessages:

    def test_empty_mailbox(self):
        transport = FakeTransport()

        assert run(build(transport)) == []
        assert transport.sent == []
        assert transport.modified == []
        assert transport.created == []


class TestPartialFailure:

    def test_fetch_failure_isolated(self):
        transport = FakeTransport([make_message(1), make_message(2)])
        transport.get_errors["m1"] = TransportError("boom", status=500)
        classifier = KeywordClassifier()

        result = run(build(transport, classifier=classifier))

        assert [p.message.id for p in result] == ["m2"]
        assert len(classifier.seen) == 1
        assert [thread for _, thread in transport.sent] == ["t2"]
        assert transport.messages["m1"].unread is True
        assert transport.messages["m2"].unread is False

    def test_send_failure_still_labels_and_marks_read(self):
        transport = FakeTransport([make_message(1)])
        transport.send_errors["t1"] = TransportError("smtp down", status=503)

        item, = run(build(transport))

        assert not item.reply.ok
        assert "smtp down" in item.reply.error
        assert item.label.ok
        assert item.marked_read.ok
        assert transport.messages["m1"].unread is False

    def test_label_failure_still_replies_and_leaves_unread(self):
        transport = FakeTransport([make_message(1)])
        transport.modify_errors["m1"] = TransportError("modify failed", status=500)

        item, = run(build(transport))

        assert item.reply.ok
        assert not item.label.ok
        assert not item.marked_read.ok
        assert len(transport.sent) == 1
        assert transport.messages["m1"].unread is True

    def test_classification_error_falls_back_to_other(self):
        class Broken:
            def classify(self, text):
                raise ClassificationError("model offline")

        transport = FakeTransport([make_message(1)])

        item, = run(build(transport, classifier=Broken()))

        assert item.category == Category.OTHER
        assert item.label.ok


class TestAuthRetry:

    def test_single_refresh_and_retry(self):
        transport = FakeTransport([make_message(1)])
        transport.list_errors = [AuthError("401")]
        auth = FakeAuthenticator()

        result = run(build(transport, authenticator=auth))

        assert auth.refresh_calls == 1
        assert transport.list_calls == 2
        assert [p.message.id for p in result] == ["m1"]

    def test_second_auth_failure_gives_up(self):
        transport = FakeTransport([make_message(1)])
        transport.list_errors = [AuthError("401"), AuthError("401"), AuthError("401")]
        auth = FakeAuthenticator()

        assert run(build(transport, authenticator=auth)) == []
        assert auth.refresh_calls == 1
        assert transport.list_calls == 2
        assert transport.sent == []

    def test_refresh_failure_returns_empty(self):
        transport = FakeTransport([make_message(1)])
        transport.list_errors = [AuthError("401")]
        auth = FakeAuthenticator(refresh_error=AuthError("invalid_grant"))

        assert run(build(transport, authenticator=auth)) == []
        assert auth.refresh_calls == 1
        assert transport.list_calls == 1

    def test_auth_failure_on_fetch_restarts_cycle(self):
        transport = FakeTransport([make_message(1)])
        transport.get_errors["m1"] = AuthError("403")
        auth = FakeAuthenticator()

        def refresh():
            auth.refresh_calls += 1
            transport.get_errors.clear()

        auth.refresh = refresh

        result = run(build(transport, authenticator=auth))

        assert auth.refresh_calls == 1
        assert [p.message.id for p in result] == ["m1"]
        assert len(transport.sent) == 1

    def test_transport_error_on_list_returns_empty(self):
        transport = FakeTransport([make_message(1)])
        transport.list_errors = [TransportError("500", status=500)]
        auth = FakeAuthenticator()

        assert run(build(transport, authenticator=auth)) == []
        assert auth.refresh_calls == 0


class OrderedTransport(FakeTransport):
    """Fetches wait for each other, so both must be in flight at once."""

    def __init__(self, messages, events):
        super().__init__(messages)
        self.events = events
        self.fetch_barrier = threading.Barrier(len(messages), timeout=5)

    def get_message(self, message_id):
        self.events.append(("fetch-start", message_id))
        self.fetch_barrier.wait()
        message = super().get_message(message_id)
        self.events.append(("fetch-end", message_id))
        return message

    def send_raw(self, raw, thread_id=None):
        self.events.append(("send", thread_id))
        super().send_raw(raw, thread_id)


class OrderedClassifier(KeywordClassifier):

    def __init__(self, events, parties):
        super().__init__()
        self.events = events
        self.barrier = threading.Barrier(parties, timeout=5)

    def classify(self, text):
        self.events.append(("classify-start", text))
        self.barrier.wait()
        category = super().classify(text)
        self.events.append(("classify-end", text))
        return category


class TestStageOrdering:

    def test_stages_run_concurrently_with_barriers_between(self):
        events = []
        transport = OrderedTransport(
            [make_message(1), make_message(2, body="no thanks")], events
        )
        classifier = OrderedClassifier(events, parties=2)

        result = run(build(transport, classifier=classifier))

        assert sorted(p.message.id for p in result) == ["m1", "m2"]
        assert not transport.fetch_barrier.broken
        assert not classifier.barrier.broken

        kinds = [kind for kind, _ in events]
        last_fetch = max(i for i, k in enumerate(kinds) if k == "fetch-end")
        first_classify = kinds.index("classify-start")
        last_classify = max(i for i, k in enumerate(kinds) if k == "classify-end")
        first_send = kinds.index("send")

        assert last_fetch < first_classify
        assert last_classify < first_send
        assert kinds.count("send") == 2
