"""Scenario tests for DeviceWatcher.evaluate."""
import pytest

from devicewatch.services.cache import MemoryCache
from devicewatch.services.device_watch import (
    COOKIE_LIFETIME,
    COOKIE_NAME,
    DeviceCheck,
    DevicePolicy,
    DeviceWatcher,
    HOST_UNRESOLVED,
    LOCATION_UNKNOWN,
    Outcome,
    derive,
)
from devicewatch.services.options import INSTALLATION_SECRET, INSTALLED_TIME

from conftest import FakeStore, RecordingMailer, RecordingTransport

NOW = 1_800_000_000
WEEK = 604800
SECRET = "x" * 64


def make_watcher(mailer=None, **policy_kwargs):
    options = dict(
        admin_email="admin@example.com",
        moderator_emails=["mod@example.com"],
        cookie_domains=["example.com"],
        hostname_lookup=lambda address: "client.example.net",
    )
    options.update(policy_kwargs)
    return DeviceWatcher(DevicePolicy(**options), cache=MemoryCache(), mailer=mailer)


def make_check(identity, token=None, now=NOW, address="203.0.113.7", agent="Mozilla/5.0"):
    return DeviceCheck(
        identity=identity,
        remote_address=address,
        user_agent=agent,
        presented_token=token,
        now=now,
    )


def installed_store(installed=NOW - 2 * WEEK):
    return FakeStore({INSTALLATION_SECRET: SECRET, INSTALLED_TIME: str(installed)})


def test_known_device_has_no_side_effects(identity):
    mailer, transport = RecordingMailer(), RecordingTransport()
    watcher = make_watcher(mailer)
    store = installed_store()

    decision = watcher.evaluate(make_check(identity, token=derive(identity.id, SECRET)), store, transport)

    assert decision.outcome == Outcome.KNOWN
    assert decision.is_new_device is False
    assert transport.cookies == []
    assert mailer.sent == []
    assert len(watcher.cache) == 0


def test_new_device_after_grace_notifies(identity):
    mailer, transport = RecordingMailer(), RecordingTransport()
    watcher = make_watcher(mailer)

    decision = watcher.evaluate(make_check(identity), installed_store(), transport)

    assert decision.outcome == Outcome.NOTIFIED
    assert decision.send_email is True
    assert decision.token == derive(identity.id, SECRET)
    assert decision.recipients == ["admin@example.com", "mod@example.com"]

    assert len(transport.cookies) == 1
    cookie = transport.cookies[0]
    assert cookie["name"] == COOKIE_NAME
    assert cookie["value"] == decision.token
    assert cookie["expires"] == NOW + COOKIE_LIFETIME
    assert cookie["domain"] == "example.com"
    assert cookie["http_only"] is True

    assert len(mailer.sent) == 1
    sent = mailer.sent[0]
    assert sent["recipients"] == ["admin@example.com", "mod@example.com"]
    assert "Jane Editor has logged in from an unknown device" in sent["subject"]
    assert "Hostname: client.example.net" in sent["body"]
    assert sent["headers"]["Cc"] == "jane@example.com"


def test_same_context_within_ttl_is_duplicate(identity):
    mailer = RecordingMailer()
    watcher = make_watcher(mailer)
    store = installed_store()

    first = watcher.evaluate(make_check(identity), store, RecordingTransport())
    transport = RecordingTransport()
    second = watcher.evaluate(make_check(identity, now=NOW + 60), store, transport)

    assert first.outcome == Outcome.NOTIFIED
    assert second.outcome == Outcome.DUPLICATE
    assert second.is_new_device is True
    # token re-issued even on a duplicate
    assert len(transport.cookies) == 1
    assert len(mailer.sent) == 1


def test_different_address_is_not_duplicate(identity):
    mailer = RecordingMailer()
    watcher = make_watcher(mailer)
    store = installed_store()

    watcher.evaluate(make_check(identity), store, RecordingTransport())
    decision = watcher.evaluate(make_check(identity, address="198.51.100.9"), store, RecordingTransport())

    assert decision.outcome == Outcome.NOTIFIED
    assert len(mailer.sent) == 2


def test_first_request_after_install_is_suppressed(identity):
    mailer, transport = RecordingMailer(), RecordingTransport()
    watcher = make_watcher(mailer)
    store = FakeStore()

    decision = watcher.evaluate(make_check(identity), store, transport)

    assert decision.outcome == Outcome.SUPPRESSED
    assert mailer.sent == []
    assert len(transport.cookies) == 1
    assert store.values[INSTALLED_TIME] == str(NOW)
    assert len(store.values[INSTALLATION_SECRET]) == 64


@pytest.mark.parametrize(
    "elapsed,outcome",
    [(WEEK - 1, Outcome.SUPPRESSED), (WEEK, Outcome.NOTIFIED)],
)
def test_grace_boundary(identity, elapsed, outcome):
    watcher = make_watcher(RecordingMailer())
    decision = watcher.evaluate(make_check(identity), installed_store(NOW - elapsed), RecordingTransport())
    assert decision.outcome == outcome


def test_grace_period_hook_read_per_evaluation(identity):
    class ShortGrace(DevicePolicy):
        def grace_period(self):
            return 10

    watcher = DeviceWatcher(
        ShortGrace(hostname_lookup=lambda a: "h", admin_email="admin@example.com"),
        cache=MemoryCache(),
        mailer=RecordingMailer(),
    )
    decision = watcher.evaluate(make_check(identity), installed_store(NOW - 10), RecordingTransport())
    assert decision.outcome == Outcome.NOTIFIED


def test_trusted_ip_never_notifies(identity):
    mailer, transport = RecordingMailer(), RecordingTransport()
    watcher = make_watcher(mailer, trusted_ips=["203.0.113.7"])

    decision = watcher.evaluate(make_check(identity), installed_store(), transport)

    assert decision.outcome == Outcome.NO_SEND
    assert decision.is_new_device is True
    assert mailer.sent == []
    assert len(transport.cookies) == 1


def test_unmonitored_identity_is_untouched(identity):
    from dataclasses import replace

    mailer, transport, store = RecordingMailer(), RecordingTransport(), FakeStore()
    watcher = make_watcher(mailer)
    subscriber = replace(identity, role="subscriber")

    decision = watcher.evaluate(make_check(subscriber), store, transport)

    assert decision.outcome == Outcome.UNMONITORED
    assert store.values == {}
    assert transport.cookies == []
    assert mailer.sent == []


def test_enrichment_failure_still_notifies(identity):
    def lookup(address):
        raise OSError("resolver timeout")

    mailer = RecordingMailer()
    watcher = make_watcher(mailer, hostname_lookup=lookup)

    decision = watcher.evaluate(make_check(identity), installed_store(), RecordingTransport())

    assert decision.outcome == Outcome.NOTIFIED
    assert decision.context.hostname == HOST_UNRESOLVED
    assert decision.context.location.human == LOCATION_UNKNOWN
    assert f"Hostname: {HOST_UNRESOLVED}" in mailer.sent[0]["body"]


def test_cookie_failure_does_not_stop_evaluation(identity):
    mailer = RecordingMailer()
    watcher = make_watcher(mailer)
    decision = watcher.evaluate(make_check(identity), installed_store(), RecordingTransport(fail=True))
    assert decision.outcome == Outcome.NOTIFIED
    assert len(mailer.sent) == 1


def test_mail_failure_is_swallowed(identity):
    def mailer(*args, **kwargs):
        raise ConnectionError("smtp down")

    watcher = make_watcher(mailer)
    decision = watcher.evaluate(make_check(identity), installed_store(), RecordingTransport())
    assert decision.outcome == Outcome.NOTIFIED


def test_dispatch_argument_wins_over_mailer(identity):
    default, override = RecordingMailer(), RecordingMailer()
    watcher = make_watcher(default)
    watcher.evaluate(make_check(identity), installed_store(), RecordingTransport(), dispatch=override)
    assert default.sent == []
    assert len(override.sent) == 1


def test_cookie_domains_deduplicated(identity):
    transport = RecordingTransport()
    watcher = make_watcher(RecordingMailer(), cookie_domains=["example.com", "www.example.com", "example.com"])
    watcher.evaluate(make_check(identity), installed_store(), transport)
    assert [c["domain"] for c in transport.cookies] == ["example.com", "www.example.com"]


def test_secret_provisioned_once(identity):
    store = FakeStore({INSTALLED_TIME: str(NOW - 2 * WEEK)})
    watcher = make_watcher(RecordingMailer())

    first = watcher.evaluate(make_check(identity), store, RecordingTransport())
    second = watcher.evaluate(make_check(identity, token=first.token), store, RecordingTransport())

    assert second.outcome == Outcome.KNOWN
    assert first.token == derive(identity.id, store.values[INSTALLATION_SECRET])


class TestObservers:
    def test_observer_sees_every_outcome_but_unmonitored(self, identity):
        from dataclasses import replace

        seen = []
        watcher = make_watcher(RecordingMailer())
        watcher.policy.add_observer(lambda decision: seen.append(decision.outcome))
        store = installed_store()

        watcher.evaluate(make_check(replace(identity, role=None)), store, RecordingTransport())
        first = watcher.evaluate(make_check(identity), store, RecordingTransport())
        watcher.evaluate(make_check(identity, token=first.token), store, RecordingTransport())
        watcher.evaluate(make_check(identity), store, RecordingTransport())

        assert seen == [Outcome.NOTIFIED, Outcome.KNOWN, Outcome.DUPLICATE]

    def test_observer_failure_is_ignored(self, identity):
        watcher = make_watcher(RecordingMailer())

        @watcher.policy.add_observer
        def broken(decision):
            raise ValueError("boom")

        decision = watcher.evaluate(make_check(identity), installed_store(), RecordingTransport())
        assert decision.outcome == Outcome.NOTIFIED

