"""
Orchestrator: one evaluation per authenticated request.

    Start -> TokenChecked -> {known | TokenIssued} -> DedupChecked
      -> {duplicate | GraceChecked} -> {suppressed | PolicyEvaluated}
      -> {no_send | notified}

Side effects happen in this order: cookie write, dedup mark, mail
dispatch. Collaborator failures (cookie, cache, enrichment, mail) are
logged and never abort the request.
"""

import logging
from typing import Callable, Dict, List, Optional

from devicewatch.services.cache import CacheBackend
from devicewatch.services.options import INSTALLATION_SECRET, INSTALLED_TIME

from . import fingerprint
from .composer import compose, recipients
from .dedup import DedupGate, dedup_key
from .enrichment import enrich
from .grace import suppress
from .pipeline import build_pipeline
from .policy import DevicePolicy
from .transport import COOKIE_LIFETIME, COOKIE_NAME, CookieTransport
from .types import DecisionContext, DeviceCheck, DeviceDecision, Outcome

logger = logging.getLogger("devicewatch.device_watch")

# send(recipients, subject, body, headers, html=None)
MailSender = Callable[..., object]


class DeviceWatcher:
    def __init__(
        self,
        policy: DevicePolicy,
        cache: CacheBackend,
        mailer: Optional[MailSender] = None,
    ):
        self.policy = policy
        self.cache = cache
        self.mailer = mailer

    def evaluate(
        self,
        check: DeviceCheck,
        store,
        transport: CookieTransport,
        dispatch: Optional[MailSender] = None,
    ) -> DeviceDecision:
        """Decide whether ``check`` is a new device and notify if so.

        ``store`` needs ``get_or_create(key, default)``; ``dispatch`` (or
        the watcher's mailer) is called at most once.
        """
        identity = check.identity
        if not self.policy.should_monitor(identity):
            return DeviceDecision(outcome=Outcome.UNMONITORED, identity=identity)

        decision = self._run(check, store, transport, dispatch or self.mailer)
        self._notify_observers(decision)
        return decision

    def _run(self, check, store, transport, sender) -> DeviceDecision:
        identity = check.identity
        secret = store.get_or_create(INSTALLATION_SECRET, fingerprint.generate_secret)

        if fingerprint.verify(check.presented_token, identity.id, secret):
            return DeviceDecision(outcome=Outcome.KNOWN, identity=identity)

        token = fingerprint.derive(identity.id, secret)
        self._issue_token(token, check, transport)
        context = DecisionContext(
            identity=identity,
            remote_address=check.remote_address,
            user_agent=check.user_agent,
        )

        gate = DedupGate(self.cache, self.policy.dedup_ttl)
        key = dedup_key(identity.id, check.remote_address, check.user_agent)
        if gate.seen_recently(key):
            return DeviceDecision(
                outcome=Outcome.DUPLICATE, identity=identity, token=token, context=context
            )
        gate.mark_seen(key, check.now)

        installed_time = int(store.get_or_create(INSTALLED_TIME, check.now))
        if suppress(check.now, installed_time, self.policy.grace_period()):
            return DeviceDecision(
                outcome=Outcome.SUPPRESSED, identity=identity, token=token, context=context
            )

        context = enrich(
            context,
            self.policy.location_resolver,
            self.policy.hostname_lookup,
        )
        send = build_pipeline(self.policy).apply(context.tentative_send, context)
        if not send:
            return DeviceDecision(
                outcome=Outcome.NO_SEND, identity=identity, token=token, context=context
            )

        message = compose(identity, context, installed_time, self.policy)
        to = recipients(self.policy)
        self._dispatch(sender, to, message.subject, message.body, message.headers, message.html)
        return DeviceDecision(
            outcome=Outcome.NOTIFIED,
            identity=identity,
            token=token,
            context=context,
            send_email=True,
            recipients=to,
            subject=message.subject,
        )

    def _issue_token(self, token: str, check: DeviceCheck, transport: CookieTransport) -> None:
        expires = check.now + COOKIE_LIFETIME
        domains: List[Optional[str]] = []
        for domain in self.policy.cookie_domains() or [None]:
            if domain not in domains:
                domains.append(domain)

        for domain in domains:
            try:
                transport.set(
                    COOKIE_NAME,
                    token,
                    expires,
                    self.policy.cookie_path,
                    domain,
                    check.secure,
                    True,
                )
            except Exception as e:
                logger.warning(f"[device_watch] failed to set device cookie domain={domain}: {e}")

    def _dispatch(
        self,
        sender: Optional[MailSender],
        to: List[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        html: str,
    ) -> None:
        if sender is None:
            logger.warning("[device_watch] no mail sender configured; notification dropped")
            return
        if not to:
            logger.warning("[device_watch] no recipients configured; notification dropped")
            return
        try:
            sender(to, subject, body, headers, html=html)
        except Exception as e:
            logger.error(f"[device_watch] mail dispatch failed: {e}", exc_info=True)

    def _notify_observers(self, decision: DeviceDecision) -> None:
        for observer in self.policy.observers:
            try:
                observer(decision)
            except Exception as e:
                logger.error(f"[device_watch] observer {observer!r} failed: {e}")
