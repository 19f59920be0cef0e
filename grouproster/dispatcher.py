from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Callable

from . import notices
from .config import ClientRuntimeConfig
from .constants import MAX_GROUP_NAME_BYTES, MAX_TOPIC_BYTES, PUBLIC_KEY_HEX_LEN
from .errors import AllocationFailure, NotFound, ProtocolError, RosterError, SendFailure
from .events import (
    GroupEvent,
    JoinRejected,
    MessageReceived,
    Moderation,
    NickChange,
    PasswordChange,
    PeerExit,
    PeerJoin,
    PeerLimitChange,
    PrivacyStateChange,
    PrivateMessageReceived,
    SelfJoin,
    SelfNickChange,
    StatusChange,
    TopicChange,
    TopicLockChange,
    VoiceStateChange,
    event_from_envelope,
)
from .models import (
    ExitType,
    JoinType,
    MessageType,
    ModEvent,
    Peer,
    PeerInfo,
    Resolution,
    Role,
    RosterSnapshot,
    Status,
)
from .notices import Notice, NoticeKind
from .protocol import GroupProtocol
from .resolver import resolve
from .session import GroupSession, SessionRegistry
from .stats import StatsManager
from .util import clean_name, fmt_key, truncate_utf8

_MOD_ROLES: dict[ModEvent, Role] = {
    ModEvent.OBSERVER: Role.OBSERVER,
    ModEvent.USER: Role.USER,
    ModEvent.MODERATOR: Role.MODERATOR,
}


def classify_send_failure(err: ProtocolError, self_role: Role | None, *, private: bool = False) -> str:
    """Turn a rejected send into the line shown to the user."""
    if err.code == SendFailure.PERMISSIONS:
        if private or self_role == Role.OBSERVER:
            return " * You are silenced."
        return " * You do not have voice."
    if private:
        return f" * Failed to send private message ({int(err.code)})"
    return f" * Failed to send message (error {int(err.code)})."


class GroupEventDispatcher:
    """
    Entry point between the protocol layer and the per-group roster state.

    The protocol layer feeds every inbound event to `dispatch`; the UI and
    command layer call the exposed operations. All state is guarded by one
    re-entrant lock which each mutation holds for its whole effect, and read
    operations return copies taken under the same lock.

    Inbound handlers never raise: unknown groups and peers are no-ops, and
    failures are logged and counted. Exposed operations raise `NotFound` for
    unknown groups and peers.
    """

    def __init__(
        self,
        config: ClientRuntimeConfig,
        protocol: GroupProtocol,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.protocol = protocol
        self.clock = clock
        self.log = logging.getLogger("grouproster.dispatch")

        self._state_lock = threading.RLock()

        self.registry = SessionRegistry(
            max_sessions=config.max_sessions,
            max_roster_slots=config.max_roster_slots,
            max_ignored_keys=config.max_ignored_keys,
            max_name_bytes=config.max_name_bytes,
        )
        self.stats = StatsManager()

        self._handlers: dict[type, Callable[[GroupSession, object, list[Notice]], None]] = {
            PeerJoin: self._on_peer_join,
            PeerExit: self._on_peer_exit,
            NickChange: self._on_nick_change,
            SelfNickChange: self._on_self_nick_change,
            StatusChange: self._on_status_change,
            Moderation: self._on_moderation,
            SelfJoin: self._on_self_join,
            JoinRejected: self._on_join_rejected,
            MessageReceived: self._on_message,
            PrivateMessageReceived: self._on_private_message,
            TopicChange: self._on_topic_change,
            PeerLimitChange: self._on_peer_limit,
            PrivacyStateChange: self._on_privacy_state,
            VoiceStateChange: self._on_voice_state,
            TopicLockChange: self._on_topic_lock,
            PasswordChange: self._on_password,
        }

    # Session lifecycle

    def open_session(
        self,
        group_id: int,
        *,
        chat_id: bytes = b"",
        group_name: str = "",
        join_type: JoinType = JoinType.JOIN,
    ) -> list[Notice]:
        """Create a session and seed its roster with the local user.

        Raises AlreadyActive, OutOfSlots, ProtocolError or AllocationFailure;
        on failure no session is left behind.
        """
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.create(
                group_id,
                now=self.clock(),
                chat_id=chat_id,
                group_name=clean_name(group_name, MAX_GROUP_NAME_BYTES),
            )
            try:
                if join_type in (JoinType.CREATE, JoinType.LOAD) and not sess.group_name:
                    self._refresh_group_name(sess)
                info = self.protocol.self_info(group_id)
                self._apply_join(sess, info, outgoing)
            except RosterError:
                self.registry.close(sess)
                raise
        return outgoing

    def close_session(self, group_id: int) -> None:
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            self.registry.close(sess)

    def exit_group(self, group_id: int, part_message: str = "") -> None:
        """Leave a group through the protocol layer and drop its session."""
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            part = truncate_utf8(part_message or "", self.config.max_part_bytes)
            try:
                self.protocol.leave(group_id, part)
            except ProtocolError as e:
                self.stats.inc("protocol_failures")
                self.log.warning("Leave failed group=%s: %s", group_id, e)
            self.registry.close(sess)

    def rejoin(self, group_id: int) -> list[Notice]:
        """Forget every peer and reseed the roster with the local user only.

        The ignore list is kept.
        """
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            try:
                info = self.protocol.self_info(group_id)
            except ProtocolError as e:
                self.stats.inc("protocol_failures")
                self.log.warning("Rejoin could not query self group=%s: %s", group_id, e)
                outgoing.append(notices.error(group_id, "Failed to fetch self peer_id."))
                return outgoing

            sess.roster.clear()
            try:
                self._apply_join(sess, info, outgoing)
            except AllocationFailure as e:
                self.stats.inc("alloc_failures")
                self.log.warning("Rejoin could not seed roster group=%s: %s", group_id, e)
                outgoing.append(notices.error(group_id, "Failed to rebuild peer list."))
        return outgoing

    # Inbound events

    def dispatch(self, event: GroupEvent) -> list[Notice]:
        """Apply one protocol event and return the notices it produced."""
        outgoing: list[Notice] = []
        handler = self._handlers.get(type(event))
        if handler is None:
            self.stats.inc("events_bad")
            self.log.warning("Unhandled event type %s", type(event).__name__)
            return outgoing

        with self._state_lock:
            self.stats.inc("events_in")
            sess = self.registry.get(event.group_id)
            if sess is None:
                self.stats.inc("events_stale")
                self.log.debug(
                    "Dropping %s for unknown group=%s", type(event).__name__, event.group_id
                )
                return outgoing

            try:
                handler(sess, event, outgoing)
            except AllocationFailure as e:
                self.stats.inc("alloc_failures")
                self.log.warning(
                    "%s aborted group=%s: %s", type(event).__name__, event.group_id, e
                )
            except Exception:
                self.log.exception(
                    "Failed handling %s group=%s", type(event).__name__, event.group_id
                )

        return outgoing

    def dispatch_envelope(self, env: dict) -> list[Notice]:
        """Decode a wire envelope and dispatch it. Malformed envelopes are dropped."""
        try:
            event = event_from_envelope(env)
        except (TypeError, ValueError) as e:
            self.stats.inc("events_bad")
            self.log.warning("Dropping malformed event envelope: %s", e)
            return []
        return self.dispatch(event)

    def _grace_elapsed(self, sess: GroupSession, now: float) -> bool:
        return (now - sess.connected_since) >= float(self.config.join_grace_period_s)

    def _apply_join(self, sess: GroupSession, info: PeerInfo, outgoing: list[Notice]) -> Peer:
        now = self.clock()
        ignored = sess.ignored.is_ignored(info.public_key)
        peer = sess.roster.join(
            info.peer_id,
            info.name,
            info.public_key,
            info.status,
            info.role,
            now=now,
            is_ignored=ignored,
        )
        self.stats.inc("joins")

        if ignored:
            try:
                self.protocol.set_ignore(sess.group_id, peer.peer_id, True)
            except ProtocolError as e:
                self.stats.inc("protocol_failures")
                self.log.warning(
                    "Could not re-ignore peer_id=%s key=%s: %s",
                    peer.peer_id,
                    fmt_key(peer.public_key),
                    e,
                )

        if self.config.show_connection_msgs and self._grace_elapsed(sess, now):
            outgoing.append(notices.peer_joined(sess.group_id, peer.name))
        return peer

    def _on_peer_join(self, sess: GroupSession, ev: PeerJoin, outgoing: list[Notice]) -> None:
        info = PeerInfo(
            peer_id=ev.peer_id,
            name=ev.name,
            public_key=ev.public_key,
            status=ev.status,
            role=ev.role,
        )
        self._apply_join(sess, info, outgoing)

    def _remove_peer(self, sess: GroupSession, peer_id: int) -> Peer | None:
        removed = sess.roster.remove(peer_id)
        if removed is not None:
            self.stats.inc("exits")
            self.log.debug(
                "Peer removed group=%s peer_id=%s count=%s capacity=%s",
                sess.group_id,
                peer_id,
                sess.peer_count,
                sess.roster_capacity,
            )
        return removed

    def _on_peer_exit(self, sess: GroupSession, ev: PeerExit, outgoing: list[Notice]) -> None:
        removed = self._remove_peer(sess, ev.peer_id)
        if removed is None:
            return

        if ev.exit_type == ExitType.SELF_DISCONNECTED or not self.config.show_connection_msgs:
            return

        name = ev.name or removed.name
        part = truncate_utf8(ev.part_message or "", self.config.max_part_bytes)
        outgoing.append(notices.peer_exited(sess.group_id, name, ev.exit_type, part))

    def _on_nick_change(self, sess: GroupSession, ev: NickChange, outgoing: list[Notice]) -> None:
        changed = sess.roster.rename(ev.peer_id, ev.new_name, now=self.clock())
        if changed is None:
            return
        self.stats.inc("renames")
        old, new = changed
        outgoing.append(notices.nick_changed(sess.group_id, old, new))

    def _on_self_nick_change(
        self, sess: GroupSession, ev: SelfNickChange, outgoing: list[Notice]
    ) -> None:
        try:
            self_id = self.protocol.self_peer_id(sess.group_id)
        except ProtocolError as e:
            self.stats.inc("protocol_failures")
            self.log.warning("Self nick change: no self peer id group=%s: %s", sess.group_id, e)
            return

        changed = sess.roster.rename(self_id, ev.new_name, now=self.clock())
        if changed is None:
            return
        self.stats.inc("renames")
        old, new = changed
        outgoing.append(notices.nick_changed(sess.group_id, ev.old_name or old, new))

    def _on_status_change(
        self, sess: GroupSession, ev: StatusChange, outgoing: list[Notice]
    ) -> None:
        sess.roster.set_status(ev.peer_id, ev.status, now=self.clock())

    def _peer_name(self, sess: GroupSession, peer_id: int) -> str:
        peer = sess.roster.find_by_peer_id(peer_id)
        return peer.name if peer is not None else "Unknown"

    def _resync_roles(self, sess: GroupSession) -> None:
        """Re-read every active peer's role from the protocol layer."""
        self.stats.inc("role_resyncs")
        self.log.info("Moderation target not in roster; resyncing roles group=%s", sess.group_id)
        for peer in sess.roster.active_peers():
            try:
                peer.role = Role(self.protocol.peer_role(sess.group_id, peer.peer_id))
            except (ProtocolError, ValueError) as e:
                self.log.debug("Role query failed peer_id=%s: %s", peer.peer_id, e)
        sess.roster.rebuild_name_cache()

    def _on_moderation(self, sess: GroupSession, ev: Moderation, outgoing: list[Notice]) -> None:
        target = sess.roster.find_by_peer_id(ev.target_peer_id)
        if target is None:
            self._resync_roles(sess)
            return

        sess.roster.touch(ev.source_peer_id, now=self.clock())
        self.stats.inc("mod_events")

        src_name = self._peer_name(sess, ev.source_peer_id)
        tgt_name = target.name
        outgoing.append(notices.moderation(sess.group_id, ev.event, src_name, tgt_name))

        if ev.event == ModEvent.KICK:
            self._remove_peer(sess, ev.target_peer_id)
            return

        sess.roster.set_role(ev.target_peer_id, _MOD_ROLES[ev.event])

    def _refresh_group_name(self, sess: GroupSession) -> None:
        try:
            sess.group_name = clean_name(
                self.protocol.group_name(sess.group_id), MAX_GROUP_NAME_BYTES
            )
        except ProtocolError as e:
            self.stats.inc("protocol_failures")
            self.log.warning("Failed to retrieve group name group=%s: %s", sess.group_id, e)

    def _on_self_join(self, sess: GroupSession, ev: SelfJoin, outgoing: list[Notice]) -> None:
        sess.connected_since = self.clock()

        try:
            sess.topic = clean_name(self.protocol.topic(sess.group_id), MAX_TOPIC_BYTES)
        except ProtocolError as e:
            self.stats.inc("protocol_failures")
            outgoing.append(notices.error(sess.group_id, f"Failed to retrieve group topic ({e})"))

        if not sess.group_name:
            self._refresh_group_name(sess)

        # Our role may have changed while we were offline.
        try:
            role = self.protocol.self_role(sess.group_id)
            self_id = self.protocol.self_peer_id(sess.group_id)
        except ProtocolError as e:
            self.stats.inc("protocol_failures")
            self.log.warning("Self join: self query failed group=%s: %s", sess.group_id, e)
            return

        sess.roster.set_role(self_id, role)

    def _on_join_rejected(
        self, sess: GroupSession, ev: JoinRejected, outgoing: list[Notice]
    ) -> None:
        outgoing.append(notices.join_rejected(sess.group_id, ev.reason))

    def _self_name(self, sess: GroupSession) -> str:
        try:
            self_id = self.protocol.self_peer_id(sess.group_id)
        except ProtocolError:
            return ""
        peer = sess.roster.find_by_peer_id(self_id)
        return peer.name if peer is not None else ""

    def _on_message(self, sess: GroupSession, ev: MessageReceived, outgoing: list[Notice]) -> None:
        peer = sess.roster.find_by_peer_id(ev.peer_id)
        if peer is None:
            return
        peer.last_active = self.clock()
        self.stats.inc("msgs_in")

        self_nick = self._self_name(sess)
        mention = bool(self_nick) and self_nick.lower() in ev.text.lower() and peer.name != self_nick
        kind = NoticeKind.IN_ACTION if ev.message_type == MessageType.ACTION else NoticeKind.IN_MSG
        outgoing.append(Notice(kind, sess.group_id, ev.text, nick=peer.name, mention=mention))

    def _on_private_message(
        self, sess: GroupSession, ev: PrivateMessageReceived, outgoing: list[Notice]
    ) -> None:
        peer = sess.roster.find_by_peer_id(ev.peer_id)
        if peer is None:
            return
        peer.last_active = self.clock()
        self.stats.inc("msgs_in")
        outgoing.append(
            Notice(NoticeKind.IN_PRIVATE, sess.group_id, ev.text, nick=peer.name, mention=True)
        )

    def _on_topic_change(self, sess: GroupSession, ev: TopicChange, outgoing: list[Notice]) -> None:
        sess.topic = clean_name(ev.topic, MAX_TOPIC_BYTES)
        sess.roster.touch(ev.peer_id, now=self.clock())
        outgoing.append(
            notices.topic_changed(sess.group_id, self._peer_name(sess, ev.peer_id), sess.topic)
        )

    def _on_peer_limit(
        self, sess: GroupSession, ev: PeerLimitChange, outgoing: list[Notice]
    ) -> None:
        sess.peer_limit = ev.peer_limit
        outgoing.append(notices.peer_limit_changed(sess.group_id, ev.peer_limit))

    def _on_privacy_state(
        self, sess: GroupSession, ev: PrivacyStateChange, outgoing: list[Notice]
    ) -> None:
        sess.privacy_state = ev.privacy_state
        outgoing.append(notices.privacy_changed(sess.group_id, ev.privacy_state))

    def _on_voice_state(
        self, sess: GroupSession, ev: VoiceStateChange, outgoing: list[Notice]
    ) -> None:
        sess.voice_state = ev.voice_state
        outgoing.append(notices.voice_changed(sess.group_id, ev.voice_state))

    def _on_topic_lock(
        self, sess: GroupSession, ev: TopicLockChange, outgoing: list[Notice]
    ) -> None:
        sess.topic_lock = ev.topic_lock
        outgoing.append(notices.topic_lock_changed(sess.group_id, ev.topic_lock))

    def _on_password(self, sess: GroupSession, ev: PasswordChange, outgoing: list[Notice]) -> None:
        sess.password_protected = bool(ev.password)
        outgoing.append(notices.password_changed(sess.group_id, sess.password_protected))

    # Exposed to the UI and command layer

    def roster_snapshot(self, group_id: int) -> RosterSnapshot:
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            return RosterSnapshot(group_id, sess.peer_count, sess.roster.names)

    def peer_record(self, group_id: int, peer_id: int) -> Peer:
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            peer = sess.roster.find_by_peer_id(peer_id)
            if peer is None:
                raise NotFound(f"no peer {peer_id} in group {group_id}")
            return replace(peer)

    def resolve_identifier(self, group_id: int, identifier: str) -> Resolution:
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            return resolve(sess.roster, identifier)

    def group_for_chat_id(self, chat_id: bytes | str) -> int:
        with self._state_lock:
            return self.registry.lookup_by_chat_id(chat_id).group_id

    def set_ignored(self, group_id: int, peer_id: int, ignore: bool) -> list[Notice]:
        """Ignore or unignore a peer by public key.

        Local state is updated first. If the protocol layer then refuses the
        matching command the local change stands and the failure is logged.
        """
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            peer = sess.roster.find_by_peer_id(peer_id)
            if peer is None:
                raise NotFound(f"no peer {peer_id} in group {group_id}")

            if ignore:
                if not sess.ignored.is_ignored(peer.public_key):
                    if not sess.ignored.add(peer.public_key):
                        self.stats.inc("alloc_failures")
                        raise AllocationFailure("ignore list is full")
                    self.stats.inc("ignores_added")
            else:
                if sess.ignored.remove(peer.public_key):
                    self.stats.inc("ignores_removed")

            sess.roster.set_ignored(peer_id, ignore)

            try:
                self.protocol.set_ignore(group_id, peer_id, ignore)
            except ProtocolError as e:
                self.stats.inc("protocol_failures")
                self.log.warning(
                    "Protocol refused ignore=%s peer_id=%s group=%s: %s",
                    ignore,
                    peer_id,
                    group_id,
                    e,
                )

            if ignore:
                outgoing.append(notices.system(group_id, f"-!- Ignoring {peer.name}"))
            else:
                outgoing.append(
                    notices.system(group_id, f"-!- You are no longer ignoring {peer.name}")
                )
        return outgoing

    def set_self_nick(self, group_id: int, nick: str) -> list[Notice]:
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            old = self._self_name(sess)
            new = clean_name(nick, self.config.max_name_bytes)
            try:
                self.protocol.set_self_name(group_id, new)
            except ProtocolError as e:
                self.stats.inc("protocol_failures")
                outgoing.append(
                    notices.error(group_id, f"-!- Failed to set nick (error {int(e.code)}).")
                )
                return outgoing
            self._on_self_nick_change(sess, SelfNickChange(group_id, old, new), outgoing)
        return outgoing

    def set_status_all(self, status: Status) -> list[Notice]:
        """Set the local user's status in every open group."""
        outgoing: list[Notice] = []
        with self._state_lock:
            for sess in self.registry:
                try:
                    self_id = self.protocol.self_peer_id(sess.group_id)
                    self.protocol.set_self_status(sess.group_id, status)
                except ProtocolError as e:
                    self.stats.inc("protocol_failures")
                    self.log.warning("Set status failed group=%s: %s", sess.group_id, e)
                    outgoing.append(notices.error(sess.group_id, "Failed to set status."))
                    continue
                sess.roster.set_status(self_id, status, now=self.clock())
        return outgoing

    def _self_role(self, group_id: int) -> Role | None:
        try:
            return Role(self.protocol.self_role(group_id))
        except (ProtocolError, ValueError):
            return None

    def send_message(
        self, group_id: int, text: str, message_type: MessageType = MessageType.NORMAL
    ) -> list[Notice]:
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            if not text:
                outgoing.append(notices.error(group_id, "Message is empty."))
                return outgoing

            try:
                self.protocol.send_message(group_id, text, message_type)
            except ProtocolError as e:
                self.stats.inc("send_failures")
                self.log.debug("Send failed group=%s code=%s", group_id, int(e.code))
                outgoing.append(
                    notices.error(group_id, classify_send_failure(e, self._self_role(group_id)))
                )
                return outgoing

            self.stats.inc("msgs_out")
            kind = (
                NoticeKind.OUT_ACTION if message_type == MessageType.ACTION else NoticeKind.OUT_MSG
            )
            outgoing.append(Notice(kind, group_id, text, nick=self._self_name(sess)))
        return outgoing

    def _split_private_target(self, sess: GroupSession, data: str) -> tuple[str, str] | None:
        """Split '<nick-or-key> <message>', preferring the longest matching nick."""
        nick = ""
        for peer in sess.roster.active_peers():
            if peer.name and data.startswith(peer.name) and len(peer.name) > len(nick):
                nick = peer.name

        if not nick:
            if len(data) < PUBLIC_KEY_HEX_LEN:
                return None
            nick = data[:PUBLIC_KEY_HEX_LEN]

        return nick, data[len(nick) + 1 :]

    def send_private_message(self, group_id: int, data: str) -> list[Notice]:
        outgoing: list[Notice] = []
        with self._state_lock:
            sess = self.registry.lookup(group_id)
            if not data:
                outgoing.append(notices.error(group_id, "Invalid command."))
                return outgoing

            split = self._split_private_target(sess, data)
            if split is None:
                outgoing.append(notices.system(group_id, "Invalid nick."))
                return outgoing
            nick, msg = split

            res = resolve(sess.roster, nick)
            if not res.ok:
                outgoing.extend(notices.system(group_id, m) for m in res.messages)
                return outgoing

            if not msg:
                outgoing.append(notices.system(group_id, "Message is empty."))
                return outgoing

            try:
                self.protocol.send_private_message(group_id, res.peer_id, msg)
            except ProtocolError as e:
                self.stats.inc("send_failures")
                outgoing.append(
                    notices.error(group_id, classify_send_failure(e, None, private=True))
                )
                return outgoing

            self.stats.inc("msgs_out")
            outgoing.append(Notice(NoticeKind.OUT_PRIVATE, group_id, msg, nick=f">{nick}<"))
        return outgoing

    def format_stats(self) -> str:
        with self._state_lock:
            sessions = [s.get_stats() for s in self.registry]
        return self.stats.format_stats(sessions)

    def clear_all(self) -> None:
        with self._state_lock:
            self.registry.clear_all()
