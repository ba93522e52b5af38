from __future__ import annotations

import asyncio
from typing import AsyncIterator, Iterable, Optional

from core.channel_map import ChannelMapping
from core.config import HighlightRuleConfig
from core.errors import SendError
from core.highlight import build_highlight_rules
from core.models import (
    ACTION,
    CONNECTED,
    DISCONNECTED,
    INVITE,
    JOIN,
    KICK,
    MESSAGE,
    MODE,
    NICK,
    PART,
    QUIT,
    TOPIC,
    IRCEvent,
)
from core.playback import PLAYBACK_END_TEXT, PLAYBACK_START_TEXT
from core.router import IRCEventRouter, IRCLoopState


class FakeIRC:
    def __init__(self) -> None:
        self.rosters: dict[str, set[str]] = {}
        self.joined: list[tuple[str, Optional[str]]] = []

    async def send_message(self, channel: str, text: str) -> None:
        raise AssertionError("the IRC router never sends to IRC")

    async def send_action(self, channel: str, text: str) -> None:
        raise AssertionError("the IRC router never sends to IRC")

    async def join(self, channel: str, key: Optional[str]) -> None:
        self.joined.append((channel, key))

    def current_roster(self, channel: str) -> Optional[set[str]]:
        roster = self.rosters.get(channel)
        return set(roster) if roster is not None else None


class FakeSlack:
    def __init__(self, failing_channels: Iterable[str] = ()) -> None:
        self.as_user: list[tuple[str, str, str]] = []
        self.as_bot: list[tuple[str, str]] = []
        self.to_owner: list[str] = []
        self._failing = set(failing_channels)

    async def send_as(self, name: str, channel: str, text: str) -> None:
        if channel in self._failing:
            raise SendError("boom")
        self.as_user.append((name, channel, text))

    async def send_as_bot(self, channel: str, text: str) -> None:
        if channel in self._failing:
            raise SendError("boom")
        self.as_bot.append((channel, text))

    async def send_to_owner(self, text: str) -> None:
        self.to_owner.append(text)

    def channel_name(self, channel_id: str) -> Optional[str]:
        return None

    def user_name(self, user_id: str) -> Optional[str]:
        return None


def _mapping() -> ChannelMapping:
    return ChannelMapping({"#a": "#slack-a", "#b": "#slack-b"})


def _router(irc: FakeIRC, slack: FakeSlack, rules: Iterable = ()) -> IRCEventRouter:
    return IRCEventRouter(
        mapping=_mapping(),
        irc=irc,
        slack=slack,
        highlight_rules=rules,
        owner="owner",
        server="irc.example.net",
        join_keys={"#a": None, "#b": "sekrit"},
    )


def _handle_all(router: IRCEventRouter, events: Iterable[IRCEvent], state: IRCLoopState) -> list[bool]:
    async def _run() -> list[bool]:
        return [await router.handle(event, state) for event in events]

    return asyncio.run(_run())


def test_message_is_relayed_once_as_sender() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)

    _handle_all(router, [IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="hi &amp; bye")], IRCLoopState())

    assert slack.as_user == [("bob", "#slack-a", "hi &amp; bye")]
    assert slack.as_bot == []


def test_message_in_unmapped_channel_is_dropped() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)

    _handle_all(router, [IRCEvent(kind=MESSAGE, nick="bob", target="#elsewhere", text="hi")], IRCLoopState())
    _handle_all(router, [IRCEvent(kind=MESSAGE, nick="bob", target="crosstalk", text="private")], IRCLoopState())

    assert slack.as_user == []


def test_playback_lines_are_not_relayed() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)
    events = [
        IRCEvent(kind=MESSAGE, nick="***", target="#a", text=PLAYBACK_START_TEXT),
        IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="[09:00] old"),
        IRCEvent(kind=ACTION, nick="bob", target="#a", text="waves (old)"),
        IRCEvent(kind=MESSAGE, nick="***", target="#a", text=PLAYBACK_END_TEXT),
        IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="live"),
    ]

    _handle_all(router, events, IRCLoopState())

    assert slack.as_user == [("bob", "#slack-a", "live")]


def test_highlight_pings_owner_before_the_message() -> None:
    rules = build_highlight_rules([HighlightRuleConfig(nick_pattern="^admin$", message_pattern=None, should_highlight=True)])
    slack = FakeSlack()
    router = _router(FakeIRC(), slack, rules)

    _handle_all(
        router,
        [
            IRCEvent(kind=MESSAGE, nick="admin", target="#a", text="hello"),
            IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="hello"),
        ],
        IRCLoopState(),
    )

    assert slack.as_bot == [("#slack-a", "@owner: you were pinged by admin")]
    assert [name for name, _, _ in slack.as_user] == ["admin", "bob"]


def test_quit_fans_out_to_every_channel_the_user_was_in() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)
    state = IRCLoopState(snapshot={"#a": frozenset({"alice", "bob"}), "#b": frozenset({"alice"})})

    _handle_all(router, [IRCEvent(kind=QUIT, nick="alice", usermask="alice!a@host", text="bye")], state)

    assert sorted(slack.as_bot) == [
        ("#slack-a", "> *alice* (alice!a@host) left IRC (bye)"),
        ("#slack-b", "> *alice* (alice!a@host) left IRC (bye)"),
    ]


def test_quit_of_user_in_no_known_channel_posts_nothing() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)
    state = IRCLoopState(snapshot={"#a": frozenset({"bob"})})

    _handle_all(router, [IRCEvent(kind=QUIT, nick="alice", text="bye")], state)

    assert slack.as_bot == []


def test_nick_change_without_recorded_channels_uses_previous_snapshot() -> None:
    irc = FakeIRC()
    slack = FakeSlack()
    router = _router(irc, slack)
    state = IRCLoopState(snapshot={"#a": frozenset({"bob"}), "#b": frozenset({"carol"})})
    # The client has already applied the rename to its live roster
    irc.rosters = {"#a": {"robert"}, "#b": {"carol"}}

    _handle_all(router, [IRCEvent(kind=NICK, nick="bob", text="robert")], state)

    assert slack.as_bot == [("#slack-a", "> bob is now known as *robert*")]
    assert state.snapshot == {"#a": frozenset({"robert"}), "#b": frozenset({"carol"})}


def test_snapshot_is_refreshed_after_membership_events() -> None:
    irc = FakeIRC()
    slack = FakeSlack()
    router = _router(irc, slack)
    state = IRCLoopState()

    irc.rosters = {"#a": {"alice"}, "#b": {"alice"}}
    _handle_all(router, [IRCEvent(kind=JOIN, nick="alice", usermask="alice!a@host", target="#b")], state)
    irc.rosters = {"#a": {"alice"}, "#b": set()}
    _handle_all(router, [IRCEvent(kind=PART, nick="alice", usermask="alice!a@host", target="#b")], state)
    _handle_all(router, [IRCEvent(kind=QUIT, nick="alice", usermask="alice!a@host", text="gone")], state)

    assert slack.as_bot == [
        ("#slack-b", "> *alice* (alice!a@host) joined the channel"),
        ("#slack-b", "> *alice* (alice!a@host) left the channel"),
        ("#slack-a", "> *alice* (alice!a@host) left IRC (gone)"),
    ]


def test_channel_notices() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)
    events = [
        IRCEvent(kind=KICK, nick="op", target="#a", text="spam", args=("troll",)),
        IRCEvent(kind=TOPIC, nick="op", target="#a", text="Release day"),
        IRCEvent(kind=MODE, nick="op", target="#a", args=("+o", "bob")),
        IRCEvent(kind=MODE, nick="op", target="#a", args=("+m",)),
        IRCEvent(kind=ACTION, nick="bob", target="#b", text="waves"),
    ]

    _handle_all(router, events, IRCLoopState())

    assert slack.as_bot == [
        ("#slack-a", "> *op* kicked *troll* from the channel (spam)"),
        ("#slack-a", "> *op* changed the topic to *Release day*"),
        ("#slack-a", "> *op* sets *+o* *bob*"),
        ("#slack-a", "> *op* sets *+m*"),
    ]
    assert slack.as_user == [("bob", "#slack-b", "> *bob waves*")]


def test_user_mode_and_invite_are_only_logged() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)

    results = _handle_all(
        router,
        [
            IRCEvent(kind=MODE, nick="crosstalk", target="crosstalk", args=("+i",)),
            IRCEvent(kind=INVITE, nick="bob", target="#secret"),
        ],
        IRCLoopState(),
    )

    assert results == [True, True]
    assert slack.as_bot == []
    assert slack.as_user == []


def test_connected_joins_mapped_channels_and_notifies_owner() -> None:
    irc = FakeIRC()
    slack = FakeSlack()
    router = _router(irc, slack)

    assert _handle_all(router, [IRCEvent(kind=CONNECTED)], IRCLoopState()) == [True]

    assert irc.joined == [("#a", None), ("#b", "sekrit")]
    assert slack.to_owner == ["Connected to IRC on irc.example.net!"]


def test_disconnected_notifies_owner_and_stops() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)

    assert _handle_all(router, [IRCEvent(kind=DISCONNECTED)], IRCLoopState()) == [False]
    assert slack.to_owner == ["Disconnected from IRC on irc.example.net!"]


def test_unrecognized_event_is_dropped() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)

    assert _handle_all(router, [IRCEvent(kind="wallops", nick="oper", text="hi")], IRCLoopState()) == [True]
    assert slack.as_bot == []


def test_send_failure_does_not_stop_fan_out() -> None:
    slack = FakeSlack(failing_channels={"#slack-a"})
    router = _router(FakeIRC(), slack)
    state = IRCLoopState(snapshot={"#a": frozenset({"alice"}), "#b": frozenset({"alice"})})

    assert _handle_all(router, [IRCEvent(kind=QUIT, nick="alice", text="bye")], state) == [True]
    assert [channel for channel, _ in slack.as_bot] == ["#slack-b"]


def test_run_stops_on_disconnect_and_survives_handler_errors() -> None:
    slack = FakeSlack()

    class ExplodingRoster(FakeIRC):
        calls = 0

        def current_roster(self, channel: str) -> Optional[set[str]]:
            ExplodingRoster.calls += 1
            if ExplodingRoster.calls == 3:
                raise RuntimeError("roster blew up")
            return None

    router = _router(ExplodingRoster(), slack)

    async def _events() -> AsyncIterator[IRCEvent]:
        yield IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="first")
        yield IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="second")
        yield IRCEvent(kind=DISCONNECTED)
        yield IRCEvent(kind=MESSAGE, nick="bob", target="#a", text="never")

    asyncio.run(router.run(_events(), IRCLoopState()))

    assert [text for _, _, text in slack.as_user] == ["first", "second"]
    assert slack.to_owner == ["Disconnected from IRC on irc.example.net!"]


class QueuedIRC(FakeIRC):
    """Applies each quit to the roster as soon as the line is read, before the router sees it."""

    def __init__(self) -> None:
        super().__init__()
        self.queue: asyncio.Queue[IRCEvent] = asyncio.Queue()

    def read_quit(self, nick: str, reason: str) -> None:
        holding = tuple(channel for channel, nicks in self.rosters.items() if nick in nicks)
        self.queue.put_nowait(IRCEvent(kind=QUIT, nick=nick, usermask=f"{nick}!u@host", text=reason, channels=holding))
        for nicks in self.rosters.values():
            nicks.discard(nick)

    def read_disconnect(self) -> None:
        self.queue.put_nowait(IRCEvent(kind=DISCONNECTED))

    async def events(self) -> AsyncIterator[IRCEvent]:
        while True:
            yield await self.queue.get()


class SlowSlack(FakeSlack):
    async def send_as_bot(self, channel: str, text: str) -> None:
        await asyncio.sleep(0.01)
        await super().send_as_bot(channel, text)


def test_queued_quits_use_channels_recorded_when_read() -> None:
    slack = SlowSlack()

    async def _run() -> None:
        irc = QueuedIRC()
        irc.rosters = {"#a": {"alice", "bob"}, "#b": {"alice"}}
        router = _router(irc, slack)
        loop_task = asyncio.create_task(router.run(irc.events()))
        # A netsplit: both lines are read before the first notice is posted
        irc.read_quit("bob", "*.net *.split")
        irc.read_quit("alice", "*.net *.split")
        irc.read_disconnect()
        await asyncio.wait_for(loop_task, timeout=5)

    asyncio.run(_run())

    assert slack.as_bot == [
        ("#slack-a", "> *bob* (bob!u@host) left IRC (*.net *.split)"),
        ("#slack-a", "> *alice* (alice!u@host) left IRC (*.net *.split)"),
        ("#slack-b", "> *alice* (alice!u@host) left IRC (*.net *.split)"),
    ]


def test_recorded_channels_take_precedence_over_the_snapshot() -> None:
    slack = FakeSlack()
    router = _router(FakeIRC(), slack)
    state = IRCLoopState(snapshot={"#a": frozenset()})

    _handle_all(router, [IRCEvent(kind=NICK, nick="bob", text="robert", channels=("#b", "#unmapped"))], state)

    assert slack.as_bot == [("#slack-b", "> bob is now known as *robert*")]
