from core import notices


def test_channel_notices() -> None:
    assert notices.format_join("alice", "alice!a@host") == "> *alice* (alice!a@host) joined the channel"
    assert notices.format_part("alice", "alice!a@host") == "> *alice* (alice!a@host) left the channel"
    assert notices.format_kick("op", "troll", "spam") == "> *op* kicked *troll* from the channel (spam)"
    assert notices.format_topic("op", "Welcome") == "> *op* changed the topic to *Welcome*"


def test_user_notices() -> None:
    assert notices.format_action("bob", "waves") == "> *bob waves*"
    assert notices.format_nick("bob", "robert") == "> bob is now known as *robert*"
    assert notices.format_quit("bob", "bob!b@host", "Ping timeout") == "> *bob* (bob!b@host) left IRC (Ping timeout)"


def test_mode_with_and_without_params() -> None:
    assert notices.format_mode("op", "+ov", ["alice", "bob"]) == "> *op* sets *+ov* *alice bob*"
    assert notices.format_mode("op", "+m", []) == "> *op* sets *+m*"


def test_owner_notices() -> None:
    assert notices.format_highlight("owner", "admin") == "@owner: you were pinged by admin"
    assert notices.format_irc_connected("irc.libera.chat") == "Connected to IRC on irc.libera.chat!"
    assert notices.format_irc_disconnected("irc.libera.chat") == "Disconnected from IRC on irc.libera.chat!"
