import pytest

from casebook.datatypes.discord_datatypes import (
    ChannelID,
    GuildID,
    MessageID,
    UserID,
)


class DummyObj:
    def __init__(self, id_val=None):
        self.id = id_val


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert u1.to_int() == 12345
    assert str(u1) == "12345"

    u2 = UserID(" 12345 ")
    assert u1 == u2

    u3 = UserID(UserID(67890))
    assert isinstance(u3, UserID)
    assert u3.to_int() == 67890

    # from_user helper
    dummy = DummyObj(id_val=111)
    u4 = UserID.from_user(dummy)  # type: ignore
    assert u4.to_int() == 111

    # equality with raw types
    assert u4 == 111
    assert u4 == "111"
    assert u4 != True  # noqa: E712

    # hashing and set membership
    s = {u1, u2, u3, u4}
    assert len(s) == 3


@pytest.mark.parametrize("bad", [[], None, 1.5, True, -1, "abc", ""])
def test_userid_invalid(bad):
    with pytest.raises(ValueError):
        UserID(bad)  # type: ignore


def test_wrappers_do_not_mix():
    with pytest.raises(ValueError):
        UserID(GuildID(1))
    assert GuildID(5) != UserID(5)


def test_repr_names_the_kind():
    assert repr(GuildID(42)) == "GuildID('42')"


def test_from_discord_objects():
    assert GuildID.from_guild(DummyObj(1)) == 1  # type: ignore
    assert ChannelID.from_channel(DummyObj(2)) == 2  # type: ignore
    assert MessageID.from_message(DummyObj(3)) == 3  # type: ignore
