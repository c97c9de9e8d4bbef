"""Store-level tests for direct messages."""

from __future__ import annotations

import pytest

from app.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from app.models import MessageType
from app.services import messages as message_store


@pytest.fixture()
def pair(make_user) -> tuple[int, int]:
    return make_user("Ada"), make_user("Grace")


def test_create_message_rejects_bad_input(db_session, pair, make_user) -> None:
    ada, grace = pair
    inactive = make_user("Gone", is_active=False)

    with pytest.raises(NotFoundError):
        message_store.create_message(db_session, ada, 9999, "hi")
    with pytest.raises(NotFoundError):
        message_store.create_message(db_session, ada, inactive, "hi")
    with pytest.raises(InvalidArgumentError):
        message_store.create_message(db_session, ada, grace, "   ")
    with pytest.raises(InvalidArgumentError):
        message_store.create_message(db_session, ada, grace, "hi", "sticker")
    with pytest.raises(InvalidArgumentError):
        message_store.create_message(db_session, ada, grace, "x" * 5000)
    with pytest.raises(InvalidArgumentError):
        message_store.create_message(
            db_session, ada, grace, "see file", MessageType.FILE, "https://cdn/" + "a" * 500
        )


def test_history_is_chronological_and_hides_deleted(db_session, pair) -> None:
    ada, grace = pair
    first = message_store.create_message(db_session, ada, grace, "first")
    second = message_store.create_message(db_session, grace, ada, "second")
    third = message_store.create_message(db_session, ada, grace, "third", MessageType.IMAGE, "https://cdn/x.png")
    message_store.soft_delete_message(db_session, second.id, ada)

    rows, total = message_store.get_message_history(db_session, ada, grace)

    assert total == 2
    assert [row.id for row in rows] == [first.id, third.id]
    with pytest.raises(NotFoundError):
        message_store.get_message(db_session, second.id, grace)


def test_history_pages_newest_first(db_session, pair) -> None:
    ada, grace = pair
    ids = [message_store.create_message(db_session, ada, grace, f"m{index}").id for index in range(5)]

    page_one, total = message_store.get_message_history(db_session, grace, ada, page=1, limit=2)
    page_three, _ = message_store.get_message_history(db_session, grace, ada, page=3, limit=2)

    assert total == 5
    assert [row.id for row in page_one] == ids[3:5]
    assert [row.id for row in page_three] == ids[0:1]


def test_mark_read_is_idempotent_and_recipient_only(db_session, pair) -> None:
    ada, grace = pair
    message = message_store.create_message(db_session, ada, grace, "ping")
    assert message_store.get_unread_count(db_session, grace) == 1

    with pytest.raises(ForbiddenError):
        message_store.mark_message_read(db_session, message.id, ada)

    read, changed = message_store.mark_message_read(db_session, message.id, grace)
    assert changed is True and read.is_read and read.read_at is not None
    first_read_at = read.read_at

    again, changed_again = message_store.mark_message_read(db_session, message.id, grace)
    assert changed_again is False
    assert again.read_at == first_read_at
    assert message_store.get_unread_count(db_session, grace) == 0


def test_mark_conversation_read_counts_only_unread_from_sender(db_session, pair, make_user) -> None:
    ada, grace = pair
    other = make_user("Linus")
    message_store.create_message(db_session, ada, grace, "one")
    message_store.create_message(db_session, ada, grace, "two")
    message_store.create_message(db_session, other, grace, "elsewhere")
    deleted = message_store.create_message(db_session, ada, grace, "gone")
    message_store.soft_delete_message(db_session, deleted.id, grace)

    assert message_store.mark_conversation_read(db_session, ada, grace) == 2
    assert message_store.mark_conversation_read(db_session, ada, grace) == 0
    assert message_store.get_unread_count(db_session, grace) == 1


def test_soft_delete_is_idempotent(db_session, pair, make_user) -> None:
    ada, grace = pair
    stranger = make_user("Eve")
    message = message_store.create_message(db_session, ada, grace, "secret")

    with pytest.raises(ForbiddenError):
        message_store.soft_delete_message(db_session, message.id, stranger)

    _, changed = message_store.soft_delete_message(db_session, message.id, grace)
    _, changed_again = message_store.soft_delete_message(db_session, message.id, ada)
    assert changed is True and changed_again is False
    with pytest.raises(NotFoundError):
        message_store.mark_message_read(db_session, message.id, grace)


def test_conversations_list_latest_message_per_counterpart(db_session, pair, make_user) -> None:
    ada, grace = pair
    linus = make_user("Linus")
    message_store.create_message(db_session, grace, ada, "hello ada")
    latest_with_grace = message_store.create_message(db_session, ada, grace, "hi grace")
    latest_with_linus = message_store.create_message(db_session, linus, ada, "yo")

    summaries, total = message_store.get_conversations(db_session, ada)

    assert total == 2
    by_user = {summary.other_user.id: summary for summary in summaries}
    assert by_user[grace].last_message.id == latest_with_grace.id
    assert by_user[grace].unread_count == 1
    assert by_user[linus].last_message.id == latest_with_linus.id
    assert by_user[linus].unread_count == 1


def test_search_and_statistics(db_session, pair) -> None:
    ada, grace = pair
    message_store.create_message(db_session, ada, grace, "Lunch at noon?")
    message_store.create_message(db_session, grace, ada, "100% yes")
    hidden = message_store.create_message(db_session, grace, ada, "lunch is cancelled")
    message_store.soft_delete_message(db_session, hidden.id, grace)

    rows, total = message_store.search_messages(db_session, ada, "LUNCH")
    assert total == 1 and rows[0].content == "Lunch at noon?"

    percent_rows, _ = message_store.search_messages(db_session, ada, "100%")
    assert [row.content for row in percent_rows] == ["100% yes"]

    stats = message_store.get_message_statistics(db_session, ada)
    assert stats == {
        "totalSent": 1,
        "totalReceived": 1,
        "totalUnread": 1,
        "activeConversations": 1,
    }


def test_delete_conversation_hides_both_directions(db_session, pair) -> None:
    ada, grace = pair
    message_store.create_message(db_session, ada, grace, "one")
    message_store.create_message(db_session, grace, ada, "two")

    assert message_store.delete_conversation(db_session, ada, grace) == 2
    rows, total = message_store.get_message_history(db_session, grace, ada)
    assert total == 0 and rows == []


def test_conversations_skip_deleted_messages(db_session, pair) -> None:
    ada, grace = pair
    earlier = message_store.create_message(db_session, ada, grace, "earlier")
    latest = message_store.create_message(db_session, grace, ada, "latest")

    message_store.soft_delete_message(db_session, latest.id, grace)
    summaries, total = message_store.get_conversations(db_session, ada)

    assert total == 1
    assert summaries[0].other_user.id == grace
    assert summaries[0].last_message.id == earlier.id
    assert summaries[0].unread_count == 0

    message_store.delete_conversation(db_session, ada, grace)
    summaries, total = message_store.get_conversations(db_session, ada)
    assert total == 0 and summaries == []
    summaries, total = message_store.get_conversations(db_session, grace)
    assert total == 0 and summaries == []
