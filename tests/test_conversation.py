"""Tests for the conversation log."""

import pytest

from aichat_builder.conversation import ConversationLog
from aichat_builder.core import Message, Role
from aichat_builder.errors import DuplicateIdError


def _log(*roles: Role) -> ConversationLog:
    log = ConversationLog()
    for i, role in enumerate(roles):
        log.append(Message(id=f"m{i}", role=role, content=f"{role.value} {i}"))
    return log


U, A = Role.USER, Role.ASSISTANT


class TestAppend:
    def test_preserves_insertion_order(self):
        log = _log(U, A, U, A)
        assert [m.id for m in log] == ["m0", "m1", "m2", "m3"]
        assert len(log) == 4

    def test_duplicate_id_rejected(self):
        log = _log(U)
        with pytest.raises(DuplicateIdError):
            log.append(Message(id="m0", role=A, content="again"))
        assert len(log) == 1

    def test_generated_ids_are_unique(self):
        log = ConversationLog()
        for _ in range(50):
            log.append(Message.user("hello"))
        assert len({m.id for m in log}) == 50

    def test_last_user_message(self):
        log = _log(U, A, U, A)
        assert log.last_user_message().id == "m2"
        assert ConversationLog().last_user_message() is None

    def test_clear(self):
        log = _log(U, A)
        log.clear()
        assert len(log) == 0
        # ids are free again after a wholesale clear
        log.append(Message(id="m0", role=U, content="fresh"))


class TestEditMessage:
    def test_truncates_after_edited_message(self):
        log = _log(U, A, U, A, U, A)
        prompt = log.edit_message("m2", "a better request")
        assert prompt == "a better request"
        assert [m.id for m in log] == ["m0", "m1", "m2"]
        assert log.get("m2").content == "a better request"

    def test_removed_ids_can_be_reused(self):
        log = _log(U, A, U)
        log.edit_message("m0", "changed")
        log.append(Message(id="m1", role=A, content="new reply"))
        assert [m.id for m in log] == ["m0", "m1"]

    def test_unknown_id_is_noop(self):
        log = _log(U, A)
        assert log.edit_message("nope", "x") is None
        assert len(log) == 2

    def test_assistant_message_is_noop(self):
        log = _log(U, A)
        assert log.edit_message("m1", "x") is None
        assert log.get("m1").content == "assistant 1"
        assert len(log) == 2


class TestRegenerateFrom:
    def test_removes_from_assistant_message_on(self):
        log = _log(U, A, U, A)
        prompt = log.regenerate_from("m1")
        assert prompt == "user 0"
        assert [m.id for m in log] == ["m0"]

    def test_last_reply(self):
        log = _log(U, A, U, A)
        assert log.regenerate_from("m3") == "user 2"
        assert [m.id for m in log] == ["m0", "m1", "m2"]

    def test_first_message_is_noop(self):
        log = _log(A, U, A)
        assert log.regenerate_from("m0") is None
        assert len(log) == 3

    def test_previous_not_user_is_noop(self):
        log = _log(U, A, A)
        assert log.regenerate_from("m2") is None
        assert len(log) == 3

    def test_user_message_is_noop(self):
        log = _log(U, A, U)
        assert log.regenerate_from("m2") is None
        assert len(log) == 3

    def test_unknown_id_is_noop(self):
        log = _log(U, A)
        assert log.regenerate_from("missing") is None
        assert len(log) == 2
