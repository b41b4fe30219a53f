"""Tests for chat request validation and sanitization."""
import pytest

from tutor_relay.services.request_validator import validate_chat_request
from tutor_relay.utils.exceptions import InputValidationError


def _body(**overrides):
    body = {"messages": [{"role": "user", "content": "Что такое атом?"}]}
    body.update(overrides)
    return body


class TestValidRequests:
    """Accepted bodies and defaults."""

    def test_minimal_body_gets_defaults(self):
        request = validate_chat_request(_body())
        assert request.user_type == "SCHOOLER"
        assert request.subject == "Общий"
        assert request.mode == "explain"
        assert request.class_level is None
        assert request.history() == [{"role": "user", "content": "Что такое атом?"}]

    def test_full_body(self):
        request = validate_chat_request(
            _body(userType="PRESCHOOLER", subject="Математика", mode="training", classLevel=3)
        )
        assert request.user_type == "PRESCHOOLER"
        assert request.subject == "Математика"
        assert request.mode == "training"
        assert request.class_level == 3

    def test_unknown_user_type_falls_back(self):
        assert validate_chat_request(_body(userType="TEACHER")).user_type == "SCHOOLER"
        assert validate_chat_request(_body(userType=7)).user_type == "SCHOOLER"

    def test_content_is_sanitized(self):
        request = validate_chat_request(
            {"messages": [{"role": "user", "content": "  hi\x00 there\n  "}]}
        )
        assert request.messages[0].content == "hi there"

    def test_content_is_truncated(self):
        request = validate_chat_request(
            {"messages": [{"role": "user", "content": "a" * 5000}]},
            max_message_length=4000,
        )
        assert len(request.messages[0].content) == 4000

    def test_exactly_max_messages(self):
        messages = [{"role": "user", "content": "x"}] * 50
        assert len(validate_chat_request({"messages": messages}).messages) == 50

    def test_null_optionals_take_defaults(self):
        request = validate_chat_request(_body(subject=None, mode=None, classLevel=None))
        assert request.subject == "Общий"
        assert request.mode == "explain"
        assert request.class_level is None

    def test_blank_mode_falls_back(self):
        assert validate_chat_request(_body(mode="   ")).mode == "explain"

    def test_integral_float_class_level(self):
        assert validate_chat_request(_body(classLevel=5.0)).class_level == 5

    def test_order_preserved(self):
        messages = [
            {"role": "user", "content": "1"},
            {"role": "assistant", "content": "2"},
            {"role": "user", "content": "3"},
        ]
        request = validate_chat_request({"messages": messages})
        assert [t.content for t in request.messages] == ["1", "2", "3"]
        assert request.last_user_message == "3"


class TestInvalidRequests:
    """Rejected bodies."""

    @pytest.mark.parametrize("payload", [None, [], "text", 5])
    def test_non_object_body(self, payload):
        with pytest.raises(InputValidationError, match="JSON object"):
            validate_chat_request(payload)

    @pytest.mark.parametrize(
        "messages",
        [None, "hi", {"role": "user"}, []],
    )
    def test_bad_messages(self, messages):
        with pytest.raises(InputValidationError, match="messages"):
            validate_chat_request({"messages": messages})

    def test_missing_messages(self):
        with pytest.raises(InputValidationError, match="messages"):
            validate_chat_request({})

    def test_too_many_messages(self):
        messages = [{"role": "user", "content": "x"}] * 51
        with pytest.raises(InputValidationError, match="too many messages"):
            validate_chat_request({"messages": messages})

    def test_custom_max_messages(self):
        messages = [{"role": "user", "content": "x"}] * 3
        with pytest.raises(InputValidationError):
            validate_chat_request({"messages": messages}, max_messages=2)

    @pytest.mark.parametrize("role", ["system", "tool", "", None, 1])
    def test_bad_role(self, role):
        with pytest.raises(InputValidationError, match="role"):
            validate_chat_request({"messages": [{"role": role, "content": "x"}]})

    @pytest.mark.parametrize("content", ["", "   ", None, 5, "\x00\x01"])
    def test_bad_content(self, content):
        with pytest.raises(InputValidationError, match="content"):
            validate_chat_request({"messages": [{"role": "user", "content": content}]})

    def test_second_message_reported(self):
        messages = [{"role": "user", "content": "ok"}, {"role": "user", "content": ""}]
        with pytest.raises(InputValidationError, match=r"messages\.1\.content"):
            validate_chat_request({"messages": messages})

    @pytest.mark.parametrize("subject", ["", "   ", 5, "\x00"])
    def test_bad_subject(self, subject):
        with pytest.raises(InputValidationError, match="subject"):
            validate_chat_request(_body(subject=subject))

    @pytest.mark.parametrize("level", [0, 12, -1, 5.5, "5", True])
    def test_bad_class_level(self, level):
        with pytest.raises(InputValidationError, match="classLevel"):
            validate_chat_request(_body(classLevel=level))
