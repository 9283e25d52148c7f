import pytest

from autopilot.exceptions import (
    AutopilotError,
    BackendError,
    SessionLoadError,
    ToolRegistrationError,
    ToolValidationError,
)


class TestExceptionHierarchy:
    def test_all_exceptions_inherit_from_autopilot_error(self):
        for exc_class in [
            BackendError,
            SessionLoadError,
            ToolRegistrationError,
            ToolValidationError,
        ]:
            assert issubclass(exc_class, AutopilotError)

    def test_autopilot_error_inherits_from_exception(self):
        assert issubclass(AutopilotError, Exception)

    def test_exceptions_carry_message(self):
        err = ToolRegistrationError("missing name")
        assert str(err) == "missing name"

    def test_catch_by_base_class(self):
        with pytest.raises(AutopilotError):
            raise BackendError("OpenAI API error: Rate limit exceeded")
