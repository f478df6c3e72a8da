"""Tests for the exception hierarchy."""

import pytest

from skillrun_core import (
    ContractError,
    OperationNotFoundError,
    RegistrationError,
    SkillNotFoundError,
    SkillRunError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [ContractError, RegistrationError, OperationNotFoundError, SkillNotFoundError],
    )
    def test_is_skillrun_error(self, exc_type):
        assert issubclass(exc_type, SkillRunError)

    @pytest.mark.parametrize("exc_type", [OperationNotFoundError, SkillNotFoundError])
    def test_not_found_is_lookup_error(self, exc_type):
        assert issubclass(exc_type, LookupError)

    @pytest.mark.parametrize("exc_type", [ContractError, RegistrationError])
    def test_load_time_errors_are_value_errors(self, exc_type):
        assert issubclass(exc_type, ValueError)

    def test_skillrun_error_is_exception(self):
        assert issubclass(SkillRunError, Exception)

    def test_message(self):
        assert str(OperationNotFoundError("databases/MISSING")) == "databases/MISSING"

    def test_catch_family(self):
        with pytest.raises(SkillRunError):
            raise RegistrationError("Duplicate operation")
