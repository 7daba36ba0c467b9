"""
입력 정규화 - id 형식, code/name 정리
"""
import uuid

import pytest

from category_hierarchy.core.config import Settings
from category_hierarchy.core.exceptions import ErrorReason, ValidationError
from category_hierarchy.core.validation import clean_code, clean_name, validate_id


class TestValidateId:
    @pytest.mark.parametrize("form", [
        lambda value: value.upper(),
        lambda value: "{" + value + "}",
        lambda value: value.replace("-", ""),
        lambda value: uuid.UUID(value),
    ])
    def test_accepted_forms_are_canonicalized(self, form):
        stored = str(uuid.uuid4())
        assert validate_id(form(stored)) == stored

    @pytest.mark.parametrize("value", ["", "42", "not-a-uuid", None])
    def test_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_id(value, "parent_id")
        assert exc_info.value.reason == ErrorReason.INVALID_ID
        assert exc_info.value.details == {"field": "parent_id"}


class TestCleanInput:
    def test_code_and_name_are_trimmed(self):
        assert clean_code("  DRILLS ") == "DRILLS"
        assert clean_name("\tFúrógépek ") == "Fúrógépek"

    def test_blank_values(self):
        with pytest.raises(ValidationError):
            clean_code(None)
        with pytest.raises(ValidationError):
            clean_name("   ")


def test_settings_read_env_file_case_sensitively():
    assert Settings.model_config["env_file"] == ".env"
    assert Settings.model_config["case_sensitive"] is True
