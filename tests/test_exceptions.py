import pytest

from wellness_tracker.exceptions import (
    AuthenticationFailed,
    DuplicateFound,
    EventNotFound,
    InvalidFieldValue,
    MissingColumns,
    MissingIdentity,
    RecordNotFound,
    UnreadableFile,
    UnsupportedFileType,
    WellnessError,
)


@pytest.mark.unit
@pytest.mark.parametrize("error,status", [
    (MissingIdentity(), 400),
    (InvalidFieldValue("mode", "Hybrid"), 400),
    (MissingColumns(["Event Name"]), 400),
    (UnsupportedFileType("notes.txt"), 400),
    (UnreadableFile("a.csv", "CSV files must be saved as UTF-8"), 400),
    (AuthenticationFailed(), 401),
    (EventNotFound("Yoga"), 404),
    (RecordNotFound("attendance", 5), 404),
    (DuplicateFound("already there"), 409),
])
def test_status_codes(error, status):
    assert isinstance(error, WellnessError)
    assert error.status_code == status


@pytest.mark.unit
class TestMessages:
    def test_to_dict_shape(self):
        assert DuplicateFound("taken").to_dict() == {"error": "Duplicate record", "details": "taken"}

    def test_event_not_found_by_name_and_id(self):
        assert EventNotFound("Yoga").details == 'Event "Yoga" not found'
        assert EventNotFound(12).details == "Event 12 not found"

    def test_record_not_found(self):
        assert RecordNotFound("registration", 9).details == "Registration 9 not found"

    def test_missing_columns_lists_columns(self):
        assert MissingColumns(["Event Name", "Employee No"]).details == "Missing column(s): Event Name, Employee No"

    def test_invalid_field_value_is_a_value_error(self):
        assert isinstance(InvalidFieldValue("relevance", "9"), ValueError)

    def test_invalid_field_value_custom_details(self):
        error = InvalidFieldValue("event_name", "", details="Event Name is required")
        assert error.details == "Event Name is required"
