import pytest

from services.registration import RegistrationWizard, validate_step

VALID_STEP_ONE = {
    "full_name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "+1 555 0100",
}
VALID_STEP_TWO = {
    "automation_experience": "intermediate",
    "course_goal": "build-agents",
}


def fill(wizard, values):
    for name, value in values.items():
        wizard.update_field(name, value)


def test_starts_on_step_one():
    wizard = RegistrationWizard()

    assert wizard.current_step == 1
    assert wizard.errors == {}
    assert wizard.accepted_terms is False


def test_empty_full_name_blocks_step_one():
    wizard = RegistrationWizard()
    fill(wizard, {**VALID_STEP_ONE, "full_name": "   "})

    assert wizard.next_step() is False
    assert wizard.current_step == 1
    assert wizard.errors == {"full_name": "Full name is required"}


def test_empty_step_one_reports_every_field():
    wizard = RegistrationWizard()

    assert wizard.next_step() is False
    assert set(wizard.errors) == {"full_name", "email", "phone"}


@pytest.mark.parametrize(
    ("email", "valid"),
    [
        ("a@b.co", True),
        ("foo@bar.com", True),
        ("foo@bar", False),
        ("foobar.com", False),
        ("foo @bar.com", False),
        ("@bar.com", False),
    ],
)
def test_email_shape(email, valid):
    errors = validate_step(1, {**VALID_STEP_ONE, "email": email})

    assert ("email" not in errors) is valid


def test_valid_email_clears_error_on_next_pass():
    wizard = RegistrationWizard()
    fill(wizard, {**VALID_STEP_ONE, "email": "foo@bar"})
    assert wizard.next_step() is False
    assert wizard.errors == {"email": "Please enter a valid email address"}

    wizard.form_data["email"] = "a@b.co"
    assert wizard.next_step() is True
    assert wizard.errors == {}
    assert wizard.current_step == 2


@pytest.mark.parametrize(
    ("values", "failing"),
    [
        ({}, {"automation_experience", "course_goal"}),
        ({"automation_experience": "guru", "course_goal": "build-agents"}, {"automation_experience"}),
        ({"automation_experience": "expert", "course_goal": "get-rich"}, {"course_goal"}),
        (VALID_STEP_TWO, set()),
    ],
)
def test_step_two_enumerations(values, failing):
    assert set(validate_step(2, values)) == failing


def test_walks_to_final_step_and_caps_there():
    wizard = RegistrationWizard()
    fill(wizard, VALID_STEP_ONE)
    assert wizard.next_step() is True
    fill(wizard, VALID_STEP_TWO)
    assert wizard.next_step() is True
    assert wizard.current_step == 3

    # step 3 沒有欄位驗證，也不會超過 3
    assert wizard.next_step() is True
    assert wizard.current_step == 3


def test_prev_step_floors_at_one():
    wizard = RegistrationWizard()
    wizard.prev_step()

    assert wizard.current_step == 1


def test_prev_step_keeps_errors():
    wizard = RegistrationWizard()
    fill(wizard, VALID_STEP_ONE)
    wizard.next_step()
    wizard.next_step()
    assert wizard.current_step == 2
    assert set(wizard.errors) == {"automation_experience", "course_goal"}

    wizard.prev_step()

    assert wizard.current_step == 1
    assert set(wizard.errors) == {"automation_experience", "course_goal"}


def test_update_field_clears_only_its_own_error():
    wizard = RegistrationWizard(errors={"email": "Email is required", "phone": "Phone number is required"})

    wizard.update_field("email", "ada@example.com")

    assert wizard.errors == {"phone": "Phone number is required"}
    assert wizard.form_data["email"] == "ada@example.com"


def test_update_unknown_field_is_rejected():
    with pytest.raises(KeyError):
        RegistrationWizard().update_field("password", "hunter2")


def test_submission_requires_terms_on_last_step():
    wizard = RegistrationWizard(current_step=3)
    fill(wizard, {**VALID_STEP_ONE, **VALID_STEP_TWO})
    assert wizard.can_submit() is False

    wizard.accept_terms(True)
    assert wizard.can_submit() is True

    wizard.prev_step()
    assert wizard.can_submit() is False


def test_submission_requires_earlier_steps_complete():
    wizard = RegistrationWizard(current_step=3, accepted_terms=True)
    assert wizard.can_submit() is False
    assert wizard.current_state().incomplete_step == 1

    fill(wizard, VALID_STEP_ONE)
    assert wizard.current_state().incomplete_step == 2

    assert wizard.rewind_to_incomplete_step() == 2
    assert wizard.current_step == 2
    assert set(wizard.errors) == {"automation_experience", "course_goal"}


def test_dispatch_and_subscribe():
    wizard = RegistrationWizard()
    snapshots = []
    unsubscribe = wizard.subscribe(snapshots.append)

    wizard.dispatch("update_field", name="full_name", value="Ada")
    assert wizard.dispatch("next_step") is False
    unsubscribe()
    wizard.dispatch("prev_step")

    assert [s.current_step for s in snapshots] == [1, 1]
    assert snapshots[-1].errors.keys() == {"email", "phone"}
    with pytest.raises(ValueError):
        wizard.dispatch("jump")


def test_session_round_trip_sanitises_input():
    wizard = RegistrationWizard.from_dict(
        {"current_step": 9, "form_data": {"email": "a@b.co", "evil": "x"}, "errors": {"phone": "bad"}}
    )

    assert wizard.current_step == 3
    assert wizard.form_data["email"] == "a@b.co"
    assert "evil" not in wizard.form_data
    assert RegistrationWizard.from_dict(wizard.to_dict()).to_dict() == wizard.to_dict()
