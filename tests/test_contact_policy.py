import pytest

from freeseat_booking.services.contact_policy import DEFAULT_REJECTION, ContactPolicy
from freeseat_booking.services.reservation_service import ReservationEngine
from freeseat_booking.utils.exceptions import InvalidRequestError


@pytest.fixture
def policy():
    return ContactPolicy(
        restricted_affiliations=["student", "staff"],
        allowed_domains=["uark.edu", "@uada.edu"],
    )


class AllowListPolicy:
    """Minimal validator that only answers yes or no."""

    def __init__(self, *allowed):
        self.allowed = set(allowed)
        self.calls = []

    def validate(self, email, affiliation_tag):
        self.calls.append((email, affiliation_tag))
        return email in self.allowed


@pytest.mark.parametrize(
    "email, affiliation",
    [
        ("alice@uark.edu", "student"),
        ("bob@uada.edu", "staff"),
        ("carol@UARK.EDU", "Student"),
        ("dave@gmail.com", "public"),
        ("erin@example.org", ""),
    ],
)
def test_acceptable_contacts(policy, email, affiliation):
    assert policy.validate(email, affiliation) is True
    assert policy.rejection_reason(email, affiliation) is None


def test_restricted_affiliation_needs_allowed_domain(policy):
    assert policy.validate("alice@gmail.com", "student") is False
    reason = policy.rejection_reason("alice@gmail.com", "student")
    assert reason == "Student reservations must use an @uada.edu or @uark.edu address."


def test_subdomain_is_not_the_allowed_domain(policy):
    assert policy.validate("alice@mail.uark.edu", "staff") is False


@pytest.mark.parametrize("email", ["", "alice", "alice@", "@uark.edu", "a b@uark.edu"])
def test_malformed_email_is_refused(policy, email):
    assert policy.validate(email, "public") is False
    assert policy.rejection_reason(email, "public").startswith("Invalid contact email")


def test_is_restricted_ignores_case_and_whitespace(policy):
    assert policy.is_restricted(" STAFF ")
    assert not policy.is_restricted("public")
    assert not policy.is_restricted("")


@pytest.mark.asyncio
async def test_engine_accepts_when_plain_validator_returns_true(
    seat_service, session_factory, test_settings, db_state
):
    validator = AllowListPolicy("u1@example.com")
    engine = ReservationEngine(session_factory, settings=test_settings, contact_policy=validator)

    order = await engine.reserve("u1@example.com", "u1@example.com", ["A1"], affiliation_tag="student")

    assert order.seats == ["A1"]
    assert validator.calls == [("u1@example.com", "student")]
    assert await db_state.sold_seats() == {"A1"}


@pytest.mark.asyncio
async def test_engine_refuses_when_plain_validator_returns_false(
    seat_service, session_factory, test_settings, db_state
):
    engine = ReservationEngine(
        session_factory, settings=test_settings, contact_policy=AllowListPolicy("u1@example.com")
    )

    with pytest.raises(InvalidRequestError) as exc_info:
        await engine.reserve("u2@example.com", "u2@example.com", ["A1"])

    assert exc_info.value.message == DEFAULT_REJECTION
    assert await db_state.sold_seats() == set()
