"""Data model tests."""

import pytest

from passgate_core import (
    AttestationResponse,
    AuthenticationChallenge,
    CeremonyResult,
    Identity,
    RegistrationChallenge,
    ServerRejected,
    ValidationError,
    VerificationOutcome,
    is_valid_email,
    normalize_email,
)


def test_email_validation_matches_simple_address_shape() -> None:
    """Addresses need a local part, an @ and a dotted domain."""
    assert is_valid_email("someone@example.com")
    assert is_valid_email(" someone@example.com ")
    assert not is_valid_email("someone@example")
    assert not is_valid_email("some one@example.com")
    assert not is_valid_email(None)


def test_normalize_email_trims_and_rejects() -> None:
    """Normalization trims whitespace and raises ValidationError otherwise."""
    assert normalize_email("  a@b.com ") == "a@b.com"
    with pytest.raises(ValidationError, match="must not be empty"):
        normalize_email("  ")
    with pytest.raises(ValidationError, match="valid email"):
        normalize_email("a@b")


def test_identity_requires_valid_email() -> None:
    """Identities are never built around a malformed address."""
    with pytest.raises(ValueError, match="Invalid identity email"):
        Identity(email="nobody")
    assert Identity(email="a@b.com").label == "a@b.com"
    assert Identity(email="a@b.com", display_name="A").label == "A"


def test_challenge_unwraps_public_key_envelope() -> None:
    """Options wrapped in publicKey are handled like bare options."""
    challenge = AuthenticationChallenge.model_validate(
        {"publicKey": {"challenge": "abc", "rpId": "localhost", "timeout": 60000}},
    )
    assert challenge.to_options() == {
        "challenge": "abc",
        "rpId": "localhost",
        "timeout": 60000,
    }


def test_registration_challenge_requires_rp_and_user() -> None:
    """Creation options without rp or user are rejected."""
    with pytest.raises(ValueError, match="user"):
        RegistrationChallenge.model_validate({"challenge": "abc", "rp": {"id": "x"}})


def test_attestation_requires_attestation_object() -> None:
    """An attestation without attestationObject is not a registration response."""
    with pytest.raises(ValueError, match="attestationObject"):
        AttestationResponse.model_validate(
            {"id": "a", "rawId": "a", "response": {"clientDataJSON": "e30"}},
        )


def test_verification_outcome_identity_fallbacks() -> None:
    """displayName falls back to the email; missing emails give no identity."""
    outcome = VerificationOutcome.model_validate({"success": True, "email": "a@b.com"})
    assert outcome.to_identity() == Identity(email="a@b.com", display_name="a@b.com")

    named = VerificationOutcome.model_validate(
        {"success": True, "email": "a@b.com", "displayName": "Ann"},
    )
    assert named.to_identity() == Identity(email="a@b.com", display_name="Ann")

    assert VerificationOutcome(success=True).to_identity() is None
    assert VerificationOutcome(success=False, email="a@b.com").to_identity() is None


def test_ceremony_result_reason_and_immutability() -> None:
    """Results expose the error kind and cannot be changed afterwards."""
    result = CeremonyResult.failed(ServerRejected())
    assert result.reason == "server_rejected"
    assert CeremonyResult(success=True).reason is None
    with pytest.raises(AttributeError):
        result.success = True  # type: ignore[misc]
