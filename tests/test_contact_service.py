"""
Tests for the contact form service
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import SQLAlchemyError

from dashboard_api.services.contact_service import (
    BUNDLE_PERSONA, ContactService, ContactValidationError,
    canonicalize_persona, validate_contact,
)


def valid_submission(**overrides) -> dict:
    data = {
        'first_name': "Asha",
        'last_name': "Rao",
        'email': "Asha.Rao@Example.com ",
        'company': "+91 98765 43210",
        'persona': "ALGO Simulator",
        'message': "  Interested in a demo.  ",
        'agree': True,
        'website': "",
    }
    data.update(overrides)
    return data


class TestCanonicalizePersona:

    @pytest.mark.parametrize("raw", [
        "2-in-1 Trader's Essential Bundle",
        "2 in 1 Trader\u2019s Essential Bundle",
        "2\u2013in\u20131  traders essential bundle",
    ])
    def test_bundle_spellings(self, raw):
        assert canonicalize_persona(raw) == BUNDLE_PERSONA

    def test_other_values_trimmed(self):
        assert canonicalize_persona("  ALGO   Simulator ") == "ALGO Simulator"

    def test_empty(self):
        assert canonicalize_persona(None) == ""


class TestValidateContact:
    """Each rule rejects with a user-facing message."""

    def test_valid(self):
        assert validate_contact(valid_submission()) == "ALGO Simulator"

    @pytest.mark.parametrize("overrides, message", [
        ({'first_name': ""}, "firstName is required"),
        ({'last_name': None}, "lastName is required"),
        ({'email': "not-an-email"}, "Valid email is required"),
        ({'company': "12-34"}, "Mobile number looks invalid"),
        ({'persona': "Something else"}, "Please select a valid product"),
        ({'agree': False}, "You must agree to Terms & Privacy"),
        ({'website': "http://spam.example"}, "Spam detected"),
    ])
    def test_rejections(self, overrides, message):
        with pytest.raises(ContactValidationError, match=message):
            validate_contact(valid_submission(**overrides))


class TestContactService:
    """Tests for ContactService.submit."""

    def setup_method(self):
        self.db = MagicMock()
        self.db.commit = AsyncMock()
        self.db.rollback = AsyncMock()

        async def assign_id(message):
            message.id = 42

        self.db.refresh = AsyncMock(side_effect=assign_id)
        self.service = ContactService()

    @pytest.mark.asyncio
    async def test_submit_stores_normalized_message(self):
        message_id, persona = await self.service.submit(
            self.db, valid_submission(), ip="10.0.0.1", user_agent="pytest", referer=None
        )

        assert (message_id, persona) == (42, "ALGO Simulator")
        stored = self.db.add.call_args.args[0]
        assert stored.email == "asha.rao@example.com"
        assert stored.message == "Interested in a demo."
        assert stored.mobile == "+91 98765 43210"
        assert stored.ip == "10.0.0.1"
        assert stored.persona_label is None

    @pytest.mark.asyncio
    async def test_persona_label_stored(self):
        await self.service.submit(
            self.db, valid_submission(persona_label="  ALGO Simulator (monthly) "), ip="10.0.0.1"
        )

        assert self.db.add.call_args.args[0].persona_label == "ALGO Simulator (monthly)"

    @pytest.mark.asyncio
    async def test_invalid_submission_not_stored(self):
        with pytest.raises(ContactValidationError):
            await self.service.submit(self.db, valid_submission(agree=None))
        self.db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self):
        self.db.commit.side_effect = SQLAlchemyError("db down")

        with pytest.raises(SQLAlchemyError):
            await self.service.submit(self.db, valid_submission())
        self.db.rollback.assert_awaited_once()
