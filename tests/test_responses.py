"""FormResponseService tests — create-or-patch and completion side effects."""

import uuid
from datetime import date
from unittest.mock import AsyncMock

import pytest

from registry_db.models.enums import FormType
from registry_forms.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from registry_forms.responses import FormResponseService, validate_responses


@pytest.fixture
def study(registry):
    return registry.add_study("connect")


@pytest.fixture
def participant(registry, study):
    return registry.add_participant(enrolled_in=study)


@pytest.fixture
def service(registry):
    return FormResponseService(
        registry_external_id="connect",
        forms=registry.forms,
        responses=registry.responses,
        directory=registry.directory,
    )


class TestSubmit:
    @pytest.mark.asyncio
    async def test_first_submit_creates(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        info = await service.submit(
            db, form_id=form.id, participant_id=participant.id,
            responses={"q1": "a"}, furthest_page=1,
        )
        assert info.responses == {"q1": "a"}
        assert info.furthest_page == 1
        assert not info.is_complete
        assert len(registry.store.responses) == 1

    @pytest.mark.asyncio
    async def test_second_submit_patches_same_row(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        first = await service.submit(
            db, form_id=form.id, participant_id=participant.id, responses={"q1": "a"},
        )
        second = await service.submit(
            db, form_id=form.id, participant_id=participant.id,
            responses={"q1": "b", "cb": True}, furthest_page=2, is_complete=True,
        )
        assert second.id == first.id
        assert second.responses == {"q1": "b", "cb": True}
        assert second.is_complete
        assert len(registry.store.responses) == 1

    @pytest.mark.asyncio
    async def test_new_version_needs_new_row(self, registry, study, participant, service, db):
        v1 = registry.add_form(study, "demographics")
        v2 = registry.add_form(study, "demographics", version=2)
        a = await service.submit(db, form_id=v1.id, participant_id=participant.id, responses={})
        b = await service.submit(db, form_id=v2.id, participant_id=participant.id, responses={})
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_unknown_form(self, service, participant, db):
        with pytest.raises(NotFoundError):
            await service.submit(db, form_id=uuid.uuid4(), participant_id=participant.id, responses={})

    @pytest.mark.asyncio
    async def test_not_enrolled(self, registry, study, service, db):
        form = registry.add_form(study, "demographics")
        outsider = registry.add_participant()
        with pytest.raises(ForbiddenError):
            await service.submit(db, form_id=form.id, participant_id=outsider.id, responses={})

    @pytest.mark.asyncio
    async def test_negative_furthest_page(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        with pytest.raises(ValidationError):
            await service.submit(
                db, form_id=form.id, participant_id=participant.id,
                responses={}, furthest_page=-1,
            )

    @pytest.mark.asyncio
    async def test_concurrent_first_save_is_conflict(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        registry.responses.get_for_form_and_participant = AsyncMock(return_value=None)
        registry.add_response(form, participant)
        with pytest.raises(ConflictError):
            await service.submit(db, form_id=form.id, participant_id=participant.id, responses={})


class TestValidateResponses:
    def test_strings_and_booleans(self):
        assert validate_responses({"a": "x", "b": True}) == {"a": "x", "b": True}

    @pytest.mark.parametrize("value", [1, 1.5, None, ["x"], {"k": "v"}])
    def test_rejects_other_types(self, value):
        with pytest.raises(ValidationError):
            validate_responses({"a": value})

    def test_rejects_non_mapping(self):
        with pytest.raises(ValidationError):
            validate_responses(["a"])


class TestSideEffects:
    @pytest.mark.asyncio
    async def test_registry_consent_sets_contact_permission(self, registry, study, participant, service, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        await service.submit(
            db, form_id=consent.id, participant_id=participant.id,
            responses={"agree": True}, is_complete=True,
        )
        assert participant.contact_permission_confirmed is not None

    @pytest.mark.asyncio
    async def test_incomplete_consent_has_no_effect(self, registry, study, participant, service, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        await service.submit(
            db, form_id=consent.id, participant_id=participant.id,
            responses={"agree": True},
        )
        assert participant.contact_permission_confirmed is None

    @pytest.mark.asyncio
    async def test_consent_in_other_study_ignored(self, registry, participant, service, db):
        other = registry.add_study("other-study")
        registry.store.enrollments.add((other.id, participant.id))
        consent = registry.add_form(other, "consent", FormType.CONSENT)
        await service.submit(
            db, form_id=consent.id, participant_id=participant.id,
            responses={}, is_complete=True,
        )
        assert participant.contact_permission_confirmed is None

    @pytest.mark.asyncio
    async def test_profile_fields_copied(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        await service.submit(
            db, form_id=form.id, participant_id=participant.id,
            responses={"first-name": "Ada", "last-name": "Lovelace", "birthdate": "1815-12-10"},
            is_complete=True,
        )
        assert participant.first_name == "Ada"
        assert participant.last_name == "Lovelace"
        assert participant.birthdate == date(1815, 12, 10)

    @pytest.mark.asyncio
    async def test_names_copied_only_as_pair(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        await service.submit(
            db, form_id=form.id, participant_id=participant.id,
            responses={"first-name": "Ada"}, is_complete=True,
        )
        assert participant.first_name is None

    @pytest.mark.asyncio
    async def test_bad_birthdate_skipped(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        info = await service.submit(
            db, form_id=form.id, participant_id=participant.id,
            responses={"birthdate": "tenth of december"}, is_complete=True,
        )
        assert info.is_complete
        assert participant.birthdate is None


class TestReads:
    @pytest.mark.asyncio
    async def test_get_response_owner_check(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        row = registry.add_response(form, participant)
        info = await service.get_response(db, row.id, participant_id=participant.id)
        assert info.id == str(row.id)
        with pytest.raises(ForbiddenError):
            await service.get_response(db, row.id, participant_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_get_missing_response(self, service, db):
        with pytest.raises(NotFoundError):
            await service.get_response(db, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_get_for_form_not_started(self, registry, study, participant, service, db):
        form = registry.add_form(study, "demographics")
        assert await service.get_for_form(db, form.id, participant.id) is None
