"""FormVersionResolver tests with in-memory repositories.

Covers version 1 creation, max+1 revisions, type carry-over, conflict
retries, and the lookups used by the forms API.
"""

import uuid

import pytest

from registry_db.models.enums import FormType
from registry_forms.errors import ConflictError, NotFoundError, ValidationError
from registry_forms.versioning import FormVersionResolver

from helpers.fakes import RacingFormRepository

SCHEMA_V1 = {"title": "Demographics", "pages": [{"components": [{"id": "age", "type": "text"}]}]}
SCHEMA_V2 = {"title": "Demographics", "pages": [{"components": [{"id": "dob", "type": "date"}]}]}


@pytest.fixture
def study(registry):
    return registry.add_study()


@pytest.fixture
def resolver(registry):
    return FormVersionResolver(forms=registry.forms, directory=registry.directory)


class TestCreateForm:
    @pytest.mark.asyncio
    async def test_creates_version_one(self, resolver, study, db):
        info = await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1, created_by="admin1",
        )
        assert info.version == 1
        assert info.type == FormType.MODULE
        assert info.form_schema == SCHEMA_V1
        assert info.created_by == "admin1"

    @pytest.mark.asyncio
    async def test_duplicate_is_validation_error(self, resolver, study, db):
        await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        with pytest.raises(ValidationError):
            await resolver.create_form(
                db, study_id=study.id, name="demographics",
                form_type=FormType.MODULE, schema=SCHEMA_V1,
            )

    @pytest.mark.asyncio
    async def test_same_name_in_other_study_is_allowed(self, registry, resolver, study, db):
        other = registry.add_study("other-study")
        await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        info = await resolver.create_form(
            db, study_id=other.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        assert info.version == 1

    @pytest.mark.asyncio
    async def test_unknown_study(self, resolver, db):
        with pytest.raises(NotFoundError):
            await resolver.create_form(
                db, study_id=uuid.uuid4(), name="x",
                form_type=FormType.MODULE, schema=SCHEMA_V1,
            )

    @pytest.mark.asyncio
    async def test_invalid_schema(self, resolver, study, db):
        bad = {"pages": [{"components": [{"id": "a"}]}]}  # missing type
        with pytest.raises(ValidationError):
            await resolver.create_form(
                db, study_id=study.id, name="x",
                form_type=FormType.MODULE, schema=bad,
            )


class TestReviseForm:
    @pytest.mark.asyncio
    async def test_revisions_are_sequential(self, resolver, study, db):
        await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        versions = []
        for _ in range(3):
            info = await resolver.revise_form(
                db, study_id=study.id, name="demographics", schema=SCHEMA_V2,
            )
            versions.append(info.version)
        assert versions == [2, 3, 4]
        current = await resolver.get_current(db, study.id, "demographics")
        assert current.version == 4

    @pytest.mark.asyncio
    async def test_prior_versions_untouched(self, resolver, study, db):
        v1 = await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        await resolver.revise_form(db, study_id=study.id, name="demographics", schema=SCHEMA_V2)
        reloaded = await resolver.get_form(db, uuid.UUID(v1.id))
        assert reloaded.version == 1
        assert reloaded.form_schema == SCHEMA_V1

    @pytest.mark.asyncio
    async def test_revise_missing_form(self, resolver, study, db):
        with pytest.raises(NotFoundError):
            await resolver.revise_form(db, study_id=study.id, name="ghost", schema=SCHEMA_V1)

    @pytest.mark.asyncio
    async def test_type_carried_over(self, resolver, study, db):
        await resolver.create_form(
            db, study_id=study.id, name="consent",
            form_type=FormType.CONSENT, schema=SCHEMA_V1,
        )
        info = await resolver.revise_form(db, study_id=study.id, name="consent", schema=SCHEMA_V2)
        assert info.type == FormType.CONSENT

    @pytest.mark.asyncio
    async def test_type_override(self, resolver, study, db):
        await resolver.create_form(
            db, study_id=study.id, name="extra",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        info = await resolver.revise_form(
            db, study_id=study.id, name="extra", schema=SCHEMA_V1,
            form_type=FormType.CONSENT,
        )
        assert info.type == FormType.CONSENT


class TestVersionConflicts:
    @pytest.mark.asyncio
    async def test_retry_after_lost_race(self, registry, study, db):
        registry.add_form(study, "demographics", schema=SCHEMA_V1)
        racing = RacingFormRepository(registry.store, losses=2)
        resolver = FormVersionResolver(forms=racing, directory=registry.directory, retries=3)
        info = await resolver.revise_form(
            db, study_id=study.id, name="demographics", schema=SCHEMA_V2,
        )
        assert info.version == 2
        assert racing.attempts == 3

    @pytest.mark.asyncio
    async def test_conflict_after_exhausting_retries(self, registry, study, db):
        registry.add_form(study, "demographics", schema=SCHEMA_V1)
        racing = RacingFormRepository(registry.store, losses=5)
        resolver = FormVersionResolver(forms=racing, directory=registry.directory, retries=3)
        with pytest.raises(ConflictError):
            await resolver.revise_form(
                db, study_id=study.id, name="demographics", schema=SCHEMA_V2,
            )
        assert racing.attempts == 3


class TestLookups:
    @pytest.mark.asyncio
    async def test_list_versions_newest_first(self, resolver, study, db):
        await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        await resolver.revise_form(db, study_id=study.id, name="demographics", schema=SCHEMA_V2)
        versions = await resolver.list_versions(db, study.id, "demographics")
        assert [v.version for v in versions] == [2, 1]

    @pytest.mark.asyncio
    async def test_list_current_consent_first(self, registry, resolver, study, db):
        registry.add_form(study, "alpha")
        registry.add_form(study, "zeta", FormType.CONSENT)
        registry.add_form(study, "alpha", version=2)
        current = await resolver.list_current(db, study.id)
        assert [(f.name, f.version) for f in current] == [("zeta", 1), ("alpha", 2)]

    @pytest.mark.asyncio
    async def test_get_missing_form(self, resolver, db):
        with pytest.raises(NotFoundError):
            await resolver.get_form(db, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_serializes_schema_key(self, resolver, study, db):
        info = await resolver.create_form(
            db, study_id=study.id, name="demographics",
            form_type=FormType.MODULE, schema=SCHEMA_V1,
        )
        dumped = info.model_dump(by_alias=True)
        assert dumped["schema"] == SCHEMA_V1
        assert "form_schema" not in dumped
