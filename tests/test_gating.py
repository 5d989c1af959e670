"""ModuleGatingResolver tests — consent-then-modules gating.

Scenarios:
  - only consent exists and is incomplete → CONSENT listing with one form
  - consent complete → every module lacking a complete response, by name
  - a consent revision re-gates participants who completed the old version
  - participants outside the registry study get an empty MODULE listing
"""

import pytest

from registry_db.models.enums import FormType
from registry_forms.errors import BadRequestError
from registry_forms.gating import (
    GatingState,
    ModuleGatingResolver,
    gating_state,
    select_outstanding,
)
from registry_forms.models.form import FormResponseInfo, ResponsePlaceholder


@pytest.fixture
def study(registry):
    return registry.add_study("connect")


@pytest.fixture
def participant(registry, study):
    return registry.add_participant(enrolled_in=study)


@pytest.fixture
def resolver(registry):
    return ModuleGatingResolver(
        registry_external_id="connect",
        forms=registry.forms,
        responses=registry.responses,
        directory=registry.directory,
    )


class TestConsentPhase:
    @pytest.mark.asyncio
    async def test_only_consent_incomplete(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.CONSENT
        assert listing.total == 1
        assert listing.data[0].id == str(consent.id)
        assert isinstance(listing.data[0].form_responses, ResponsePlaceholder)
        assert gating_state(listing) == GatingState.NEEDS_CONSENT

    @pytest.mark.asyncio
    async def test_consent_hides_modules(self, registry, study, participant, resolver, db):
        registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_form(study, "demographics")
        registry.add_form(study, "communication")
        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.CONSENT
        assert [f.name for f in listing.data] == ["consent"]

    @pytest.mark.asyncio
    async def test_in_progress_consent_is_attached(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_response(consent, participant, responses={"a": "b"}, furthest_page=1)
        listing = await resolver.resolve(db, participant.id)
        attached = listing.data[0].form_responses
        assert isinstance(attached, FormResponseInfo)
        assert attached.furthest_page == 1
        assert not attached.is_complete

    @pytest.mark.asyncio
    async def test_revised_consent_regates(self, registry, study, participant, resolver, db):
        v1 = registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_response(v1, participant, is_complete=True)
        registry.add_form(study, "demographics")
        assert (await resolver.resolve(db, participant.id)).type == FormType.MODULE

        v2 = registry.add_form(study, "consent", FormType.CONSENT, version=2)
        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.CONSENT
        assert listing.data[0].id == str(v2.id)
        assert listing.data[0].version == 2
        assert isinstance(listing.data[0].form_responses, ResponsePlaceholder)


class TestModulePhase:
    @pytest.mark.asyncio
    async def test_outstanding_modules_by_name(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_response(consent, participant, is_complete=True)
        demographics = registry.add_form(study, "demographics")
        registry.add_form(study, "communication")

        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.MODULE
        assert [f.name for f in listing.data] == ["communication", "demographics"]

        registry.add_response(demographics, participant, is_complete=True)
        listing = await resolver.resolve(db, participant.id)
        assert [f.name for f in listing.data] == ["communication"]
        assert gating_state(listing) == GatingState.NEEDS_MODULES

    @pytest.mark.asyncio
    async def test_all_complete_is_empty_module_listing(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        module = registry.add_form(study, "demographics")
        registry.add_response(consent, participant, is_complete=True)
        registry.add_response(module, participant, is_complete=True)
        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.MODULE
        assert listing.total == 0
        assert listing.data == []
        assert gating_state(listing) == GatingState.ALL_COMPLETE

    @pytest.mark.asyncio
    async def test_new_module_reenters_needs_modules(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_response(consent, participant, is_complete=True)
        assert gating_state(await resolver.resolve(db, participant.id)) == GatingState.ALL_COMPLETE
        registry.add_form(study, "lifestyle")
        assert gating_state(await resolver.resolve(db, participant.id)) == GatingState.NEEDS_MODULES

    @pytest.mark.asyncio
    async def test_revised_module_reopens(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        module = registry.add_form(study, "demographics")
        registry.add_response(consent, participant, is_complete=True)
        registry.add_response(module, participant, is_complete=True)
        registry.add_form(study, "demographics", version=2)
        listing = await resolver.resolve(db, participant.id)
        assert [(f.name, f.version) for f in listing.data] == [("demographics", 2)]

    @pytest.mark.asyncio
    async def test_modules_without_consent_form(self, registry, study, participant, resolver, db):
        registry.add_form(study, "demographics")
        listing = await resolver.resolve(db, participant.id)
        assert listing.type == FormType.MODULE
        assert listing.total == 1


class TestScoping:
    @pytest.mark.asyncio
    async def test_not_enrolled_gets_empty(self, registry, study, resolver, db):
        registry.add_form(study, "consent", FormType.CONSENT)
        outsider = registry.add_participant()
        listing = await resolver.resolve(db, outsider.id)
        assert listing.type == FormType.MODULE
        assert listing.data == []

    @pytest.mark.asyncio
    async def test_other_studies_never_leak(self, registry, study, participant, resolver, db):
        other = registry.add_study("other-study")
        registry.store.enrollments.add((other.id, participant.id))
        registry.add_form(other, "consent", FormType.CONSENT)
        registry.add_form(other, "other-module")
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        registry.add_response(consent, participant, is_complete=True)
        registry.add_form(study, "demographics")
        listing = await resolver.resolve(db, participant.id)
        assert [f.name for f in listing.data] == ["demographics"]

    @pytest.mark.asyncio
    async def test_missing_registry_study(self, registry, participant, db):
        resolver = ModuleGatingResolver(
            registry_external_id="nope",
            forms=registry.forms,
            responses=registry.responses,
            directory=registry.directory,
        )
        listing = await resolver.resolve(db, participant.id)
        assert listing.total == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, ""])
    async def test_participant_id_required(self, resolver, db, value):
        with pytest.raises(BadRequestError):
            await resolver.resolve(db, value)

    @pytest.mark.asyncio
    async def test_malformed_participant_id(self, resolver, db):
        with pytest.raises(BadRequestError):
            await resolver.resolve(db, "not-a-uuid")

    @pytest.mark.asyncio
    async def test_string_participant_id_accepted(self, registry, study, participant, resolver, db):
        registry.add_form(study, "consent", FormType.CONSENT)
        listing = await resolver.resolve(db, str(participant.id))
        assert listing.type == FormType.CONSENT


class TestCompletedResponses:
    @pytest.mark.asyncio
    async def test_completed_consent_first(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        alpha = registry.add_form(study, "alpha")
        beta = registry.add_form(study, "beta")
        registry.add_response(beta, participant, is_complete=True)
        registry.add_response(consent, participant, is_complete=True)
        registry.add_response(alpha, participant, is_complete=False)
        done = await resolver.completed_responses(db, participant.id)
        assert [f.name for f in done] == ["consent", "beta"]
        assert all(f.form_responses.is_complete for f in done)

    @pytest.mark.asyncio
    async def test_type_filter(self, registry, study, participant, resolver, db):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        module = registry.add_form(study, "demographics")
        registry.add_response(consent, participant, is_complete=True)
        registry.add_response(module, participant, is_complete=True)
        done = await resolver.completed_responses(db, participant.id, form_type=FormType.MODULE)
        assert [f.name for f in done] == ["demographics"]

    @pytest.mark.asyncio
    async def test_requires_participant(self, resolver, db):
        with pytest.raises(BadRequestError):
            await resolver.completed_responses(db, None)


class TestSelectOutstanding:
    def test_pure_rule(self, registry, study, participant):
        consent = registry.add_form(study, "consent", FormType.CONSENT)
        module = registry.add_form(study, "m")
        done = registry.add_response(consent, participant, is_complete=True)
        kind, forms = select_outstanding([consent, module], {consent.id: done})
        assert kind == FormType.MODULE
        assert forms == [module]

    def test_no_forms(self):
        assert select_outstanding([], {}) == (FormType.MODULE, [])
