"""
Questionnaire state machine tests: flows, step gates, navigation,
image handling and submission
"""
import asyncio

import pytest

from images import encode_batch
from models import ServiceType, View
from questionnaire import (
    FLOWS,
    ImageLimitError,
    InvalidEmailError,
    InvalidTransitionError,
    FormValidationError,
    Questionnaire,
    QuestionnaireError,
    SessionRegistry,
    Step,
    StepIncompleteError,
    get_total_steps,
    is_valid_email,
)
from repositories import InquiryRepository
from storage import InMemoryKeyValueStore


async def fake_encode(files):
    return [f"data:image/png;base64,{name}" for name in files]


def at_step(service, step):
    """Questionnaire positioned on the given step without running the gates"""
    q = Questionnaire()
    q.select_service(service)
    q.current_step = FLOWS[service].index(step) + 1
    return q


class TestFlows:
    """Step counts and step order per service"""

    @pytest.mark.parametrize("service,total", [
        (ServiceType.UMZUG, 8),
        (ServiceType.TRANSPORT, 6),
        (ServiceType.ENTSORGUNG, 6),
        (None, 5),
    ])
    def test_total_steps(self, service, total):
        assert get_total_steps(service) == total

    def test_contact_last_and_images_second_to_last(self):
        for service, flow in FLOWS.items():
            assert flow[-1] == Step.CONTACT
            assert flow[-2] == Step.IMAGES
            assert flow[0] == Step.SUBCATEGORY
            assert len(flow) == get_total_steps(service)


class TestNavigation:
    """Service selection, sub-category and back navigation"""

    def test_select_service_resets_form(self):
        q = Questionnaire()
        q.select_service(ServiceType.UMZUG)
        q.update({"firstName": "Max"})
        q.select_service(ServiceType.TRANSPORT)
        assert q.current_step == 1
        assert q.view == View.QUESTIONNAIRE
        assert q.form.serviceType == ServiceType.TRANSPORT
        assert q.form.firstName is None

    @pytest.mark.parametrize("service,value,field", [
        (ServiceType.UMZUG, "geschaeftlich", "umzugType"),
        (ServiceType.TRANSPORT, "mobel", "transportType"),
        (ServiceType.ENTSORGUNG, "sperrmull", "entsorgungType"),
    ])
    def test_subcategory_advances(self, service, value, field):
        q = Questionnaire()
        q.select_service(service)
        q.select_subcategory(value)
        assert getattr(q.form.details, field).value == value
        assert q.current_step == 2
        assert q.step == Step.PICKUP

    def test_subcategory_rejects_unknown_value(self):
        q = Questionnaire()
        q.select_service(ServiceType.UMZUG)
        with pytest.raises(FormValidationError):
            q.select_subcategory("sperrmull")
        assert q.current_step == 1

    def test_subcategory_only_on_first_step(self):
        q = at_step(ServiceType.UMZUG, Step.PICKUP)
        with pytest.raises(InvalidTransitionError):
            q.select_subcategory("privat")

    def test_back_decrements(self):
        q = at_step(ServiceType.UMZUG, Step.DESTINATION)
        q.back()
        assert q.current_step == 2

    def test_back_from_first_step_goes_home_and_keeps_form(self):
        q = Questionnaire()
        q.select_service(ServiceType.ENTSORGUNG)
        q.update({"additionalInfo": "Altes Sofa"})
        q.back()
        assert q.view == View.HOME
        assert q.current_step == 0
        assert q.form.additionalInfo == "Altes Sofa"

    def test_continue_from_home_rejected(self):
        q = Questionnaire()
        q.select_service(ServiceType.UMZUG)
        q.back()
        with pytest.raises(InvalidTransitionError):
            q.advance()
        assert q.view == View.HOME
        assert q.current_step == 0

    def test_progress(self):
        q = at_step(ServiceType.TRANSPORT, Step.DESTINATION)
        assert q.progress() == pytest.approx(50.0)


class TestStepGates:
    """Continue is only allowed once a step's required fields are set"""

    def test_pickup_requires_street_and_zip(self):
        q = at_step(ServiceType.UMZUG, Step.PICKUP)
        q.update({"pickupAddress": "Musterstraße 12"})
        with pytest.raises(StepIncompleteError):
            q.advance()
        q.update({"pickupZip": "10115"})
        q.advance()
        assert q.step == Step.DESTINATION

    def test_whitespace_does_not_count(self):
        q = at_step(ServiceType.TRANSPORT, Step.ITEMS)
        q.update({"transportItems": "   "})
        assert not q.can_advance()

    def test_property_requires_both_buckets(self):
        q = at_step(ServiceType.UMZUG, Step.PROPERTY)
        q.update({"livingSpace": "Über 150 m²"})
        with pytest.raises(StepIncompleteError):
            q.advance()
        q.update({"rooms": "5+"})
        q.advance()
        assert q.step == Step.EXTRAS

    def test_extras_have_no_gate(self):
        q = at_step(ServiceType.UMZUG, Step.EXTRAS)
        q.advance()
        assert q.step == Step.SCHEDULE

    def test_schedule_fixed_needs_date(self):
        q = at_step(ServiceType.ENTSORGUNG, Step.SCHEDULE)
        with pytest.raises(StepIncompleteError):
            q.advance()
        q.update({"dateType": "fixed"})
        with pytest.raises(StepIncompleteError):
            q.advance()
        q.update({"moveDate": "2026-11-02"})
        q.advance()
        assert q.step == Step.IMAGES

    def test_schedule_flexible_needs_no_date(self):
        q = at_step(ServiceType.UMZUG, Step.SCHEDULE)
        q.update({"dateType": "flexible"})
        q.advance()
        assert q.step == Step.IMAGES

    def test_waste_amount_required(self):
        q = at_step(ServiceType.ENTSORGUNG, Step.WASTE)
        q.update({"additionalInfo": "Keller"})
        assert not q.can_advance()
        q.update({"wasteAmount": "Mittel (1-3 m³)"})
        q.advance()
        assert q.step == Step.SCHEDULE

    def test_images_step_requires_one_image(self):
        q = at_step(ServiceType.TRANSPORT, Step.IMAGES)
        with pytest.raises(StepIncompleteError):
            q.advance()

    def test_contact_step_cannot_continue(self):
        q = at_step(ServiceType.TRANSPORT, Step.CONTACT)
        with pytest.raises(InvalidTransitionError):
            q.advance()


class TestFormUpdates:
    """Fields are scoped to the active flow"""

    def test_field_from_other_flow_rejected(self):
        q = Questionnaire()
        q.select_service(ServiceType.ENTSORGUNG)
        with pytest.raises(FormValidationError):
            q.update({"needsPacking": True})
        with pytest.raises(FormValidationError):
            q.update({"destinationAddress": "Hauptstraße 5"})

    def test_bucket_labels_validated(self):
        q = Questionnaire()
        q.select_service(ServiceType.UMZUG)
        with pytest.raises(FormValidationError):
            q.update({"rooms": "7"})
        assert q.form.details.rooms is None

    def test_update_before_service_rejected(self):
        with pytest.raises(InvalidTransitionError):
            Questionnaire().update({"firstName": "Max"})

    def test_images_not_settable_directly(self):
        q = Questionnaire()
        q.select_service(ServiceType.UMZUG)
        with pytest.raises(FormValidationError):
            q.update({"images": ["data:x"]})


class TestImages:
    """Batch image upload with a limit of 10"""

    @pytest.mark.asyncio
    async def test_eleven_files_keep_first_ten(self):
        q = at_step(ServiceType.UMZUG, Step.IMAGES)
        files = [f"img{i}" for i in range(11)]
        added = await q.add_images(files, fake_encode)
        assert added == 10
        assert q.form.images == [f"data:image/png;base64,img{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_full_batch_rejected(self):
        q = at_step(ServiceType.UMZUG, Step.IMAGES)
        await q.add_images([f"img{i}" for i in range(10)], fake_encode)
        with pytest.raises(ImageLimitError):
            await q.add_images(["extra"], fake_encode)
        assert len(q.form.images) == 10

    @pytest.mark.asyncio
    async def test_partial_slots(self):
        q = at_step(ServiceType.ENTSORGUNG, Step.IMAGES)
        await q.add_images(["a", "b", "c", "d", "e", "f", "g", "h"], fake_encode)
        added = await q.add_images(["i", "j", "k", "l"], fake_encode)
        assert added == 2
        assert q.form.images[-2:] == ["data:image/png;base64,i", "data:image/png;base64,j"]

    @pytest.mark.asyncio
    async def test_overlapping_batches_stay_within_limit(self):
        q = at_step(ServiceType.UMZUG, Step.IMAGES)

        async def slow_encode(files):
            await asyncio.sleep(0.01)
            return await fake_encode(files)

        await asyncio.gather(
            q.add_images([f"a{i}" for i in range(6)], slow_encode),
            q.add_images([f"b{i}" for i in range(6)], slow_encode),
        )
        assert len(q.form.images) == 10

    @pytest.mark.asyncio
    async def test_encode_batch_keeps_selection_order(self):
        delays = {"first": 0.03, "second": 0.0, "third": 0.01}

        async def encode(name):
            await asyncio.sleep(delays[name])
            return name.upper()

        result = await encode_batch(["first", "second", "third"], encode=encode)
        assert result == ["FIRST", "SECOND", "THIRD"]

    @pytest.mark.asyncio
    async def test_remove_image_preserves_order(self):
        q = at_step(ServiceType.TRANSPORT, Step.IMAGES)
        await q.add_images(["a", "b", "c"], fake_encode)
        q.remove_image(1)
        assert q.form.images == ["data:image/png;base64,a", "data:image/png;base64,c"]
        with pytest.raises(FormValidationError):
            q.remove_image(5)

    @pytest.mark.asyncio
    async def test_upload_outside_images_step(self):
        q = at_step(ServiceType.TRANSPORT, Step.ITEMS)
        with pytest.raises(InvalidTransitionError):
            await q.add_images(["a"], fake_encode)


class TestSubmission:
    """Contact validation and hand-off to the inquiry repository"""

    def contact_ready(self, email):
        q = at_step(ServiceType.TRANSPORT, Step.CONTACT)
        q.update({
            "pickupAddress": "Musterstraße 12",
            "firstName": "Erika",
            "lastName": "Musterfrau",
            "email": email,
            "phone": "0170 1234567",
        })
        return q

    @pytest.mark.parametrize("email,valid", [
        ("a@b.co", True),
        ("max.mustermann@example.de", True),
        ("not-an-email", False),
        ("a@b", False),
        ("a b@c.de", False),
        ("", False),
    ])
    def test_email_pattern(self, email, valid):
        assert is_valid_email(email) is valid

    @pytest.mark.asyncio
    async def test_invalid_email_not_submitted(self):
        repo = InquiryRepository(InMemoryKeyValueStore())
        q = self.contact_ready("not-an-email")
        with pytest.raises(InvalidEmailError):
            await q.submit(repo)
        assert await repo.list() == []
        assert q.step == Step.CONTACT
        assert q.form.email == "not-an-email"

    @pytest.mark.asyncio
    async def test_missing_phone_not_submitted(self):
        repo = InquiryRepository(InMemoryKeyValueStore())
        q = self.contact_ready("a@b.co")
        q.update({"phone": ""})
        with pytest.raises(StepIncompleteError):
            await q.submit(repo)
        assert await repo.list() == []

    @pytest.mark.asyncio
    async def test_valid_submission(self):
        repo = InquiryRepository(InMemoryKeyValueStore())
        q = self.contact_ready("a@b.co")
        inquiry_id = await q.submit(repo)
        stored = await repo.find_by_id(inquiry_id)
        assert stored.formData.email == "a@b.co"
        assert stored.formData.details.pickupAddress == "Musterstraße 12"
        assert q.view == View.SUCCESS
        assert q.form is None

    @pytest.mark.asyncio
    async def test_submit_only_from_contact_step(self):
        q = at_step(ServiceType.UMZUG, Step.SCHEDULE)
        with pytest.raises(InvalidTransitionError):
            await q.submit(InquiryRepository(InMemoryKeyValueStore()))


async def on_home_view():
    q = at_step(ServiceType.ENTSORGUNG, Step.SUBCATEGORY)
    q.back()
    return q


async def on_success_view():
    q = at_step(ServiceType.TRANSPORT, Step.CONTACT)
    q.update({
        "pickupAddress": "Musterstraße 12",
        "firstName": "Erika",
        "lastName": "Musterfrau",
        "email": "erika@example.de",
        "phone": "0170 1234567",
    })
    await q.submit(InquiryRepository(InMemoryKeyValueStore()))
    return q


async def do_advance(q):
    q.advance()


async def do_add_images(q):
    await q.add_images(["a"], fake_encode)


async def do_remove_image(q):
    q.remove_image(0)


class TestInactiveViews:
    """Step actions on the home and success views leave the session unchanged"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("make_session,view", [
        (on_home_view, View.HOME),
        (on_success_view, View.SUCCESS),
    ])
    @pytest.mark.parametrize("action", [do_advance, do_add_images, do_remove_image])
    async def test_step_action_rejected(self, make_session, view, action):
        q = await make_session()
        with pytest.raises(QuestionnaireError):
            await action(q)
        assert q.view == view
        assert q.current_step == 0


class TestSessionRegistry:

    def test_create_get_discard(self):
        registry = SessionRegistry()
        session = registry.create()
        assert registry.get(session.id) is session
        registry.discard(session.id)
        with pytest.raises(KeyError):
            registry.get(session.id)
        assert len(registry) == 0
