"""
Multi-step inquiry questionnaire.

Each service type has a fixed flow of steps. Step 0 is the home screen,
step 1 always picks the sub-category, the second-to-last step collects
photos and the last step is the contact form. Leaving a step requires
its gate to pass; submission hands the collected form to the inquiry
repository.
"""
import logging
import re
import uuid
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from models import (
    DETAILS_BY_SERVICE,
    MAX_IMAGES,
    DateType,
    EntsorgungType,
    FormData,
    ServiceType,
    TransportType,
    UmzugType,
    View,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


class QuestionnaireError(ValueError):
    """Base class for recoverable questionnaire errors"""


class StepIncompleteError(QuestionnaireError):
    pass


class InvalidEmailError(QuestionnaireError):
    pass


class ImageLimitError(QuestionnaireError):
    pass


class InvalidTransitionError(QuestionnaireError):
    pass


class FormValidationError(QuestionnaireError):
    pass


class Step(str, Enum):
    HOME = "home"
    SUBCATEGORY = "subcategory"
    PICKUP = "pickup"
    DESTINATION = "destination"
    PROPERTY = "property"
    EXTRAS = "extras"
    SCHEDULE = "schedule"
    ITEMS = "items"
    WASTE = "waste"
    IMAGES = "images"
    CONTACT = "contact"


FLOWS: Dict[ServiceType, tuple] = {
    ServiceType.UMZUG: (
        Step.SUBCATEGORY, Step.PICKUP, Step.DESTINATION, Step.PROPERTY,
        Step.EXTRAS, Step.SCHEDULE, Step.IMAGES, Step.CONTACT,
    ),
    ServiceType.TRANSPORT: (
        Step.SUBCATEGORY, Step.PICKUP, Step.DESTINATION, Step.ITEMS,
        Step.IMAGES, Step.CONTACT,
    ),
    ServiceType.ENTSORGUNG: (
        Step.SUBCATEGORY, Step.PICKUP, Step.WASTE, Step.SCHEDULE,
        Step.IMAGES, Step.CONTACT,
    ),
}

# Placeholder length before a service is picked
DEFAULT_TOTAL_STEPS = 5

SUBCATEGORY_FIELDS = {
    ServiceType.UMZUG: ("umzugType", UmzugType),
    ServiceType.TRANSPORT: ("transportType", TransportType),
    ServiceType.ENTSORGUNG: ("entsorgungType", EntsorgungType),
}

MSG_INCOMPLETE = "Bitte füllen Sie alle Pflichtfelder aus"
MSG_INVALID_EMAIL = "Bitte geben Sie eine gültige E-Mail-Adresse ein"
MSG_IMAGE_LIMIT = "Maximal 10 Bilder erlaubt"
MSG_IMAGES_REQUIRED = "Bitte laden Sie mindestens ein Bild hoch"


def get_total_steps(service_type: Optional[ServiceType]) -> int:
    if service_type is None:
        return DEFAULT_TOTAL_STEPS
    return len(FLOWS[ServiceType(service_type)])


def step_for(service_type: Optional[ServiceType], index: int) -> Step:
    if service_type is None or index <= 0:
        return Step.HOME
    flow = FLOWS[ServiceType(service_type)]
    if index > len(flow):
        raise InvalidTransitionError(f"Step {index} does not exist for {service_type.value}")
    return flow[index - 1]


def _filled(value) -> bool:
    if isinstance(value, str):
        return value.strip() != ""
    return value is not None


# Gates checked before leaving a step
def _subcategory_done(form: FormData) -> bool:
    field, _ = SUBCATEGORY_FIELDS[form.serviceType]
    return _filled(getattr(form.details, field))

def _pickup_done(form: FormData) -> bool:
    return _filled(form.details.pickupAddress) and _filled(form.details.pickupZip)

def _destination_done(form: FormData) -> bool:
    return _filled(form.details.destinationAddress) and _filled(form.details.destinationZip)

def _property_done(form: FormData) -> bool:
    return _filled(form.details.livingSpace) and _filled(form.details.rooms)

def _schedule_done(form: FormData) -> bool:
    if form.dateType is None:
        return False
    return form.dateType != DateType.FIXED or _filled(form.moveDate)

def _items_done(form: FormData) -> bool:
    return _filled(form.details.transportItems)

def _waste_done(form: FormData) -> bool:
    return _filled(form.details.wasteAmount)

def _images_done(form: FormData) -> bool:
    return 1 <= len(form.images) <= MAX_IMAGES

def _contact_done(form: FormData) -> bool:
    return all(_filled(v) for v in (form.firstName, form.lastName, form.email, form.phone))


STEP_GATES: Dict[Step, Callable[[FormData], bool]] = {
    Step.SUBCATEGORY: _subcategory_done,
    Step.PICKUP: _pickup_done,
    Step.DESTINATION: _destination_done,
    Step.PROPERTY: _property_done,
    Step.EXTRAS: lambda form: True,
    Step.SCHEDULE: _schedule_done,
    Step.ITEMS: _items_done,
    Step.WASTE: _waste_done,
    Step.IMAGES: _images_done,
    Step.CONTACT: _contact_done,
}


class Questionnaire:
    """State of one visitor's questionnaire: view, step index and form"""

    def __init__(self, session_id: str = None):
        self.id = session_id or str(uuid.uuid4())
        self.view = View.HOME
        self.current_step = 0
        self.form: Optional[FormData] = None

    @property
    def service_type(self) -> Optional[ServiceType]:
        return self.form.serviceType if self.form else None

    @property
    def total_steps(self) -> int:
        return get_total_steps(self.service_type)

    @property
    def step(self) -> Step:
        return step_for(self.service_type, self.current_step)

    def progress(self) -> float:
        return self.current_step / self.total_steps * 100

    def can_advance(self) -> bool:
        if self.form is None or self.step in (Step.HOME, Step.CONTACT):
            return False
        return STEP_GATES[self.step](self.form)

    def _require_step(self, step: Step) -> None:
        if self.view != View.QUESTIONNAIRE or self.step != step:
            raise InvalidTransitionError(
                f"Action only available on the '{step.value}' step (current: '{self.step.value}')"
            )

    def _require_form(self) -> FormData:
        if self.form is None:
            raise InvalidTransitionError("No service selected")
        return self.form

    def select_service(self, service_type: ServiceType) -> None:
        self.form = FormData.for_service(ServiceType(service_type))
        self.current_step = 1
        self.view = View.QUESTIONNAIRE

    def select_subcategory(self, value: str) -> None:
        self._require_step(Step.SUBCATEGORY)
        field, enum_type = SUBCATEGORY_FIELDS[self.form.serviceType]
        try:
            choice = enum_type(value)
        except ValueError:
            options = ", ".join(e.value for e in enum_type)
            raise FormValidationError(f"{field} must be one of: {options}")
        setattr(self.form.details, field, choice)
        self.current_step = 2

    def update(self, fields: Dict) -> None:
        """Merge a partial set of form fields. Fields outside the active flow
        are rejected."""
        form = self._require_form()
        allowed = form.allowed_fields()
        unknown = sorted(k for k in fields if k not in allowed)
        if unknown:
            raise FormValidationError(
                f"Fields not part of the {form.serviceType.value} flow: {', '.join(unknown)}"
            )

        envelope = form.model_dump(exclude={"details"})
        details = form.details.model_dump()
        for key, value in fields.items():
            if key in details:
                details[key] = value
            else:
                envelope[key] = value
        try:
            details_model = DETAILS_BY_SERVICE[form.serviceType].model_validate(details)
            self.form = FormData.model_validate({**envelope, "details": details_model})
        except ValidationError as e:
            raise FormValidationError(str(e))

    def advance(self) -> None:
        form = self._require_form()
        step = self.step
        if self.view != View.QUESTIONNAIRE or step == Step.HOME:
            raise InvalidTransitionError("No questionnaire step is active")
        if step == Step.CONTACT:
            raise InvalidTransitionError("The contact step is completed by submitting")
        if not STEP_GATES[step](form):
            message = MSG_IMAGES_REQUIRED if step == Step.IMAGES else MSG_INCOMPLETE
            raise StepIncompleteError(message)
        self.current_step += 1

    def back(self) -> None:
        if self.current_step > 1:
            self.current_step -= 1
        else:
            # form data survives a trip back to the home screen
            self.view = View.HOME
            self.current_step = 0

    def remaining_image_slots(self) -> int:
        form = self._require_form()
        return MAX_IMAGES - len(form.images)

    async def add_images(
        self,
        files: Sequence,
        encode: Callable[[Sequence], Awaitable[List[str]]]
    ) -> int:
        """Encode and attach a batch of uploads. Only as many files as there
        are free slots are taken; the batch is committed once every accepted
        file has been encoded. Returns the number of images added."""
        self._require_step(Step.IMAGES)
        remaining = self.remaining_image_slots()
        if remaining <= 0:
            raise ImageLimitError(MSG_IMAGE_LIMIT)

        accepted = list(files)[:remaining]
        encoded = await encode(accepted)

        # another batch may have landed while this one was encoding
        free = self.remaining_image_slots()
        encoded = encoded[:max(free, 0)]
        self.form.images = self.form.images + encoded
        logger.debug("Session %s: attached %d image(s)", self.id, len(encoded))
        return len(encoded)

    def remove_image(self, index: int) -> None:
        self._require_step(Step.IMAGES)
        images = self.form.images
        if index < 0 or index >= len(images):
            raise FormValidationError(f"No image at position {index}")
        self.form.images = images[:index] + images[index + 1:]

    async def submit(self, repository) -> str:
        self._require_step(Step.CONTACT)
        form = self.form
        if not _contact_done(form):
            raise StepIncompleteError(MSG_INCOMPLETE)
        if not is_valid_email(form.email):
            raise InvalidEmailError(MSG_INVALID_EMAIL)

        inquiry_id = await repository.add(form)
        self.view = View.SUCCESS
        self.current_step = 0
        self.form = None
        return inquiry_id

    def restart(self) -> None:
        self.view = View.HOME
        self.current_step = 0
        self.form = None

    def snapshot(self) -> Dict:
        return {
            "sessionId": self.id,
            "view": self.view.value,
            "currentStep": self.current_step,
            "stepName": self.step.value,
            "totalSteps": self.total_steps,
            "progress": round(self.progress(), 2),
            "canAdvance": self.can_advance(),
            "formData": self.form.model_dump(mode="json") if self.form else None,
        }


class SessionRegistry:
    """In-process questionnaire sessions keyed by session id"""

    def __init__(self):
        self._sessions: Dict[str, Questionnaire] = {}

    def create(self) -> Questionnaire:
        session = Questionnaire()
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Questionnaire:
        return self._sessions[session_id]

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self):
        return len(self._sessions)
