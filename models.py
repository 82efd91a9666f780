from pydantic import BaseModel, Field, field_validator
from typing import Annotated, List, Optional, Literal, Union
from datetime import datetime, timezone
import uuid
from enum import Enum

# Enums for questionnaire choices
class ServiceType(str, Enum):
    UMZUG = "umzug"
    TRANSPORT = "transport"
    ENTSORGUNG = "entsorgung"

class UmzugType(str, Enum):
    PRIVAT = "privat"
    GESCHAEFTLICH = "geschaeftlich"

class TransportType(str, Enum):
    MOBEL = "mobel"
    WAREN = "waren"
    SONSTIGES = "sonstiges"

class EntsorgungType(str, Enum):
    SPERRMULL = "sperrmull"
    HAUSHALTSAUFLOSUNG = "haushaltsauflosung"
    BAUSCHUTT = "bauschutt"
    GARTENABFALL = "gartenabfall"
    ELEKTRO = "elektro"
    SONSTIGES = "sonstiges"

class DateType(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"

class InquiryStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    COMPLETED = "completed"

class View(str, Enum):
    HOME = "home"
    QUESTIONNAIRE = "questionnaire"
    SUCCESS = "success"

# Bucketed labels offered by the form
FLOOR_OPTIONS = ["EG", "1.", "2.", "3.", "4.", "5+"]
LIVING_SPACE_OPTIONS = ["Unter 50 m²", "50-80 m²", "80-120 m²", "120-150 m²", "Über 150 m²"]
ROOM_OPTIONS = ["1", "2", "3", "4", "5+"]
WASTE_AMOUNT_OPTIONS = ["Wenig (bis 1 m³)", "Mittel (1-3 m³)", "Viel (3-5 m³)", "Sehr viel (5+ m³)"]

MAX_IMAGES = 10
LOGO_SIZE_MIN = 32
LOGO_SIZE_MAX = 120


def _check_option(value: Optional[str], options: List[str], field: str) -> Optional[str]:
    if value is not None and value not in options:
        raise ValueError(f"{field} must be one of: {', '.join(options)}")
    return value


# Per-service form payloads
class PickupFields(BaseModel):
    pickupAddress: Optional[str] = None
    pickupZip: Optional[str] = None
    pickupCity: str = "Berlin"

class DestinationFields(BaseModel):
    destinationAddress: Optional[str] = None
    destinationZip: Optional[str] = None
    destinationCity: str = "Berlin"

class UmzugDetails(PickupFields, DestinationFields):
    serviceType: Literal["umzug"] = "umzug"
    umzugType: Optional[UmzugType] = None
    pickupFloor: Optional[str] = None
    pickupElevator: bool = False
    destinationFloor: Optional[str] = None
    destinationElevator: bool = False
    livingSpace: Optional[str] = None
    rooms: Optional[str] = None
    needsPacking: bool = False
    needsStorage: bool = False
    needsCleaning: bool = False

    @field_validator("pickupFloor", "destinationFloor")
    @classmethod
    def check_floor(cls, v):
        return _check_option(v, FLOOR_OPTIONS, "floor")

    @field_validator("livingSpace")
    @classmethod
    def check_living_space(cls, v):
        return _check_option(v, LIVING_SPACE_OPTIONS, "livingSpace")

    @field_validator("rooms")
    @classmethod
    def check_rooms(cls, v):
        return _check_option(v, ROOM_OPTIONS, "rooms")

class TransportDetails(PickupFields, DestinationFields):
    serviceType: Literal["transport"] = "transport"
    transportType: Optional[TransportType] = None
    transportItems: Optional[str] = None
    transportWeight: Optional[str] = None

class EntsorgungDetails(PickupFields):
    serviceType: Literal["entsorgung"] = "entsorgung"
    entsorgungType: Optional[EntsorgungType] = None
    pickupFloor: Optional[str] = None
    pickupElevator: bool = False
    wasteAmount: Optional[str] = None

    @field_validator("pickupFloor")
    @classmethod
    def check_floor(cls, v):
        return _check_option(v, FLOOR_OPTIONS, "floor")

    @field_validator("wasteAmount")
    @classmethod
    def check_waste_amount(cls, v):
        return _check_option(v, WASTE_AMOUNT_OPTIONS, "wasteAmount")

ServiceDetails = Annotated[
    Union[UmzugDetails, TransportDetails, EntsorgungDetails],
    Field(discriminator="serviceType"),
]

DETAILS_BY_SERVICE = {
    ServiceType.UMZUG: UmzugDetails,
    ServiceType.TRANSPORT: TransportDetails,
    ServiceType.ENTSORGUNG: EntsorgungDetails,
}

# Fields shared by every flow
ENVELOPE_FIELDS = {
    "dateType", "moveDate", "additionalInfo",
    "firstName", "lastName", "email", "phone",
}

class FormData(BaseModel):
    serviceType: ServiceType
    details: ServiceDetails
    dateType: Optional[DateType] = None
    moveDate: Optional[str] = None
    additionalInfo: Optional[str] = None
    images: List[str] = []
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def for_service(cls, service_type: ServiceType) -> "FormData":
        details = DETAILS_BY_SERVICE[service_type]()
        return cls(serviceType=service_type, details=details)

    def allowed_fields(self) -> set:
        detail_fields = set(type(self.details).model_fields) - {"serviceType"}
        return ENVELOPE_FIELDS | detail_fields

# Inquiry models
class CustomerInquiry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    formData: FormData
    status: InquiryStatus = InquiryStatus.NEW

class InquiryStatusUpdate(BaseModel):
    status: InquiryStatus

# Settings models
DEFAULT_DATENSCHUTZ_TEXT = """Datenschutzerklärung

Wir nehmen den Schutz Ihrer persönlichen Daten sehr ernst.

1. Datenerhebung
Wir erheben nur die Daten, die für die Bearbeitung Ihrer Anfrage notwendig sind.

2. Datenspeicherung
Ihre Daten werden sicher gespeichert und nicht an Dritte weitergegeben.

3. Ihre Rechte
Sie haben das Recht auf Auskunft, Berichtigung und Löschung Ihrer Daten.

Bei Fragen zum Datenschutz kontaktieren Sie uns unter loadup313@gmail.com"""

class AdminSettings(BaseModel):
    logoSize: int = 48
    datenschutzText: str = DEFAULT_DATENSCHUTZ_TEXT
    instagramUrl: str = ""
    tiktokUrl: str = ""
    facebookUrl: str = ""

class AdminSettingsUpdate(BaseModel):
    logoSize: Optional[int] = None
    datenschutzText: Optional[str] = None
    instagramUrl: Optional[str] = None
    tiktokUrl: Optional[str] = None
    facebookUrl: Optional[str] = None

    @field_validator("logoSize")
    @classmethod
    def clamp_logo_size(cls, v):
        if v is None:
            return v
        return max(LOGO_SIZE_MIN, min(LOGO_SIZE_MAX, v))

class PublicSettings(BaseModel):
    logoSize: int
    instagramUrl: str
    tiktokUrl: str
    facebookUrl: str

# Questionnaire request bodies
class ServiceSelection(BaseModel):
    serviceType: ServiceType

class SubcategorySelection(BaseModel):
    value: str
