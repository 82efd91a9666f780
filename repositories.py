import logging
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from models import (
    AdminSettings,
    AdminSettingsUpdate,
    CustomerInquiry,
    FormData,
    InquiryStatus,
)
from storage import KeyValueStore

logger = logging.getLogger(__name__)

INQUIRIES_KEY = "inquiries"
SETTINGS_KEY = "admin_settings"
ADMIN_FLAG_KEY = "admin_flag"

_inquiry_list = TypeAdapter(List[CustomerInquiry])


class InquiryRepository:
    """Most-recent-first list of inquiries stored as a single record"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def _load(self) -> List[CustomerInquiry]:
        raw = await self.store.read(INQUIRIES_KEY, [])
        try:
            return _inquiry_list.validate_python(raw)
        except ValidationError as e:
            logger.warning("Stored inquiries are invalid, starting from an empty list: %s", e)
            return []

    async def _save(self, inquiries: List[CustomerInquiry]) -> None:
        await self.store.write(INQUIRIES_KEY, _inquiry_list.dump_python(inquiries, mode="json"))

    async def add(self, form_data: FormData) -> str:
        inquiry = CustomerInquiry(formData=form_data.model_copy(deep=True))
        inquiries = await self._load()
        inquiries.insert(0, inquiry)
        await self._save(inquiries)
        logger.info("Created inquiry %s (%s)", inquiry.id, form_data.serviceType.value)
        return inquiry.id

    async def update_status(self, inquiry_id: str, status: InquiryStatus) -> None:
        inquiries = await self._load()
        for inquiry in inquiries:
            if inquiry.id == inquiry_id:
                inquiry.status = InquiryStatus(status)
                await self._save(inquiries)
                logger.info("Inquiry %s status set to %s", inquiry_id, inquiry.status.value)
                return

    async def remove(self, inquiry_id: str) -> None:
        inquiries = await self._load()
        remaining = [i for i in inquiries if i.id != inquiry_id]
        if len(remaining) != len(inquiries):
            await self._save(remaining)
            logger.info("Deleted inquiry %s", inquiry_id)

    async def find_by_id(self, inquiry_id: str) -> Optional[CustomerInquiry]:
        for inquiry in await self._load():
            if inquiry.id == inquiry_id:
                return inquiry
        return None

    async def list(self) -> List[CustomerInquiry]:
        return await self._load()


def _matches_search(inquiry: CustomerInquiry, term: str) -> bool:
    form = inquiry.formData
    candidates = [form.email, form.firstName, form.lastName, form.details.pickupAddress]
    return any(value and term in value.lower() for value in candidates)


def filter_inquiries(
    inquiries: List[CustomerInquiry],
    status_filter: str = "all",
    search: str = ""
) -> List[CustomerInquiry]:
    """Admin list projection: status equality AND substring search over
    email, first name, last name and pickup address."""
    term = (search or "").lower()
    result = []
    for inquiry in inquiries:
        if status_filter and status_filter != "all" and inquiry.status.value != status_filter:
            continue
        if term and not _matches_search(inquiry, term):
            continue
        result.append(inquiry)
    return result


def count_by_status(inquiries: List[CustomerInquiry]) -> Dict[str, int]:
    counts = {s.value: 0 for s in InquiryStatus}
    for inquiry in inquiries:
        counts[inquiry.status.value] += 1
    counts["total"] = len(inquiries)
    return counts


class SettingsRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get(self) -> AdminSettings:
        raw = await self.store.read(SETTINGS_KEY, None)
        if raw is None:
            return AdminSettings()
        try:
            return AdminSettings.model_validate(raw)
        except ValidationError as e:
            logger.warning("Stored settings are invalid, using defaults: %s", e)
            return AdminSettings()

    async def update(self, updates) -> AdminSettings:
        """Merge the given fields into the stored settings. Accepts a dict or
        an AdminSettingsUpdate; unset fields keep their previous value.
        Raises ValidationError, without writing, if a field has the wrong type."""
        if isinstance(updates, AdminSettingsUpdate):
            updates = updates.model_dump(exclude_unset=True, exclude_none=True)
        current = await self.get()
        merged = AdminSettings.model_validate({**current.model_dump(), **updates})
        await self.store.write(SETTINGS_KEY, merged.model_dump(mode="json"))
        logger.info("Updated settings: %s", ", ".join(sorted(updates)) or "nothing")
        return merged


class AdminFlagRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def is_set(self) -> bool:
        return await self.store.read(ADMIN_FLAG_KEY, False) is True

    async def set(self, value: bool) -> None:
        await self.store.write(ADMIN_FLAG_KEY, bool(value))
