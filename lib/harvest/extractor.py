"""Result card extractor.

Maps every loaded result card to a ``HotelRecord`` using the configured
field locators. Field reads are total: a missing element, missing attribute
or failed read gives the "N/A" sentinel for that field only.
"""

from typing import Any, List, Optional

from loguru import logger

from lib.harvest.config import FieldLocator, SiteLocators
from lib.harvest.errors import ExtractionStructuralFailure
from lib.harvest.models import UNAVAILABLE, DateWindow, HotelRecord
from lib.harvest.port import IPageInteractionPort, PortError


class Extractor:
    """Extracts hotel records from the loaded result cards."""

    def __init__(self, port: IPageInteractionPort, locators: SiteLocators, label: str = ""):
        self._port = port
        self._locators = locators
        self._prefix = f"[{label}] " if label else ""
        self._label = label

    async def extract(self, window: DateWindow) -> List[HotelRecord]:
        """Extract one record per loaded card."""
        try:
            cards = await self._port.query_all(self._locators.card)
        except PortError as e:
            raise ExtractionStructuralFailure(
                f"could not enumerate result cards: {e}", query=self._label or None
            ) from e

        logger.info(f"{self._prefix}Found {len(cards)} property cards")
        records = [await self.extract_card(card, window) for card in cards]
        logger.info(f"{self._prefix}Extracted {len(records)} hotel records")
        return records

    async def extract_card(self, card: Any, window: DateWindow) -> HotelRecord:
        values = {
            "check_in": window.check_in_str,
            "check_out": window.check_out_str,
        }
        for field_name, field_locator in self._locators.fields.items():
            if field_locator.multiple:
                values[field_name] = await self._read_all(card, field_locator)
            else:
                values[field_name] = await self._read_one(card, field_locator)
        return HotelRecord(**values)

    async def _read_one(self, card: Any, field_locator: FieldLocator) -> str:
        try:
            matches = await self._port.query_all(field_locator.locator, within=card)
            if not matches:
                return UNAVAILABLE
            value = await self._read_value(matches[0], field_locator.attribute)
        except PortError as e:
            logger.debug(f"{self._prefix}Field read failed for {field_locator.locator}: {e}")
            return UNAVAILABLE
        return value or UNAVAILABLE

    async def _read_all(self, card: Any, field_locator: FieldLocator) -> List[str]:
        try:
            matches = await self._port.query_all(field_locator.locator, within=card)
        except PortError as e:
            logger.debug(f"{self._prefix}Field read failed for {field_locator.locator}: {e}")
            return []

        values = []
        for match in matches:
            try:
                value = await self._read_value(match, field_locator.attribute)
            except PortError:
                continue
            if value:
                values.append(value)
        return values

    async def _read_value(self, handle: Any, attribute: Optional[str]) -> Optional[str]:
        if attribute:
            raw = await self._port.attribute_of(handle, attribute)
        else:
            raw = await self._port.text_of(handle)
        if raw is None:
            return None
        return raw.strip() or None
