from decimal import Decimal
from typing import Dict, Sequence

from ..domain.errors import (
    CapacityRuleNotFoundError,
    LanguageNotFoundError,
    PriceNotFoundError,
    RegistrationWindowNotFoundError,
    SlotNotFoundError,
)
from ..domain.repositories import (
    CapacityRuleRepository,
    LanguageRepository,
    PriceRepository,
    RegistrationWindowRepository,
    ScheduleRepository,
)
from ..domain.services import PriceTotals, compute_totals, validate_window_intervals
from ..models import (
    ClassCapacity,
    ClassLanguage,
    ClassPrice,
    ClassSchedule,
    ClassType,
    Currency,
    ParticipantCategory,
    RegistrationWindow,
)


async def find_start_time(
    schedule_repo: ScheduleRepository,
    *,
    time_slot: str,
    class_type: ClassType,
) -> ClassSchedule:
    schedule = await schedule_repo.find_start_time(time_slot, class_type)
    if schedule is None:
        raise SlotNotFoundError(f"no {class_type} class starts at {time_slot}")
    return schedule


async def find_language(language_repo: LanguageRepository, *, name: str) -> ClassLanguage:
    language = await language_repo.find_by_name(name)
    if language is None:
        raise LanguageNotFoundError(f"language {name!r} is not offered")
    return language


async def find_price(
    price_repo: PriceRepository,
    *,
    class_type: ClassType,
    currency: Currency,
    category: ParticipantCategory,
) -> Decimal:
    price = await price_repo.find_price(class_type, currency, category)
    if price is None:
        raise PriceNotFoundError(f"no {category} price for {class_type} in {currency}")
    return price


async def compute_booking_totals(
    price_repo: PriceRepository,
    *,
    class_type: ClassType,
    currency: Currency,
    adults: int,
    children: int,
) -> PriceTotals:
    unit_prices: Dict[ParticipantCategory, Decimal] = {}
    for category, count in ((ParticipantCategory.ADULT, adults), (ParticipantCategory.CHILD, children)):
        if count > 0:
            unit_prices[category] = await find_price(
                price_repo, class_type=class_type, currency=currency, category=category
            )
    return compute_totals(unit_prices, adults=adults, children=children)


async def get_capacity_rule(capacity_repo: CapacityRuleRepository, *, class_type: ClassType) -> ClassCapacity:
    rule = await capacity_repo.get_rule(class_type)
    if rule is None:
        raise CapacityRuleNotFoundError(f"no capacity configured for {class_type}")
    return rule


async def get_registration_window(window_repo: RegistrationWindowRepository) -> RegistrationWindow:
    """Load the active window, refusing one whose cutoffs would contradict each other."""
    window = await window_repo.get_active()
    if window is None:
        raise RegistrationWindowNotFoundError("no registration window configured")
    validate_window_intervals(window.close_before_start_interval, window.final_registration_close_interval)
    return window


async def list_schedules(schedule_repo: ScheduleRepository, *, class_type: ClassType | None) -> Sequence[ClassSchedule]:
    return await schedule_repo.list_by_type(class_type)


async def list_prices(
    price_repo: PriceRepository,
    *,
    class_type: ClassType,
    currency: Currency,
) -> Sequence[ClassPrice]:
    return await price_repo.list_prices(class_type, currency)
