from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import build_repositories
from ..models import ClassType, Currency
from ..schemas import CapacityRead, LanguageRead, PriceRead, RegistrationWindowRead, ScheduleRead
from ..usecases import catalog as catalog_usecase
from .errors import to_http_exception

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/schedules", response_model=List[ScheduleRead])
async def list_schedules(
    class_type: Optional[ClassType] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[ScheduleRead]:
    repos = build_repositories(session)
    rows = await catalog_usecase.list_schedules(repos.schedules, class_type=class_type)
    return [ScheduleRead.from_db(schedule=row) for row in rows]


@router.get("/languages", response_model=List[LanguageRead])
async def list_languages(session: AsyncSession = Depends(get_session)) -> list[LanguageRead]:
    repos = build_repositories(session)
    rows = await repos.languages.list_all()
    return [LanguageRead.from_db(language=row) for row in rows]


@router.get("/prices", response_model=List[PriceRead])
async def list_prices(
    class_type: ClassType = Query(default=ClassType.NORMAL),
    currency: Currency = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[PriceRead]:
    repos = build_repositories(session)
    rows = await catalog_usecase.list_prices(repos.prices, class_type=class_type, currency=currency)
    return [PriceRead.from_db(price=row) for row in rows]


@router.get("/capacity", response_model=CapacityRead)
async def get_capacity(
    class_type: ClassType = Query(default=ClassType.NORMAL),
    session: AsyncSession = Depends(get_session),
) -> CapacityRead:
    repos = build_repositories(session)
    try:
        rule = await catalog_usecase.get_capacity_rule(repos.capacities, class_type=class_type)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return CapacityRead.from_db(rule=rule)


@router.get("/registration-window", response_model=RegistrationWindowRead)
async def get_registration_window(session: AsyncSession = Depends(get_session)) -> RegistrationWindowRead:
    repos = build_repositories(session)
    try:
        window = await catalog_usecase.get_registration_window(repos.windows)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return RegistrationWindowRead.from_db(window=window)
