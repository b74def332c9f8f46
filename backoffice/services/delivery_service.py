from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from backoffice.config import Config
from backoffice.models import City, DeliveryService
from backoffice.services.parsing import clean_str, parse_bool, parse_int, parse_money


class DeliveryCatalogService:
    """Delivery services, the cities they cover, and delivery fee quotes."""

    def __init__(self, db_session: Session, config: type[Config] = Config) -> None:
        self.db = db_session
        self.config = config
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------
    def quote_fee(self, service: DeliveryService, distance_km: Optional[float] = None) -> Decimal:
        distance = self.config.DELIVERY_DISTANCE_KM if distance_km is None else distance_km
        return service.quote_fee(distance)

    # ------------------------------------------------------------------
    # Delivery services
    # ------------------------------------------------------------------
    def list_services(self, include_inactive: bool = False) -> List[DeliveryService]:
        query = self.db.query(DeliveryService).options(selectinload(DeliveryService.cities))
        if not include_inactive:
            query = query.filter(DeliveryService.is_active.is_(True))
        return query.order_by(DeliveryService.name).all()

    def get_service(self, service_id: str) -> Optional[DeliveryService]:
        return self.db.query(DeliveryService).filter_by(deliveryServiceID=service_id).first()

    def create_service(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[DeliveryService]]:
        name = clean_str(payload.get("name"))
        if not name:
            return False, "Name is required", None
        if any(payload.get(key) is None for key in ("basePrice", "pricePerKm", "estimatedDays")):
            return False, "basePrice, pricePerKm and estimatedDays are required", None

        service = DeliveryService(name=name, is_active=parse_bool(payload.get("isActive"), default=True))
        try:
            self._apply_pricing(service, payload)
        except ValueError as exc:
            return False, str(exc), None

        self.db.add(service)
        return self._commit(service, "Delivery service created successfully")

    def update_service(self, service_id: str, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[DeliveryService]]:
        service = self.get_service(service_id)
        if not service:
            return False, "Delivery service not found", None

        if "name" in payload:
            name = clean_str(payload.get("name"))
            if not name:
                return False, "Name cannot be empty", None
            service.name = name
        if "isActive" in payload:
            service.is_active = parse_bool(payload.get("isActive"))
        try:
            self._apply_pricing(service, payload)
        except ValueError as exc:
            self.db.rollback()
            return False, str(exc), None
        return self._commit(service, "Delivery service updated successfully")

    def assign_cities(self, service_id: str, city_ids: Iterable[str]) -> Tuple[bool, str, Optional[DeliveryService]]:
        service = self.get_service(service_id)
        if not service:
            return False, "Delivery service not found", None

        wanted = list(dict.fromkeys(city_ids))
        cities = self.db.query(City).filter(City.cityID.in_(wanted)).all() if wanted else []
        missing = set(wanted) - {city.cityID for city in cities}
        if missing:
            return False, f"Unknown city ids: {', '.join(sorted(missing))}", None

        service.cities = cities
        return self._commit(service, "Cities assigned successfully")

    @staticmethod
    def _apply_pricing(service: DeliveryService, payload: Dict[str, Any]) -> None:
        if payload.get("basePrice") is not None:
            base_price = parse_money(payload["basePrice"], "basePrice")
            if base_price < 0:
                raise ValueError("basePrice must be non-negative")
            service.base_price = base_price
        if payload.get("pricePerKm") is not None:
            price_per_km = parse_money(payload["pricePerKm"], "pricePerKm")
            if price_per_km < 0:
                raise ValueError("pricePerKm must be non-negative")
            service.price_per_km = price_per_km
        if payload.get("estimatedDays") is not None:
            days = parse_int(payload["estimatedDays"], "estimatedDays")
            if days < 1:
                raise ValueError("estimatedDays must be at least 1")
            service.estimated_days = days

    # ------------------------------------------------------------------
    # Cities
    # ------------------------------------------------------------------
    def list_cities(
        self,
        include_inactive: bool = False,
        delivery_service_id: Optional[str] = None,
    ) -> List[City]:
        query = self.db.query(City)
        if delivery_service_id:
            query = query.filter(City.delivery_services.any(DeliveryService.deliveryServiceID == delivery_service_id))
        if not include_inactive:
            query = query.filter(City.is_active.is_(True))
        return query.order_by(City.name).all()

    def get_city(self, city_id: str) -> Optional[City]:
        return self.db.query(City).filter_by(cityID=city_id).first()

    def create_city(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[City]]:
        name = clean_str(payload.get("name"))
        if not name:
            return False, "Name is required", None
        city = City(
            name=name,
            state=clean_str(payload.get("state")),
            country=clean_str(payload.get("country")),
            is_active=parse_bool(payload.get("isActive"), default=True),
        )
        self.db.add(city)
        return self._commit(city, "City created successfully")

    def update_city(self, city_id: str, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[City]]:
        city = self.get_city(city_id)
        if not city:
            return False, "City not found", None
        if "name" in payload:
            name = clean_str(payload.get("name"))
            if not name:
                return False, "Name cannot be empty", None
            city.name = name
        for field in ("state", "country"):
            if field in payload:
                setattr(city, field, clean_str(payload.get(field)))
        if "isActive" in payload:
            city.is_active = parse_bool(payload.get("isActive"))
        return self._commit(city, "City updated successfully")

    def _commit(self, obj, message: str):
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self.logger.warning("Duplicate delivery catalog entry rejected")
            return False, "An entry with the same name already exists", None
        self.db.refresh(obj)
        self.logger.info(message, extra={"entity": type(obj).__name__})
        return True, message, obj
