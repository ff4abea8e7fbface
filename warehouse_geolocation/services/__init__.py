from .sku_service import SkuService
from .warehouse_service import WarehouseService
from .slot_registry import SlotRegistry
from .occupancy_service import OccupancyService
from .geolocation_service import GeolocationService, ActionResult, LocationFilters

__all__ = [
    'SkuService',
    'WarehouseService',
    'SlotRegistry',
    'OccupancyService',
    'GeolocationService',
    'ActionResult',
    'LocationFilters'
]
