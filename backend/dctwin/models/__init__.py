"""ORM Models: SQLAlchemy declarative models for the inventory graph.

Invariants:
    - All models inherit from Base (db/base.py)
    - Site is the aggregate root: rooms -> racks -> devices hang beneath it
    - equipment_history and anomalies are insert-mostly; history rows are never updated

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete for create_all and
      Alembic autogenerate
"""

from dctwin.models.site import Site  # noqa: F401
from dctwin.models.room import Room  # noqa: F401
from dctwin.models.rack import Rack  # noqa: F401
from dctwin.models.device_type import DeviceType  # noqa: F401
from dctwin.models.device import Device  # noqa: F401
from dctwin.models.equipment_history import EquipmentHistory  # noqa: F401
from dctwin.models.anomaly import Anomaly  # noqa: F401
