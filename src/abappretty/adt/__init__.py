"""ADT REST API access.

Public API
----------
.. autoclass:: AdtClient
.. autoclass:: AdtError
.. autoclass:: SessionType
"""

from abappretty.adt.client import AdtClient, AdtError, SessionType
from abappretty.adt.repository import expand, list_objects, supported_type

__all__ = [
    "AdtClient",
    "AdtError",
    "SessionType",
    "expand",
    "list_objects",
    "supported_type",
]
