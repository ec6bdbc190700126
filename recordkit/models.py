from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    """
    Base shape of every stored record. Attributes are snake_case in Python and
    camelCase (application naming) when validated from or dumped to dicts.
    """

    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    id: str
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    collection_id: Optional[str] = None
    collection_name: Optional[str] = None
