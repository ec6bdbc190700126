import yaml, json, logging, typing as t
from pathlib import Path

import jsonschema

from .config import COLLECTIONS_FILE
from .errors import ErrorClassifier
from .realtime import SubscriptionRegistry
from .service import CollectionService, ServiceConfig
from .transport import RecordClient

log = logging.getLogger("recordkit.catalog")

CATALOG_SCHEMA: dict[str, t.Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/collections.schema.json",
    "title": "Collection Catalog",
    "type": "object",
    "required": ["collections"],
    "properties": {
        "collections": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "collection": {"type": "string", "minLength": 1},
                    "defaultSort": {"type": "string"},
                    "defaultExpand": {
                        "oneOf": [
                            {"type": "string"},
                            {"type": "array", "items": {"type": "string"}},
                        ]
                    },
                    "fieldMapping": {
                        "type": "object",
                        "additionalProperties": {"type": "string"},
                    },
                    "retries": {"type": "integer", "minimum": 0},
                },
            },
        }
    },
}


class CollectionCatalog:
    """
    Named per-collection service settings, read from a YAML or JSON file:

        collections:
          projects:
            defaultSort: -created
            defaultExpand: [owner]
            fieldMapping: {ownerId: owner}

    The store collection name defaults to the entry name.
    """

    def __init__(self, path: t.Optional[Path] = None):
        self.path = Path(path) if path is not None else COLLECTIONS_FILE
        self.configs: dict[str, ServiceConfig] = {}
        self._services: dict[str, CollectionService] = {}

    @classmethod
    def from_mapping(cls, cfg: dict[str, t.Any]) -> "CollectionCatalog":
        catalog = cls()
        catalog.load_mapping(cfg)
        return catalog

    def load(self) -> None:
        if not self.path.exists():
            raise RuntimeError(f"Collections file not found: {self.path}")
        with self.path.open("r", encoding="utf-8") as f:
            if self.path.suffix.lower() in (".yaml", ".yml"):
                cfg = yaml.safe_load(f)
            else:
                cfg = json.load(f)
        self.load_mapping(cfg or {})
        log.info("Loaded %d collections from %s", len(self.configs), self.path)

    def load_mapping(self, cfg: dict[str, t.Any]) -> None:
        jsonschema.validate(instance=cfg, schema=CATALOG_SCHEMA)
        norm: dict[str, ServiceConfig] = {}
        for name, entry in cfg.get("collections", {}).items():
            entry = dict(entry or {})
            entry.setdefault("collection", name)
            norm[name] = ServiceConfig.from_dict(entry)
        self.configs = norm
        self._services = {}

    def names(self) -> list[str]:
        return list(self.configs.keys())

    def config_for(self, name: str) -> ServiceConfig:
        if name not in self.configs:
            raise KeyError(f"Unknown collection: {name}")
        return self.configs[name]

    def service_for(
        self,
        name: str,
        client: RecordClient,
        subscriptions: t.Optional[SubscriptionRegistry] = None,
        classifier: t.Optional[ErrorClassifier] = None,
    ) -> CollectionService:
        """One cached service per catalog entry; later arguments are ignored once built."""
        cached = self._services.get(name)
        if cached is not None:
            return cached
        service: CollectionService = CollectionService(
            client,
            self.config_for(name),
            subscriptions=subscriptions,
            classifier=classifier,
        )
        self._services[name] = service
        return service


__all__ = ["CollectionCatalog", "CATALOG_SCHEMA"]
