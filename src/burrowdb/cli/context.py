"""Per-invocation CLI state: resolved configuration, open database, output mode."""

from dataclasses import dataclass, field

from burrowdb import BurrowDB
from burrowdb.config import BurrowConfig


def resolve_config(database: str | None, echo: bool) -> BurrowConfig:
    """Build the configuration for one CLI invocation.

    Starts from the ``BURROWDB_*`` environment, lets ``--database`` and
    ``--echo`` override it, and turns the entity cache off: commands read
    and delete raw documents, and a process-local cache would only go stale.
    """
    config = BurrowConfig.from_env()
    update: dict[str, object] = {"cache_enabled": False}
    if database:
        update["database_url"] = database
    if echo:
        update["echo"] = True
    return config.model_copy(update=update)


@dataclass
class CLIContext:
    """Shared state for CLI commands; the database opens on first use."""

    config: BurrowConfig
    json_output: bool = False
    _db: BurrowDB | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_options(cls, database: str | None, echo: bool, json_output: bool) -> "CLIContext":
        return cls(config=resolve_config(database, echo), json_output=json_output)

    @property
    def database_url(self) -> str:
        return self.config.database_url

    def get_db(self) -> BurrowDB:
        if self._db is None:
            self._db = BurrowDB(config=self.config)
        return self._db

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None
