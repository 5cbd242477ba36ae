from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Базовая модель: в Python snake_case, наружу camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """Словарь для отправки клиенту через Socket.IO."""
        return self.model_dump(mode="json", by_alias=True)
