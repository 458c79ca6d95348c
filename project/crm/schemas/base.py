# crm/schemas/base.py

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Базовая схема API: поля в snake_case внутри, camelCase в JSON.
    Принимает и fullName, и full_name; читает атрибуты ORM-моделей.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
