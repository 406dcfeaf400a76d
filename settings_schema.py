from typing import Union

from pydantic import BaseModel, ValidationError, field_validator


class SettingsSchema(BaseModel):
    theme: str = "light"
    weight_unit: str = "kg"
    language: str = "en"
    rest_default_seconds: int = 90
    rest_presets: str = "15,30,45,90,120,180"
    rest_extend_options: str = "30,60"
    beep_frequency: float = 880.0
    sound_enabled: bool = True
    vibration_enabled: bool = True
    default_payment_amount: float = 45.0
    api_token: Union[str, bool] = ""

    @field_validator("weight_unit")
    @classmethod
    def _unit(cls, value: str) -> str:
        if value not in {"kg", "lb"}:
            raise ValueError("weight_unit must be kg or lb")
        return value

    @field_validator("language")
    @classmethod
    def _language(cls, value: str) -> str:
        if value not in {"en", "it"}:
            raise ValueError("language must be en or it")
        return value

    @field_validator("rest_presets", "rest_extend_options")
    @classmethod
    def _seconds_list(cls, value: str) -> str:
        parts = [p.strip() for p in value.split(",") if p.strip()]
        if not parts or not all(p.isdigit() and int(p) > 0 for p in parts):
            raise ValueError("expected comma separated positive seconds")
        return value

    @field_validator("rest_default_seconds")
    @classmethod
    def _rest(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("rest_default_seconds must be positive")
        return value


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
