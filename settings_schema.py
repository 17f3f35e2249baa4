from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    db_path: str = "repstack.db"
    draft_path: str = "repstack_draft.db"
    autosave_interval: float = Field(default=30.0, gt=0)
    strict_transitions: bool = False
    default_target_reps: int = Field(default=8, ge=1)
    log_level: str = "INFO"


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
