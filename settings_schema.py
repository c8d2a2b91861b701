from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_SETTINGS = {
    "balance_threshold": 0.5,
    "rank_high_cutoff": 0.3,
    "rank_medium_cutoff": 0.5,
    "pair_difference": 1,
    "deload_factor": 0.9,
    "default_lookback_days": 7,
    "default_suggestion_limit": 5,
    "canonical_muscle_groups": "chest,back,legs,shoulders,arms,core",
    "complementary_pairs": "chest:back,legs:core,shoulders:arms",
}


class SettingsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    balance_threshold: float = Field(0.5, gt=0, lt=1)
    rank_high_cutoff: float = Field(0.3, gt=0, lt=1)
    rank_medium_cutoff: float = Field(0.5, gt=0, lt=1)
    pair_difference: int = Field(1, ge=0)
    deload_factor: float = Field(0.9, gt=0, le=1)
    default_lookback_days: int = Field(7, gt=0)
    default_suggestion_limit: int = Field(5, gt=0)
    canonical_muscle_groups: str = DEFAULT_SETTINGS["canonical_muscle_groups"]
    complementary_pairs: str = DEFAULT_SETTINGS["complementary_pairs"]

    @field_validator("complementary_pairs")
    @classmethod
    def _pairs_have_two_sides(cls, value: str) -> str:
        for item in value.split(","):
            if item.strip() and item.count(":") != 1:
                raise ValueError(f"pair {item!r} must look like 'a:b'")
        return value


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
