from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class ControlMessage(BaseModel):
    """Language configuration sent by the client as a text frame.

    `originalLanguage` / `translatedLanguage` are accepted for older clients.
    """
    model_config = ConfigDict(extra="ignore")

    type: Literal["config"] = "config"
    source_language: str = Field(
        min_length=1,
        validation_alias=AliasChoices("sourceLanguage", "originalLanguage"),
    )
    target_language: str = Field(
        min_length=1,
        validation_alias=AliasChoices("targetLanguage", "translatedLanguage"),
    )

class ResultMessage(BaseModel):
    original: str
    translated: str
    synthesized_audio_base64: Optional[str] = Field(default=None, serialization_alias="synthesizedAudioBase64")

class ErrorMessage(BaseModel):
    error: str

class HealthResponse(BaseModel):
    status: str
    message: str
