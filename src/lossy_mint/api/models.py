"""Pydantic models for the public API payloads."""

from pydantic import BaseModel, ConfigDict, Field

from lossy_mint.domain.sessions import ArtifactMetadata, OutputType


class ArtifactMetadataPayload(BaseModel):
    """Visitor answers captured by the frontend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    answers: dict[str, object] = Field(default_factory=dict)
    mode: str | None = None
    speed: float | str | None = None
    file_uri: str | None = Field(default=None, alias="fileUri")
    ghost: str | None = None
    name: str | None = None
    zones: object | None = None

    def to_domain(self) -> ArtifactMetadata:
        return ArtifactMetadata(
            answers=dict(self.answers),
            mode=self.mode,
            speed=self.speed,
            file_uri=self.file_uri,
            ghost=self.ghost,
            name=self.name,
            zones=self.zones,
        )


class CreateSessionRequest(BaseModel):
    """Body of POST /api/session."""

    model_config = ConfigDict(populate_by_name=True)

    output_type: OutputType = Field(alias="outputType")
    metadata: ArtifactMetadataPayload
