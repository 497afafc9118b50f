"""Shared data models and types."""

from dataclasses import dataclass, field
from enum import Enum


class StageStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one best-effort boot stage."""

    stage: str
    status: StageStatus
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in (StageStatus.OK, StageStatus.SKIPPED)

    def to_dict(self) -> dict:
        return {"stage": self.stage, "status": self.status.value, "detail": self.detail}


@dataclass
class BootReport:
    """Stage results for one boot plus the gateway's exit code."""

    results: list[StageResult] = field(default_factory=list)
    exit_code: int | None = None

    def add(self, result: StageResult) -> StageResult:
        self.results.append(result)
        return result

    @property
    def degraded(self) -> bool:
        return any(not r.succeeded for r in self.results)


@dataclass(frozen=True)
class ModelDescriptor:
    """A model entry in a provider's catalog."""

    id: str
    name: str
    context_window: int
    alias: str

    def to_doc(self) -> dict:
        return {"id": self.id, "name": self.name, "contextWindow": self.context_window}


@dataclass(frozen=True)
class ProviderDefinition:
    """An upstream model-serving endpoint and its model catalog."""

    key: str
    base_url: str
    api: str
    models: tuple[ModelDescriptor, ...]
    api_key: str | None = None

    def to_doc(self) -> dict:
        doc = {"baseUrl": self.base_url, "api": self.api}
        if self.api_key:
            doc["apiKey"] = self.api_key
        doc["models"] = [m.to_doc() for m in self.models]
        return doc

    def model_ref(self, model: ModelDescriptor) -> str:
        return f"{self.key}/{model.id}"