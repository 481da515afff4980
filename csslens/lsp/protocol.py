"""Custom requests the stylesheet backend sends to the editor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from csslens.core.attribution import AttributionModel, AttributionPayloadError

SHOW_COMPANION_METHOD = "bhc/ShowDocumentRequest"


@dataclass(frozen=True)
class ShowCompanionRequest:
    companion_uri: str
    model: AttributionModel

    @classmethod
    def from_params(cls, params: object) -> "ShowCompanionRequest":
        if not isinstance(params, dict):
            raise AttributionPayloadError(f"{SHOW_COMPANION_METHOD} params must be an object")
        uri = str(params.get("companionUri") or params.get("uri") or "").strip()
        if not uri:
            raise AttributionPayloadError(f"{SHOW_COMPANION_METHOD} is missing the companion uri")
        file_payload: Any = params.get("file")
        if file_payload is None:
            raise AttributionPayloadError(f"{SHOW_COMPANION_METHOD} for {uri} carries no 'file'")
        return cls(companion_uri=uri, model=AttributionModel.from_payload(file_payload))
