"""Display metadata for the known candidate models.

Unknown identifiers fall back to the raw model id so a newly configured
model still shows something sensible.
"""

from __future__ import annotations

from dataclasses import dataclass

from kindred.chat.schemas import ModelInfo


@dataclass(frozen=True)
class CatalogEntry:
    display_name: str
    description: str
    status: str = "Active"


MODEL_CATALOG: dict[str, CatalogEntry] = {
    "llama-3.1-8b-instant": CatalogEntry(
        "Llama 3.1 8B Instant",
        "Fast, efficient model optimized for real-time conversations",
    ),
    "llama-3.1-70b-versatile": CatalogEntry(
        "Llama 3.1 70B Versatile",
        "More capable model with enhanced reasoning abilities",
    ),
    "llama3-8b-8192": CatalogEntry(
        "Llama 3 8B",
        "Reliable Llama 3 model with good performance",
    ),
    "mixtral-8x7b-32768": CatalogEntry(
        "Mixtral 8x7B",
        "Mixtral model with strong multilingual capabilities",
    ),
    "gemma-7b-it": CatalogEntry(
        "Gemma 7B IT",
        "Google's Gemma model fine-tuned for instruction following",
    ),
}


def display_name(model: str) -> str:
    entry = MODEL_CATALOG.get(model)
    return entry.display_name if entry else model


def model_info(model: str) -> ModelInfo:
    entry = MODEL_CATALOG.get(model)
    if entry is None:
        return ModelInfo(
            name=model,
            status="Unknown",
            description="Model information not available",
        )
    return ModelInfo(name=entry.display_name, status=entry.status, description=entry.description)
