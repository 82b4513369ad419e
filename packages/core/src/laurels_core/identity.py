from __future__ import annotations

import uuid

NAMESPACE_ORGANIZATION = uuid.UUID("3b1f8c52-94d6-4f0e-9b7a-0c5de4a1f2e7")
NAMESPACE_CATEGORY = uuid.UUID("a4e2d9b0-61c3-4a8f-8d15-2f7b9e0c3a64")
NAMESPACE_CEREMONY = uuid.UUID("5c9a07e3-d28b-47f1-a6e0-81b4c2f95d13")
NAMESPACE_NOMINATION = uuid.UUID("e07d41a8-3f95-4c2b-b86e-9a1c5d7f2e40")
NAMESPACE_TEXT = uuid.UUID("91c6f2d4-0b8a-4e37-a5f9-6d2e8b4c1a07")
NAMESPACE_REFERENCE = uuid.UUID("c2b85e19-7a4d-4f60-9e3b-d18f6a0c5b72")


def stable_uuid(namespace: uuid.UUID, name: str) -> uuid.UUID:
    return uuid.uuid5(namespace, name.strip())


def organization_id_for(name: str) -> uuid.UUID:
    return stable_uuid(NAMESPACE_ORGANIZATION, name)


def category_id_for(*, organization_id: uuid.UUID, short_name: str) -> uuid.UUID:
    return stable_uuid(NAMESPACE_CATEGORY, f"{organization_id}:{short_name.strip()}")


def ceremony_id_for(*, organization_id: uuid.UUID, year: int) -> uuid.UUID:
    return stable_uuid(NAMESPACE_CEREMONY, f"{organization_id}:{year}")


def nomination_id_for(*, work_id: uuid.UUID, ceremony_id: uuid.UUID, category_id: uuid.UUID) -> uuid.UUID:
    return stable_uuid(NAMESPACE_NOMINATION, f"{work_id}:{ceremony_id}:{category_id}")


def text_id_for(*, work_id: uuid.UUID, kind: str, language_code: str) -> uuid.UUID:
    return stable_uuid(NAMESPACE_TEXT, f"{work_id}:{kind}:{language_code.strip()}")


def reference_id_for(*, work_id: uuid.UUID, source_type: str, language_code: str) -> uuid.UUID:
    return stable_uuid(NAMESPACE_REFERENCE, f"{work_id}:{source_type}:{language_code.strip()}")
