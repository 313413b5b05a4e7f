from __future__ import annotations


def mask_api_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) < 12:
        return "***masked***"
    return f"***{api_key[-4:]}"


def to_masked_credential(credential: dict[str, str]) -> dict[str, object]:
    api_key = credential.get("apiKey", "")
    return {
        "apiKey": mask_api_key(api_key),
        "configured": bool(api_key),
    }
