"""Validation utilities for dockship configuration."""

from pydantic import ValidationError as PydanticValidationError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into human-readable messages.

    Secret inputs are never echoed back.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        List of messages, one per field error
    """
    errors: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "config"
        msg = error.get("msg", "Unknown error")

        if field_path == "git_token":
            errors.append(f"Field '{field_path}': {msg}")
            continue

        if error.get("type") == "missing":
            errors.append(f"Field '{field_path}': is required")
        elif "input" in error and field_path != "config":
            errors.append(f"Field '{field_path}': {msg} (received: {error['input']!r})")
        else:
            errors.append(f"Field '{field_path}': {msg}")

    return errors if errors else ["Validation failed with unknown error"]
