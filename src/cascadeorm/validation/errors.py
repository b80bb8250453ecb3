"""
Validation error raised by the model validation pipeline.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

NON_FIELD_ERRORS = "__all__"


class ValidationError(Exception):
    """
    Aggregated validation error storing a field-to-messages mapping.
    """

    def __init__(self, errors: Mapping[str, List[str]]) -> None:
        self.errors: Dict[str, List[str]] = {key: list(messages) for key, messages in errors.items()}
        super().__init__(self._format_message())

    @property
    def fields(self) -> List[str]:
        return [name for name in self.errors if name != NON_FIELD_ERRORS]

    def _format_message(self) -> str:
        segments = []
        for name, messages in self.errors.items():
            prefix = name if name != NON_FIELD_ERRORS else "non-field"
            segments.append(f"{prefix}: {'; '.join(messages)}")
        return "; ".join(segments)
