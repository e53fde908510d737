from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from app.help.knowledge_base import FORM_FIELD_HELP, KNOWLEDGE_BASE, PAGE_HELP, HelpEntry
from app.help.schemas import HelpResponse

logger = logging.getLogger("app.help")

GENERAL_ELEMENT = "general"


def _response(entry: HelpEntry) -> HelpResponse:
    return HelpResponse(
        explanation=entry.explanation,
        tips=list(entry.tips),
        related_features=list(entry.related_features),
    )


def default_help(context: str, element: str | None) -> HelpResponse:
    suffix = f" specifically for {element}" if element else ""
    return HelpResponse(
        explanation=f"This section provides functionality for {context}{suffix}.",
        tips=[
            "Explore the available options and features",
            "Contact support if you need additional assistance",
        ],
        related_features=["Documentation", "Support"],
    )


def _page_help(context: str, subject: str, element: str | None) -> HelpResponse:
    entry = PAGE_HELP.get(subject)
    if entry is None:
        return default_help(context, element)
    return _response(entry)


def _form_help(context: str, subject: str, element: str | None) -> HelpResponse:
    entry = FORM_FIELD_HELP.get(element or GENERAL_ELEMENT)
    if entry is not None:
        return _response(entry)
    return HelpResponse(
        explanation=f"This field is part of the {subject} form and is used to collect important information.",
        tips=["Fill out all required fields accurately", "Review your entries before submitting"],
        related_features=["Data Management", "Form Validation"],
    )


def _button_help(context: str, subject: str, element: str | None) -> HelpResponse:
    return HelpResponse(
        explanation=f"This button performs the {element or subject} action. Click to run the operation.",
        tips=["Ensure all required information is entered before clicking", "Review your data for accuracy"],
        related_features=["Form Validation", "Data Processing"],
    )


def _feature_help(context: str, subject: str, element: str | None) -> HelpResponse:
    return HelpResponse(
        explanation=f"The {subject} feature provides functionality for {element or 'managing related operations'}.",
        tips=["Explore the different options available", "Refer to the documentation for advanced features"],
        related_features=["Related Tools", "Advanced Options"],
    )


KindGenerator = Callable[[str, str, str | None], HelpResponse]

_GENERATORS: Mapping[str, KindGenerator] = {
    "page": _page_help,
    "form": _form_help,
    "button": _button_help,
    "feature": _feature_help,
}


@dataclass(slots=True)
class HelpService:
    """Resolves contextual help from a static knowledge base.

    Lookup order: the exact ``(context, element)`` entry, the context's
    ``general`` entry, a generator keyed on the context kind (the text before
    the first ``-``), then a generic sentence built from the raw inputs.
    """

    knowledge_base: Mapping[str, Mapping[str, HelpEntry]] = field(default_factory=lambda: KNOWLEDGE_BASE)

    def get_help(self, context: str, element: str | None = None) -> HelpResponse:
        entries = self.knowledge_base.get(context)
        if entries is not None:
            if element and element in entries:
                return _response(entries[element])
            if GENERAL_ELEMENT in entries:
                return _response(entries[GENERAL_ELEMENT])

        kind, _, subject = context.partition("-")
        generator = _GENERATORS.get(kind)
        if generator is None or not subject:
            logger.debug("help.generic_fallback", extra={"entity_type": context})
            return default_help(context, element)
        return generator(context, subject, element)


help_service = HelpService()
