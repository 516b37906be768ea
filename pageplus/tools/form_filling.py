from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import FormFieldMapping, FormInputElement
from pageplus.page.errors import PageBridgeError
from pageplus.page.forms import extract_input_selectors, has_input_markup
from pageplus.protocols.page import PageBridge
from pageplus.protocols.providers import AiProvider, ChunkSink
from pageplus.providers.base import fallback_form_mapping
from pageplus.providers.errors import ProviderUnavailable, SessionNotInitialized

logger = logging.getLogger(__name__)

NO_INPUTS_FOUND = "No form inputs were found in the selected area.\n"
NO_SUITABLE_DATA = "No suitable data was found to fill the form.\n"
FILL_TIMEOUT = (
    "Form filling is taking longer than expected. "
    "Please check if the form was filled successfully.\n"
)
FILL_SUCCESS = "\n✅ Form fields filled successfully.\n"


def collect_input_elements(context_items: Sequence[ContextItem]) -> list[FormInputElement]:
    """Real ``<input>``/``<textarea>`` nodes inside the captured fragments."""
    found: dict[str, FormInputElement] = {}
    for item in context_items:
        for element in item.elements:
            if not has_input_markup(element.html):
                continue
            for extracted in extract_input_selectors(element.html):
                found.setdefault(
                    extracted.selector,
                    FormInputElement(selector=extracted.selector, html=extracted.html, css=element.css),
                )
    return list(found.values())


def usable_values(mapping: FormFieldMapping, input_elements: Sequence[FormInputElement]) -> dict[str, str]:
    known = {element.selector for element in input_elements}
    return {selector: value for selector, value in mapping.items() if selector in known and value}


def preview_lines(values: dict[str, str]) -> list[str]:
    total = len(values)
    if total == 1:
        value = next(iter(values.values()))
        return [f'Will fill the form field with _"{value}"_\n']
    return [f'Will fill form field #{index} with _"{value}"_\n' for index, value in enumerate(values.values(), 1)]


class FillFormTool:
    def __init__(self, provider: AiProvider, page: PageBridge | None, *, timeout_s: float = 30.0) -> None:
        self._provider = provider
        self._page = page
        self._timeout_s = timeout_s

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        input_elements = collect_input_elements(context_items)
        if not input_elements:
            on_chunk(NO_INPUTS_FOUND)
            return

        try:
            mapping = await self._provider.execute_form_filling_structured(query, context_items, input_elements)
        except (ProviderUnavailable, SessionNotInitialized):
            raise
        except Exception as exc:
            logger.warning("form value generation failed, using heuristic values: %s", exc)
            on_chunk(f"⚠️ Could not generate values with the model ({exc}). Using default values.\n")
            mapping = fallback_form_mapping(input_elements)

        values = usable_values(mapping, input_elements)
        if not values:
            on_chunk(NO_SUITABLE_DATA)
            return

        noun = "input" if len(values) == 1 else "inputs"
        on_chunk(f"{len(values)} {noun} found in the selected area.\n\n")
        for line in preview_lines(values):
            on_chunk(line)
        on_chunk("\n")

        if self._page is None:
            on_chunk("❌ Error: the page is not reachable.\n")
            return
        try:
            response = await asyncio.wait_for(self._page.fill_form(values), timeout=self._timeout_s)
        except TimeoutError:
            logger.warning("fillForm timed out after %ss", self._timeout_s)
            on_chunk(FILL_TIMEOUT)
            return
        except PageBridgeError as exc:
            on_chunk(f"❌ Error: {exc}\n")
            return

        if response.success:
            on_chunk(FILL_SUCCESS)
        else:
            on_chunk(f"❌ Error filling form: {response.error or 'unknown error'}\n")


__all__ = ["FillFormTool", "collect_input_elements", "preview_lines", "usable_values"]
