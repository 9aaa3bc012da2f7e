import asyncio
import logging
from typing import Any

import google.generativeai as genai

from courtbook.config import settings
from courtbook.models.schemas import Availability
from courtbook.services.messages import availability_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful tennis court booking assistant.
Convert tennis court availability data into a friendly, conversational response.
Be concise but informative. Never invent time slots that are not in the data.
"""


class GeminiService:
    def __init__(self) -> None:
        self._model: Any = None

    @property
    def model(self) -> Any:
        if self._model is None:
            if settings.gemini_api_key:
                genai.configure(api_key=settings.gemini_api_key)
                self._model = genai.GenerativeModel(
                    model_name=settings.gemini_model,
                    system_instruction=SYSTEM_PROMPT,
                )
            else:
                self._model = None
        return self._model

    def _build_prompt(self, availability: Availability) -> str:
        times = ", ".join(availability.available_times) or "None available"
        prompt = (
            "Please summarize this tennis court availability data in a natural, friendly way:\n\n"
            f"Court: {availability.court}\n"
            f"Date: {availability.date}\n"
            f"Available times: {times}\n"
            f"Requested time: {availability.requested_time or 'None specified'}\n"
            f"Requested time available: {availability.requested_time_available}\n"
        )
        if availability.error:
            prompt += f"\nError occurred: {availability.error}\n"
        return prompt

    async def summarize_availability(self, availability: Availability) -> str:
        """A friendly sentence describing `availability`; the plain template if Gemini is unavailable."""
        if not self.model:
            return availability_message(availability)

        try:
            response = await asyncio.to_thread(
                self.model.generate_content, self._build_prompt(availability)
            )
            text = (response.text or "").strip()
            if text:
                return text
            logger.warning("Gemini returned an empty summary; using template")
        except Exception as e:
            logger.error(f"Gemini API error: {e}")
        return availability_message(availability)


gemini_service = GeminiService()
