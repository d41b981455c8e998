# tarotapp/services/tarot_services.py
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from google.genai import errors as genai_errors

from tarotapp.models.llm_models import ChatMessage, CompletionRequest
from tarotapp.models.tarot_models import TarotCard
from tarotapp.models.user_models import UserProfile
from tarotapp.services.llm.llm_services import CompletionService
from tarotapp.services.llm.llm_utils import CompletionFormatError, extract_completion_text
from tarotapp.services.session_state import SessionState

logger = logging.getLogger(__name__)

# (month, first day of the later sign, sign before that day, sign from that day)
ZODIAC_BOUNDARIES = [
    (1, 20, "Capricorn", "Aquarius"),
    (2, 19, "Aquarius", "Pisces"),
    (3, 21, "Pisces", "Aries"),
    (4, 20, "Aries", "Taurus"),
    (5, 21, "Taurus", "Gemini"),
    (6, 21, "Gemini", "Cancer"),
    (7, 23, "Cancer", "Leo"),
    (8, 23, "Leo", "Virgo"),
    (9, 23, "Virgo", "Libra"),
    (10, 23, "Libra", "Scorpio"),
    (11, 22, "Scorpio", "Sagittarius"),
    (12, 22, "Sagittarius", "Capricorn"),
]

UNKNOWN_SIGN = "Unknown"

OVERALL_MAX_TOKENS = 4000
QUESTION_MAX_TOKENS = 400
DAILY_MAX_TOKENS = 2000


def zodiac_sign(month: int, day: int) -> str:
    for boundary_month, threshold, before, after in ZODIAC_BOUNDARIES:
        if month == boundary_month:
            return after if day >= threshold else before
    return UNKNOWN_SIGN


def zodiac_sign_for(date: datetime) -> str:
    return zodiac_sign(date.month, date.day)


language_prompts = {
    "en": {
        "zodiac": {
            "Aries": "♈ Aries", "Taurus": "♉ Taurus", "Gemini": "♊ Gemini", "Cancer": "♋ Cancer",
            "Leo": "♌ Leo", "Virgo": "♍ Virgo", "Libra": "♎ Libra", "Scorpio": "♏ Scorpio",
            "Sagittarius": "♐ Sagittarius", "Capricorn": "♑ Capricorn", "Aquarius": "♒ Aquarius",
            "Pisces": "♓ Pisces", UNKNOWN_SIGN: "Unknown sign",
        },
        "overall_header": "You are providing a tarot reading for the category: {category}.",
        "user_label": "User",
        "zodiac_label": "Zodiac Sign",
        "work_label": "Work Status",
        "relationship_label": "Relationship Status",
        "present_label": "Present",
        "past_label": "Past",
        "future_label": "Future",
        "overall_instruction": "Interpret the selected cards for the chosen category, taking the person's zodiac sign, work and relationship status into account. Make it mystical, playful and rich in emojis.",
        "overall_system": "You are a helpful assistant providing tarot readings.",
        "question_header": "Hello {username}! 🔮\nThe user asked the following question: {question}\nSelected tarot cards:",
        "question_instruction": "Please try to answer the user's question based on these cards.\nUse at most 10 sentences and support them with emojis! 🌟✨",
        "question_system": "You are a helpful tarot reader.",
        "daily_prompt": "A tarot card was drawn today: {card}. This is a daily one-card reading. Explain the card's meaning to the user in a positive, guiding and motivating way, with plenty of emojis. Keep it to at most 3 sentences.",
        "daily_system": "You are a helpful tarot card reader.",
        "select_cards_first": "Please select {count} cards first.",
        "error_llm": "Error during LLM processing: ",
        "error_format": "Error: the response could not be processed.",
        "error_timeout": "Error: the reading service did not answer in time. Please try again.",
        "error_rate_limit": "Rate limit exceeded by underlying API. Please wait and try again.",
        "error_no_profile": "Your profile is not loaded yet.",
    },
    "tr": {
        "zodiac": {
            "Aries": "♈ Koç", "Taurus": "♉ Boğa", "Gemini": "♊ İkizler", "Cancer": "♋ Yengeç",
            "Leo": "♌ Aslan", "Virgo": "♍ Başak", "Libra": "♎ Terazi", "Scorpio": "♏ Akrep",
            "Sagittarius": "♐ Yay", "Capricorn": "♑ Oğlak", "Aquarius": "♒ Kova",
            "Pisces": "♓ Balık", UNKNOWN_SIGN: "Bilinmeyen Burç",
        },
        "overall_header": "You are providing a tarot reading for the category: {category}.",
        "user_label": "User",
        "zodiac_label": "Zodiac Sign",
        "work_label": "Work Status",
        "relationship_label": "Relationship Status",
        "present_label": "Present",
        "past_label": "Past",
        "future_label": "Future",
        "overall_instruction": "Seçilen kategoriye, kişinin doğum gününü göz önünde bulundurarak burcunu da ele alarak, iş ve ilişki durumunu da göz önünde bulundurarak seçilen kartları yorumla. Mistik, eğlenceli, bol emojili bir yorum yap. Yorum Türkçe olsun.",
        "overall_system": "You are a helpful assistant providing tarot readings.",
        "question_header": "Merhaba {username}! 🔮\nKullanıcı şu soruyu sordu: {question}\nSeçilen tarot kartları:",
        "question_instruction": "Lütfen bu kartlara göre kullanıcının sorusuna cevap vermeye çalış.\nEn fazla 10 cümle olsun, emojilerle destekle! 🌟✨",
        "question_system": "You are a helpful tarot reader.",
        "daily_prompt": "Bugün bir tarot kartı seçildi: {card}. Bu bir günlük kart açılımı. Bu kartın anlamını kullanıcıya pozitif, rehberlik edici ve motive edici bir şekilde açıklayın. Emojilerle bol bol destekle. Maksimum 3 cümle uzunluğunda olsun.",
        "daily_system": "You are a helpful tarot card reader.",
        "select_cards_first": "Lütfen önce {count} kart seçin.",
        "error_llm": "Hata: ",
        "error_format": "Hata: Yanıt işlenemedi.",
        "error_timeout": "Hata: Sunucudan zamanında yanıt alınamadı.",
        "error_rate_limit": "Hata: İstek sınırı aşıldı, lütfen biraz bekleyin.",
        "error_no_profile": "Profil bilgileri henüz yüklenmedi.",
    },
}


def get_prompt_data(language: str) -> dict:
    return language_prompts.get(language, language_prompts["en"])


def build_overall_prompt(selected: List[TarotCard], profile: UserProfile, category: str, language: str = "en") -> str:
    """
    Card positions are fixed by selection order: index 0 is the present,
    1-3 the past and 4-6 the future.
    """
    if len(selected) != 7:
        raise ValueError(f"An overall reading needs exactly 7 cards, got {len(selected)}")
    prompt_data = get_prompt_data(language)

    present_card = selected[0]
    past_names = ", ".join(card.name for card in selected[1:4])
    future_names = ", ".join(card.name for card in selected[4:7])
    sign = zodiac_sign_for(profile.birth_date)

    return (
        f"{prompt_data['overall_header'].format(category=category)}\n\n"
        f"- {prompt_data['user_label']}: {profile.name}\n"
        f"- {prompt_data['zodiac_label']}: {prompt_data['zodiac'][sign]}\n"
        f"- {prompt_data['work_label']}: {profile.work_status}\n"
        f"- {prompt_data['relationship_label']}: {profile.relationship_status}\n\n"
        f"- {prompt_data['present_label']}: {present_card.name}\n"
        f"- {prompt_data['past_label']}: {past_names}\n"
        f"- {prompt_data['future_label']}: {future_names}\n\n"
        f"{prompt_data['overall_instruction']}"
    )


def build_question_prompt(question: str, cards: List[TarotCard], username: str, language: str = "en") -> str:
    prompt_data = get_prompt_data(language)
    prompt = prompt_data["question_header"].format(username=username, question=question) + "\n"
    for card in cards:
        prompt += f"- {card.name}\n"
    prompt += f"\n{prompt_data['question_instruction']}"
    return prompt


def build_daily_prompt(card: TarotCard, language: str = "en") -> str:
    return get_prompt_data(language)["daily_prompt"].format(card=card.name)


class ReadingGenerator:
    """
    Builds prompts from session state and runs them through the completion
    service. Results and errors both end up in `state.reading_text`; nothing
    raised by the service escapes.
    """

    def __init__(
        self,
        completion_service: CompletionService,
        model: str,
        temperature: Optional[float] = 0.7,
        language: str = "en",
        timeout: float = 60.0,
    ):
        self.completion_service = completion_service
        self.model = model
        self.temperature = temperature
        self.language = language
        self.timeout = timeout

    @property
    def prompt_data(self) -> dict:
        return get_prompt_data(self.language)

    async def generate_overall_reading(self, state: SessionState) -> None:
        if not state.begin_generation():
            return
        if state.profile is None:
            state.fail_generation(self.prompt_data["error_no_profile"])
            return

        prompt = build_overall_prompt(state.selected, state.profile, state.selected_category.value, self.language)
        logger.info(f"Generating overall reading for {state.profile.username}")
        await self._run(state, prompt, self.prompt_data["overall_system"], OVERALL_MAX_TOKENS)

    async def answer_question(self, state: SessionState) -> None:
        if len(state.selected) < state.capacity:
            state.show_message(self.prompt_data["select_cards_first"].format(count=state.capacity))
            return
        if not state.begin_generation():
            return
        username = state.profile.username if state.profile is not None else ""

        prompt = build_question_prompt(state.question, state.selected, username, self.language)
        logger.info(f"Answering question for {username}")
        await self._run(state, prompt, self.prompt_data["question_system"], QUESTION_MAX_TOKENS)

    async def generate_daily_reading(self, state: SessionState) -> None:
        if not state.begin_generation():
            return
        prompt = build_daily_prompt(state.selected[0], self.language)
        await self._run(state, prompt, self.prompt_data["daily_system"], DAILY_MAX_TOKENS)

    async def _run(self, state: SessionState, prompt: str, system_instruction: str, max_tokens: int) -> None:
        logger.debug(prompt)
        request = CompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=system_instruction),
                ChatMessage(role="user", content=prompt),
            ],
            max_tokens=max_tokens,
            temperature=self.temperature,
        )

        text = None
        error_message = None
        state.set_loading(True)
        try:
            response = await asyncio.wait_for(self.completion_service.complete(request), timeout=self.timeout)
            text = extract_completion_text(response)
        except CompletionFormatError as e:
            logger.error(f"Malformed completion response: {e}")
            error_message = self.prompt_data["error_format"]
        except asyncio.TimeoutError:
            logger.error(f"Completion request timed out after {self.timeout}s")
            error_message = self.prompt_data["error_timeout"]
        except genai_errors.APIError as e:
            logger.error(f"Gemini API error: {e}")
            if e.code == 429:
                error_message = self.prompt_data["error_rate_limit"]
            else:
                error_message = f"{self.prompt_data['error_llm']}{e}"
        except Exception as e:
            logger.error(f"Error during LLM processing: {e}", exc_info=True)
            error_message = f"{self.prompt_data['error_llm']}{e}"
        finally:
            state.set_loading(False)

        if error_message is not None:
            state.fail_generation(error_message)
        else:
            state.complete_generation(text)
