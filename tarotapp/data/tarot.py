# tarotapp/data/tarot.py
import json
import logging
import random
from typing import Dict, List

from tarotapp.models.tarot_models import TarotCard

logger = logging.getLogger(__name__)

tarot_cards: List[Dict[str, str]] = []


def load_tarot_data(filepath):
    """
    Load the bundled card catalog. Only `name` and `img` are kept; entries
    missing either are skipped.
    """
    global tarot_cards
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)

    tarot_cards.clear()
    for card in data.get("cards", []):
        name = card.get("name")
        img = card.get("img")
        if isinstance(name, str) and isinstance(img, str):
            tarot_cards.append({"name": name, "img": img})
    logger.info(f"Loaded {len(tarot_cards)} tarot cards from {filepath}")
    return tarot_cards


def new_shuffled_deck() -> List[TarotCard]:
    """A freshly shuffled deck with new card ids."""
    deck = [TarotCard(name=card["name"], img=card["img"]) for card in tarot_cards]
    random.shuffle(deck)
    return deck
